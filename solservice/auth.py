from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from solservice.base.dependencies import get_session
from solservice.user.models import User


@dataclass(frozen=True)
class Caller:
    user: User
    permissions: frozenset[str]


async def get_current_user(
    x_user: str = Header(),
    session: AsyncSession = Depends(get_session),
) -> User:
    if ":" not in x_user:
        raise HTTPException(status_code=400, detail="X-User must be 'name:email'")

    name, email = x_user.split(":", maxsplit=1)
    if not name or not email:
        raise HTTPException(
            status_code=400, detail="X-User name and email must not be empty"
        )

    stmt = select(User).where(User.email == email)
    user = (await session.execute(stmt)).scalar_one_or_none()

    if user is None:
        user = User(name=name, email=email)
        session.add(user)
        await session.flush()

    return user


def parse_permissions(header: str | None) -> frozenset[str]:
    if not header:
        return frozenset()
    return frozenset(p.strip() for p in header.split(",") if p.strip())


def require_permission(permission: str) -> Callable[..., Awaitable[Caller]]:
    """Dependency factory: resolve the caller and demand `permission`.

    The permission set is issued by the upstream identity provider and
    forwarded in ``X-Permissions``; ``admin:all`` grants everything.
    """

    async def dependency(
        user: User = Depends(get_current_user),
        x_permissions: str | None = Header(default=None),
    ) -> Caller:
        permissions = parse_permissions(x_permissions)
        if permission not in permissions and "admin:all" not in permissions:
            raise HTTPException(
                status_code=403, detail=f"Missing permission '{permission}'"
            )
        return Caller(user=user, permissions=permissions)

    return dependency
