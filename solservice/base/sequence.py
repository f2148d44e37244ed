from __future__ import annotations

from collections.abc import Awaitable, Callable

from sqlalchemy import Integer, String, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from solservice.base.models import BaseDbModel


class Sequence(BaseDbModel):
    """Named monotonic counter, advanced with a single atomic upsert."""

    __tablename__ = "sequences"

    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False)


async def next_value(
    session: AsyncSession,
    name: str,
    seed: Callable[[], Awaitable[int]] | None = None,
) -> int:
    """Return the next value of counter `name`.

    The increment is one ``INSERT ... ON CONFLICT DO UPDATE ... RETURNING``
    statement, so concurrent callers always receive distinct values. When the
    counter does not exist yet, `seed` supplies the value it starts after
    (e.g. the highest number already in use).
    """
    exists = (
        await session.execute(select(Sequence.id).where(Sequence.name == name))
    ).scalar_one_or_none()
    start = 0
    if exists is None and seed is not None:
        start = await seed()

    stmt = (
        insert(Sequence)
        .values(name=name, value=start + 1)
        .on_conflict_do_update(
            index_elements=[Sequence.name],
            set_={"value": Sequence.value + 1},
        )
        .returning(Sequence.value)
    )
    return (await session.execute(stmt)).scalar_one()
