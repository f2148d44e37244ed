from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from solservice.auth import Caller, require_permission
from solservice.base.dependencies import get_session
from solservice.base.errors import NotFoundError
from solservice.base.schemas import BaseDTO, Page
from solservice.installation.models import Installation, SystemType

router = APIRouter(prefix="/installations")


class InstallationCreate(BaseModel):
    customer_id: str = Field(min_length=1)
    customer_name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    city: str | None = None
    system_type: SystemType
    capacity_kw: Decimal = Field(gt=0)
    install_date: date | None = None


class InstallationResponse(BaseDTO):
    customer_id: str
    customer_name: str
    address: str
    city: str | None
    system_type: SystemType
    capacity_kw: Decimal
    install_date: date | None


@router.get("", response_model=Page[InstallationResponse])
async def list_installations(
    customer_id: str | None = None,
    system_type: SystemType | None = None,
    page: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    caller: Caller = Depends(require_permission("agreements:read")),
    session: AsyncSession = Depends(get_session),
) -> Page[InstallationResponse]:
    conditions = []
    if customer_id is not None:
        conditions.append(Installation.customer_id == customer_id)
    if system_type is not None:
        conditions.append(Installation.system_type == system_type)

    total = (
        await session.execute(
            select(func.count()).select_from(Installation).where(*conditions)
        )
    ).scalar_one()
    stmt = (
        select(Installation)
        .where(*conditions)
        .order_by(Installation.customer_name)
        .offset(page * limit)
        .limit(limit)
    )
    installations = (await session.execute(stmt)).scalars().all()
    return Page[InstallationResponse](
        items=[InstallationResponse.model_validate(i) for i in installations],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("", response_model=InstallationResponse, status_code=201)
async def create_installation(
    body: InstallationCreate,
    caller: Caller = Depends(require_permission("agreements:write")),
    session: AsyncSession = Depends(get_session),
) -> Installation:
    installation = Installation(**body.model_dump())
    session.add(installation)
    await session.flush()
    return installation


@router.get("/{installation_id}", response_model=InstallationResponse)
async def get_installation(
    installation_id: UUID,
    caller: Caller = Depends(require_permission("agreements:read")),
    session: AsyncSession = Depends(get_session),
) -> Installation:
    installation = await session.get(Installation, installation_id)
    if installation is None:
        raise NotFoundError("Installation", installation_id)
    return installation
