from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from solservice.agreement.defaults import default_addon_products
from solservice.agreement.models import (
    AddonCategory,
    AddonProduct,
    AgreementAddon,
    AgreementStatus,
    AgreementType,
    ServiceAgreement,
    ServicePlan,
)
from solservice.agreement.pricing import (
    TIER_BASE_PRICES,
    AddonSelection,
    PriceBreakdown,
    calculate_price,
    qmoney,
)
from solservice.agreement.schemas import AddonInput, AgreementCreate, AgreementUpdate
from solservice.base.errors import (
    ConcurrencyConflictError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
)
from solservice.base.sequence import next_value
from solservice.installation.models import Installation

logger = logging.getLogger(__name__)

AGREEMENT_SEQUENCE = "agreement_number"

DEFAULT_VISIT_FREQUENCY: dict[AgreementType, int] = {
    AgreementType.BASIC: 1,
    AgreementType.STANDARD: 2,
    AgreementType.PREMIUM: 4,
    # Enterprise cadence is negotiated; one visit until it is.
    AgreementType.ENTERPRISE: 1,
}

# event -> (allowed source states, target state)
_TRANSITIONS: dict[str, tuple[frozenset[AgreementStatus], AgreementStatus]] = {
    "submit": (
        frozenset({AgreementStatus.DRAFT}),
        AgreementStatus.PENDING_APPROVAL,
    ),
    "activate": (
        frozenset({AgreementStatus.DRAFT, AgreementStatus.PENDING_APPROVAL}),
        AgreementStatus.ACTIVE,
    ),
    "suspend": (frozenset({AgreementStatus.ACTIVE}), AgreementStatus.SUSPENDED),
    "resume": (frozenset({AgreementStatus.SUSPENDED}), AgreementStatus.ACTIVE),
    "expire": (
        frozenset({AgreementStatus.ACTIVE, AgreementStatus.SUSPENDED}),
        AgreementStatus.EXPIRED,
    ),
    "cancel": (
        frozenset(set(AgreementStatus) - {AgreementStatus.CANCELLED}),
        AgreementStatus.CANCELLED,
    ),
}


_REQUIRED_FIELDS = frozenset(
    {
        "agreement_type",
        "start_date",
        "base_price",
        "sla_level",
        "auto_renew",
        "visit_frequency",
    }
)


def _transition(agreement: ServiceAgreement, event: str) -> None:
    allowed, target = _TRANSITIONS[event]
    if agreement.status not in allowed:
        raise InvalidStateTransitionError(
            f"Cannot {event} agreement {agreement.agreement_number} "
            f"in status {agreement.status.value}",
            status=agreement.status.value,
        )
    logger.info(
        "Agreement %s: %s -> %s",
        agreement.agreement_number,
        agreement.status.value,
        target.value,
    )
    agreement.status = target


def format_agreement_number(sequence: int, year: int) -> str:
    return f"SA-{sequence:05d}-{year}"


def parse_agreement_sequence(agreement_number: str) -> int | None:
    parts = agreement_number.split("-")
    if len(parts) != 3 or not parts[1].isdigit():
        return None
    return int(parts[1])


async def _highest_agreement_sequence(session: AsyncSession) -> int:
    numbers = (
        (await session.execute(select(ServiceAgreement.agreement_number)))
        .scalars()
        .all()
    )
    sequences = [s for s in map(parse_agreement_sequence, numbers) if s is not None]
    return max(sequences, default=0)


async def assign_agreement_number(
    session: AsyncSession, today: date | None = None
) -> str:
    year = (today or datetime.now(timezone.utc).date()).year
    sequence = await next_value(
        session,
        AGREEMENT_SEQUENCE,
        seed=lambda: _highest_agreement_sequence(session),
    )
    return format_agreement_number(sequence, year)


def visit_interval(visit_frequency: int) -> relativedelta:
    """Spacing between plan visits for `visit_frequency` visits per year."""
    if 12 % visit_frequency == 0:
        return relativedelta(months=12 // visit_frequency)
    return relativedelta(days=round(365 / visit_frequency))


def next_visit_date(start_date: date, visit_frequency: int) -> date:
    return start_date + visit_interval(visit_frequency)


def validate_price_input(
    base_price: Decimal | None,
    discount_percent: Decimal | None,
    addons: Sequence[AddonInput],
) -> None:
    if base_price is not None and base_price <= 0:
        raise InvalidInputError("base_price must be positive")
    if discount_percent is not None and not (0 <= discount_percent <= 100):
        raise InvalidInputError("discount_percent must be between 0 and 100")
    for addon in addons:
        if addon.quantity < 1:
            raise InvalidInputError(
                "Add-on quantity must be at least 1", addon_id=str(addon.addon_id)
            )
        if addon.custom_price is not None and addon.custom_price < 0:
            raise InvalidInputError(
                "Add-on custom_price must not be negative",
                addon_id=str(addon.addon_id),
            )


async def resolve_addons(
    session: AsyncSession, addon_ids: Sequence[UUID]
) -> dict[UUID, AddonProduct]:
    if not addon_ids:
        return {}
    stmt = select(AddonProduct).where(AddonProduct.id.in_(set(addon_ids)))
    products = {p.id: p for p in (await session.execute(stmt)).scalars().all()}
    for addon_id in addon_ids:
        if addon_id not in products:
            raise NotFoundError("Add-on product", addon_id)
    return products


def _selections(addons: Sequence[AddonInput]) -> list[AddonSelection]:
    return [
        AddonSelection(
            addon_id=a.addon_id, quantity=a.quantity, custom_price=a.custom_price
        )
        for a in addons
    ]


def price_agreement(agreement: ServiceAgreement) -> PriceBreakdown:
    """Price an agreement from its current persisted parameters."""
    selections = [
        AddonSelection(
            addon_id=a.addon_id, quantity=a.quantity, custom_price=a.custom_price
        )
        for a in agreement.addons
    ]
    products = {a.addon_id: a.addon for a in agreement.addons}
    return calculate_price(
        agreement.base_price, agreement.discount_percent, selections, products
    )


def _refresh_calculated_price(agreement: ServiceAgreement) -> None:
    agreement.calculated_price = qmoney(price_agreement(agreement).total)


async def preview_price(
    session: AsyncSession,
    base_price: Decimal,
    discount_percent: Decimal | None,
    addons: Sequence[AddonInput],
) -> PriceBreakdown:
    validate_price_input(base_price, discount_percent, addons)
    products = await resolve_addons(session, [a.addon_id for a in addons])
    return calculate_price(base_price, discount_percent, _selections(addons), products)


async def get_agreement(
    session: AsyncSession, agreement_id: UUID, *, for_update: bool = False
) -> ServiceAgreement:
    stmt = select(ServiceAgreement).where(ServiceAgreement.id == agreement_id)
    if for_update:
        stmt = stmt.with_for_update()
    agreement = (await session.execute(stmt)).scalar_one_or_none()
    if agreement is None:
        raise NotFoundError("Agreement", agreement_id)
    return agreement


async def list_agreements(
    session: AsyncSession,
    *,
    status: AgreementStatus | None = None,
    agreement_type: AgreementType | None = None,
    installation_id: UUID | None = None,
    customer_id: str | None = None,
    search: str | None = None,
    page: int = 0,
    limit: int = 20,
) -> tuple[list[ServiceAgreement], int]:
    conditions = []
    if status is not None:
        conditions.append(ServiceAgreement.status == status)
    if agreement_type is not None:
        conditions.append(ServiceAgreement.agreement_type == agreement_type)
    if installation_id is not None:
        conditions.append(ServiceAgreement.installation_id == installation_id)
    if customer_id is not None:
        conditions.append(Installation.customer_id == customer_id)
    if search:
        pattern = f"%{search}%"
        conditions.append(
            or_(
                ServiceAgreement.agreement_number.ilike(pattern),
                Installation.customer_name.ilike(pattern),
            )
        )

    base = (
        select(ServiceAgreement)
        .join(Installation, ServiceAgreement.installation_id == Installation.id)
        .where(*conditions)
    )
    total = (
        await session.execute(select(func.count()).select_from(base.subquery()))
    ).scalar_one()
    stmt = (
        base.order_by(ServiceAgreement.created_at.desc())
        .offset(page * limit)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all()), total


async def list_expiring(
    session: AsyncSession, days: int = 30, today: date | None = None
) -> list[ServiceAgreement]:
    today = today or datetime.now(timezone.utc).date()
    stmt = (
        select(ServiceAgreement)
        .where(
            ServiceAgreement.status == AgreementStatus.ACTIVE,
            ServiceAgreement.end_date >= today,
            ServiceAgreement.end_date <= today + timedelta(days=days),
        )
        .order_by(ServiceAgreement.end_date.asc())
    )
    return list((await session.execute(stmt)).scalars().all())


async def list_addon_products(
    session: AsyncSession,
    category: AddonCategory | None = None,
    is_active: bool = True,
) -> list[AddonProduct]:
    stmt = select(AddonProduct).where(AddonProduct.is_active.is_(is_active))
    if category is not None:
        stmt = stmt.where(AddonProduct.category == category)
    stmt = stmt.order_by(AddonProduct.category, AddonProduct.sort_order)
    return list((await session.execute(stmt)).scalars().all())


async def create_agreement(
    session: AsyncSession, data: AgreementCreate, today: date | None = None
) -> ServiceAgreement:
    """Create a DRAFT agreement with its add-ons and service plan."""
    validate_price_input(data.base_price, data.discount_percent, data.addons)
    if data.end_date is not None and data.end_date < data.start_date:
        raise InvalidInputError("end_date must not be before start_date")

    installation = await session.get(Installation, data.installation_id)
    if installation is None:
        raise NotFoundError("Installation", data.installation_id)
    products = await resolve_addons(session, [a.addon_id for a in data.addons])

    visit_frequency = (
        data.visit_frequency or DEFAULT_VISIT_FREQUENCY[data.agreement_type]
    )
    agreement = ServiceAgreement(
        installation=installation,
        agreement_number=await assign_agreement_number(session, today),
        agreement_type=data.agreement_type,
        status=AgreementStatus.DRAFT,
        sla_level=data.sla_level,
        start_date=data.start_date,
        end_date=data.end_date,
        base_price=data.base_price or TIER_BASE_PRICES[data.agreement_type],
        discount_percent=data.discount_percent,
        auto_renew=data.auto_renew,
        visit_frequency=visit_frequency,
        preferred_visit_day=data.preferred_visit_day,
        preferred_visit_time=data.preferred_visit_time,
        notes=data.notes,
        addons=[
            AgreementAddon(
                addon_id=a.addon_id,
                addon=products[a.addon_id],
                quantity=a.quantity,
                custom_price=a.custom_price,
                notes=a.notes,
            )
            for a in data.addons
        ],
        service_plan=ServicePlan(
            visit_frequency=visit_frequency,
            next_visit_date=next_visit_date(data.start_date, visit_frequency),
            seasonal_adjust=True,
            technician_id=data.technician_id,
        ),
    )
    _refresh_calculated_price(agreement)
    session.add(agreement)

    try:
        await session.flush()
    except IntegrityError as exc:
        raise ConcurrencyConflictError(
            f"Agreement number {agreement.agreement_number} is already taken"
        ) from exc

    logger.info(
        "Created agreement %s for installation %s",
        agreement.agreement_number,
        installation.id,
    )
    return agreement


def _ensure_mutable(agreement: ServiceAgreement) -> None:
    if agreement.status in (AgreementStatus.CANCELLED, AgreementStatus.EXPIRED):
        raise InvalidStateTransitionError(
            f"Agreement {agreement.agreement_number} is {agreement.status.value} "
            "and can no longer be changed",
            status=agreement.status.value,
        )


async def update_agreement(
    session: AsyncSession, agreement_id: UUID, data: AgreementUpdate
) -> ServiceAgreement:
    """Partial update. A supplied add-on list replaces the existing set."""
    changes = data.model_dump(exclude_unset=True)
    addons_input = data.addons if "addons" in changes else None
    validate_price_input(
        changes.get("base_price"), changes.get("discount_percent"), addons_input or []
    )
    for required in _REQUIRED_FIELDS & changes.keys():
        if changes[required] is None:
            raise InvalidInputError(f"{required} cannot be cleared")

    agreement = await get_agreement(session, agreement_id, for_update=True)
    _ensure_mutable(agreement)
    start_date = changes.get("start_date", agreement.start_date)
    end_date = changes.get("end_date", agreement.end_date)
    if end_date is not None and end_date < start_date:
        raise InvalidInputError("end_date must not be before start_date")
    products = await resolve_addons(
        session, [a.addon_id for a in addons_input or []]
    )

    reprice = bool({"base_price", "discount_percent", "addons"} & changes.keys())
    technician_id = changes.pop("technician_id", None)
    changes.pop("addons", None)
    for key, value in changes.items():
        setattr(agreement, key, value)

    if addons_input is not None:
        agreement.addons.clear()
        await session.flush()
        agreement.addons.extend(
            AgreementAddon(
                addon_id=a.addon_id,
                addon=products[a.addon_id],
                quantity=a.quantity,
                custom_price=a.custom_price,
                notes=a.notes,
            )
            for a in addons_input
        )

    plan = agreement.service_plan
    if plan is not None:
        if "visit_frequency" in changes or "start_date" in changes:
            plan.visit_frequency = agreement.visit_frequency
            plan.next_visit_date = next_visit_date(
                agreement.start_date, agreement.visit_frequency
            )
        if technician_id is not None:
            plan.technician_id = technician_id

    if reprice:
        _refresh_calculated_price(agreement)

    await session.flush()
    return agreement


async def add_addon(
    session: AsyncSession, agreement_id: UUID, data: AddonInput
) -> AgreementAddon:
    validate_price_input(None, None, [data])
    agreement = await get_agreement(session, agreement_id, for_update=True)
    _ensure_mutable(agreement)
    products = await resolve_addons(session, [data.addon_id])
    addon = AgreementAddon(
        addon_id=data.addon_id,
        addon=products[data.addon_id],
        quantity=data.quantity,
        custom_price=data.custom_price,
        notes=data.notes,
    )
    agreement.addons.append(addon)
    _refresh_calculated_price(agreement)
    await session.flush()
    return addon


async def remove_addon(
    session: AsyncSession, agreement_id: UUID, agreement_addon_id: UUID
) -> ServiceAgreement:
    agreement = await get_agreement(session, agreement_id, for_update=True)
    _ensure_mutable(agreement)
    addon = next((a for a in agreement.addons if a.id == agreement_addon_id), None)
    if addon is None:
        raise NotFoundError("Agreement add-on", agreement_addon_id)
    agreement.addons.remove(addon)
    _refresh_calculated_price(agreement)
    await session.flush()
    return agreement


async def submit_for_approval(
    session: AsyncSession, agreement_id: UUID
) -> ServiceAgreement:
    agreement = await get_agreement(session, agreement_id, for_update=True)
    _transition(agreement, "submit")
    await session.flush()
    return agreement


async def activate(
    session: AsyncSession, agreement_id: UUID, signed_by: str | None = None
) -> ServiceAgreement:
    agreement = await get_agreement(session, agreement_id, for_update=True)
    _transition(agreement, "activate")
    agreement.signed_at = datetime.now(timezone.utc)
    agreement.signed_by = signed_by
    await session.flush()
    return agreement


async def suspend(session: AsyncSession, agreement_id: UUID) -> ServiceAgreement:
    agreement = await get_agreement(session, agreement_id, for_update=True)
    _transition(agreement, "suspend")
    await session.flush()
    return agreement


async def resume(session: AsyncSession, agreement_id: UUID) -> ServiceAgreement:
    agreement = await get_agreement(session, agreement_id, for_update=True)
    _transition(agreement, "resume")
    await session.flush()
    return agreement


async def cancel(
    session: AsyncSession, agreement_id: UUID, reason: str | None = None
) -> ServiceAgreement:
    agreement = await get_agreement(session, agreement_id, for_update=True)
    _transition(agreement, "cancel")
    agreement.cancelled_at = datetime.now(timezone.utc)
    agreement.cancellation_reason = reason.strip() if reason else None
    await session.flush()
    return agreement


async def expire_overdue(
    session: AsyncSession, today: date | None = None
) -> list[ServiceAgreement]:
    """Close out agreements whose end date has passed.

    Auto-renewing agreements get their term rolled forward by a year instead.
    Returns the agreements that were touched.
    """
    today = today or datetime.now(timezone.utc).date()
    stmt = (
        select(ServiceAgreement)
        .where(
            ServiceAgreement.status.in_(
                [AgreementStatus.ACTIVE, AgreementStatus.SUSPENDED]
            ),
            ServiceAgreement.end_date < today,
        )
        .with_for_update()
    )
    agreements = list((await session.execute(stmt)).scalars().all())

    for agreement in agreements:
        if agreement.end_date is None:
            continue
        if agreement.auto_renew:
            while agreement.end_date < today:
                agreement.end_date += relativedelta(years=1)
            logger.info(
                "Agreement %s renewed until %s",
                agreement.agreement_number,
                agreement.end_date,
            )
        else:
            _transition(agreement, "expire")

    await session.flush()
    return agreements


@dataclass(frozen=True)
class InvoiceInput:
    """What the accounting integration needs to bill an agreement."""

    agreement_number: str
    customer_id: str
    customer_name: str
    price: PriceBreakdown


def invoice_input(agreement: ServiceAgreement) -> InvoiceInput:
    return InvoiceInput(
        agreement_number=agreement.agreement_number,
        customer_id=agreement.installation.customer_id,
        customer_name=agreement.installation.customer_name,
        price=price_agreement(agreement).quantized(),
    )


async def seed_addon_products(session: AsyncSession) -> list[AddonProduct]:
    """Insert catalogue add-ons whose names are not present yet."""
    existing = set(
        (await session.execute(select(AddonProduct.name))).scalars().all()
    )
    created = [p for p in default_addon_products() if p.name not in existing]
    session.add_all(created)
    await session.flush()
    return created
