from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

import httpx
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from solservice.agreement.lifecycle import get_agreement
from solservice.agreement.models import AgreementStatus
from solservice.base.errors import (
    ConcurrencyConflictError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
)
from solservice.base.sequence import next_value
from solservice.checklist.models import Checklist
from solservice.directory import TechnicianDirectory
from solservice.visit.models import ServiceVisit, VisitPhoto, VisitStatus, VisitType
from solservice.visit.schemas import (
    PhotoCreate,
    VisitComplete,
    VisitCreate,
    VisitReschedule,
    VisitUpdate,
)
from solservice.visit.state import (
    EXPECTED_DURATION,
    VisitEvent,
    duration_minutes,
    ensure_checklists_completed,
    is_terminal,
    next_status,
)

logger = logging.getLogger(__name__)

DEFAULT_VISIT_TIME = time(8, 0)


@dataclass(frozen=True)
class VisitStats:
    today: int
    this_week: int
    scheduled: int
    completed_this_month: int


@dataclass(frozen=True)
class CalendarEvent:
    id: UUID
    title: str
    start: datetime
    end: datetime
    status: VisitStatus
    visit_type: VisitType
    technician_id: str
    technician_name: str
    customer_name: str
    address: str


def visit_sequence_name(agreement_id: UUID) -> str:
    return f"visit_number:{agreement_id}"


def default_end(scheduled_date: datetime, visit_type: VisitType) -> datetime:
    return scheduled_date + EXPECTED_DURATION[visit_type]


def planned_start(
    plan_date: date,
    preferred_day: int | None = None,
    preferred_time: time | None = None,
) -> datetime:
    """Concrete start for a plan date, honouring the customer's preferences.

    `preferred_day` (0 = Monday) moves the visit forward to the next such
    weekday, never backwards.
    """
    if preferred_day is not None:
        plan_date += timedelta(days=(preferred_day - plan_date.weekday()) % 7)
    return datetime.combine(
        plan_date, preferred_time or DEFAULT_VISIT_TIME, tzinfo=timezone.utc
    )


def _transition(visit: ServiceVisit, event: VisitEvent) -> None:
    target = next_status(visit.status, event)
    logger.info(
        "Visit %s #%d: %s -> %s",
        visit.agreement_id,
        visit.visit_number,
        visit.status.value,
        target.value,
    )
    visit.status = target


async def get_visit(
    session: AsyncSession, visit_id: UUID, *, for_update: bool = False
) -> ServiceVisit:
    stmt = select(ServiceVisit).where(ServiceVisit.id == visit_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    visit = (await session.execute(stmt)).scalar_one_or_none()
    if visit is None:
        raise NotFoundError("Visit", visit_id)
    return visit


async def list_visits(
    session: AsyncSession,
    *,
    status: VisitStatus | None = None,
    visit_type: VisitType | None = None,
    technician_id: str | None = None,
    agreement_id: UUID | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 0,
    limit: int = 20,
) -> tuple[list[ServiceVisit], int]:
    conditions = []
    if status is not None:
        conditions.append(ServiceVisit.status == status)
    if visit_type is not None:
        conditions.append(ServiceVisit.visit_type == visit_type)
    if technician_id is not None:
        conditions.append(ServiceVisit.technician_id == technician_id)
    if agreement_id is not None:
        conditions.append(ServiceVisit.agreement_id == agreement_id)
    if date_from is not None:
        conditions.append(ServiceVisit.scheduled_date >= date_from)
    if date_to is not None:
        conditions.append(ServiceVisit.scheduled_date <= date_to)

    total = (
        await session.execute(
            select(func.count()).select_from(ServiceVisit).where(*conditions)
        )
    ).scalar_one()
    stmt = (
        select(ServiceVisit)
        .where(*conditions)
        .order_by(ServiceVisit.scheduled_date.desc())
        .offset(page * limit)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all()), total


def _start_of_day(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.min, tzinfo=timezone.utc)


async def upcoming(
    session: AsyncSession,
    days: int = 7,
    technician_id: str | None = None,
    now: datetime | None = None,
) -> list[ServiceVisit]:
    start = _start_of_day(now or datetime.now(timezone.utc))
    stmt = select(ServiceVisit).where(
        ServiceVisit.scheduled_date >= start,
        ServiceVisit.scheduled_date < start + timedelta(days=days),
        ServiceVisit.status.in_([VisitStatus.SCHEDULED, VisitStatus.IN_PROGRESS]),
    )
    if technician_id is not None:
        stmt = stmt.where(ServiceVisit.technician_id == technician_id)
    stmt = stmt.order_by(ServiceVisit.scheduled_date.asc())
    return list((await session.execute(stmt)).scalars().all())


async def _highest_visit_number(session: AsyncSession, agreement_id: UUID) -> int:
    stmt = select(func.max(ServiceVisit.visit_number)).where(
        ServiceVisit.agreement_id == agreement_id
    )
    return (await session.execute(stmt)).scalar_one() or 0


async def create_visit(session: AsyncSession, data: VisitCreate) -> ServiceVisit:
    agreement = await get_agreement(session, data.agreement_id)
    if agreement.status is not AgreementStatus.ACTIVE:
        raise InvalidStateTransitionError(
            "Visits can only be booked on active agreements; "
            f"{agreement.agreement_number} is {agreement.status.value}",
            status=agreement.status.value,
        )
    if (
        data.scheduled_end_date is not None
        and data.scheduled_end_date < data.scheduled_date
    ):
        raise InvalidInputError("scheduled_end_date must not be before scheduled_date")

    visit_number = await next_value(
        session,
        visit_sequence_name(agreement.id),
        seed=lambda: _highest_visit_number(session, agreement.id),
    )
    visit = ServiceVisit(
        agreement=agreement,
        technician_id=data.technician_id,
        visit_number=visit_number,
        scheduled_date=data.scheduled_date,
        scheduled_end_date=(
            data.scheduled_end_date
            or default_end(data.scheduled_date, data.visit_type)
        ),
        status=VisitStatus.SCHEDULED,
        visit_type=data.visit_type,
        notes=data.notes,
        checklists=[],
        photos=[],
    )
    session.add(visit)

    try:
        await session.flush()
    except IntegrityError as exc:
        raise ConcurrencyConflictError(
            f"Visit number {visit_number} is already taken on "
            f"{agreement.agreement_number}"
        ) from exc

    logger.info(
        "Booked visit #%d on %s for %s",
        visit.visit_number,
        agreement.agreement_number,
        visit.scheduled_date,
    )
    return visit


async def update_visit(
    session: AsyncSession, visit_id: UUID, data: VisitUpdate
) -> ServiceVisit:
    changes = data.model_dump(exclude_unset=True)
    if "technician_id" in changes and changes["technician_id"] is None:
        raise InvalidInputError("technician_id cannot be cleared")
    if "scheduled_date" in changes and changes["scheduled_date"] is None:
        raise InvalidInputError("scheduled_date cannot be cleared")

    visit = await get_visit(session, visit_id, for_update=True)
    if is_terminal(visit.status):
        raise InvalidStateTransitionError(
            f"Visit is {visit.status.value} and can no longer be changed",
            status=visit.status.value,
        )
    start = changes.get("scheduled_date", visit.scheduled_date)
    end = changes.get("scheduled_end_date", visit.scheduled_end_date)
    if end is not None and end < start:
        raise InvalidInputError("scheduled_end_date must not be before scheduled_date")

    for key, value in changes.items():
        setattr(visit, key, value)
    await session.flush()
    return visit


async def start_visit(
    session: AsyncSession, visit_id: UUID, now: datetime | None = None
) -> ServiceVisit:
    visit = await get_visit(session, visit_id, for_update=True)
    _transition(visit, VisitEvent.START)
    visit.actual_start_date = now or datetime.now(timezone.utc)
    await session.flush()
    return visit


async def complete_visit(
    session: AsyncSession,
    visit_id: UUID,
    data: VisitComplete | None = None,
    now: datetime | None = None,
) -> ServiceVisit:
    """Close an in-progress visit once every checklist on it is completed."""
    data = data or VisitComplete()
    visit = await get_visit(session, visit_id, for_update=True)
    next_status(visit.status, VisitEvent.COMPLETE)

    checklists = (
        (
            await session.execute(
                select(Checklist)
                .where(Checklist.visit_id == visit.id)
                .execution_options(populate_existing=True)
            )
        )
        .scalars()
        .all()
    )
    ensure_checklists_completed(checklists)

    now = now or datetime.now(timezone.utc)
    _transition(visit, VisitEvent.COMPLETE)
    visit.actual_end_date = now
    visit.completed_at = now
    if data.duration_minutes is not None:
        visit.duration_minutes = data.duration_minutes
    elif visit.actual_start_date is not None:
        visit.duration_minutes = duration_minutes(visit.actual_start_date, now)
    if data.technician_notes is not None:
        visit.technician_notes = data.technician_notes
    if data.customer_notes is not None:
        visit.customer_notes = data.customer_notes
    if data.customer_signature:
        visit.customer_signature = data.customer_signature
        visit.customer_signed_at = now

    await session.flush()
    return visit


async def cancel_visit(
    session: AsyncSession, visit_id: UUID, reason: str
) -> ServiceVisit:
    if not reason or not reason.strip():
        raise InvalidInputError("A cancellation reason is required")
    visit = await get_visit(session, visit_id, for_update=True)
    _transition(visit, VisitEvent.CANCEL)
    visit.cancelled_at = datetime.now(timezone.utc)
    visit.cancellation_reason = reason.strip()
    await session.flush()
    return visit


async def reschedule_visit(
    session: AsyncSession, visit_id: UUID, data: VisitReschedule
) -> ServiceVisit:
    if (
        data.scheduled_end_date is not None
        and data.scheduled_end_date < data.scheduled_date
    ):
        raise InvalidInputError("scheduled_end_date must not be before scheduled_date")
    visit = await get_visit(session, visit_id, for_update=True)
    _transition(visit, VisitEvent.RESCHEDULE)
    visit.scheduled_date = data.scheduled_date
    visit.scheduled_end_date = data.scheduled_end_date or default_end(
        data.scheduled_date, visit.visit_type
    )
    visit.reschedule_reason = data.reason
    await session.flush()
    return visit


async def add_photo(
    session: AsyncSession, visit_id: UUID, data: PhotoCreate
) -> VisitPhoto:
    visit = await get_visit(session, visit_id)
    photo = VisitPhoto(**data.model_dump())
    visit.photos.append(photo)
    await session.flush()
    return photo


async def stats(session: AsyncSession, now: datetime | None = None) -> VisitStats:
    today = _start_of_day(now or datetime.now(timezone.utc))
    week_start = today - timedelta(days=today.weekday())
    month_start = today.replace(day=1)
    next_month = (month_start + timedelta(days=32)).replace(day=1)

    async def count(*conditions: object) -> int:
        stmt = select(func.count()).select_from(ServiceVisit).where(*conditions)
        return (await session.execute(stmt)).scalar_one()

    return VisitStats(
        today=await count(
            ServiceVisit.scheduled_date >= today,
            ServiceVisit.scheduled_date < today + timedelta(days=1),
        ),
        this_week=await count(
            ServiceVisit.scheduled_date >= week_start,
            ServiceVisit.scheduled_date < week_start + timedelta(days=7),
        ),
        scheduled=await count(ServiceVisit.status == VisitStatus.SCHEDULED),
        completed_this_month=await count(
            ServiceVisit.status == VisitStatus.COMPLETED,
            ServiceVisit.actual_end_date >= month_start,
            ServiceVisit.actual_end_date < next_month,
        ),
    )


async def calendar(
    session: AsyncSession,
    directory: TechnicianDirectory,
    start: datetime,
    end: datetime,
    technician_id: str | None = None,
) -> list[CalendarEvent]:
    if end < start:
        raise InvalidInputError("Calendar end must not be before start")
    stmt = select(ServiceVisit).where(
        ServiceVisit.scheduled_date >= start, ServiceVisit.scheduled_date <= end
    )
    if technician_id is not None:
        stmt = stmt.where(ServiceVisit.technician_id == technician_id)
    visits = (
        (await session.execute(stmt.order_by(ServiceVisit.scheduled_date)))
        .scalars()
        .all()
    )

    try:
        technicians = await directory.get_many(v.technician_id for v in visits)
    except httpx.HTTPError:
        logger.warning("Technician directory unavailable; showing raw ids")
        technicians = {}

    events = []
    for visit in visits:
        installation = visit.agreement.installation
        technician = technicians.get(visit.technician_id)
        events.append(
            CalendarEvent(
                id=visit.id,
                title=f"{installation.customer_name} - {visit.visit_type.value}",
                start=visit.scheduled_date,
                end=visit.scheduled_end_date
                or default_end(visit.scheduled_date, visit.visit_type),
                status=visit.status,
                visit_type=visit.visit_type,
                technician_id=visit.technician_id,
                technician_name=technician.name if technician else visit.technician_id,
                customer_name=installation.customer_name,
                address=installation.address,
            )
        )
    return events
