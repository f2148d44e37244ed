import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

from sqlalchemy import select

from solservice.agreement.lifecycle import expire_overdue, next_visit_date
from solservice.agreement.models import AgreementStatus, ServiceAgreement, ServicePlan
from solservice.base.db import async_session
from solservice.visit.lifecycle import create_visit, planned_start
from solservice.visit.schemas import VisitCreate
from solservice.visit.state import visit_type_for_frequency

logger = logging.getLogger(__name__)

VISIT_HORIZON_DAYS = int(os.environ.get("SOLSERVICE_VISIT_HORIZON_DAYS", "14"))


async def run_agreement_expiry() -> None:
    async with async_session() as session:
        touched = await expire_overdue(session)
        await session.commit()

    if touched:
        logger.info("Agreement expiry: %d agreement(s) updated", len(touched))


@dataclass(frozen=True)
class _DuePlan:
    agreement_id: UUID
    agreement_number: str
    technician_id: str
    next_visit_date: date
    visit_frequency: int
    preferred_visit_day: int | None
    preferred_visit_time: time | None


async def _due_plans(today: date, horizon_days: int) -> list[_DuePlan]:
    async with async_session() as session:
        stmt = (
            select(ServiceAgreement, ServicePlan)
            .join(ServicePlan, ServicePlan.agreement_id == ServiceAgreement.id)
            .where(
                ServiceAgreement.status == AgreementStatus.ACTIVE,
                ServicePlan.technician_id.is_not(None),
                ServicePlan.next_visit_date.is_not(None),
                ServicePlan.next_visit_date <= today + timedelta(days=horizon_days),
            )
        )
        rows = (await session.execute(stmt)).all()
        return [
            _DuePlan(
                agreement_id=agreement.id,
                agreement_number=agreement.agreement_number,
                technician_id=plan.technician_id,
                next_visit_date=plan.next_visit_date,
                visit_frequency=plan.visit_frequency,
                preferred_visit_day=agreement.preferred_visit_day,
                preferred_visit_time=agreement.preferred_visit_time,
            )
            for agreement, plan in rows
        ]


async def _book_plan_visit(due: _DuePlan) -> None:
    async with async_session() as session:
        await create_visit(
            session,
            VisitCreate(
                agreement_id=due.agreement_id,
                technician_id=due.technician_id,
                scheduled_date=planned_start(
                    due.next_visit_date,
                    due.preferred_visit_day,
                    due.preferred_visit_time,
                ),
                visit_type=visit_type_for_frequency(due.visit_frequency),
                notes="Booked from service plan",
            ),
        )
        plan = (
            await session.execute(
                select(ServicePlan)
                .where(ServicePlan.agreement_id == due.agreement_id)
                .with_for_update()
            )
        ).scalar_one()
        plan.next_visit_date = next_visit_date(
            due.next_visit_date, due.visit_frequency
        )
        await session.commit()


async def run_visit_planning(horizon_days: int = VISIT_HORIZON_DAYS) -> None:
    """Book the next plan visit for every active agreement that is due.

    Each agreement is booked in its own transaction, so one failure leaves
    the others untouched.
    """
    today = datetime.now(timezone.utc).date()
    due_plans = await _due_plans(today, horizon_days)
    if not due_plans:
        return

    booked = 0
    for due in due_plans:
        try:
            await _book_plan_visit(due)
            booked += 1
        except Exception:
            logger.exception("Visit planning failed for %s", due.agreement_number)

    logger.info("Visit planning: booked %d of %d due visit(s)", booked, len(due_plans))
