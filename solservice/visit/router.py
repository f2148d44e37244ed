from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import AwareDatetime
from sqlalchemy.ext.asyncio import AsyncSession

from solservice.auth import Caller, require_permission
from solservice.base.dependencies import get_session
from solservice.base.schemas import Page
from solservice.directory import TechnicianDirectory, get_directory
from solservice.visit import lifecycle
from solservice.visit.models import ServiceVisit, VisitPhoto, VisitStatus, VisitType
from solservice.visit.schemas import (
    CalendarEventResponse,
    PhotoCreate,
    PhotoResponse,
    VisitCancel,
    VisitComplete,
    VisitCreate,
    VisitReschedule,
    VisitResponse,
    VisitStatsResponse,
    VisitUpdate,
)

router = APIRouter(prefix="/visits")

can_read = require_permission("visits:read")
can_write = require_permission("visits:write")


@router.get("", response_model=Page[VisitResponse])
async def list_visits(
    status: VisitStatus | None = None,
    visit_type: VisitType | None = None,
    technician_id: str | None = None,
    agreement_id: UUID | None = None,
    date_from: AwareDatetime | None = None,
    date_to: AwareDatetime | None = None,
    page: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> Page[VisitResponse]:
    visits, total = await lifecycle.list_visits(
        session,
        status=status,
        visit_type=visit_type,
        technician_id=technician_id,
        agreement_id=agreement_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return Page[VisitResponse](
        items=[VisitResponse.model_validate(v) for v in visits],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/stats", response_model=VisitStatsResponse)
async def get_stats(
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> lifecycle.VisitStats:
    return await lifecycle.stats(session)


@router.get("/upcoming", response_model=list[VisitResponse])
async def list_upcoming(
    days: int = Query(default=7, ge=1, le=30),
    technician_id: str | None = None,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> list[ServiceVisit]:
    return await lifecycle.upcoming(session, days, technician_id)


@router.get("/calendar", response_model=list[CalendarEventResponse])
async def get_calendar(
    start: AwareDatetime,
    end: AwareDatetime,
    technician_id: str | None = None,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
    directory: TechnicianDirectory = Depends(get_directory),
) -> list[lifecycle.CalendarEvent]:
    return await lifecycle.calendar(session, directory, start, end, technician_id)


@router.post("", response_model=VisitResponse, status_code=201)
async def create_visit(
    body: VisitCreate,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceVisit:
    return await lifecycle.create_visit(session, body)


@router.get("/{visit_id}", response_model=VisitResponse)
async def get_visit(
    visit_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> ServiceVisit:
    return await lifecycle.get_visit(session, visit_id)


@router.patch("/{visit_id}", response_model=VisitResponse)
async def update_visit(
    visit_id: UUID,
    body: VisitUpdate,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceVisit:
    return await lifecycle.update_visit(session, visit_id, body)


@router.post("/{visit_id}/start", response_model=VisitResponse)
async def start_visit(
    visit_id: UUID,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceVisit:
    return await lifecycle.start_visit(session, visit_id)


@router.post("/{visit_id}/complete", response_model=VisitResponse)
async def complete_visit(
    visit_id: UUID,
    body: VisitComplete,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceVisit:
    return await lifecycle.complete_visit(session, visit_id, body)


@router.post("/{visit_id}/cancel", response_model=VisitResponse)
async def cancel_visit(
    visit_id: UUID,
    body: VisitCancel,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceVisit:
    return await lifecycle.cancel_visit(session, visit_id, body.reason)


@router.post("/{visit_id}/reschedule", response_model=VisitResponse)
async def reschedule_visit(
    visit_id: UUID,
    body: VisitReschedule,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ServiceVisit:
    return await lifecycle.reschedule_visit(session, visit_id, body)


@router.post("/{visit_id}/photos", response_model=PhotoResponse, status_code=201)
async def add_photo(
    visit_id: UUID,
    body: PhotoCreate,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> VisitPhoto:
    return await lifecycle.add_photo(session, visit_id, body)
