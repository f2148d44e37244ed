from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from solservice.auth import Caller, require_permission
from solservice.base.dependencies import get_session
from solservice.checklist import engine
from solservice.checklist.models import Checklist, ChecklistItem, ChecklistTemplate
from solservice.checklist.progress import Finding
from solservice.checklist.schemas import (
    BatchItemUpdate,
    ChecklistComplete,
    ChecklistCreate,
    ChecklistItemResponse,
    ChecklistResponse,
    ChecklistSummaryResponse,
    FindingResponse,
    ItemUpdate,
    TemplateCreate,
    TemplateResponse,
    TemplateVersionCreate,
    VisitChecklistSummaryResponse,
)
from solservice.installation.models import SystemType
from solservice.visit.models import VisitType

router = APIRouter(prefix="/checklists")
templates_router = APIRouter(prefix="/templates")

can_read = require_permission("checklists:read")
can_write = require_permission("checklists:write")


@templates_router.get("", response_model=list[TemplateResponse])
async def list_templates(
    system_type: SystemType | None = None,
    visit_type: VisitType | None = None,
    is_active: bool = True,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> list[ChecklistTemplate]:
    return await engine.list_templates(
        session, system_type=system_type, visit_type=visit_type, is_active=is_active
    )


@templates_router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> ChecklistTemplate:
    return await engine.get_template(session, template_id)


@templates_router.post("", response_model=TemplateResponse, status_code=201)
async def create_template(
    body: TemplateCreate,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ChecklistTemplate:
    return await engine.create_template(session, body)


@templates_router.post(
    "/{template_id}/versions", response_model=TemplateResponse, status_code=201
)
async def create_template_version(
    template_id: UUID,
    body: TemplateVersionCreate,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ChecklistTemplate:
    return await engine.new_template_version(session, template_id, body)


@router.get("", response_model=list[ChecklistResponse])
async def list_checklists(
    visit_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> list[Checklist]:
    return await engine.list_for_visit(session, visit_id)


@router.post("", response_model=ChecklistResponse, status_code=201)
async def create_checklist(
    body: ChecklistCreate,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> Checklist:
    return await engine.create_from_template(
        session, body.visit_id, body.template_id, body.technician_id
    )


@router.get("/visits/{visit_id}/summary", response_model=VisitChecklistSummaryResponse)
async def get_visit_summary(
    visit_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> VisitChecklistSummaryResponse:
    summary = await engine.visit_summary(session, visit_id)
    return VisitChecklistSummaryResponse.present(summary)


@router.patch("/items/{item_id}", response_model=ChecklistItemResponse)
async def update_item(
    item_id: UUID,
    body: ItemUpdate,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> ChecklistItem:
    return await engine.update_item(session, item_id, body)


@router.get("/{checklist_id}", response_model=ChecklistResponse)
async def get_checklist(
    checklist_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> Checklist:
    return await engine.get_checklist(session, checklist_id)


@router.post("/{checklist_id}/start", response_model=ChecklistResponse)
async def start_checklist(
    checklist_id: UUID,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> Checklist:
    return await engine.start(session, checklist_id)


@router.patch("/{checklist_id}/items", response_model=ChecklistResponse)
async def update_items(
    checklist_id: UUID,
    body: list[BatchItemUpdate],
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> Checklist:
    return await engine.update_items(session, checklist_id, body)


@router.post("/{checklist_id}/complete", response_model=ChecklistResponse)
async def complete_checklist(
    checklist_id: UUID,
    body: ChecklistComplete,
    caller: Caller = Depends(can_write),
    session: AsyncSession = Depends(get_session),
) -> Checklist:
    return await engine.complete(session, checklist_id, body.notes, body.items)


@router.get("/{checklist_id}/summary", response_model=ChecklistSummaryResponse)
async def get_summary(
    checklist_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> ChecklistSummaryResponse:
    summary = await engine.checklist_summary(session, checklist_id)
    return ChecklistSummaryResponse.present(summary)


@router.get("/{checklist_id}/findings", response_model=list[FindingResponse])
async def get_findings(
    checklist_id: UUID,
    caller: Caller = Depends(can_read),
    session: AsyncSession = Depends(get_session),
) -> list[Finding]:
    return await engine.export_findings(session, checklist_id)
