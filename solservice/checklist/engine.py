from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from solservice.base.errors import (
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
)
from solservice.checklist.defaults import DEFAULT_TEMPLATES
from solservice.checklist.models import (
    Checklist,
    ChecklistItem,
    ChecklistStatus,
    ChecklistTemplate,
    ChecklistTemplateItem,
    ItemStatus,
)
from solservice.checklist.progress import (
    ChecklistSummary,
    Finding,
    VisitChecklistSummary,
    findings_export,
    outstanding_mandatory,
    summarize,
    summarize_visit,
)
from solservice.checklist.schemas import (
    BatchItemUpdate,
    ItemUpdate,
    TemplateCreate,
    TemplateItemInput,
    TemplateVersionCreate,
)
from solservice.installation.models import SystemType
from solservice.visit.lifecycle import get_visit
from solservice.visit.models import ServiceVisit, VisitType
from solservice.visit.state import is_terminal

logger = logging.getLogger(__name__)


def _template_items(items: Sequence[TemplateItemInput]) -> list[ChecklistTemplateItem]:
    return [ChecklistTemplateItem(**item.model_dump()) for item in items]


async def get_template(session: AsyncSession, template_id: UUID) -> ChecklistTemplate:
    template = await session.get(ChecklistTemplate, template_id)
    if template is None:
        raise NotFoundError("Checklist template", template_id)
    return template


async def list_templates(
    session: AsyncSession,
    *,
    system_type: SystemType | None = None,
    visit_type: VisitType | None = None,
    is_active: bool = True,
) -> list[ChecklistTemplate]:
    stmt = select(ChecklistTemplate).where(ChecklistTemplate.is_active.is_(is_active))
    if system_type is not None:
        stmt = stmt.where(ChecklistTemplate.system_type == system_type)
    if visit_type is not None:
        stmt = stmt.where(ChecklistTemplate.visit_type == visit_type)
    stmt = stmt.order_by(ChecklistTemplate.name, ChecklistTemplate.version)
    return list((await session.execute(stmt)).scalars().all())


async def create_template(
    session: AsyncSession, data: TemplateCreate
) -> ChecklistTemplate:
    existing = (
        await session.execute(
            select(ChecklistTemplate.id).where(ChecklistTemplate.name == data.name)
        )
    ).first()
    if existing is not None:
        raise InvalidInputError(
            f"Template '{data.name}' already exists; create a new version instead"
        )

    template = ChecklistTemplate(
        name=data.name,
        description=data.description,
        system_type=data.system_type,
        visit_type=data.visit_type,
        version=1,
        is_active=True,
        items=_template_items(data.items),
    )
    session.add(template)
    await session.flush()
    logger.info("Created checklist template '%s' v1", template.name)
    return template


async def new_template_version(
    session: AsyncSession, template_id: UUID, data: TemplateVersionCreate
) -> ChecklistTemplate:
    """Copy `template_id` into a new version and deactivate the old one.

    Items not supplied in `data` are copied unchanged from the previous version.
    """
    stmt = (
        select(ChecklistTemplate)
        .where(ChecklistTemplate.id == template_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    previous = (await session.execute(stmt)).scalar_one_or_none()
    if previous is None:
        raise NotFoundError("Checklist template", template_id)

    latest = (
        await session.execute(
            select(func.max(ChecklistTemplate.version)).where(
                ChecklistTemplate.name == previous.name
            )
        )
    ).scalar_one()

    if data.items is not None:
        items = _template_items(data.items)
    else:
        items = [
            ChecklistTemplateItem(
                category=i.category,
                sort_order=i.sort_order,
                description=i.description,
                input_type=i.input_type,
                min_value=i.min_value,
                max_value=i.max_value,
                options=list(i.options) if i.options is not None else None,
                is_mandatory=i.is_mandatory,
                photo_required=i.photo_required,
                help_text=i.help_text,
            )
            for i in previous.items
        ]

    template = ChecklistTemplate(
        name=previous.name,
        description=(
            data.description if data.description is not None else previous.description
        ),
        system_type=previous.system_type,
        visit_type=previous.visit_type,
        version=latest + 1,
        is_active=True,
        items=items,
    )
    previous.is_active = False
    session.add(template)
    await session.flush()
    logger.info(
        "Template '%s': v%d superseded by v%d",
        template.name,
        previous.version,
        template.version,
    )
    return template


async def seed_default_templates(session: AsyncSession) -> list[ChecklistTemplate]:
    """Insert the built-in templates that are not present yet."""
    created = []
    for data in DEFAULT_TEMPLATES:
        exists = (
            await session.execute(
                select(ChecklistTemplate.id).where(ChecklistTemplate.name == data.name)
            )
        ).first()
        if exists is None:
            created.append(await create_template(session, data))
    return created


async def get_checklist(
    session: AsyncSession, checklist_id: UUID, *, for_update: bool = False
) -> Checklist:
    stmt = select(Checklist).where(Checklist.id == checklist_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    checklist = (await session.execute(stmt)).scalar_one_or_none()
    if checklist is None:
        raise NotFoundError("Checklist", checklist_id)
    return checklist


async def list_for_visit(session: AsyncSession, visit_id: UUID) -> list[Checklist]:
    stmt = (
        select(Checklist)
        .where(Checklist.visit_id == visit_id)
        .order_by(Checklist.created_at)
    )
    return list((await session.execute(stmt)).scalars().all())


async def create_from_template(
    session: AsyncSession, visit_id: UUID, template_id: UUID, technician_id: str
) -> Checklist:
    """Instantiate a checklist for a visit, snapshotting the template's items."""
    visit = await get_visit(session, visit_id, for_update=True)
    if is_terminal(visit.status):
        raise InvalidStateTransitionError(
            f"Cannot add a checklist to a {visit.status.value} visit",
            status=visit.status.value,
        )
    template = await get_template(session, template_id)
    if not template.is_active:
        raise InvalidInputError(
            f"Template '{template.name}' v{template.version} is not active",
            template_id=str(template.id),
        )

    ordered = sorted(template.items, key=lambda i: (i.category, i.sort_order))
    checklist = Checklist(
        visit=visit,
        template_id=template.id,
        technician_id=technician_id,
        status=ChecklistStatus.PENDING,
        items=[
            ChecklistItem(
                template_item=template_item,
                category=template_item.category,
                description=template_item.description,
                input_type=template_item.input_type,
                sort_order=position,
                status=ItemStatus.PENDING,
            )
            for position, template_item in enumerate(ordered)
        ],
    )
    session.add(checklist)
    await session.flush()
    logger.info(
        "Checklist %s created for visit %s from '%s' v%d (%d items)",
        checklist.id,
        visit.id,
        template.name,
        template.version,
        len(checklist.items),
    )
    return checklist


def _ensure_editable(checklist: Checklist) -> None:
    if checklist.status is ChecklistStatus.COMPLETED:
        raise InvalidStateTransitionError(
            "Checklist is completed; its items can no longer be changed",
            checklist_id=str(checklist.id),
        )


def _mark_started(checklist: Checklist, now: datetime) -> None:
    if checklist.status is ChecklistStatus.PENDING:
        checklist.status = ChecklistStatus.IN_PROGRESS
        checklist.started_at = now


def _validate_update(item: ChecklistItem, data: ItemUpdate) -> None:
    if "status" in data.model_fields_set and data.status is None:
        raise InvalidInputError("Item status cannot be cleared", item_id=str(item.id))


def _apply_item_update(item: ChecklistItem, data: ItemUpdate, now: datetime) -> None:
    changes: dict[str, Any] = data.model_dump(exclude_unset=True)
    changes.pop("item_id", None)

    if "status" in changes:
        status = changes.pop("status")
        if status is ItemStatus.PENDING:
            item.completed_at = None
        elif item.status is ItemStatus.PENDING or item.completed_at is None:
            item.completed_at = now
        item.status = status

    for key, value in changes.items():
        setattr(item, key, value)

    if item.severity is not None and item.status is not ItemStatus.FAILED:
        logger.warning(
            "Checklist item %s has severity %s but status %s",
            item.id,
            item.severity.value,
            item.status.value,
        )


async def start(session: AsyncSession, checklist_id: UUID) -> Checklist:
    checklist = await get_checklist(session, checklist_id, for_update=True)
    if checklist.status is not ChecklistStatus.PENDING:
        raise InvalidStateTransitionError(
            f"Cannot start a checklist that is {checklist.status.value}",
            status=checklist.status.value,
        )
    _mark_started(checklist, datetime.now(timezone.utc))
    await session.flush()
    return checklist


async def update_item(
    session: AsyncSession, item_id: UUID, data: ItemUpdate
) -> ChecklistItem:
    item = await session.get(ChecklistItem, item_id)
    if item is None:
        raise NotFoundError("Checklist item", item_id)
    checklist = await get_checklist(session, item.checklist_id, for_update=True)
    _ensure_editable(checklist)
    _validate_update(item, data)

    now = datetime.now(timezone.utc)
    _mark_started(checklist, now)
    _apply_item_update(item, data, now)
    await session.flush()
    return item


def _validate_batch(
    checklist: Checklist, updates: Sequence[BatchItemUpdate]
) -> dict[UUID, ChecklistItem]:
    items = {item.id: item for item in checklist.items}
    for update in updates:
        if update.item_id not in items:
            raise NotFoundError("Checklist item", update.item_id)
        _validate_update(items[update.item_id], update)
    return items


def _apply_batch(
    checklist: Checklist, updates: Sequence[BatchItemUpdate], now: datetime
) -> None:
    items = _validate_batch(checklist, updates)
    if updates:
        _mark_started(checklist, now)
    for update in updates:
        _apply_item_update(items[update.item_id], update, now)


async def update_items(
    session: AsyncSession, checklist_id: UUID, updates: Sequence[BatchItemUpdate]
) -> Checklist:
    """Apply several item updates as one unit.

    Every update is validated before anything changes, so an unknown id or
    a cleared status rejects the whole batch.
    """
    checklist = await get_checklist(session, checklist_id, for_update=True)
    _ensure_editable(checklist)
    _apply_batch(checklist, updates, datetime.now(timezone.utc))
    await session.flush()
    return checklist


async def complete(
    session: AsyncSession,
    checklist_id: UUID,
    notes: str | None = None,
    updates: Sequence[BatchItemUpdate] = (),
) -> Checklist:
    checklist = await get_checklist(session, checklist_id, for_update=True)
    if checklist.status is ChecklistStatus.COMPLETED:
        raise InvalidStateTransitionError(
            "Checklist is already completed", checklist_id=str(checklist.id)
        )
    _validate_batch(checklist, updates)
    pending = {u.item_id: u.status for u in updates if u.status is not None}
    outstanding = outstanding_mandatory(checklist.items, pending)
    if outstanding:
        raise InvalidStateTransitionError(
            f"Cannot complete checklist: {len(outstanding)} mandatory item(s) "
            "remain",
            outstanding=len(outstanding),
        )

    now = datetime.now(timezone.utc)
    _apply_batch(checklist, updates, now)
    checklist.status = ChecklistStatus.COMPLETED
    checklist.started_at = checklist.started_at or now
    checklist.completed_at = now
    if notes is not None:
        checklist.notes = notes
    await session.flush()
    logger.info("Checklist %s completed", checklist.id)
    return checklist


async def checklist_summary(
    session: AsyncSession, checklist_id: UUID
) -> ChecklistSummary:
    checklist = await get_checklist(session, checklist_id)
    return summarize(checklist.items)


async def visit_summary(
    session: AsyncSession, visit_id: UUID
) -> VisitChecklistSummary:
    if await session.get(ServiceVisit, visit_id) is None:
        raise NotFoundError("Visit", visit_id)
    return summarize_visit(await list_for_visit(session, visit_id))


async def export_findings(session: AsyncSession, checklist_id: UUID) -> list[Finding]:
    checklist = await get_checklist(session, checklist_id)
    return findings_export(checklist.items)
