import asyncio
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solservice.base.errors import (
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
)
from solservice.checklist import engine
from solservice.checklist.defaults import DEFAULT_TEMPLATES
from solservice.checklist.models import (
    ChecklistStatus,
    ChecklistTemplate,
    InputType,
    ItemStatus,
    Severity,
)
from solservice.checklist.schemas import (
    BatchItemUpdate,
    ItemUpdate,
    TemplateCreate,
    TemplateItemInput,
    TemplateVersionCreate,
)
from solservice.installation.models import SystemType
from solservice.visit.lifecycle import cancel_visit, complete_visit, start_visit
from solservice.visit.models import ServiceVisit, VisitType


@pytest.fixture
async def template(db_session: AsyncSession) -> ChecklistTemplate:
    return await engine.create_template(
        db_session,
        TemplateCreate(
            name="Inverter check",
            system_type=SystemType.SOLAR_PANEL,
            visit_type=VisitType.ANNUAL_INSPECTION,
            items=[
                TemplateItemInput(
                    category="Safety",
                    sort_order=2,
                    description="Warning labels present",
                    input_type=InputType.YES_NO,
                    is_mandatory=True,
                ),
                TemplateItemInput(
                    category="Inverters",
                    sort_order=1,
                    description="Error log reviewed",
                    input_type=InputType.YES_NO_NA,
                    is_mandatory=True,
                ),
                TemplateItemInput(
                    category="Safety",
                    sort_order=1,
                    description="Isolator reachable",
                    input_type=InputType.YES_NO,
                ),
            ],
        ),
    )


class TestTemplates:
    async def test_duplicate_name_is_rejected(
        self, db_session: AsyncSession, template: ChecklistTemplate
    ) -> None:
        with pytest.raises(InvalidInputError):
            await engine.create_template(
                db_session,
                TemplateCreate(
                    name="Inverter check",
                    system_type=SystemType.BESS,
                    visit_type=VisitType.QUARTERLY,
                ),
            )

    async def test_new_version_copies_items(
        self, db_session: AsyncSession, template: ChecklistTemplate
    ) -> None:
        v2 = await engine.new_template_version(
            db_session, template.id, TemplateVersionCreate(description="Revised")
        )

        assert v2.version == 2
        assert v2.description == "Revised"
        assert sorted(i.description for i in v2.items) == sorted(
            i.description for i in template.items
        )
        assert {i.id for i in v2.items}.isdisjoint({i.id for i in template.items})
        assert template.is_active is False
        active = await engine.list_templates(db_session)
        assert [t.id for t in active] == [v2.id]

    async def test_new_version_of_old_version_takes_next_number(
        self, db_session: AsyncSession, template: ChecklistTemplate
    ) -> None:
        await engine.new_template_version(
            db_session, template.id, TemplateVersionCreate()
        )

        v3 = await engine.new_template_version(
            db_session,
            template.id,
            TemplateVersionCreate(
                items=[
                    TemplateItemInput(
                        category="Safety",
                        description="Only item",
                        input_type=InputType.TEXT,
                    )
                ]
            ),
        )

        assert v3.version == 3
        assert [i.description for i in v3.items] == ["Only item"]

    async def test_inactive_template_cannot_be_used(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        await engine.new_template_version(
            db_session, template.id, TemplateVersionCreate()
        )

        with pytest.raises(InvalidInputError):
            await engine.create_from_template(
                db_session, visit.id, template.id, "tech-1"
            )

    async def test_seed_defaults_is_idempotent(self, db_session: AsyncSession) -> None:
        created = await engine.seed_default_templates(db_session)
        again = await engine.seed_default_templates(db_session)

        assert [t.name for t in created] == [t.name for t in DEFAULT_TEMPLATES]
        assert again == []
        for seeded in created:
            assert seeded.items


class TestCreateFromTemplate:
    async def test_snapshots_items_in_category_order(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        checklist = await engine.create_from_template(
            db_session, visit.id, template.id, "tech-1"
        )

        assert checklist.status is ChecklistStatus.PENDING
        assert [(i.category, i.description) for i in checklist.items] == [
            ("Inverters", "Error log reviewed"),
            ("Safety", "Isolator reachable"),
            ("Safety", "Warning labels present"),
        ]
        assert [i.sort_order for i in checklist.items] == [0, 1, 2]
        assert all(i.status is ItemStatus.PENDING for i in checklist.items)

    async def test_terminal_visit_is_rejected(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        await cancel_visit(db_session, visit.id, "Customer cancelled")

        with pytest.raises(InvalidStateTransitionError):
            await engine.create_from_template(
                db_session, visit.id, template.id, "tech-1"
            )

    async def test_waits_for_visit_being_completed(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        await start_visit(db_session, visit.id)
        await db_session.commit()

        async with session_factory() as completing, session_factory() as adding:
            await complete_visit(completing, visit.id)
            add = asyncio.create_task(
                engine.create_from_template(adding, visit.id, template.id, "tech-2")
            )
            await asyncio.sleep(0.2)
            assert not add.done()

            await completing.commit()
            with pytest.raises(InvalidStateTransitionError):
                await add

        assert await engine.list_for_visit(db_session, visit.id) == []


class TestItemUpdates:
    async def test_update_item_starts_checklist(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        checklist = await engine.create_from_template(
            db_session, visit.id, template.id, "tech-1"
        )
        item = checklist.items[0]

        await engine.update_item(
            db_session,
            item.id,
            ItemUpdate.model_validate({"status": "N/A", "notes": "No inverter log"}),
        )

        assert checklist.status is ChecklistStatus.IN_PROGRESS
        assert checklist.started_at is not None
        assert item.status is ItemStatus.NOT_APPLICABLE
        assert item.completed_at is not None

        await engine.update_item(
            db_session, item.id, ItemUpdate.model_validate({"status": "PENDING"})
        )
        assert item.completed_at is None
        assert item.notes == "No inverter log"

    async def test_status_cannot_be_cleared(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        checklist = await engine.create_from_template(
            db_session, visit.id, template.id, "tech-1"
        )

        with pytest.raises(InvalidInputError):
            await engine.update_item(
                db_session, checklist.items[0].id, ItemUpdate(status=None)
            )
        assert checklist.status is ChecklistStatus.PENDING

    async def test_batch_with_unknown_item_changes_nothing(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        checklist = await engine.create_from_template(
            db_session, visit.id, template.id, "tech-1"
        )
        first = checklist.items[0]

        with pytest.raises(NotFoundError):
            await engine.update_items(
                db_session,
                checklist.id,
                [
                    BatchItemUpdate(item_id=first.id, status=ItemStatus.PASSED),
                    BatchItemUpdate(item_id=uuid4(), status=ItemStatus.PASSED),
                ],
            )

        assert first.status is ItemStatus.PENDING
        assert checklist.status is ChecklistStatus.PENDING

    async def test_batch_with_cleared_status_changes_nothing(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        checklist = await engine.create_from_template(
            db_session, visit.id, template.id, "tech-1"
        )
        first, second = checklist.items[0], checklist.items[1]

        with pytest.raises(InvalidInputError):
            await engine.update_items(
                db_session,
                checklist.id,
                [
                    BatchItemUpdate(item_id=first.id, status=ItemStatus.PASSED),
                    BatchItemUpdate(item_id=second.id, status=None),
                ],
            )

        assert first.status is ItemStatus.PENDING
        assert first.completed_at is None
        assert checklist.status is ChecklistStatus.PENDING


class TestComplete:
    async def test_mandatory_items_gate_completion(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        checklist = await engine.create_from_template(
            db_session, visit.id, template.id, "tech-1"
        )
        by_description = {i.description: i for i in checklist.items}

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await engine.complete(db_session, checklist.id)
        assert exc_info.value.meta["outstanding"] == 2

        done = await engine.complete(
            db_session,
            checklist.id,
            notes="Label replaced",
            updates=[
                BatchItemUpdate(
                    item_id=by_description["Error log reviewed"].id,
                    status=ItemStatus.NOT_APPLICABLE,
                ),
                BatchItemUpdate(
                    item_id=by_description["Warning labels present"].id,
                    status=ItemStatus.FAILED,
                    severity=Severity.MINOR,
                ),
            ],
        )

        assert done.status is ChecklistStatus.COMPLETED
        assert done.completed_at is not None
        assert done.started_at is not None
        assert done.notes == "Label replaced"

    async def test_one_outstanding_of_three_mandatory(
        self, db_session: AsyncSession, visit: ServiceVisit
    ) -> None:
        five = await engine.create_template(
            db_session,
            TemplateCreate(
                name="Five point check",
                system_type=SystemType.SOLAR_PANEL,
                visit_type=VisitType.ANNUAL_INSPECTION,
                items=[
                    TemplateItemInput(
                        category="Checks",
                        sort_order=n,
                        description=f"Check {n}",
                        input_type=InputType.YES_NO,
                        is_mandatory=n < 3,
                    )
                    for n in range(5)
                ],
            ),
        )
        checklist = await engine.create_from_template(
            db_session, visit.id, five.id, "tech-1"
        )
        mandatory = [i for i in checklist.items if i.description < "Check 3"]

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await engine.complete(
                db_session,
                checklist.id,
                updates=[
                    BatchItemUpdate(item_id=i.id, status=ItemStatus.PASSED)
                    for i in mandatory[:2]
                ],
            )
        assert exc_info.value.meta["outstanding"] == 1
        assert "1 mandatory item" in exc_info.value.message
        assert all(i.status is ItemStatus.PENDING for i in mandatory)
        assert all(i.completed_at is None for i in mandatory)
        assert checklist.status is ChecklistStatus.PENDING

        done = await engine.complete(
            db_session,
            checklist.id,
            updates=[
                BatchItemUpdate(item_id=i.id, status=ItemStatus.PASSED)
                for i in mandatory
            ],
        )
        assert done.status is ChecklistStatus.COMPLETED

    async def test_completed_checklist_is_frozen(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        checklist = await engine.create_from_template(
            db_session, visit.id, template.id, "tech-1"
        )
        await engine.complete(
            db_session,
            checklist.id,
            updates=[
                BatchItemUpdate(item_id=i.id, status=ItemStatus.PASSED)
                for i in checklist.items
            ],
        )

        with pytest.raises(InvalidStateTransitionError):
            await engine.complete(db_session, checklist.id)
        with pytest.raises(InvalidStateTransitionError):
            await engine.update_item(
                db_session,
                checklist.items[0].id,
                ItemUpdate(status=ItemStatus.FAILED),
            )
        with pytest.raises(InvalidStateTransitionError):
            await engine.start(db_session, checklist.id)


class TestSummaries:
    async def test_visit_summary_and_findings(
        self,
        db_session: AsyncSession,
        template: ChecklistTemplate,
        visit: ServiceVisit,
    ) -> None:
        checklist = await engine.create_from_template(
            db_session, visit.id, template.id, "tech-1"
        )
        await engine.update_items(
            db_session,
            checklist.id,
            [
                BatchItemUpdate(
                    item_id=checklist.items[0].id,
                    status=ItemStatus.FAILED,
                    severity=Severity.CRITICAL,
                    notes="Inverter fault 23",
                )
            ],
        )

        summary = await engine.checklist_summary(db_session, checklist.id)
        visit_summary = await engine.visit_summary(db_session, visit.id)
        findings = await engine.export_findings(db_session, checklist.id)

        assert summary.progress == 33
        assert summary.findings[Severity.CRITICAL] == 1
        assert visit_summary.has_issues is True
        assert visit_summary.completed_checklists == 0
        assert len(findings) == 3
        assert findings[0].notes == "Inverter fault 23"
