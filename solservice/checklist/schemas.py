from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from solservice.base.schemas import BaseDTO
from solservice.checklist.models import (
    ChecklistStatus,
    InputType,
    ItemStatus,
    Severity,
)
from solservice.checklist.progress import (
    ChecklistSummary,
    VisitChecklistSummary,
)
from solservice.installation.models import SystemType
from solservice.visit.models import VisitType


class TemplateItemInput(BaseModel):
    category: str = Field(min_length=1)
    sort_order: int = 0
    description: str = Field(min_length=1)
    input_type: InputType
    min_value: float | None = None
    max_value: float | None = None
    options: list[str] | None = None
    is_mandatory: bool = False
    photo_required: bool = False
    help_text: str | None = None


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    system_type: SystemType
    visit_type: VisitType
    items: list[TemplateItemInput] = Field(default_factory=list)


class TemplateVersionCreate(BaseModel):
    """Edits applied on top of a copy of the current version."""

    description: str | None = None
    items: list[TemplateItemInput] | None = None


class ChecklistCreate(BaseModel):
    visit_id: UUID
    template_id: UUID
    technician_id: str = Field(min_length=1)


class ItemUpdate(BaseModel):
    status: ItemStatus | None = None
    value: str | None = None
    numeric_value: float | None = None
    notes: str | None = None
    severity: Severity | None = None
    photo_urls: list[str] | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        if isinstance(value, str):
            return ItemStatus.parse(value)
        return value


class BatchItemUpdate(ItemUpdate):
    item_id: UUID


class ChecklistComplete(BaseModel):
    notes: str | None = None
    items: list[BatchItemUpdate] = Field(default_factory=list)


class TemplateItemResponse(BaseDTO):
    category: str
    sort_order: int
    description: str
    input_type: InputType
    min_value: float | None
    max_value: float | None
    options: list[str] | None
    is_mandatory: bool
    photo_required: bool
    help_text: str | None


class TemplateResponse(BaseDTO):
    name: str
    description: str | None
    system_type: SystemType
    visit_type: VisitType
    version: int
    is_active: bool
    items: list[TemplateItemResponse]


class ChecklistItemResponse(BaseDTO):
    template_item_id: UUID | None
    category: str
    description: str
    input_type: InputType
    sort_order: int
    status: ItemStatus
    value: str | None
    numeric_value: float | None
    notes: str | None
    severity: Severity | None
    photo_urls: list[str] | None
    latitude: float | None
    longitude: float | None
    completed_at: datetime | None


class ChecklistResponse(BaseDTO):
    visit_id: UUID
    template_id: UUID
    technician_id: str
    status: ChecklistStatus
    started_at: datetime | None
    completed_at: datetime | None
    notes: str | None
    items: list[ChecklistItemResponse]


class CategoryProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    completed: int
    has_issues: bool


class ChecklistSummaryResponse(BaseModel):
    total: int
    completed: int
    progress: int
    categories: dict[str, CategoryProgressResponse]
    findings: dict[Severity, int]
    out_of_range: list[UUID]

    @classmethod
    def present(cls, summary: ChecklistSummary) -> ChecklistSummaryResponse:
        return cls(
            total=summary.total,
            completed=summary.completed,
            progress=summary.progress,
            categories={
                name: CategoryProgressResponse.model_validate(progress)
                for name, progress in summary.categories.items()
            },
            findings=summary.findings,
            out_of_range=[item.id for item in summary.out_of_range],
        )


class VisitChecklistSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_checklists: int
    completed_checklists: int
    findings: dict[Severity, int]
    has_issues: bool

    @classmethod
    def present(
        cls, summary: VisitChecklistSummary
    ) -> VisitChecklistSummaryResponse:
        return cls.model_validate(summary)


class FindingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    category: str
    description: str
    status: ItemStatus
    value: str | None
    notes: str | None
    severity: Severity | None
