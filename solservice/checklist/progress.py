from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from uuid import UUID

from solservice.checklist.models import (
    Checklist,
    ChecklistItem,
    ChecklistStatus,
    ItemStatus,
    Severity,
)

ISSUE_SEVERITIES = frozenset({Severity.CRITICAL, Severity.SERIOUS})


@dataclass(frozen=True)
class CategoryProgress:
    total: int
    completed: int
    has_issues: bool


@dataclass(frozen=True)
class Finding:
    category: str
    description: str
    status: ItemStatus
    value: str | None
    notes: str | None
    severity: Severity | None


@dataclass(frozen=True)
class ChecklistSummary:
    total: int
    completed: int
    progress: int
    categories: dict[str, CategoryProgress]
    findings: dict[Severity, int]
    out_of_range: list[ChecklistItem] = field(default_factory=list)


@dataclass(frozen=True)
class VisitChecklistSummary:
    total_checklists: int
    completed_checklists: int
    findings: dict[Severity, int]
    has_issues: bool


def progress_percent(completed: int, total: int) -> int:
    """Share of answered items as a whole percentage, rounded half up."""
    if total == 0:
        return 0
    return (200 * completed + total) // (2 * total)


def is_out_of_range(item: ChecklistItem) -> bool:
    template_item = item.template_item
    if item.numeric_value is None or template_item is None:
        return False
    low, high = template_item.min_value, template_item.max_value
    if low is not None and item.numeric_value < low:
        return True
    return high is not None and item.numeric_value > high


def outstanding_mandatory(
    items: Iterable[ChecklistItem], pending: Mapping[UUID, ItemStatus] | None = None
) -> list[ChecklistItem]:
    """Mandatory items left unanswered, reading `pending` statuses over stored ones."""
    pending = pending or {}
    return [
        item
        for item in items
        if item.template_item is not None
        and item.template_item.is_mandatory
        and not pending.get(item.id, item.status).is_answered
    ]


def count_findings(items: Iterable[ChecklistItem]) -> dict[Severity, int]:
    """Failed items bucketed by severity; every bucket is present."""
    findings = {severity: 0 for severity in Severity}
    for item in items:
        if item.status is ItemStatus.FAILED and item.severity is not None:
            findings[item.severity] += 1
    return findings


def summarize(items: Sequence[ChecklistItem]) -> ChecklistSummary:
    completed = sum(1 for item in items if item.status.is_answered)

    by_category: dict[str, list[ChecklistItem]] = {}
    for item in items:
        by_category.setdefault(item.category, []).append(item)

    categories = {
        category: CategoryProgress(
            total=len(category_items),
            completed=sum(1 for i in category_items if i.status.is_answered),
            has_issues=any(i.status is ItemStatus.FAILED for i in category_items),
        )
        for category, category_items in by_category.items()
    }

    return ChecklistSummary(
        total=len(items),
        completed=completed,
        progress=progress_percent(completed, len(items)),
        categories=categories,
        findings=count_findings(items),
        out_of_range=[item for item in items if is_out_of_range(item)],
    )


def summarize_visit(checklists: Sequence[Checklist]) -> VisitChecklistSummary:
    findings = count_findings(item for c in checklists for item in c.items)
    return VisitChecklistSummary(
        total_checklists=len(checklists),
        completed_checklists=sum(
            1 for c in checklists if c.status is ChecklistStatus.COMPLETED
        ),
        findings=findings,
        has_issues=any(findings[s] > 0 for s in ISSUE_SEVERITIES),
    )


def findings_export(items: Iterable[ChecklistItem]) -> list[Finding]:
    """Rows handed to the report generator, one per item."""
    return [
        Finding(
            category=item.category,
            description=item.description,
            status=item.status,
            value=item.value,
            notes=item.notes,
            severity=item.severity,
        )
        for item in items
    ]
