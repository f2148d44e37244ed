"""Visit state machine.

Pure rules only; `solservice.visit.lifecycle` loads and persists visits
around them.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from solservice.base.errors import InvalidStateTransitionError
from solservice.checklist.models import Checklist, ChecklistStatus
from solservice.visit.models import VisitStatus, VisitType


class VisitEvent(enum.Enum):
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"


TRANSITIONS: dict[tuple[VisitStatus, VisitEvent], VisitStatus] = {
    (VisitStatus.SCHEDULED, VisitEvent.START): VisitStatus.IN_PROGRESS,
    (VisitStatus.SCHEDULED, VisitEvent.CANCEL): VisitStatus.CANCELLED,
    (VisitStatus.SCHEDULED, VisitEvent.RESCHEDULE): VisitStatus.RESCHEDULED,
    (VisitStatus.IN_PROGRESS, VisitEvent.COMPLETE): VisitStatus.COMPLETED,
    (VisitStatus.IN_PROGRESS, VisitEvent.CANCEL): VisitStatus.CANCELLED,
    (VisitStatus.RESCHEDULED, VisitEvent.START): VisitStatus.IN_PROGRESS,
    (VisitStatus.RESCHEDULED, VisitEvent.CANCEL): VisitStatus.CANCELLED,
    (VisitStatus.RESCHEDULED, VisitEvent.RESCHEDULE): VisitStatus.RESCHEDULED,
}

TERMINAL_STATUSES = frozenset({VisitStatus.COMPLETED, VisitStatus.CANCELLED})

EXPECTED_DURATION: dict[VisitType, timedelta] = {
    VisitType.ANNUAL_INSPECTION: timedelta(hours=3),
    VisitType.SEMI_ANNUAL: timedelta(hours=2),
    VisitType.QUARTERLY: timedelta(minutes=90),
    VisitType.TROUBLESHOOTING: timedelta(hours=2),
    VisitType.EMERGENCY: timedelta(hours=2),
    VisitType.WARRANTY: timedelta(minutes=90),
}


def next_status(current: VisitStatus, event: VisitEvent) -> VisitStatus:
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidStateTransitionError(
            f"Cannot {event.value} a visit that is {current.value}",
            status=current.value,
            event=event.value,
        ) from None


def allowed_events(current: VisitStatus) -> set[VisitEvent]:
    return {event for (status, event) in TRANSITIONS if status is current}


def is_terminal(status: VisitStatus) -> bool:
    return status in TERMINAL_STATUSES


def duration_minutes(start: datetime, end: datetime) -> int:
    """Minutes between `start` and `end`, rounded half up."""
    seconds = Decimal(str((end - start).total_seconds()))
    return int((seconds / 60).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def ensure_checklists_completed(checklists: Iterable[Checklist]) -> None:
    open_checklists = [
        c for c in checklists if c.status is not ChecklistStatus.COMPLETED
    ]
    if open_checklists:
        raise InvalidStateTransitionError(
            f"Cannot complete visit: {len(open_checklists)} checklist(s) "
            "not completed",
            outstanding=len(open_checklists),
        )


def visit_type_for_frequency(visit_frequency: int) -> VisitType:
    if visit_frequency >= 4:
        return VisitType.QUARTERLY
    if visit_frequency >= 2:
        return VisitType.SEMI_ANNUAL
    return VisitType.ANNUAL_INSPECTION
