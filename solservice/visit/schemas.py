from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from solservice.base.schemas import BaseDTO
from solservice.visit.models import PhotoCategory, VisitStatus, VisitType


class VisitCreate(BaseModel):
    agreement_id: UUID
    technician_id: str = Field(min_length=1)
    scheduled_date: AwareDatetime
    scheduled_end_date: AwareDatetime | None = None
    visit_type: VisitType
    notes: str | None = None


class VisitUpdate(BaseModel):
    technician_id: str | None = Field(default=None, min_length=1)
    scheduled_date: AwareDatetime | None = None
    scheduled_end_date: AwareDatetime | None = None
    notes: str | None = None
    technician_notes: str | None = None


class VisitComplete(BaseModel):
    duration_minutes: int | None = Field(default=None, ge=0)
    technician_notes: str | None = None
    customer_signature: str | None = None
    customer_notes: str | None = None


class VisitCancel(BaseModel):
    reason: str


class VisitReschedule(BaseModel):
    scheduled_date: AwareDatetime
    scheduled_end_date: AwareDatetime | None = None
    reason: str | None = None


class PhotoCreate(BaseModel):
    url: str = Field(min_length=1)
    caption: str | None = None
    category: PhotoCategory | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class PhotoResponse(BaseDTO):
    visit_id: UUID
    url: str
    caption: str | None
    category: PhotoCategory | None
    latitude: float | None
    longitude: float | None


class VisitResponse(BaseDTO):
    agreement_id: UUID
    technician_id: str
    visit_number: int
    scheduled_date: datetime
    scheduled_end_date: datetime | None
    status: VisitStatus
    visit_type: VisitType
    actual_start_date: datetime | None
    actual_end_date: datetime | None
    completed_at: datetime | None
    duration_minutes: int | None
    notes: str | None
    technician_notes: str | None
    customer_signature: str | None
    customer_signed_at: datetime | None
    customer_notes: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    reschedule_reason: str | None
    photos: list[PhotoResponse]


class VisitStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    today: int
    this_week: int
    scheduled: int
    completed_this_month: int


class CalendarEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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
