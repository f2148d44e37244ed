from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from solservice.agreement.models import ServiceAgreement
from solservice.base.models import BaseDbModel, UTCDateTime

if TYPE_CHECKING:
    from solservice.checklist.models import Checklist


class VisitStatus(enum.Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    RESCHEDULED = "RESCHEDULED"


class VisitType(enum.Enum):
    ANNUAL_INSPECTION = "ANNUAL_INSPECTION"
    SEMI_ANNUAL = "SEMI_ANNUAL"
    QUARTERLY = "QUARTERLY"
    TROUBLESHOOTING = "TROUBLESHOOTING"
    EMERGENCY = "EMERGENCY"
    WARRANTY = "WARRANTY"


class PhotoCategory(enum.Enum):
    BEFORE = "before"
    AFTER = "after"
    DAMAGE = "damage"
    GENERAL = "general"


class ServiceVisit(BaseDbModel):
    __tablename__ = "service_visits"
    __table_args__ = (
        UniqueConstraint("agreement_id", "visit_number", name="uq_agreement_visit"),
    )

    agreement_id: Mapped[UUID] = mapped_column(
        ForeignKey("service_agreements.id"), nullable=False
    )
    technician_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    visit_number: Mapped[int] = mapped_column(Integer, nullable=False)
    scheduled_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    scheduled_end_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    status: Mapped[VisitStatus] = mapped_column(
        Enum(VisitStatus), nullable=False, default=VisitStatus.SCHEDULED
    )
    visit_type: Mapped[VisitType] = mapped_column(Enum(VisitType), nullable=False)

    actual_start_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    actual_end_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    technician_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_signed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    customer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reschedule_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    agreement: Mapped[ServiceAgreement] = relationship(lazy="selectin")
    checklists: Mapped[list[Checklist]] = relationship(
        back_populates="visit", lazy="selectin", order_by="Checklist.created_at"
    )
    photos: Mapped[list[VisitPhoto]] = relationship(
        back_populates="visit",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="VisitPhoto.created_at",
    )


class VisitPhoto(BaseDbModel):
    __tablename__ = "visit_photos"

    visit_id: Mapped[UUID] = mapped_column(
        ForeignKey("service_visits.id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(String, nullable=False)
    caption: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[PhotoCategory | None] = mapped_column(
        Enum(PhotoCategory), nullable=True
    )
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    visit: Mapped[ServiceVisit] = relationship(back_populates="photos")
