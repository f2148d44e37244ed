from __future__ import annotations

import enum
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from solservice.base.models import BaseDbModel, Money, UTCDateTime
from solservice.installation.models import Installation


class AgreementType(enum.Enum):
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"
    ENTERPRISE = "ENTERPRISE"


class AgreementStatus(enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class SlaLevel(enum.Enum):
    STANDARD = "STANDARD"
    PRIORITY = "PRIORITY"
    CRITICAL = "CRITICAL"


class AddonCategory(enum.Enum):
    MAINTENANCE = "MAINTENANCE"
    MONITORING = "MONITORING"
    PRIORITY = "PRIORITY"
    EQUIPMENT = "EQUIPMENT"


class AddonFrequency(enum.Enum):
    ONE_TIME = "ONE_TIME"
    PER_VISIT = "PER_VISIT"
    MONTHLY = "MONTHLY"
    ANNUAL = "ANNUAL"


class AddonProduct(BaseDbModel):
    __tablename__ = "addon_products"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[AddonCategory] = mapped_column(
        Enum(AddonCategory), nullable=False
    )
    frequency: Mapped[AddonFrequency] = mapped_column(
        Enum(AddonFrequency), nullable=False
    )
    base_price: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    unit: Mapped[str] = mapped_column(String, nullable=False, default="stk")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ServiceAgreement(BaseDbModel):
    __tablename__ = "service_agreements"

    installation_id: Mapped[UUID] = mapped_column(
        ForeignKey("installations.id"), nullable=False
    )
    agreement_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    agreement_type: Mapped[AgreementType] = mapped_column(
        Enum(AgreementType), nullable=False
    )
    status: Mapped[AgreementStatus] = mapped_column(
        Enum(AgreementStatus), nullable=False, default=AgreementStatus.DRAFT
    )
    sla_level: Mapped[SlaLevel] = mapped_column(
        Enum(SlaLevel), nullable=False, default=SlaLevel.STANDARD
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    base_price: Mapped[Decimal] = mapped_column(Money(), nullable=False)
    calculated_price: Mapped[Decimal | None] = mapped_column(Money(), nullable=True)
    discount_percent: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    auto_renew: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    visit_frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    preferred_visit_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    preferred_visit_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    signed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    signed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    installation: Mapped[Installation] = relationship(lazy="selectin")
    addons: Mapped[list[AgreementAddon]] = relationship(
        back_populates="agreement",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="AgreementAddon.created_at",
    )
    service_plan: Mapped[ServicePlan | None] = relationship(
        back_populates="agreement",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class AgreementAddon(BaseDbModel):
    __tablename__ = "agreement_addons"

    agreement_id: Mapped[UUID] = mapped_column(
        ForeignKey("service_agreements.id", ondelete="CASCADE"), nullable=False
    )
    addon_id: Mapped[UUID] = mapped_column(
        ForeignKey("addon_products.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    custom_price: Mapped[Decimal | None] = mapped_column(Money(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    agreement: Mapped[ServiceAgreement] = relationship(back_populates="addons")
    addon: Mapped[AddonProduct] = relationship(lazy="selectin")


class ServicePlan(BaseDbModel):
    """Derived scheduling state for an agreement (1:1)."""

    __tablename__ = "service_plans"

    agreement_id: Mapped[UUID] = mapped_column(
        ForeignKey("service_agreements.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    visit_frequency: Mapped[int] = mapped_column(Integer, nullable=False)
    next_visit_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    seasonal_adjust: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    # Technician the planning job books recurring visits for.
    technician_id: Mapped[str | None] = mapped_column(String, nullable=True)

    agreement: Mapped[ServiceAgreement] = relationship(back_populates="service_plan")
