from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from solservice.agreement.models import (
    AddonCategory,
    AddonFrequency,
    AgreementStatus,
    AgreementType,
    SlaLevel,
)
from solservice.agreement.pricing import BasePriceSuggestion, PriceBreakdown
from solservice.base.schemas import BaseDTO
from solservice.installation.models import SystemType


class AddonInput(BaseModel):
    addon_id: UUID
    quantity: int = Field(default=1, ge=1)
    custom_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    notes: str | None = None


class PriceRequest(BaseModel):
    base_price: Decimal = Field(gt=0, decimal_places=2)
    discount_percent: Decimal | None = Field(
        default=None, ge=0, le=100, decimal_places=2
    )
    addons: list[AddonInput] = Field(default_factory=list)


class PriceSuggestionRequest(BaseModel):
    agreement_type: AgreementType
    sla_level: SlaLevel = SlaLevel.STANDARD
    capacity_kw: Decimal = Field(gt=0)
    system_type: SystemType


class AgreementCreate(BaseModel):
    installation_id: UUID
    agreement_type: AgreementType
    start_date: date
    end_date: date | None = None
    base_price: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    discount_percent: Decimal | None = Field(
        default=None, ge=0, le=100, decimal_places=2
    )
    sla_level: SlaLevel = SlaLevel.STANDARD
    auto_renew: bool = True
    visit_frequency: int | None = Field(default=None, ge=1, le=12)
    preferred_visit_day: int | None = Field(default=None, ge=0, le=6)
    preferred_visit_time: time | None = None
    technician_id: str | None = None
    notes: str | None = None
    addons: list[AddonInput] = Field(default_factory=list)


class AgreementUpdate(BaseModel):
    agreement_type: AgreementType | None = None
    start_date: date | None = None
    end_date: date | None = None
    base_price: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    discount_percent: Decimal | None = Field(
        default=None, ge=0, le=100, decimal_places=2
    )
    sla_level: SlaLevel | None = None
    auto_renew: bool | None = None
    visit_frequency: int | None = Field(default=None, ge=1, le=12)
    preferred_visit_day: int | None = Field(default=None, ge=0, le=6)
    preferred_visit_time: time | None = None
    technician_id: str | None = None
    notes: str | None = None
    addons: list[AddonInput] | None = None


class CancelRequest(BaseModel):
    reason: str | None = None


class AddonProductResponse(BaseDTO):
    name: str
    description: str | None
    category: AddonCategory
    frequency: AddonFrequency
    base_price: Decimal
    unit: str
    is_active: bool
    sort_order: int


class AgreementAddonResponse(BaseDTO):
    addon_id: UUID
    quantity: int
    custom_price: Decimal | None
    notes: str | None
    addon: AddonProductResponse


class ServicePlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    visit_frequency: int
    next_visit_date: date | None
    seasonal_adjust: bool
    technician_id: str | None


class AgreementResponse(BaseDTO):
    installation_id: UUID
    agreement_number: str
    agreement_type: AgreementType
    status: AgreementStatus
    sla_level: SlaLevel
    start_date: date
    end_date: date | None
    base_price: Decimal
    calculated_price: Decimal | None
    discount_percent: Decimal | None
    auto_renew: bool
    visit_frequency: int
    preferred_visit_day: int | None
    preferred_visit_time: time | None
    notes: str | None
    signed_at: datetime | None
    signed_by: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    addons: list[AgreementAddonResponse]
    service_plan: ServicePlanResponse | None


class PriceLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    description: str
    quantity: int
    unit_price: Decimal
    total: Decimal


class PriceBreakdownResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    base_price: Decimal
    addons_total: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    vat_amount: Decimal
    grand_total: Decimal
    breakdown: list[PriceLineResponse]

    @classmethod
    def present(cls, price: PriceBreakdown) -> PriceBreakdownResponse:
        return cls.model_validate(price.quantized())


class PriceSuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier_price: Decimal
    capacity_charge: Decimal
    sla_multiplier: Decimal
    sla_surcharge: Decimal
    base_price: Decimal
    breakdown: list[PriceLineResponse]

    @classmethod
    def present(cls, suggestion: BasePriceSuggestion) -> PriceSuggestionResponse:
        return cls.model_validate(suggestion)
