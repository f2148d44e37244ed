"""Annual agreement pricing.

Everything here is pure: no session, no clock. Amounts are carried as
unrounded ``Decimal`` through every step and only quantized by
``PriceBreakdown.quantized()`` when presented or persisted.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from solservice.agreement.models import (
    AddonFrequency,
    AddonProduct,
    AgreementType,
    SlaLevel,
)
from solservice.installation.models import SystemType

MONEY = Decimal("0.01")
VAT_RATE = Decimal("0.25")

TIER_BASE_PRICES: dict[AgreementType, Decimal] = {
    AgreementType.BASIC: Decimal("2500"),
    AgreementType.STANDARD: Decimal("4500"),
    AgreementType.PREMIUM: Decimal("8500"),
    AgreementType.ENTERPRISE: Decimal("15000"),
}

SLA_MULTIPLIERS: dict[SlaLevel, Decimal] = {
    SlaLevel.STANDARD: Decimal("1.00"),
    SlaLevel.PRIORITY: Decimal("1.25"),
    SlaLevel.CRITICAL: Decimal("1.50"),
}

# Per kW of installed capacity.
CAPACITY_RATES: dict[SystemType, Decimal] = {
    SystemType.SOLAR_PANEL: Decimal("50"),
    SystemType.BESS: Decimal("50"),
    SystemType.COMBINED: Decimal("75"),
}


def qmoney(x: Decimal) -> Decimal:
    return x.quantize(MONEY, rounding=ROUND_HALF_UP)


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    return Decimal(str(value))


@dataclass(frozen=True)
class AddonSelection:
    addon_id: UUID
    quantity: int = 1
    custom_price: Decimal | None = None


@dataclass(frozen=True)
class PriceLine:
    description: str
    quantity: int
    unit_price: Decimal
    total: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: Decimal
    addons_total: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    vat_amount: Decimal
    grand_total: Decimal
    breakdown: tuple[PriceLine, ...] = field(default_factory=tuple)

    def quantized(self) -> PriceBreakdown:
        return PriceBreakdown(
            base_price=qmoney(self.base_price),
            addons_total=qmoney(self.addons_total),
            subtotal=qmoney(self.subtotal),
            discount_amount=qmoney(self.discount_amount),
            total=qmoney(self.total),
            vat_amount=qmoney(self.vat_amount),
            grand_total=qmoney(self.grand_total),
            breakdown=tuple(
                replace(
                    line,
                    unit_price=qmoney(line.unit_price),
                    total=qmoney(line.total),
                )
                for line in self.breakdown
            ),
        )


def calculate_price(
    base_price: Decimal | int | float | str,
    discount_percent: Decimal | int | float | str | None = None,
    addons: Sequence[AddonSelection] = (),
    products: Mapping[UUID, AddonProduct] | None = None,
) -> PriceBreakdown:
    """Compute the annual price of an agreement.

    Only add-ons billed ANNUAL are folded into the yearly figure; one-time,
    per-visit and monthly add-ons are invoiced when they occur. Selections
    whose product is missing from `products` are ignored; callers resolve
    ids beforehand and reject unknown ones.
    """
    base = to_decimal(base_price)
    products = products or {}

    lines = [
        PriceLine(description="Base price", quantity=1, unit_price=base, total=base)
    ]
    addons_total = Decimal("0")

    for selection in addons:
        product = products.get(selection.addon_id)
        if product is None or product.frequency is not AddonFrequency.ANNUAL:
            continue
        unit_price = (
            to_decimal(selection.custom_price)
            if selection.custom_price is not None
            else to_decimal(product.base_price)
        )
        line_total = unit_price * selection.quantity
        addons_total += line_total
        lines.append(
            PriceLine(
                description=f"{product.name} x{selection.quantity}",
                quantity=selection.quantity,
                unit_price=unit_price,
                total=line_total,
            )
        )

    subtotal = base + addons_total
    discount_amount = (
        subtotal * to_decimal(discount_percent) / 100
        if discount_percent is not None
        else Decimal("0")
    )
    total = subtotal - discount_amount
    vat_amount = total * VAT_RATE
    grand_total = total + vat_amount

    return PriceBreakdown(
        base_price=base,
        addons_total=addons_total,
        subtotal=subtotal,
        discount_amount=discount_amount,
        total=total,
        vat_amount=vat_amount,
        grand_total=grand_total,
        breakdown=tuple(lines),
    )


@dataclass(frozen=True)
class BasePriceSuggestion:
    tier_price: Decimal
    capacity_charge: Decimal
    sla_multiplier: Decimal
    sla_surcharge: Decimal
    base_price: Decimal
    breakdown: tuple[PriceLine, ...]


def suggest_base_price(
    agreement_type: AgreementType,
    sla_level: SlaLevel,
    capacity_kw: Decimal | int | float | str,
    system_type: SystemType,
) -> BasePriceSuggestion:
    """Suggest an annual base price from tier, installed capacity and SLA."""
    capacity = to_decimal(capacity_kw)
    tier_price = TIER_BASE_PRICES[agreement_type]
    rate = CAPACITY_RATES[system_type]
    capacity_charge = capacity * rate
    multiplier = SLA_MULTIPLIERS[sla_level]
    before_sla = tier_price + capacity_charge
    sla_surcharge = before_sla * (multiplier - 1)

    lines = [
        PriceLine(
            description=f"Base price ({agreement_type.value})",
            quantity=1,
            unit_price=tier_price,
            total=tier_price,
        ),
        PriceLine(
            description=f"Capacity charge ({capacity} kW)",
            quantity=1,
            unit_price=capacity_charge,
            total=capacity_charge,
        ),
    ]
    if sla_surcharge:
        lines.append(
            PriceLine(
                description=f"SLA level ({sla_level.value})",
                quantity=1,
                unit_price=sla_surcharge,
                total=sla_surcharge,
            )
        )

    return BasePriceSuggestion(
        tier_price=tier_price,
        capacity_charge=capacity_charge,
        sla_multiplier=multiplier,
        sla_surcharge=sla_surcharge,
        base_price=before_sla * multiplier,
        breakdown=tuple(lines),
    )
