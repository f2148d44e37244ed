"""Built-in add-on catalogue, seeded by ``solservice db seed``."""

from decimal import Decimal

from solservice.agreement.models import AddonCategory, AddonFrequency, AddonProduct


def default_addon_products() -> list[AddonProduct]:
    return [
        AddonProduct(
            name="Extra cleaning",
            description="Thorough panel cleaning beyond the standard service",
            category=AddonCategory.MAINTENANCE,
            frequency=AddonFrequency.PER_VISIT,
            base_price=Decimal("2500"),
            sort_order=1,
        ),
        AddonProduct(
            name="Extended warranty",
            description="Five-year extended component warranty",
            category=AddonCategory.MAINTENANCE,
            frequency=AddonFrequency.ANNUAL,
            base_price=Decimal("5000"),
            sort_order=2,
        ),
        AddonProduct(
            name="24/7 remote monitoring",
            description="Continuous monitoring with alerts on deviations",
            category=AddonCategory.MONITORING,
            frequency=AddonFrequency.MONTHLY,
            base_price=Decimal("500"),
            sort_order=3,
        ),
        AddonProduct(
            name="Performance report",
            description="Detailed monthly performance report",
            category=AddonCategory.MONITORING,
            frequency=AddonFrequency.MONTHLY,
            base_price=Decimal("300"),
            sort_order=4,
        ),
        AddonProduct(
            name="Priority response",
            description="Guaranteed response within 4 hours",
            category=AddonCategory.PRIORITY,
            frequency=AddonFrequency.ANNUAL,
            base_price=Decimal("15000"),
            sort_order=5,
        ),
        AddonProduct(
            name="Evening and weekend cover",
            description="Service available outside normal working hours",
            category=AddonCategory.PRIORITY,
            frequency=AddonFrequency.ANNUAL,
            base_price=Decimal("8000"),
            sort_order=6,
        ),
        AddonProduct(
            name="Spare parts kit",
            description="Pre-stocked spare parts for fast replacement",
            category=AddonCategory.EQUIPMENT,
            frequency=AddonFrequency.ONE_TIME,
            base_price=Decimal("10000"),
            sort_order=7,
        ),
    ]
