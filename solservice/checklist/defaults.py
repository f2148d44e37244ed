"""Built-in checklist templates, seeded by ``solservice db seed``."""

from solservice.checklist.models import InputType
from solservice.checklist.schemas import TemplateCreate, TemplateItemInput
from solservice.installation.models import SystemType
from solservice.visit.models import VisitType


def _item(
    category: str,
    sort_order: int,
    description: str,
    input_type: InputType,
    *,
    mandatory: bool = True,
    photo: bool = False,
    min_value: float | None = None,
    max_value: float | None = None,
    help_text: str | None = None,
) -> TemplateItemInput:
    return TemplateItemInput(
        category=category,
        sort_order=sort_order,
        description=description,
        input_type=input_type,
        is_mandatory=mandatory,
        photo_required=photo,
        min_value=min_value,
        max_value=max_value,
        help_text=help_text,
    )


SAFETY = "Safety and access"
PANELS = "Solar panels"
INVERTERS = "Inverters"
CABLING = "Cabling and connectors"
MOUNTING = "Mounting and structure"
PERFORMANCE = "Performance and documentation"

ANNUAL_SOLAR_INSPECTION = TemplateCreate(
    name="Annual inspection - Solar panels",
    description="Full yearly service inspection of a solar installation",
    system_type=SystemType.SOLAR_PANEL,
    visit_type=VisitType.ANNUAL_INSPECTION,
    items=[
        _item(
            SAFETY,
            1,
            "HSE assessment done before start",
            InputType.YES_NO,
            help_text="Confirm the HSE check was carried out",
        ),
        _item(SAFETY, 2, "Site access verified", InputType.YES_NO),
        _item(SAFETY, 3, "Emergency stop located and tested", InputType.YES_NO),
        _item(SAFETY, 4, "Photo of HSE board", InputType.IMAGE, photo=True),
        _item(
            PANELS,
            5,
            "Visual inspection for physical damage",
            InputType.YES_NO_NA,
            photo=True,
            help_text="Look for cracks, deformation or other damage",
        ),
        _item(
            PANELS,
            6,
            "Soiling on panels",
            InputType.NUMERIC,
            min_value=1,
            max_value=5,
            help_text="1 = clean, 5 = heavily soiled",
        ),
        _item(PANELS, 7, "Cleaning performed", InputType.YES_NO, mandatory=False),
        _item(
            PANELS,
            8,
            "Hotspot scan performed",
            InputType.YES_NO_NA,
            mandatory=False,
            photo=True,
            help_text="Use a thermal camera if available",
        ),
        _item(
            PANELS,
            9,
            "Micro-cracks found",
            InputType.NUMERIC,
            mandatory=False,
            min_value=0,
        ),
        _item(PANELS, 10, "Fixing points checked", InputType.YES_NO),
        _item(INVERTERS, 11, "Inverter status OK", InputType.YES_NO),
        _item(
            INVERTERS,
            12,
            "Error codes logged",
            InputType.TEXT,
            mandatory=False,
            help_text="Enter any error codes shown",
        ),
        _item(INVERTERS, 13, "Firmware version", InputType.TEXT),
        _item(INVERTERS, 14, "Ventilation openings clear", InputType.YES_NO),
        _item(
            INVERTERS,
            15,
            "AC voltage measured (V)",
            InputType.ELECTRICAL_MEASUREMENT,
            min_value=200,
            max_value=260,
        ),
        _item(
            INVERTERS,
            16,
            "DC voltage measured (V)",
            InputType.ELECTRICAL_MEASUREMENT,
            min_value=200,
            max_value=600,
        ),
        _item(
            INVERTERS, 17, "Production reading (kWh)", InputType.NUMERIC, photo=True
        ),
        _item(CABLING, 18, "Visual inspection of cables", InputType.YES_NO, photo=True),
        _item(CABLING, 19, "MC4 connectors checked", InputType.YES_NO),
        _item(CABLING, 20, "Earth fault test performed", InputType.YES_NO_NA),
        _item(CABLING, 21, "Cable glands sealed", InputType.YES_NO),
        _item(MOUNTING, 22, "Roof clamps and mounting system OK", InputType.YES_NO),
        _item(
            MOUNTING,
            23,
            "Corrosion observed",
            InputType.YES_NO_NA,
            mandatory=False,
            photo=True,
        ),
        _item(MOUNTING, 24, "Roof sealing OK", InputType.YES_NO),
        _item(
            PERFORMANCE, 25, "Production versus expected (%)", InputType.NUMERIC
        ),
        _item(PERFORMANCE, 26, "Deviations noted", InputType.TEXT, mandatory=False),
        _item(PERFORMANCE, 27, "Recommendations", InputType.TEXT, mandatory=False),
        _item(PERFORMANCE, 28, "Customer signature", InputType.SIGNATURE),
        _item(PERFORMANCE, 29, "General comments", InputType.TEXT, mandatory=False),
    ],
)

BESS_INSPECTION = TemplateCreate(
    name="Battery inspection - BESS",
    description="Inspection of a battery energy storage system",
    system_type=SystemType.BESS,
    visit_type=VisitType.ANNUAL_INSPECTION,
    items=[
        _item("Safety", 1, "HSE assessment done", InputType.YES_NO),
        _item("Safety", 2, "Emergency stop works", InputType.YES_NO),
        _item("Safety", 3, "Fire extinguisher available", InputType.YES_NO),
        _item(
            "Battery status",
            4,
            "Measured battery capacity (%)",
            InputType.NUMERIC,
            min_value=0,
            max_value=100,
        ),
        _item("Battery status", 5, "Number of charge circuits", InputType.NUMERIC),
        _item("Battery status", 6, "Cell balancing OK", InputType.YES_NO),
        _item(
            "Battery status",
            7,
            "Temperature reading (°C)",
            InputType.TEMPERATURE,
            min_value=0,
            max_value=60,
        ),
        _item(
            "Visual inspection",
            8,
            "Battery cabinet in good condition",
            InputType.YES_NO,
            photo=True,
        ),
        _item("Visual inspection", 9, "No signs of leakage", InputType.YES_NO),
        _item("Visual inspection", 10, "Ventilation works", InputType.YES_NO),
        _item("Documentation", 11, "Firmware version", InputType.TEXT),
        _item(
            "Documentation", 12, "Recommendations", InputType.TEXT, mandatory=False
        ),
        _item("Documentation", 13, "Customer signature", InputType.SIGNATURE),
    ],
)

DEFAULT_TEMPLATES = [ANNUAL_SOLAR_INSPECTION, BESS_INSPECTION]
