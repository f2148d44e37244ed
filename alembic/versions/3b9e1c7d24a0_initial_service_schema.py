"""initial_service_schema

Revision ID: 3b9e1c7d24a0
Revises:
Create Date: 2026-10-17 09:12:41.508113

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3b9e1c7d24a0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUMS = (
    "systemtype",
    "addoncategory",
    "addonfrequency",
    "agreementtype",
    "agreementstatus",
    "slalevel",
    "visitstatus",
    "visittype",
    "photocategory",
    "inputtype",
    "checkliststatus",
    "itemstatus",
    "severity",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    system_type = sa.Enum("SOLAR_PANEL", "BESS", "COMBINED", name="systemtype")
    visit_type = sa.Enum(
        "ANNUAL_INSPECTION",
        "SEMI_ANNUAL",
        "QUARTERLY",
        "TROUBLESHOOTING",
        "EMERGENCY",
        "WARRANTY",
        name="visittype",
    )
    input_type = sa.Enum(
        "YES_NO",
        "YES_NO_NA",
        "NUMERIC",
        "TEXT",
        "CHOICE",
        "IMAGE",
        "SIGNATURE",
        "GPS",
        "TEMPERATURE",
        "ELECTRICAL_MEASUREMENT",
        name="inputtype",
    )

    op.create_table(
        "users",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "sequences",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "installations",
        sa.Column("customer_id", sa.String(), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("system_type", system_type, nullable=False),
        sa.Column("capacity_kw", sa.Numeric(10, 2), nullable=False),
        sa.Column("install_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_installations_customer_id"),
        "installations",
        ["customer_id"],
        unique=False,
    )
    op.create_table(
        "addon_products",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "category",
            sa.Enum(
                "MAINTENANCE",
                "MONITORING",
                "PRIORITY",
                "EQUIPMENT",
                name="addoncategory",
            ),
            nullable=False,
        ),
        sa.Column(
            "frequency",
            sa.Enum(
                "ONE_TIME", "PER_VISIT", "MONTHLY", "ANNUAL", name="addonfrequency"
            ),
            nullable=False,
        ),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("unit", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "service_agreements",
        sa.Column("installation_id", sa.Uuid(), nullable=False),
        sa.Column("agreement_number", sa.String(), nullable=False),
        sa.Column(
            "agreement_type",
            sa.Enum(
                "BASIC", "STANDARD", "PREMIUM", "ENTERPRISE", name="agreementtype"
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "DRAFT",
                "PENDING_APPROVAL",
                "ACTIVE",
                "SUSPENDED",
                "EXPIRED",
                "CANCELLED",
                name="agreementstatus",
            ),
            nullable=False,
        ),
        sa.Column(
            "sla_level",
            sa.Enum("STANDARD", "PRIORITY", "CRITICAL", name="slalevel"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("calculated_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("auto_renew", sa.Boolean(), nullable=False),
        sa.Column("visit_frequency", sa.Integer(), nullable=False),
        sa.Column("preferred_visit_day", sa.Integer(), nullable=True),
        sa.Column("preferred_visit_time", sa.Time(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("signed_at", sa.DateTime(), nullable=True),
        sa.Column("signed_by", sa.String(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["installation_id"],
            ["installations.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("agreement_number"),
    )
    op.create_table(
        "agreement_addons",
        sa.Column("agreement_id", sa.Uuid(), nullable=False),
        sa.Column("addon_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("custom_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["addon_id"],
            ["addon_products.id"],
        ),
        sa.ForeignKeyConstraint(
            ["agreement_id"], ["service_agreements.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "service_plans",
        sa.Column("agreement_id", sa.Uuid(), nullable=False),
        sa.Column("visit_frequency", sa.Integer(), nullable=False),
        sa.Column("next_visit_date", sa.Date(), nullable=True),
        sa.Column("seasonal_adjust", sa.Boolean(), nullable=False),
        sa.Column("technician_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["agreement_id"], ["service_agreements.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("agreement_id"),
    )
    op.create_table(
        "service_visits",
        sa.Column("agreement_id", sa.Uuid(), nullable=False),
        sa.Column("technician_id", sa.String(), nullable=False),
        sa.Column("visit_number", sa.Integer(), nullable=False),
        sa.Column("scheduled_date", sa.DateTime(), nullable=False),
        sa.Column("scheduled_end_date", sa.DateTime(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "SCHEDULED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                "RESCHEDULED",
                name="visitstatus",
            ),
            nullable=False,
        ),
        sa.Column("visit_type", visit_type, nullable=False),
        sa.Column("actual_start_date", sa.DateTime(), nullable=True),
        sa.Column("actual_end_date", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("technician_notes", sa.Text(), nullable=True),
        sa.Column("customer_signature", sa.Text(), nullable=True),
        sa.Column("customer_signed_at", sa.DateTime(), nullable=True),
        sa.Column("customer_notes", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("reschedule_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["agreement_id"],
            ["service_agreements.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("agreement_id", "visit_number", name="uq_agreement_visit"),
    )
    op.create_index(
        op.f("ix_service_visits_technician_id"),
        "service_visits",
        ["technician_id"],
        unique=False,
    )
    op.create_table(
        "visit_photos",
        sa.Column("visit_id", sa.Uuid(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("caption", sa.String(), nullable=True),
        sa.Column(
            "category",
            sa.Enum("BEFORE", "AFTER", "DAMAGE", "GENERAL", name="photocategory"),
            nullable=True,
        ),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["visit_id"], ["service_visits.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "checklist_templates",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("system_type", system_type, nullable=False),
        sa.Column("visit_type", visit_type, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "version", name="uq_template_version"),
    )
    op.create_table(
        "checklist_template_items",
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("input_type", input_type, nullable=False),
        sa.Column("min_value", sa.Float(), nullable=True),
        sa.Column("max_value", sa.Float(), nullable=True),
        sa.Column("options", postgresql.JSONB(), nullable=True),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False),
        sa.Column("photo_required", sa.Boolean(), nullable=False),
        sa.Column("help_text", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["template_id"], ["checklist_templates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "checklists",
        sa.Column("visit_id", sa.Uuid(), nullable=False),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("technician_id", sa.String(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "IN_PROGRESS", "COMPLETED", name="checkliststatus"),
            nullable=False,
        ),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["template_id"],
            ["checklist_templates.id"],
        ),
        sa.ForeignKeyConstraint(
            ["visit_id"],
            ["service_visits.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "checklist_items",
        sa.Column("checklist_id", sa.Uuid(), nullable=False),
        sa.Column("template_item_id", sa.Uuid(), nullable=True),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("input_type", input_type, nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "PASSED", "FAILED", "NOT_APPLICABLE", name="itemstatus"
            ),
            nullable=False,
        ),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("numeric_value", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "severity",
            sa.Enum(
                "CRITICAL", "SERIOUS", "MODERATE", "MINOR", "INFO", name="severity"
            ),
            nullable=True,
        ),
        sa.Column("photo_urls", postgresql.JSONB(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["checklist_id"], ["checklists.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["template_item_id"],
            ["checklist_template_items.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("checklist_items")
    op.drop_table("checklists")
    op.drop_table("checklist_template_items")
    op.drop_table("checklist_templates")
    op.drop_table("visit_photos")
    op.drop_index(op.f("ix_service_visits_technician_id"), table_name="service_visits")
    op.drop_table("service_visits")
    op.drop_table("service_plans")
    op.drop_table("agreement_addons")
    op.drop_table("service_agreements")
    op.drop_table("addon_products")
    op.drop_index(op.f("ix_installations_customer_id"), table_name="installations")
    op.drop_table("installations")
    op.drop_table("sequences")
    op.drop_table("users")
    for name in ENUMS:
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
