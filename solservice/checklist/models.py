from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from solservice.base.models import BaseDbModel, UTCDateTime
from solservice.base.schemas import PydanticJSONB
from solservice.installation.models import SystemType
from solservice.visit.models import VisitType

if TYPE_CHECKING:
    from solservice.visit.models import ServiceVisit


class ChecklistStatus(enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class ItemStatus(enum.Enum):
    """Outcome of one checklist item.

    Field apps and older integrations send "OK"/"NOT_OK"/"N/A"; those are
    accepted as aliases so nothing past this enum sees raw strings.
    """

    PENDING = "PENDING"
    PASSED = "PASSED"
    FAILED = "FAILED"
    NOT_APPLICABLE = "NOT_APPLICABLE"

    @classmethod
    def _missing_(cls, value: object) -> ItemStatus | None:
        if not isinstance(value, str):
            return None
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        aliases = {
            "OK": cls.PASSED,
            "PASS": cls.PASSED,
            "NOT_OK": cls.FAILED,
            "NOK": cls.FAILED,
            "FAIL": cls.FAILED,
            "N/A": cls.NOT_APPLICABLE,
            "NA": cls.NOT_APPLICABLE,
        }
        if key in aliases:
            return aliases[key]
        return cls.__members__.get(key)

    @classmethod
    def parse(cls, value: str | ItemStatus) -> ItemStatus:
        if isinstance(value, ItemStatus):
            return value
        return cls(value)

    @property
    def is_answered(self) -> bool:
        return self is not ItemStatus.PENDING


class Severity(enum.Enum):
    CRITICAL = "CRITICAL"
    SERIOUS = "SERIOUS"
    MODERATE = "MODERATE"
    MINOR = "MINOR"
    INFO = "INFO"


class InputType(enum.Enum):
    YES_NO = "YES_NO"
    YES_NO_NA = "YES_NO_NA"
    NUMERIC = "NUMERIC"
    TEXT = "TEXT"
    CHOICE = "CHOICE"
    IMAGE = "IMAGE"
    SIGNATURE = "SIGNATURE"
    GPS = "GPS"
    TEMPERATURE = "TEMPERATURE"
    ELECTRICAL_MEASUREMENT = "ELECTRICAL_MEASUREMENT"


class ChecklistTemplate(BaseDbModel):
    """One immutable version of a checklist definition.

    Editing a template means inserting a new row with ``version + 1``;
    checklists already instantiated keep pointing at the version they copied.
    """

    __tablename__ = "checklist_templates"
    __table_args__ = (
        UniqueConstraint("name", "version", name="uq_template_version"),
    )

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    system_type: Mapped[SystemType] = mapped_column(Enum(SystemType), nullable=False)
    visit_type: Mapped[VisitType] = mapped_column(
        Enum(VisitType), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    items: Mapped[list[ChecklistTemplateItem]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ChecklistTemplateItem.sort_order",
    )


class ChecklistTemplateItem(BaseDbModel):
    __tablename__ = "checklist_template_items"

    template_id: Mapped[UUID] = mapped_column(
        ForeignKey("checklist_templates.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    input_type: Mapped[InputType] = mapped_column(Enum(InputType), nullable=False)
    min_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    options: Mapped[list[str] | None] = mapped_column(
        PydanticJSONB(list[str]), nullable=True
    )
    is_mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    photo_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    help_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    template: Mapped[ChecklistTemplate] = relationship(back_populates="items")


class Checklist(BaseDbModel):
    __tablename__ = "checklists"

    visit_id: Mapped[UUID] = mapped_column(
        ForeignKey("service_visits.id"), nullable=False
    )
    template_id: Mapped[UUID] = mapped_column(
        ForeignKey("checklist_templates.id"), nullable=False
    )
    technician_id: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[ChecklistStatus] = mapped_column(
        Enum(ChecklistStatus), nullable=False, default=ChecklistStatus.PENDING
    )
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    visit: Mapped[ServiceVisit] = relationship(back_populates="checklists")
    items: Mapped[list[ChecklistItem]] = relationship(
        back_populates="checklist",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ChecklistItem.sort_order",
    )


class ChecklistItem(BaseDbModel):
    """Snapshot of a template item plus the technician's answer."""

    __tablename__ = "checklist_items"

    checklist_id: Mapped[UUID] = mapped_column(
        ForeignKey("checklists.id", ondelete="CASCADE"), nullable=False
    )
    template_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("checklist_template_items.id"), nullable=True
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    input_type: Mapped[InputType] = mapped_column(Enum(InputType), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[ItemStatus] = mapped_column(
        Enum(ItemStatus), nullable=False, default=ItemStatus.PENDING
    )
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    numeric_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[Severity | None] = mapped_column(Enum(Severity), nullable=True)
    photo_urls: Mapped[list[str] | None] = mapped_column(
        PydanticJSONB(list[str]), nullable=True
    )
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    checklist: Mapped[Checklist] = relationship(back_populates="items")
    template_item: Mapped[ChecklistTemplateItem | None] = relationship(lazy="selectin")
