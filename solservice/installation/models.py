import enum
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Enum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from solservice.base.models import BaseDbModel


class SystemType(enum.Enum):
    SOLAR_PANEL = "SOLAR_PANEL"
    BESS = "BESS"
    COMBINED = "COMBINED"


class Installation(BaseDbModel):
    __tablename__ = "installations"

    # Customer master data lives in the accounting system.
    customer_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str] = mapped_column(String, nullable=False)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    system_type: Mapped[SystemType] = mapped_column(Enum(SystemType), nullable=False)
    capacity_kw: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    install_date: Mapped[date | None] = mapped_column(Date, nullable=True)
