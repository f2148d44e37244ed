from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from solservice.base.models import BaseDbModel


class User(BaseDbModel):
    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
