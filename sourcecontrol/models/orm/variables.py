"""
Variable ORM model.
"""

from uuid import uuid4

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sourcecontrol.models.orm.base import Base


class Variable(Base):
    """Instance-wide key/value variable."""

    __tablename__ = "variables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    key: Mapped[str] = mapped_column(String(50), unique=True)
    type: Mapped[str] = mapped_column(String(50), default="string")
    value: Mapped[str | None] = mapped_column(Text, default=None)
