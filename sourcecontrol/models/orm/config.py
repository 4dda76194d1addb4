"""
SystemConfig ORM model.

Stores system settings such as the source control preferences.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from sourcecontrol.models.orm.base import Base


class SystemConfig(Base):
    """
    System-level configuration storage.

    One row per (category, key); the value lives in value_json.
    """

    __tablename__ = "system_configs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    category: Mapped[str] = mapped_column(String(100))
    key: Mapped[str] = mapped_column(String(255))
    value_json: Mapped[dict | None] = mapped_column(JSON, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now(),
        onupdate=datetime.utcnow,
    )
    updated_by: Mapped[str] = mapped_column(String(255), default="system")

    __table_args__ = (
        Index("ix_system_configs_category_key", "category", "key", unique=True),
    )
