"""
Workflow ORM model.

Workflows are exported one file per workflow; version_id is the
server-assigned token that changes on every save.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sourcecontrol.models.orm.base import Base
from sourcecontrol.models.orm.tags import Tag, WorkflowTagMapping


class Workflow(Base):
    """Workflow definition."""

    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(128), index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=False)
    nodes: Mapped[list] = mapped_column(JSON, default=list)
    connections: Mapped[dict] = mapped_column(JSON, default=dict)
    settings: Mapped[dict | None] = mapped_column(JSON, default=None)
    version_id: Mapped[str | None] = mapped_column(String(36), default=None)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=func.now(),
        onupdate=datetime.utcnow,
    )

    tags: Mapped[list[Tag]] = relationship(
        secondary=WorkflowTagMapping.__table__,
        lazy="selectin",
        viewonly=True,
    )
