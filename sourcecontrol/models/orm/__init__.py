"""
SQLAlchemy ORM Models

Pure database models using SQLAlchemy 2.0 declarative style.
For contracts (request/response shapes), see models/contracts.
"""

from sourcecontrol.models.orm.base import Base
from sourcecontrol.models.orm.config import SystemConfig
from sourcecontrol.models.orm.credentials import Credential
from sourcecontrol.models.orm.tags import Tag, WorkflowTagMapping
from sourcecontrol.models.orm.variables import Variable
from sourcecontrol.models.orm.workflows import Workflow

__all__ = [
    # Base
    "Base",
    # Entities
    "Workflow",
    "Credential",
    "Variable",
    "Tag",
    "WorkflowTagMapping",
    # Config
    "SystemConfig",
]
