# Data access layer - SQLAlchemy async repositories
from sourcecontrol.repositories.base import BaseRepository
from sourcecontrol.repositories.credentials import CredentialRepository
from sourcecontrol.repositories.source_control import SourceControlRepository
from sourcecontrol.repositories.tags import TagRepository
from sourcecontrol.repositories.variables import VariableRepository
from sourcecontrol.repositories.workflows import WorkflowRepository

__all__ = [
    "BaseRepository",
    "CredentialRepository",
    "SourceControlRepository",
    "TagRepository",
    "VariableRepository",
    "WorkflowRepository",
]
