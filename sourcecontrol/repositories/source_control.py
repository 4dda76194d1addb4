"""
Source Control Repository

Read side of the local replica: the minimal projections that status and
diff need, one per entity kind. Entity-specific writes live on the
per-model repositories exposed as attributes.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from sourcecontrol.models.snapshots import (
    CredentialRecord,
    TagMappingRecord,
    TagRecord,
    VariableRecord,
    WorkflowVersionRecord,
)
from sourcecontrol.repositories.credentials import CredentialRepository
from sourcecontrol.repositories.tags import TagRepository
from sourcecontrol.repositories.variables import VariableRepository
from sourcecontrol.repositories.workflows import WorkflowRepository


class SourceControlRepository:
    """
    Aggregates the repositories of every synced entity kind.

    All repositories share one AsyncSession; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.workflows = WorkflowRepository(session)
        self.credentials = CredentialRepository(session)
        self.variables = VariableRepository(session)
        self.tags = TagRepository(session)

    # ==========================================================================
    # Minimal Projections
    # ==========================================================================

    async def get_workflow_versions(self) -> list[WorkflowVersionRecord]:
        return await self.workflows.list_version_records()

    async def get_credentials(self) -> list[CredentialRecord]:
        return await self.credentials.list_records()

    async def get_variables(self) -> list[VariableRecord]:
        return await self.variables.list_records()

    async def get_tags(self) -> list[TagRecord]:
        return await self.tags.list_records()

    async def get_tag_mappings(self) -> list[TagMappingRecord]:
        return await self.tags.list_mapping_records()
