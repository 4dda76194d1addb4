"""
Workflow Repository

Database operations for workflows used by export, import and status.
"""

from typing import Sequence

from sqlalchemy import select

from sourcecontrol.core.constants import WORKFLOW_EXPORT_FOLDER
from sourcecontrol.models.contracts.export_import import ExportableWorkflow
from sourcecontrol.models.orm import Workflow
from sourcecontrol.models.snapshots import WorkflowVersionRecord
from sourcecontrol.repositories.base import BaseRepository


class WorkflowRepository(BaseRepository[Workflow]):
    """Repository for workflow rows."""

    model = Workflow

    async def list_version_records(self) -> list[WorkflowVersionRecord]:
        """Minimal projection used for reconciliation (no nodes or connections)."""
        stmt = select(
            Workflow.id, Workflow.name, Workflow.version_id, Workflow.updated_at
        ).order_by(Workflow.id)
        result = await self.session.execute(stmt)
        return [
            WorkflowVersionRecord(
                id=row.id,
                name=row.name,
                version_id=row.version_id,
                filename=f"{WORKFLOW_EXPORT_FOLDER}/{row.id}.json",
                updated_at=row.updated_at,
            )
            for row in result
        ]

    async def get_many(self, ids: list[str] | None = None) -> Sequence[Workflow]:
        """Get workflows by id, or all workflows when ids is None."""
        stmt = select(Workflow).order_by(Workflow.id)
        if ids is not None:
            stmt = stmt.where(Workflow.id.in_(ids))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def exists(self, workflow_id: str) -> bool:
        result = await self.session.execute(
            select(Workflow.id).where(Workflow.id == workflow_id)
        )
        return result.scalar_one_or_none() is not None

    async def upsert(self, data: ExportableWorkflow) -> Workflow:
        """Create the workflow or overwrite it with the exported definition."""
        workflow = await self.get_by_id(data.id)
        if workflow is None:
            # Activation state stays with the instance; new workflows start inactive
            workflow = Workflow(id=data.id, active=False)
            self.session.add(workflow)

        workflow.name = data.name
        workflow.nodes = data.nodes
        workflow.connections = data.connections
        workflow.settings = data.settings
        workflow.version_id = data.version_id

        await self.session.flush()
        return workflow
