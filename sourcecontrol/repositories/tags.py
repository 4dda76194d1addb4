"""
Tag Repository

Tags and workflow-tag mappings.
"""

from typing import Sequence

from sqlalchemy import select

from sourcecontrol.models.orm import Tag, WorkflowTagMapping
from sourcecontrol.models.snapshots import TagMappingRecord, TagRecord
from sourcecontrol.repositories.base import BaseRepository


class TagRepository(BaseRepository[Tag]):
    """Repository for tags and their workflow mappings."""

    model = Tag

    async def list_all(self) -> Sequence[Tag]:
        result = await self.session.execute(select(Tag).order_by(Tag.id))
        return result.scalars().all()

    async def list_mappings(self) -> Sequence[WorkflowTagMapping]:
        result = await self.session.execute(
            select(WorkflowTagMapping).order_by(
                WorkflowTagMapping.tag_id, WorkflowTagMapping.workflow_id
            )
        )
        return result.scalars().all()

    async def list_records(self) -> list[TagRecord]:
        return [
            TagRecord(id=t.id, name=t.name, updated_at=t.updated_at)
            for t in await self.list_all()
        ]

    async def list_mapping_records(self) -> list[TagMappingRecord]:
        return [
            TagMappingRecord(tag_id=m.tag_id, workflow_id=m.workflow_id)
            for m in await self.list_mappings()
        ]

    async def upsert(self, id: str, name: str) -> Tag:
        tag = await self.get_by_id(id)
        if tag is None:
            tag = Tag(id=id, name=name)
            self.session.add(tag)
        else:
            tag.name = name
        await self.session.flush()
        return tag

    async def ensure_mapping(self, tag_id: str, workflow_id: str) -> bool:
        """Create the mapping if missing. Returns True when a row was added."""
        existing = await self.session.get(WorkflowTagMapping, (workflow_id, tag_id))
        if existing is not None:
            return False
        self.session.add(WorkflowTagMapping(workflow_id=workflow_id, tag_id=tag_id))
        await self.session.flush()
        return True
