"""
Credential Repository

Credential stubs for reconciliation; the encrypted data column is only
touched when a credential is created.
"""

from typing import Sequence

from sqlalchemy import select

from sourcecontrol.core.constants import CREDENTIAL_EXPORT_FOLDER
from sourcecontrol.models.orm import Credential
from sourcecontrol.models.snapshots import CredentialRecord
from sourcecontrol.repositories.base import BaseRepository


class CredentialRepository(BaseRepository[Credential]):
    """Repository for credential rows."""

    model = Credential

    async def list_records(self) -> list[CredentialRecord]:
        stmt = select(
            Credential.id,
            Credential.name,
            Credential.type,
            Credential.nodes_access,
            Credential.updated_at,
        ).order_by(Credential.id)
        result = await self.session.execute(stmt)
        return [
            CredentialRecord(
                id=row.id,
                name=row.name,
                type=row.type,
                filename=f"{CREDENTIAL_EXPORT_FOLDER}/{row.id}.json",
                nodes_access=tuple(row.nodes_access or ()),
                updated_at=row.updated_at,
            )
            for row in result
        ]

    async def get_many(self, ids: list[str] | None = None) -> Sequence[Credential]:
        stmt = select(Credential).order_by(Credential.id)
        if ids is not None:
            stmt = stmt.where(Credential.id.in_(ids))
        result = await self.session.execute(stmt)
        return result.scalars().all()
