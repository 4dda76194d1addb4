"""
Variable Repository
"""

from typing import Sequence

from sqlalchemy import select

from sourcecontrol.models.orm import Variable
from sourcecontrol.models.snapshots import VariableRecord
from sourcecontrol.repositories.base import BaseRepository


class VariableRepository(BaseRepository[Variable]):
    """Repository for instance variables."""

    model = Variable

    async def list_all(self) -> Sequence[Variable]:
        result = await self.session.execute(select(Variable).order_by(Variable.key))
        return result.scalars().all()

    async def list_records(self) -> list[VariableRecord]:
        return [
            VariableRecord(id=v.id, key=v.key, type=v.type, value=v.value)
            for v in await self.list_all()
        ]

    async def upsert_from_remote(self, id: str, key: str, type: str, value: str | None) -> Variable:
        """
        Upsert a variable from an exported file, matched by id and then by key.

        A variable matched by key under another id takes the exported id, so
        both sides agree on identity after a pull.
        """
        variable = await self.get_by_id(id)
        if variable is None:
            variable = await self.get(key=key)
        if variable is None:
            variable = Variable(id=id, key=key)
            self.session.add(variable)
        elif variable.id != id:
            variable.id = id
        variable.key = key
        variable.type = type
        variable.value = value
        await self.session.flush()
        return variable
