"""Immutable reconciliation inputs.

A snapshot is the minimal projection of one entity kind, read from one
replica at one instant. Records are frozen so a snapshot can be handed to
the diff functions without defensive copies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

from sourcecontrol.models.enums import SnapshotOrigin, SourceControlledFileType


@dataclass(frozen=True)
class WorkflowVersionRecord:
    """Workflow identity plus the version token that changes on every save."""

    id: str
    name: str | None
    version_id: str | None
    filename: str  # Relative to the work folder
    updated_at: datetime | None = None


@dataclass(frozen=True)
class CredentialRecord:
    """Credential identity plus the fields that are synced (never the secret data)."""

    id: str
    name: str | None
    type: str
    filename: str
    nodes_access: tuple[Any, ...] = ()
    updated_at: datetime | None = None


@dataclass(frozen=True)
class VariableRecord:
    id: str
    key: str
    type: str = "string"
    value: str | None = None


@dataclass(frozen=True)
class TagRecord:
    id: str
    name: str
    updated_at: datetime | None = None


@dataclass(frozen=True)
class TagMappingRecord:
    """A (tag, workflow) pair. Only presence matters; rows are never updated."""

    tag_id: str
    workflow_id: str


RecordT = TypeVar("RecordT")


@dataclass(frozen=True)
class Snapshot(Generic[RecordT]):
    """
    Records of one entity kind from one replica.

    Attributes:
        kind: Entity kind the records belong to
        origin: Replica the records were read from
        records: Entity records, in read order
        mappings: Tag mappings (tags kind only)
        unreadable_files: Export files that exist but could not be identified
    """

    kind: SourceControlledFileType
    origin: SnapshotOrigin
    records: tuple[RecordT, ...] = ()
    mappings: tuple[TagMappingRecord, ...] = ()
    unreadable_files: tuple[str, ...] = field(default=())

    def ids(self) -> set[str]:
        return {record.id for record in self.records}  # type: ignore[attr-defined]
