"""
Entity Snapshot Reader

Reads the two replicas of every entity kind into immutable snapshots:

- local: minimal projections from the database
- remote: the exported JSON files of a *refreshed* working folder

A working folder is only readable after refresh() has cleaned the export
tree, pulled and hard-reset it, so stale exports can never be mistaken for
the remote state. That rule is carried by the types: the reader accepts a
RefreshedWorkFolder only, and refresh() is the only way to get one.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from sourcecontrol.core.constants import (
    CREDENTIAL_EXPORT_FOLDER,
    TAGS_EXPORT_FILE,
    VARIABLES_EXPORT_FILE,
    WORKFLOW_EXPORT_FOLDER,
)
from sourcecontrol.models.contracts.export_import import ExportableTags, ExportableVariable
from sourcecontrol.models.enums import SnapshotOrigin, SourceControlledFileType
from sourcecontrol.models.snapshots import (
    CredentialRecord,
    Snapshot,
    TagMappingRecord,
    TagRecord,
    VariableRecord,
    WorkflowVersionRecord,
)
from sourcecontrol.repositories.source_control import SourceControlRepository
from sourcecontrol.services.source_control_export import SourceControlExportService
from sourcecontrol.services.source_control_git import SourceControlGitService

logger = logging.getLogger(__name__)

_REFRESH_TOKEN = object()


# =============================================================================
# Remote File Shapes
# =============================================================================


class _RemoteWorkflowFile(BaseModel):
    """Identity fields of an exported workflow; everything else is ignored."""

    id: str = Field(..., min_length=1)
    name: str | None = None
    version_id: str | None = Field(None, alias="versionId")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}


class _RemoteCredentialFile(BaseModel):
    id: str = Field(..., min_length=1)
    name: str | None = None
    type: str = ""
    nodes_access: list[Any] = Field(default_factory=list, alias="nodesAccess")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}


_variables_adapter = TypeAdapter(list[ExportableVariable])


# =============================================================================
# Working Folder
# =============================================================================


class RefreshedWorkFolder:
    """A working folder that mirrors the remote branch. Obtain via WorkFolder.refresh()."""

    def __init__(self, path: Path, _token: object = None):
        if _token is not _REFRESH_TOKEN:
            raise TypeError("RefreshedWorkFolder can only be created by WorkFolder.refresh()")
        self.path = path


class WorkFolder:
    """The git working folder before it has been synchronized with the remote."""

    def __init__(
        self,
        path: Path,
        git_service: SourceControlGitService,
        export_service: SourceControlExportService,
    ):
        self.path = path
        self.git_service = git_service
        self.export_service = export_service

    async def refresh(self) -> RefreshedWorkFolder:
        """Clean exports, pull (merge allowed), then hard reset to HEAD."""
        await self.export_service.clean_work_folder()
        await self.git_service.pull(ff_only=False)
        await self.git_service.reset_branch(hard=True, target="HEAD")
        return RefreshedWorkFolder(self.path, _REFRESH_TOKEN)


# =============================================================================
# Reader
# =============================================================================


class EntitySnapshotReader:
    """Produces local and remote snapshots per entity kind."""

    def __init__(self, work_folder: RefreshedWorkFolder, repository: SourceControlRepository):
        if not isinstance(work_folder, RefreshedWorkFolder):
            raise TypeError(
                f"EntitySnapshotReader needs a RefreshedWorkFolder, got {type(work_folder).__name__}"
            )
        self.root = work_folder.path
        self.repository = repository

    async def read_pair(self, kind: SourceControlledFileType) -> tuple[Snapshot, Snapshot]:
        """Read (local, remote) for one kind; the two sides touch disjoint resources."""
        local, remote = await asyncio.gather(self.read_local(kind), self.read_remote(kind))
        return local, remote

    # -----------------------------------------------------------------
    # Local (database)
    # -----------------------------------------------------------------

    async def read_local(self, kind: SourceControlledFileType) -> Snapshot:
        origin = SnapshotOrigin.LOCAL
        if kind == SourceControlledFileType.WORKFLOW:
            records = await self.repository.get_workflow_versions()
            return Snapshot(kind, origin, tuple(records))
        if kind == SourceControlledFileType.CREDENTIAL:
            records = await self.repository.get_credentials()
            return Snapshot(kind, origin, tuple(records))
        if kind == SourceControlledFileType.VARIABLES:
            records = await self.repository.get_variables()
            return Snapshot(kind, origin, tuple(records))
        if kind == SourceControlledFileType.TAGS:
            tags = await self.repository.get_tags()
            mappings = await self.repository.get_tag_mappings()
            return Snapshot(kind, origin, tuple(tags), tuple(mappings))
        raise ValueError(f"No snapshot for kind {kind.value}")

    # -----------------------------------------------------------------
    # Remote (exported files)
    # -----------------------------------------------------------------

    async def read_remote(self, kind: SourceControlledFileType) -> Snapshot:
        if kind == SourceControlledFileType.WORKFLOW:
            return self._read_workflow_files()
        if kind == SourceControlledFileType.CREDENTIAL:
            return self._read_credential_files()
        if kind == SourceControlledFileType.VARIABLES:
            return self._read_variables_file()
        if kind == SourceControlledFileType.TAGS:
            return self._read_tags_file()
        raise ValueError(f"No snapshot for kind {kind.value}")

    def _read_workflow_files(self) -> Snapshot:
        records: list[WorkflowVersionRecord] = []
        unreadable: list[str] = []

        for file, relative in self._export_files(WORKFLOW_EXPORT_FOLDER):
            try:
                parsed = _RemoteWorkflowFile.model_validate_json(file.read_bytes())
            except (OSError, ValidationError) as e:
                logger.warning(f"Skipping unreadable workflow file {relative}: {e}")
                unreadable.append(relative)
                continue
            records.append(
                WorkflowVersionRecord(
                    id=parsed.id,
                    name=parsed.name,
                    version_id=parsed.version_id,
                    filename=relative,
                    updated_at=parsed.updated_at,
                )
            )

        return Snapshot(
            SourceControlledFileType.WORKFLOW,
            SnapshotOrigin.REMOTE,
            tuple(records),
            unreadable_files=tuple(unreadable),
        )

    def _read_credential_files(self) -> Snapshot:
        records: list[CredentialRecord] = []
        unreadable: list[str] = []

        for file, relative in self._export_files(CREDENTIAL_EXPORT_FOLDER):
            try:
                parsed = _RemoteCredentialFile.model_validate_json(file.read_bytes())
            except (OSError, ValidationError) as e:
                logger.warning(f"Skipping unreadable credential file {relative}: {e}")
                unreadable.append(relative)
                continue
            records.append(
                CredentialRecord(
                    id=parsed.id,
                    name=parsed.name,
                    type=parsed.type,
                    filename=relative,
                    nodes_access=tuple(parsed.nodes_access),
                    updated_at=parsed.updated_at,
                )
            )

        return Snapshot(
            SourceControlledFileType.CREDENTIAL,
            SnapshotOrigin.REMOTE,
            tuple(records),
            unreadable_files=tuple(unreadable),
        )

    def _read_variables_file(self) -> Snapshot:
        path = self.root / VARIABLES_EXPORT_FILE
        kind, origin = SourceControlledFileType.VARIABLES, SnapshotOrigin.REMOTE
        if not path.exists():
            return Snapshot(kind, origin)
        try:
            variables = _variables_adapter.validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning(f"Skipping unreadable variables file: {e}")
            return Snapshot(kind, origin, unreadable_files=(VARIABLES_EXPORT_FILE,))

        records = tuple(
            VariableRecord(id=v.id, key=v.key, type=v.type, value=v.value) for v in variables
        )
        return Snapshot(kind, origin, records)

    def _read_tags_file(self) -> Snapshot:
        path = self.root / TAGS_EXPORT_FILE
        kind, origin = SourceControlledFileType.TAGS, SnapshotOrigin.REMOTE
        if not path.exists():
            return Snapshot(kind, origin)
        try:
            exported = ExportableTags.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning(f"Skipping unreadable tags file: {e}")
            return Snapshot(kind, origin, unreadable_files=(TAGS_EXPORT_FILE,))

        tags = tuple(TagRecord(id=t.id, name=t.name, updated_at=t.updated_at) for t in exported.tags)
        mappings = tuple(
            TagMappingRecord(tag_id=m.tag_id, workflow_id=m.workflow_id) for m in exported.mappings
        )
        return Snapshot(kind, origin, tags, mappings)

    def _export_files(self, folder: str) -> list[tuple[Path, str]]:
        """(absolute path, work-folder-relative path) of every JSON file in `folder`."""
        directory = self.root / folder
        if not directory.is_dir():
            return []
        return [(file, f"{folder}/{file.name}") for file in sorted(directory.glob("*.json"))]
