"""
Source Control Diff

Pure reconciliation of local and remote snapshots into a changeset.

Nothing here touches git, the database or the clock: the same snapshots
always produce the same changeset.

Per kind, three sets are computed by id:

- missing in local: only the remote has it
- missing in remote: only the database has it
- modified in either: both have it but the signature differs

Workflows and credentials are itemized; variables and tags collapse into
one aggregated item each, because they live in a single file.
"""

import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Iterable

from sourcecontrol.core.constants import (
    CREDENTIAL_EXPORT_FOLDER,
    TAGS_EXPORT_FILE,
    TAGS_ITEM_ID,
    VARIABLES_EXPORT_FILE,
    VARIABLES_ITEM_ID,
    WORKFLOW_EXPORT_FOLDER,
)
from sourcecontrol.models.contracts.export_import import ExportedEntity
from sourcecontrol.models.contracts.source_control import (
    GitStatusResult,
    KindStatusDetail,
    SourceControlledFile,
)
from sourcecontrol.models.enums import (
    SourceControlledFileLocation,
    SourceControlledFileStatus,
    SourceControlledFileType,
    SyncDirection,
)
from sourcecontrol.models.snapshots import (
    CredentialRecord,
    Snapshot,
    TagMappingRecord,
    VariableRecord,
    WorkflowVersionRecord,
)

logger = logging.getLogger(__name__)

Status = SourceControlledFileStatus
Location = SourceControlledFileLocation
FileType = SourceControlledFileType

KIND_LABELS = {
    FileType.WORKFLOW: "Workflow",
    FileType.CREDENTIAL: "Credential",
}

# Order of kinds in the unioned changeset
KIND_ORDER = (FileType.WORKFLOW, FileType.CREDENTIAL, FileType.VARIABLES, FileType.TAGS)


@dataclass(frozen=True)
class KindDiff:
    """Intermediate reconciliation sets for one entity kind."""

    kind: SourceControlledFileType
    local: Snapshot
    remote: Snapshot
    missing_in_local: tuple[Any, ...] = ()
    missing_in_remote: tuple[Any, ...] = ()
    modified_in_either: tuple[Any, ...] = ()
    mappings_missing_in_local: tuple[TagMappingRecord, ...] = ()
    mappings_missing_in_remote: tuple[TagMappingRecord, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(
            self.missing_in_local
            or self.missing_in_remote
            or self.modified_in_either
            or self.mappings_missing_in_local
            or self.mappings_missing_in_remote
        )

    def to_detail(self) -> KindStatusDetail:
        return KindStatusDetail(
            local=[asdict(r) for r in self.local.records],
            remote=[asdict(r) for r in self.remote.records],
            missing_in_local=[asdict(r) for r in self.missing_in_local],
            missing_in_remote=[asdict(r) for r in self.missing_in_remote],
            modified_in_either=[asdict(r) for r in self.modified_in_either],
            mappings_missing_in_local=[asdict(m) for m in self.mappings_missing_in_local],
            mappings_missing_in_remote=[asdict(m) for m in self.mappings_missing_in_remote],
            unreadable_files=[*self.local.unreadable_files, *self.remote.unreadable_files],
        )


# =============================================================================
# Per-kind Set Computation
# =============================================================================


def _missing(records: Iterable[Any], present_ids: set[str]) -> tuple[Any, ...]:
    return tuple(r for r in records if r.id not in present_ids)


def _diff_workflows(local: Snapshot, remote: Snapshot, prefer_local: bool) -> KindDiff:
    remote_by_id = {r.id: r for r in remote.records}
    modified: list[WorkflowVersionRecord] = []

    for record in local.records:
        other = remote_by_id.get(record.id)
        if other is None or other.version_id == record.version_id:
            continue
        if prefer_local:
            modified.append(record)
        else:
            modified.append(replace(record, name=other.name, version_id=other.version_id))

    return KindDiff(
        kind=FileType.WORKFLOW,
        local=local,
        remote=remote,
        missing_in_local=_missing(remote.records, local.ids()),
        missing_in_remote=_missing(local.records, remote.ids()),
        modified_in_either=tuple(modified),
    )


def _diff_credentials(local: Snapshot, remote: Snapshot, prefer_local: bool) -> KindDiff:
    remote_by_id = {r.id: r for r in remote.records}
    modified: list[CredentialRecord] = []

    # Only name, type and node access are synced for credentials
    for record in local.records:
        other = remote_by_id.get(record.id)
        if other is None:
            continue
        if (
            other.name == record.name
            and other.type == record.type
            and list(other.nodes_access) == list(record.nodes_access)
        ):
            continue
        modified.append(record if prefer_local else replace(record, name=other.name))

    return KindDiff(
        kind=FileType.CREDENTIAL,
        local=local,
        remote=remote,
        missing_in_local=_missing(remote.records, local.ids()),
        missing_in_remote=_missing(local.records, remote.ids()),
        modified_in_either=tuple(modified),
    )


def _diff_variables(local: Snapshot, remote: Snapshot, prefer_local: bool) -> KindDiff:
    """
    Variables match by id; a key that moved to a different id is one
    modification, not a deletion plus a creation.
    """
    remote_by_id: dict[str, VariableRecord] = {r.id: r for r in remote.records}
    remote_by_key: dict[str, VariableRecord] = {r.key: r for r in remote.records}
    local_ids, remote_ids = local.ids(), remote.ids()

    modified: list[VariableRecord] = []
    rekeyed_local: set[str] = set()
    rekeyed_remote: set[str] = set()

    for record in local.records:
        other = remote_by_id.get(record.id)
        if other is not None:
            if other.key != record.key or other.value != record.value:
                modified.append(record if prefer_local else other)
            continue
        other = remote_by_key.get(record.key)
        if other is not None and other.id not in local_ids:
            rekeyed_local.add(record.id)
            rekeyed_remote.add(other.id)
            modified.append(record if prefer_local else other)

    missing_in_local = tuple(
        r for r in remote.records if r.id not in local_ids and r.id not in rekeyed_remote
    )
    missing_in_remote = tuple(
        r for r in local.records if r.id not in remote_ids and r.id not in rekeyed_local
    )

    return KindDiff(
        kind=FileType.VARIABLES,
        local=local,
        remote=remote,
        missing_in_local=missing_in_local,
        missing_in_remote=missing_in_remote,
        modified_in_either=tuple(modified),
    )


def diverged_variables(diff: KindDiff) -> tuple[VariableRecord, ...]:
    """
    Local variables whose value differs from the remote variable they pair with.

    Pairing is the same as for the modified set: by id, then by key for a
    variable that moved to another id. Variables on one side only never diverge.
    """
    if diff.kind != FileType.VARIABLES:
        return ()
    remote_by_id = {r.id: r for r in diff.remote.records}
    remote_by_key = {r.key: r for r in diff.remote.records}
    local_ids = diff.local.ids()

    diverged = []
    for record in diff.local.records:
        other = remote_by_id.get(record.id)
        if other is None:
            other = remote_by_key.get(record.key)
            if other is None or other.id in local_ids:
                continue
        if other.value != record.value:
            diverged.append(record)
    return tuple(diverged)


def _diff_tags(local: Snapshot, remote: Snapshot, prefer_local: bool) -> KindDiff:
    remote_by_id = {r.id: r for r in remote.records}
    modified = []
    for record in local.records:
        other = remote_by_id.get(record.id)
        if other is not None and other.name != record.name:
            modified.append(record if prefer_local else other)

    # Mappings have no signature beyond the (tag, workflow) pair
    local_pairs = {(m.tag_id, m.workflow_id) for m in local.mappings}
    remote_pairs = {(m.tag_id, m.workflow_id) for m in remote.mappings}

    return KindDiff(
        kind=FileType.TAGS,
        local=local,
        remote=remote,
        missing_in_local=_missing(remote.records, local.ids()),
        missing_in_remote=_missing(local.records, remote.ids()),
        modified_in_either=tuple(modified),
        mappings_missing_in_local=tuple(
            m for m in remote.mappings if (m.tag_id, m.workflow_id) not in local_pairs
        ),
        mappings_missing_in_remote=tuple(
            m for m in local.mappings if (m.tag_id, m.workflow_id) not in remote_pairs
        ),
    )


_KIND_DIFFS = {
    FileType.WORKFLOW: _diff_workflows,
    FileType.CREDENTIAL: _diff_credentials,
    FileType.VARIABLES: _diff_variables,
    FileType.TAGS: _diff_tags,
}


def reconcile_kind(
    kind: SourceControlledFileType,
    local: Snapshot,
    remote: Snapshot,
    prefer_local: bool = True,
) -> KindDiff:
    """Compute the missing/modified sets of one kind. Direction does not affect the sets."""
    try:
        diff = _KIND_DIFFS[kind]
    except KeyError:
        raise ValueError(f"Cannot reconcile kind {kind.value}") from None
    return diff(local, remote, prefer_local)


# =============================================================================
# Changeset
# =============================================================================


def _location(direction: SyncDirection) -> SourceControlledFileLocation:
    return Location.LOCAL if direction == SyncDirection.PUSH else Location.REMOTE


def _itemize(
    kind: SourceControlledFileType,
    records: Iterable[Any],
    status: SourceControlledFileStatus,
    location: SourceControlledFileLocation,
    conflict: bool,
) -> list[SourceControlledFile]:
    return [
        SourceControlledFile(
            file=record.filename,
            id=record.id,
            name=record.name or KIND_LABELS[kind],
            type=kind,
            status=status,
            location=location,
            conflict=conflict,
            updated_at=record.updated_at,
        )
        for record in records
    ]


def _latest(records: Iterable[Any]) -> datetime | None:
    stamps = [r.updated_at for r in records if r.updated_at is not None]
    return max(stamps) if stamps else None


def changeset_for(diff: KindDiff, direction: SyncDirection) -> list[SourceControlledFile]:
    """Frame a KindDiff as changeset items for a push or a pull."""
    location = _location(direction)
    push = direction == SyncDirection.PUSH

    if diff.kind in (FileType.WORKFLOW, FileType.CREDENTIAL):
        return [
            *_itemize(
                diff.kind,
                diff.missing_in_local,
                Status.DELETED if push else Status.CREATED,
                location,
                conflict=False,
            ),
            *_itemize(
                diff.kind,
                diff.missing_in_remote,
                Status.CREATED if push else Status.DELETED,
                location,
                conflict=False,
            ),
            *_itemize(diff.kind, diff.modified_in_either, Status.MODIFIED, location, conflict=True),
        ]

    if not diff.has_changes:
        return []

    if diff.kind == FileType.VARIABLES:
        return [
            SourceControlledFile(
                file=VARIABLES_EXPORT_FILE,
                id=VARIABLES_ITEM_ID,
                name="variables",
                type=FileType.VARIABLES,
                status=Status.MODIFIED,
                location=location,
                conflict=True,
            )
        ]

    return [
        SourceControlledFile(
            file=TAGS_EXPORT_FILE,
            id=TAGS_ITEM_ID,
            name="tags",
            type=FileType.TAGS,
            status=Status.MODIFIED,
            location=location,
            conflict=True,
            updated_at=_latest(diff.local.records),
        )
    ]


def reconcile(
    kind: SourceControlledFileType,
    local: Snapshot,
    remote: Snapshot,
    direction: SyncDirection,
    prefer_local: bool = True,
) -> list[SourceControlledFile]:
    """Reconcile one kind into changeset items."""
    return changeset_for(reconcile_kind(kind, local, remote, prefer_local), direction)


def union(diffs: Iterable[KindDiff], direction: SyncDirection) -> list[SourceControlledFile]:
    """Concatenate the changesets of several kinds in KIND_ORDER."""
    by_kind = {d.kind: d for d in diffs}
    result: list[SourceControlledFile] = []
    for kind in KIND_ORDER:
        if kind in by_kind:
            result.extend(changeset_for(by_kind[kind], direction))
    return result


# =============================================================================
# Working-folder File Classification
# =============================================================================


@dataclass(frozen=True)
class WorkFolderIndex:
    """
    Lookups for classifying working-folder paths.

    Attributes:
        workflows: Local workflows by id
        credentials: Local credentials by id
        files: Identity parsed from each readable exported file, by path
        tags_updated_at: Latest local tag update
    """

    workflows: dict[str, WorkflowVersionRecord] = field(default_factory=dict)
    credentials: dict[str, CredentialRecord] = field(default_factory=dict)
    files: dict[str, ExportedEntity] = field(default_factory=dict)
    tags_updated_at: datetime | None = None


def _status_from_git(file_name: str, git_status: GitStatusResult) -> SourceControlledFileStatus:
    if file_name in git_status.not_added:
        return Status.NEW
    if file_name in git_status.conflicted:
        return Status.CONFLICTED
    if file_name in git_status.created:
        return Status.CREATED
    if file_name in git_status.deleted:
        return Status.DELETED
    if file_name in git_status.modified:
        return Status.MODIFIED
    if file_name in git_status.ignored:
        return Status.IGNORED
    if any(r.to == file_name for r in git_status.renamed):
        return Status.RENAMED
    if file_name in git_status.staged:
        return Status.STAGED
    return Status.UNKNOWN


def _id_from_path(file_name: str, folder: str) -> str:
    name = file_name[len(folder):].lstrip("/\\")
    return name[: -len(".json")] if name.endswith(".json") else name


def classify_work_folder_file(
    file_name: str,
    location: SourceControlledFileLocation,
    git_status: GitStatusResult,
    local_index: WorkFolderIndex,
) -> SourceControlledFile | None:
    """
    Map a path from a git diff to a changeset item.

    Returns None for paths that belong to no entity kind, and for local
    entity files that cannot be identified.
    """
    status = _status_from_git(file_name, git_status)
    conflict = status == Status.CONFLICTED

    if status == Status.UNKNOWN:
        if location == Location.REMOTE:
            # Listed by the remote diff but absent from git status: deleted
            # remotely while it still exists locally
            status = Status.CREATED
            location = Location.LOCAL
        else:
            # Listed by the local diff, so it differs from the remote
            logger.warning(f"Unknown git status for {file_name}, treating as modified")
            status = Status.MODIFIED

    entity_id: str | None = None
    name = ""
    file_type = FileType.FILE
    updated_at: datetime | None = None

    entity_folders = (
        (WORKFLOW_EXPORT_FOLDER, FileType.WORKFLOW, local_index.workflows),
        (CREDENTIAL_EXPORT_FOLDER, FileType.CREDENTIAL, local_index.credentials),
    )
    for folder, kind, existing_by_id in entity_folders:
        if not file_name.startswith(folder):
            continue
        file_type = kind

        if status == Status.DELETED:
            entity_id = _id_from_path(file_name, folder)
            if location == Location.REMOTE:
                existing = existing_by_id.get(entity_id)
                if existing is not None:
                    name, updated_at = existing.name or "", existing.updated_at
            else:
                name = "(deleted)"
        else:
            parsed = local_index.files.get(file_name)
            if parsed is None:
                if location == Location.LOCAL:
                    return None
                entity_id = _id_from_path(file_name, folder)
                status = Status.CREATED
            else:
                entity_id, name = parsed.id, parsed.name
            existing = existing_by_id.get(entity_id)
            if existing is not None:
                name, updated_at = existing.name or name, existing.updated_at

    if file_name.startswith(VARIABLES_EXPORT_FILE):
        entity_id, name, file_type = VARIABLES_ITEM_ID, "variables", FileType.VARIABLES

    if file_name.startswith(TAGS_EXPORT_FILE):
        entity_id, name, file_type = TAGS_ITEM_ID, "tags", FileType.TAGS
        updated_at = local_index.tags_updated_at

    if not entity_id:
        return None

    return SourceControlledFile(
        file=file_name,
        id=entity_id,
        name=name,
        type=file_type,
        status=status,
        location=location,
        conflict=conflict,
        updated_at=updated_at,
    )


def mark_duplicate_conflicts(items: list[SourceControlledFile]) -> list[SourceControlledFile]:
    """Flag every item that shares its type and its file or id with another item."""
    result = []
    for item in items:
        similar = [
            other for other in items
            if other.type == item.type and (other.file == item.file or other.id == item.id)
        ]
        if len(similar) > 1 and not item.conflict:
            item = item.model_copy(update={"conflict": True})
        result.append(item)
    return result
