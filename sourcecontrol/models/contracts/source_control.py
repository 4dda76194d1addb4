"""
Source control contract models.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sourcecontrol.models.contracts.export_import import ImportResult
from sourcecontrol.models.enums import (
    SourceControlledFileLocation,
    SourceControlledFileStatus,
    SourceControlledFileType,
    SyncDirection,
)


# ==================== PREFERENCES ====================


class SourceControlPreferences(BaseModel):
    """Process-wide source control preferences (persisted in system_configs)"""
    connected: bool = Field(default=False, description="Whether a repository is connected")
    repository_url: str = Field(default="", description="SSH URL of the remote repository")
    author_name: str = Field(default="", description="Commit author name")
    author_email: str = Field(default="", description="Commit author email")
    branch_name: str = Field(default="main", description="Branch to sync with ('' when unset)")
    branch_read_only: bool = Field(default=False, description="Whether pushes to the branch are refused")
    branch_color: str = Field(default="#5296D6", description="Display color of the branch")
    public_key: str | None = Field(None, description="Public half of the deploy key pair")
    initialize_repo: bool = Field(default=True, description="Initialize the local repository on connect")

    model_config = ConfigDict(from_attributes=True)


class SourceControlUser(BaseModel):
    """User on whose behalf a repository is initialized"""
    first_name: str = Field(default="")
    last_name: str = Field(default="")
    email: str = Field(...)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ==================== CHANGESET ====================


class SourceControlledFile(BaseModel):
    """One changeset item: an entity (or aggregated file) that differs between replicas"""
    file: str = Field(..., description="Path relative to the work folder")
    id: str = Field(..., description="Entity id, or the aggregated file id")
    name: str = Field(..., description="Display name")
    type: SourceControlledFileType = Field(..., description="Entity kind")
    status: SourceControlledFileStatus = Field(..., description="Change classification")
    location: SourceControlledFileLocation = Field(..., description="Replica the change is framed on")
    conflict: bool = Field(default=False, description="Both replicas changed this entity")
    pushed: bool = Field(default=False, description="Caller explicitly requested this file to be pushed")
    updated_at: datetime | None = Field(None, description="Last update of the surfaced record")

    model_config = ConfigDict(from_attributes=True)


class KindStatusDetail(BaseModel):
    """Intermediate reconciliation sets for one entity kind (verbose status)"""
    local: list[dict[str, Any]] = Field(default_factory=list)
    remote: list[dict[str, Any]] = Field(default_factory=list)
    missing_in_local: list[dict[str, Any]] = Field(default_factory=list)
    missing_in_remote: list[dict[str, Any]] = Field(default_factory=list)
    modified_in_either: list[dict[str, Any]] = Field(default_factory=list)
    mappings_missing_in_local: list[dict[str, Any]] = Field(default_factory=list)
    mappings_missing_in_remote: list[dict[str, Any]] = Field(default_factory=list)
    unreadable_files: list[str] = Field(default_factory=list)


class VerboseStatus(BaseModel):
    """Diagnostic status: every per-kind set plus the flat changeset"""
    kinds: dict[SourceControlledFileType, KindStatusDetail] = Field(default_factory=dict)
    source_controlled_files: list[SourceControlledFile] = Field(default_factory=list)


# ==================== REQUESTS / RESULTS ====================


class GetStatusRequest(BaseModel):
    """Options for a status computation"""
    direction: SyncDirection = Field(default=SyncDirection.PUSH)
    prefer_local_version: bool = Field(default=True, description="Surface local field values on modified items")
    verbose: bool = Field(default=False, description="Return intermediate sets for diagnostics")


class PushWorkFolderRequest(BaseModel):
    """Request to push local state to the remote branch"""
    file_names: list[SourceControlledFile] | None = Field(
        None, description="Changeset to push; computed when omitted"
    )
    message: str | None = Field(None, description="Commit message")
    force: bool = Field(default=False, description="Ignore conflicts and force-push")


class GitPushResult(BaseModel):
    """Outcome of a git push"""
    branch: str
    remote: str = "origin"
    commit_sha: str | None = None
    forced: bool = False
    summary: str = ""


class PushWorkFolderResult(BaseModel):
    """Push outcome; push_result is None whenever status is 409"""
    status: int = Field(..., description="200 on success, 409 when blocked by conflicts")
    push_result: GitPushResult | None = None
    diff_result: list[SourceControlledFile] = Field(default_factory=list)


class PullWorkFolderRequest(BaseModel):
    """Options for reset/pull"""
    force: bool = Field(default=False, description="Pull even when conflicts are detected")
    import_after_pull: bool = Field(default=True, description="Import the refreshed work folder into the database")
    user_id: str | None = Field(None, description="User triggering the pull (recorded on import)")


class PullWorkFolderResult(BaseModel):
    status: int
    diff_result: list[SourceControlledFile] = Field(default_factory=list)
    import_result: ImportResult | None = None


# ==================== GIT ====================


class BranchesResult(BaseModel):
    branches: list[str] = Field(default_factory=list, description="Remote branch names without the origin/ prefix")
    current_branch: str = Field(default="", description="Checked out local branch")


class CurrentBranch(BaseModel):
    local: str
    remote: str


class RenamedFile(BaseModel):
    from_path: str
    to: str


class GitStatusResult(BaseModel):
    """Parsed `git status --porcelain` output"""
    not_added: list[str] = Field(default_factory=list)
    conflicted: list[str] = Field(default_factory=list)
    created: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    renamed: list[RenamedFile] = Field(default_factory=list)
    staged: list[str] = Field(default_factory=list)
    ignored: list[str] = Field(default_factory=list)

    @property
    def files(self) -> list[str]:
        """Every path git reports, once each."""
        seen: dict[str, None] = {}
        for path in [
            *self.not_added, *self.conflicted, *self.created, *self.deleted,
            *self.modified, *(r.to for r in self.renamed), *self.staged,
        ]:
            seen.setdefault(path, None)
        return list(seen)
