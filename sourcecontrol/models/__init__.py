"""
Source Control Models

ORM models (database tables):
    from sourcecontrol.models import Workflow, Credential
    from sourcecontrol.models.orm.tags import Tag  # Granular access

Pydantic contracts (requests, results, export files):
    from sourcecontrol.models import SourceControlledFile
    from sourcecontrol.models.contracts.export_import import ExportableWorkflow

Snapshots (immutable reconciliation inputs):
    from sourcecontrol.models.snapshots import Snapshot, WorkflowVersionRecord

Enums:
    from sourcecontrol.models.enums import SourceControlledFileStatus
"""

from sourcecontrol.models.contracts import (
    GetStatusRequest,
    PullWorkFolderRequest,
    PushWorkFolderRequest,
    PushWorkFolderResult,
    SourceControlledFile,
    SourceControlPreferences,
    SourceControlUser,
    VerboseStatus,
)
from sourcecontrol.models.enums import (
    SnapshotOrigin,
    SourceControlledFileLocation,
    SourceControlledFileStatus,
    SourceControlledFileType,
    SyncDirection,
)
from sourcecontrol.models.orm import (
    Base,
    Credential,
    SystemConfig,
    Tag,
    Variable,
    Workflow,
    WorkflowTagMapping,
)

__all__ = [
    # ORM
    "Base",
    "Credential",
    "SystemConfig",
    "Tag",
    "Variable",
    "Workflow",
    "WorkflowTagMapping",
    # Contracts
    "GetStatusRequest",
    "PullWorkFolderRequest",
    "PushWorkFolderRequest",
    "PushWorkFolderResult",
    "SourceControlledFile",
    "SourceControlPreferences",
    "SourceControlUser",
    "VerboseStatus",
    # Enums
    "SnapshotOrigin",
    "SourceControlledFileLocation",
    "SourceControlledFileStatus",
    "SourceControlledFileType",
    "SyncDirection",
]
