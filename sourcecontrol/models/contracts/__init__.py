"""
Pydantic contracts for source control requests, results and export files.
"""

from sourcecontrol.models.contracts.export_import import (
    ExportableCredential,
    ExportableTag,
    ExportableTagMapping,
    ExportableTags,
    ExportableVariable,
    ExportableWorkflow,
    ExportedEntity,
    ExportResult,
    ImportResult,
)
from sourcecontrol.models.contracts.source_control import (
    BranchesResult,
    CurrentBranch,
    GetStatusRequest,
    GitPushResult,
    GitStatusResult,
    KindStatusDetail,
    PullWorkFolderRequest,
    PullWorkFolderResult,
    PushWorkFolderRequest,
    PushWorkFolderResult,
    RenamedFile,
    SourceControlledFile,
    SourceControlPreferences,
    SourceControlUser,
    VerboseStatus,
)

__all__ = [
    # Export files
    "ExportableCredential",
    "ExportableTag",
    "ExportableTagMapping",
    "ExportableTags",
    "ExportableVariable",
    "ExportableWorkflow",
    "ExportedEntity",
    "ExportResult",
    "ImportResult",
    # Source control
    "BranchesResult",
    "CurrentBranch",
    "GetStatusRequest",
    "GitPushResult",
    "GitStatusResult",
    "KindStatusDetail",
    "PullWorkFolderRequest",
    "PullWorkFolderResult",
    "PushWorkFolderRequest",
    "PushWorkFolderResult",
    "RenamedFile",
    "SourceControlledFile",
    "SourceControlPreferences",
    "SourceControlUser",
    "VerboseStatus",
]
