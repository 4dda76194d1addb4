"""
Enumeration types used across source control.
"""

from enum import Enum


class SourceControlledFileStatus(str, Enum):
    """Status of a changeset item. UNKNOWN only exists inside the classifier, which logs and replaces it."""
    NEW = "new"
    CREATED = "created"
    DELETED = "deleted"
    MODIFIED = "modified"
    RENAMED = "renamed"
    STAGED = "staged"
    IGNORED = "ignored"
    CONFLICTED = "conflicted"
    UNKNOWN = "unknown"


class SourceControlledFileLocation(str, Enum):
    """Which replica a changeset item describes"""
    LOCAL = "local"
    REMOTE = "remote"


class SourceControlledFileType(str, Enum):
    """Entity kind of a changeset item"""
    WORKFLOW = "workflow"
    CREDENTIAL = "credential"
    VARIABLES = "variables"
    TAGS = "tags"
    FILE = "file"


class SyncDirection(str, Enum):
    """Direction a status computation is framed for"""
    PUSH = "push"
    PULL = "pull"


class SnapshotOrigin(str, Enum):
    """Replica a snapshot was read from"""
    LOCAL = "local"
    REMOTE = "remote"
