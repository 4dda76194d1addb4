"""
Core Exceptions

Custom exceptions for source control operations.

Conflicts are not exceptions: they are returned as a structured 409 result
so callers can inspect the changeset and retry with force.
"""


class SourceControlError(Exception):
    """
    Generic application error raised at the orchestrator boundary.

    Database and transport failures reach callers as this type (or a
    subclass) with the original message preserved.
    """

    def __init__(self, message: str = "Source control operation failed"):
        self.message = message
        super().__init__(self.message)


class ReadOnlyBranchError(SourceControlError):
    """Raised when a push is attempted on a branch marked read-only."""

    def __init__(self, message: str = "Cannot push onto read-only branch."):
        super().__init__(message)


class TransportError(SourceControlError):
    """
    Raised when a git command fails.

    Keeps the failing command and git's stderr so callers can match on
    specific failures (e.g. the host key warning during branch listing).
    """

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class BootstrapError(SourceControlError):
    """Raised when the initial commit of an empty repository fails."""


class BadRequestError(SourceControlError):
    """Raised when an export or import cannot be completed."""


class ExportError(Exception):
    """Raised by the exporter when entities cannot be written to the work folder."""


class EntityImportError(Exception):
    """Raised by the importer when the work folder cannot be materialized."""
