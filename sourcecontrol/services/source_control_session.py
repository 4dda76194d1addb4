"""
Source Control Session

Per-connection state: the working folder locations and the git transport
handle. The integrating layer builds one session when a repository is
connected and closes it on disconnect.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sourcecontrol.config import Settings, get_settings
from sourcecontrol.services.source_control_git import SourceControlGitService

logger = logging.getLogger(__name__)


@dataclass
class SourceControlSession:
    git_folder: Path
    ssh_folder: Path
    ssh_key_path: Path
    git_service: SourceControlGitService = field(default_factory=SourceControlGitService)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SourceControlSession":
        settings = settings or get_settings()
        return cls(
            git_folder=settings.git_folder,
            ssh_folder=settings.ssh_folder,
            ssh_key_path=settings.ssh_key_path,
        )

    def ensure_folders(self) -> None:
        """Create the git and SSH folders if they do not exist yet."""
        for folder in (self.git_folder, self.ssh_folder):
            if not folder.exists():
                folder.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created source control folder {folder}")

    @property
    def is_open(self) -> bool:
        return self.git_service.repo is not None

    def close(self) -> None:
        """Drop the cached transport handle."""
        self.git_service.reset_service()
