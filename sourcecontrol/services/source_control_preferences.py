"""
Source Control Preferences Service

Preferences live in one SystemConfig row (category "source_control",
key "preferences") and are cached on the service after every load or save.
The deploy key pair lives on disk in the SSH folder; only the public half
is stored with the preferences.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sourcecontrol.config import Settings, get_settings
from sourcecontrol.core.constants import (
    PREFERENCES_CONFIG_CATEGORY,
    PREFERENCES_CONFIG_KEY,
)
from sourcecontrol.core.security import generate_ssh_key_pair
from sourcecontrol.models.contracts.source_control import SourceControlPreferences
from sourcecontrol.models.orm.config import SystemConfig

logger = logging.getLogger(__name__)


class SourceControlPreferencesService:
    """Loads, caches and persists source control preferences."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.preferences = SourceControlPreferences()

    # ==========================================================================
    # Cached Accessors
    # ==========================================================================

    def get_preferences(self) -> SourceControlPreferences:
        return self.preferences.model_copy()

    def get_branch_name(self) -> str:
        return self.preferences.branch_name

    def is_branch_read_only(self) -> bool:
        return self.preferences.branch_read_only

    def is_source_control_connected(self) -> bool:
        return self.preferences.connected

    def is_source_control_licensed_and_enabled(self) -> bool:
        return self.settings.licensed and self.preferences.connected

    # ==========================================================================
    # Persistence
    # ==========================================================================

    async def load_from_db_and_apply(self) -> SourceControlPreferences:
        """Load persisted preferences into the cache. Defaults when none are stored."""
        config = await self._get_config_row()
        if config is not None and config.value_json:
            self.preferences = SourceControlPreferences.model_validate(config.value_json)
            logger.debug("Loaded source control preferences from database")
        else:
            self.preferences = SourceControlPreferences()
        return self.get_preferences()

    async def set_preferences(
        self,
        updates: dict[str, Any],
        save_to_db: bool = True,
        updated_by: str = "system",
    ) -> SourceControlPreferences:
        """
        Merge `updates` into the cached preferences and persist them.

        Raises:
            ValueError: If `updates` names a field preferences do not have
        """
        unknown = set(updates) - set(SourceControlPreferences.model_fields)
        if unknown:
            raise ValueError(f"Unknown source control preferences: {sorted(unknown)}")

        merged = self.preferences.model_dump()
        merged.update(updates)
        self.preferences = SourceControlPreferences.model_validate(merged)

        if save_to_db:
            await self._save(updated_by)
        return self.get_preferences()

    async def _get_config_row(self) -> SystemConfig | None:
        result = await self.db.execute(
            select(SystemConfig).where(
                SystemConfig.category == PREFERENCES_CONFIG_CATEGORY,
                SystemConfig.key == PREFERENCES_CONFIG_KEY,
            )
        )
        return result.scalars().first()

    async def _save(self, updated_by: str) -> None:
        value = self.preferences.model_dump(mode="json")
        existing = await self._get_config_row()

        if existing:
            existing.value_json = value
            existing.updated_at = datetime.utcnow()
            existing.updated_by = updated_by
        else:
            self.db.add(
                SystemConfig(
                    category=PREFERENCES_CONFIG_CATEGORY,
                    key=PREFERENCES_CONFIG_KEY,
                    value_json=value,
                    updated_by=updated_by,
                )
            )

        await self.db.flush()
        logger.info(
            f"Saved source control preferences: connected={self.preferences.connected}, "
            f"branch={self.preferences.branch_name!r}"
        )

    # ==========================================================================
    # Deploy Keys
    # ==========================================================================

    @property
    def private_key_path(self) -> Path:
        return self.settings.ssh_key_path

    @property
    def public_key_path(self) -> Path:
        return self.settings.ssh_key_path.with_name(f"{self.settings.ssh_key_name}.pub")

    async def generate_and_save_key_pair(self) -> SourceControlPreferences:
        """Write a new Ed25519 key pair to the SSH folder and store the public key."""
        private_key, public_key = generate_ssh_key_pair()

        self.settings.ssh_folder.mkdir(parents=True, exist_ok=True)
        self.private_key_path.write_text(private_key, encoding="utf-8")
        os.chmod(self.private_key_path, 0o600)
        self.public_key_path.write_text(public_key + "\n", encoding="utf-8")

        logger.info(f"Generated deploy key pair in {self.settings.ssh_folder}")
        return await self.set_preferences({"public_key": public_key})

    async def get_public_key(self) -> str | None:
        """Public key from disk, falling back to the stored preference."""
        if self.public_key_path.exists():
            return self.public_key_path.read_text(encoding="utf-8").strip()
        return self.preferences.public_key

    async def delete_key_pair_files(self) -> None:
        for path in (self.private_key_path, self.public_key_path):
            path.unlink(missing_ok=True)
        logger.info("Deleted deploy key pair")
