"""
Source Control Export Service

Serializes database entities into the git working folder:

    workflows/<id>.json
    credentials/<id>.json   (stub, secrets blanked)
    variables.json
    tags.json

File names and camelCase keys are the on-disk contract and must not change.
"""

import json
import logging
import shutil
from pathlib import Path
from typing import Any

from cryptography.fernet import InvalidToken
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sourcecontrol.config import Settings, get_settings
from sourcecontrol.core.constants import (
    CREDENTIAL_EXPORT_FOLDER,
    TAGS_EXPORT_FILE,
    VARIABLES_EXPORT_FILE,
    WORKFLOW_EXPORT_FOLDER,
)
from sourcecontrol.core.exceptions import ExportError
from sourcecontrol.core.security import decrypt_credential_data
from sourcecontrol.models.contracts.export_import import (
    ExportableCredential,
    ExportableTag,
    ExportableTagMapping,
    ExportableTags,
    ExportableVariable,
    ExportableWorkflow,
    ExportedEntity,
    ExportResult,
)
from sourcecontrol.repositories.source_control import SourceControlRepository

logger = logging.getLogger(__name__)


def sanitize_credential_data(data: Any) -> Any:
    """
    Blank every string value that is not an expression.

    Expressions (strings starting with "=") reference other values and are
    safe to commit; anything else may be a secret.
    """
    if isinstance(data, dict):
        return {key: sanitize_credential_data(value) for key, value in data.items()}
    if isinstance(data, list):
        return [sanitize_credential_data(value) for value in data]
    if isinstance(data, str):
        return data if data.startswith("=") else ""
    return data


def write_json_file(path: Path, model: BaseModel | list[BaseModel]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(model, list):
        payload = [m.model_dump(mode="json", by_alias=True) for m in model]
    else:
        payload = model.model_dump(mode="json", by_alias=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


class SourceControlExportService:
    """Writes local entities into the working folder."""

    def __init__(
        self,
        db: AsyncSession,
        git_folder: Path,
        settings: Settings | None = None,
    ):
        self.db = db
        self.git_folder = git_folder
        self.settings = settings or get_settings()
        self.repository = SourceControlRepository(db)

    # ==========================================================================
    # Paths
    # ==========================================================================

    @property
    def workflow_export_folder(self) -> Path:
        return self.git_folder / WORKFLOW_EXPORT_FOLDER

    @property
    def credential_export_folder(self) -> Path:
        return self.git_folder / CREDENTIAL_EXPORT_FOLDER

    @property
    def variables_path(self) -> Path:
        return self.git_folder / VARIABLES_EXPORT_FILE

    @property
    def tags_path(self) -> Path:
        return self.git_folder / TAGS_EXPORT_FILE

    def get_workflow_path(self, workflow_id: str) -> Path:
        return self.workflow_export_folder / f"{workflow_id}.json"

    def get_credentials_path(self, credential_id: str) -> Path:
        return self.credential_export_folder / f"{credential_id}.json"

    # ==========================================================================
    # Folder Maintenance
    # ==========================================================================

    async def clean_work_folder(self) -> None:
        """
        Remove every exported file from the working folder.

        Git metadata and README.md are left alone; a following hard reset
        restores the committed files.
        """
        try:
            for folder in (self.workflow_export_folder, self.credential_export_folder):
                if folder.exists():
                    for file in folder.glob("*.json"):
                        file.unlink()
            for file in (self.variables_path, self.tags_path):
                file.unlink(missing_ok=True)
        except OSError as e:
            raise ExportError(f"Failed to clean work folder: {e}") from e

    async def delete_repository_folder(self) -> None:
        if not self.git_folder.exists():
            return
        try:
            shutil.rmtree(self.git_folder)
        except OSError as e:
            raise ExportError(f"Failed to delete work folder: {e}") from e
        logger.info(f"Deleted work folder {self.git_folder}")

    # ==========================================================================
    # Export
    # ==========================================================================

    async def export_workflows_to_work_folder(self, ids: list[str] | None = None) -> ExportResult:
        """Export workflows (all, or only `ids`) one file per workflow."""
        try:
            workflows = await self.repository.workflows.get_many(ids)
            files = []
            for workflow in workflows:
                exportable = ExportableWorkflow(
                    id=workflow.id,
                    name=workflow.name,
                    nodes=workflow.nodes or [],
                    connections=workflow.connections or {},
                    settings=workflow.settings,
                    active=workflow.active,
                    version_id=workflow.version_id,
                    updated_at=workflow.updated_at,
                )
                write_json_file(self.get_workflow_path(workflow.id), exportable)
                files.append(ExportedEntity(id=workflow.id, name=workflow.name))
        except (OSError, SQLAlchemyError) as e:
            raise ExportError(f"Failed to export workflows: {e}") from e

        logger.info(f"Exported {len(files)} workflows to {self.workflow_export_folder}")
        return ExportResult(count=len(files), folder=WORKFLOW_EXPORT_FOLDER, files=files)

    async def export_credentials_to_work_folder(self, ids: list[str] | None = None) -> ExportResult:
        """Export credential stubs. Data values are sanitized before writing."""
        try:
            credentials = await self.repository.credentials.get_many(ids)
            files = []
            for credential in credentials:
                try:
                    data = decrypt_credential_data(credential.data, self.settings)
                except (InvalidToken, ValueError):
                    logger.warning(f"Could not decrypt credential {credential.id}, exporting without data")
                    data = {}
                exportable = ExportableCredential(
                    id=credential.id,
                    name=credential.name,
                    type=credential.type,
                    data=sanitize_credential_data(data),
                    nodes_access=credential.nodes_access or [],
                    updated_at=credential.updated_at,
                )
                write_json_file(self.get_credentials_path(credential.id), exportable)
                files.append(ExportedEntity(id=credential.id, name=credential.name))
        except (OSError, SQLAlchemyError) as e:
            raise ExportError(f"Failed to export credentials: {e}") from e

        logger.info(f"Exported {len(files)} credentials to {self.credential_export_folder}")
        return ExportResult(count=len(files), folder=CREDENTIAL_EXPORT_FOLDER, files=files)

    async def export_variables_to_work_folder(self) -> ExportResult:
        """Export all variables into one file. The file is removed when there are none."""
        try:
            variables = await self.repository.variables.list_all()
            if not variables:
                return self._remove_export_file(self.variables_path, VARIABLES_EXPORT_FILE)
            exportable = [
                ExportableVariable(id=v.id, key=v.key, type=v.type, value=v.value)
                for v in variables
            ]
            write_json_file(self.variables_path, exportable)
        except (OSError, SQLAlchemyError) as e:
            raise ExportError(f"Failed to export variables: {e}") from e

        return ExportResult(
            count=len(exportable),
            folder=VARIABLES_EXPORT_FILE,
            files=[ExportedEntity(id=v.id, name=v.key) for v in exportable],
        )

    async def export_tags_to_work_folder(self) -> ExportResult:
        """Export tags and workflow-tag mappings into one file."""
        try:
            tags = await self.repository.tags.list_all()
            if not tags:
                return self._remove_export_file(self.tags_path, TAGS_EXPORT_FILE)
            mappings = await self.repository.tags.list_mappings()
            exportable = ExportableTags(
                tags=[ExportableTag(id=t.id, name=t.name, updated_at=t.updated_at) for t in tags],
                mappings=[
                    ExportableTagMapping(tag_id=m.tag_id, workflow_id=m.workflow_id)
                    for m in mappings
                ],
            )
            write_json_file(self.tags_path, exportable)
        except (OSError, SQLAlchemyError) as e:
            raise ExportError(f"Failed to export tags: {e}") from e

        return ExportResult(
            count=len(exportable.tags),
            folder=TAGS_EXPORT_FILE,
            files=[ExportedEntity(id=t.id, name=t.name) for t in exportable.tags],
        )

    def _remove_export_file(self, path: Path, name: str) -> ExportResult:
        if not path.exists():
            return ExportResult(count=0, folder=name)
        path.unlink()
        return ExportResult(count=0, folder=name, removed=[name])

    # ==========================================================================
    # Read Back
    # ==========================================================================

    async def get_workflow_from_file(self, path: str | Path) -> ExportableWorkflow | None:
        """Parse an exported workflow file. Returns None when unreadable."""
        return self._read_model(path, ExportableWorkflow)

    async def get_credential_from_file(self, path: str | Path) -> ExportableCredential | None:
        return self._read_model(path, ExportableCredential)

    def _read_model(self, path: str | Path, model: type[BaseModel]) -> Any:
        full_path = Path(path)
        if not full_path.is_absolute():
            full_path = self.git_folder / full_path
        try:
            return model.model_validate_json(full_path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning(f"Failed to parse {full_path}: {e}")
            return None
