"""
Source Control Import Service

Materializes the working folder into the database after a pull or reset.

Import rules:
- workflows are upserted; activation state stays with the instance
- credentials that already exist are only renamed/retyped; new ones are
  created with the (sanitized) data from the file
- variables are upserted by id, then by key; the exported id wins
- tags are upserted; mappings are added only for workflows that exist
"""

import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sourcecontrol.config import Settings, get_settings
from sourcecontrol.core.constants import (
    CREDENTIAL_EXPORT_FOLDER,
    TAGS_EXPORT_FILE,
    VARIABLES_EXPORT_FILE,
    WORKFLOW_EXPORT_FOLDER,
)
from sourcecontrol.core.exceptions import EntityImportError
from sourcecontrol.core.security import encrypt_credential_data
from sourcecontrol.models.contracts.export_import import (
    ExportableCredential,
    ExportableTagMapping,
    ExportableTags,
    ExportableVariable,
    ExportableWorkflow,
    ExportedEntity,
    ImportResult,
)
from sourcecontrol.models.contracts.source_control import PullWorkFolderRequest
from sourcecontrol.models.orm import Credential
from sourcecontrol.repositories.source_control import SourceControlRepository
from sourcecontrol.services.source_control_export import sanitize_credential_data

logger = logging.getLogger(__name__)

_variables_adapter = TypeAdapter(list[ExportableVariable])


class SourceControlImportService:
    """Reads exported files from the working folder and writes them to the database."""

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

    async def import_from_work_folder(self, options: PullWorkFolderRequest) -> ImportResult:
        """
        Import every kind from the working folder.

        Changes are flushed, not committed; the caller commits.

        Raises:
            EntityImportError: If a file or database write fails
        """
        result = ImportResult()
        try:
            await self._import_workflows(result)
            await self._import_credentials(result)
            await self._import_variables(result)
            await self._import_tags(result)
        except (OSError, SQLAlchemyError) as e:
            raise EntityImportError(f"Failed to import work folder: {e}") from e

        logger.info(
            f"Imported {len(result.workflows)} workflows, {len(result.credentials)} credentials, "
            f"{len(result.variables)} variables, {len(result.tags)} tags "
            f"(user={options.user_id or 'system'})"
        )
        if result.skipped_files:
            logger.warning(f"Skipped unreadable files during import: {result.skipped_files}")
        return result

    # -----------------------------------------------------------------
    # Per-kind imports
    # -----------------------------------------------------------------

    async def _import_workflows(self, result: ImportResult) -> None:
        for file in self._json_files(WORKFLOW_EXPORT_FOLDER):
            try:
                workflow = ExportableWorkflow.model_validate_json(file.read_bytes())
            except ValidationError:
                result.skipped_files.append(f"{WORKFLOW_EXPORT_FOLDER}/{file.name}")
                continue
            await self.repository.workflows.upsert(workflow)
            result.workflows.append(ExportedEntity(id=workflow.id, name=workflow.name))

    async def _import_credentials(self, result: ImportResult) -> None:
        for file in self._json_files(CREDENTIAL_EXPORT_FOLDER):
            try:
                stub = ExportableCredential.model_validate_json(file.read_bytes())
            except ValidationError:
                result.skipped_files.append(f"{CREDENTIAL_EXPORT_FOLDER}/{file.name}")
                continue

            existing = await self.repository.credentials.get_by_id(stub.id)
            if existing is not None:
                # Local secrets always win over the committed stub
                existing.name = stub.name
                existing.type = stub.type
                existing.nodes_access = stub.nodes_access
                await self.db.flush()
            else:
                await self.repository.credentials.create(
                    Credential(
                        id=stub.id,
                        name=stub.name,
                        type=stub.type,
                        data=encrypt_credential_data(
                            sanitize_credential_data(stub.data), self.settings
                        ),
                        nodes_access=stub.nodes_access,
                    )
                )
            result.credentials.append(ExportedEntity(id=stub.id, name=stub.name))

    async def _import_variables(self, result: ImportResult) -> None:
        path = self.git_folder / VARIABLES_EXPORT_FILE
        if not path.exists():
            return
        try:
            variables = _variables_adapter.validate_json(path.read_bytes())
        except ValidationError:
            result.skipped_files.append(VARIABLES_EXPORT_FILE)
            return

        for variable in variables:
            await self.repository.variables.upsert_from_remote(
                id=variable.id,
                key=variable.key,
                type=variable.type,
                value=variable.value,
            )
            result.variables.append(variable.key)

    async def _import_tags(self, result: ImportResult) -> None:
        path = self.git_folder / TAGS_EXPORT_FILE
        if not path.exists():
            return
        try:
            exported = ExportableTags.model_validate_json(path.read_bytes())
        except ValidationError:
            result.skipped_files.append(TAGS_EXPORT_FILE)
            return

        tag_ids = set()
        for tag in exported.tags:
            await self.repository.tags.upsert(tag.id, tag.name)
            tag_ids.add(tag.id)
            result.tags.append(ExportedEntity(id=tag.id, name=tag.name))

        for mapping in exported.mappings:
            if mapping.tag_id not in tag_ids:
                continue
            if not await self.repository.workflows.exists(mapping.workflow_id):
                logger.debug(
                    f"Skipping tag mapping {mapping.tag_id} -> {mapping.workflow_id}: workflow not found"
                )
                continue
            await self.repository.tags.ensure_mapping(mapping.tag_id, mapping.workflow_id)
            result.mappings.append(
                ExportableTagMapping(tag_id=mapping.tag_id, workflow_id=mapping.workflow_id)
            )

    def _json_files(self, folder: str) -> list[Path]:
        directory = self.git_folder / folder
        if not directory.is_dir():
            return []
        return sorted(directory.glob("*.json"))
