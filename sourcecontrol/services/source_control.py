"""
Source Control Service

Drives synchronization between the database and the connected git
repository:

    push:  status -> conflict barrier -> export -> stage -> commit -> push
    pull:  status -> conflict barrier -> reset -> pull -> import
    reset: clean -> hard reset to upstream -> pull -> import

Conflicts are returned as data (status 409) so callers can show the
changeset and retry with force; they are never raised.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sourcecontrol.config import Settings, get_settings
from sourcecontrol.core.constants import (
    DEFAULT_AUTHOR_EMAIL,
    DEFAULT_AUTHOR_NAME,
    DEFAULT_COMMIT_MESSAGE,
    HOST_KEY_ADDED_WARNING,
    INITIAL_COMMIT_MESSAGE,
    README_CONTENT,
    README_FILE,
)
from sourcecontrol.core.exceptions import (
    BadRequestError,
    BootstrapError,
    EntityImportError,
    ExportError,
    ReadOnlyBranchError,
    SourceControlError,
    TransportError,
)
from sourcecontrol.models.contracts.export_import import ExportedEntity, ImportResult
from sourcecontrol.models.contracts.source_control import (
    BranchesResult,
    GetStatusRequest,
    PullWorkFolderRequest,
    PullWorkFolderResult,
    PushWorkFolderRequest,
    PushWorkFolderResult,
    SourceControlledFile,
    SourceControlPreferences,
    SourceControlUser,
    VerboseStatus,
)
from sourcecontrol.models.enums import (
    SourceControlledFileLocation,
    SourceControlledFileStatus,
    SourceControlledFileType,
    SyncDirection,
)
from sourcecontrol.repositories.source_control import SourceControlRepository
from sourcecontrol.services.source_control_diff import (
    KIND_ORDER,
    KindDiff,
    WorkFolderIndex,
    classify_work_folder_file,
    diverged_variables,
    mark_duplicate_conflicts,
    reconcile_kind,
    union,
)
from sourcecontrol.services.source_control_export import SourceControlExportService
from sourcecontrol.services.source_control_import import SourceControlImportService
from sourcecontrol.services.source_control_preferences import SourceControlPreferencesService
from sourcecontrol.services.source_control_session import SourceControlSession
from sourcecontrol.services.source_control_snapshots import EntitySnapshotReader, WorkFolder

logger = logging.getLogger(__name__)

T = TypeVar("T")


def wrap_database_errors(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Re-raise SQLAlchemy failures as SourceControlError with the same message."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as e:
            raise SourceControlError(str(e)) from e

    return wrapper


class SourceControlService:
    """
    Orchestrates source control operations for one connected repository.

    At most one synchronization operation may be in flight per repository:
    every status, pull and push cleans and resets the shared working folder.
    The integrating layer serializes calls; this service holds no lock.
    """

    def __init__(
        self,
        db: AsyncSession,
        session: SourceControlSession,
        settings: Settings | None = None,
        preferences_service: SourceControlPreferencesService | None = None,
        export_service: SourceControlExportService | None = None,
        import_service: SourceControlImportService | None = None,
    ):
        self.db = db
        self.session = session
        self.settings = settings or get_settings()
        self.git_service = session.git_service
        self.repository = SourceControlRepository(db)
        self.preferences_service = preferences_service or SourceControlPreferencesService(
            db, self.settings
        )
        self.export_service = export_service or SourceControlExportService(
            db, session.git_folder, self.settings
        )
        self.import_service = import_service or SourceControlImportService(
            db, session.git_folder, self.settings
        )

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    @wrap_database_errors
    async def init(self) -> None:
        """Load preferences and open the transport when source control is enabled."""
        self.session.close()
        self.session.ensure_folders()
        await self.preferences_service.load_from_db_and_apply()
        if self.preferences_service.is_source_control_licensed_and_enabled():
            await self._init_git_service()

    async def _init_git_service(self) -> None:
        await self.git_service.init_service(
            preferences=self.preferences_service.get_preferences(),
            git_folder=self.session.git_folder,
            ssh_folder=self.session.ssh_folder,
            ssh_key_path=self.session.ssh_key_path,
        )

    async def _ensure_git_service(self) -> None:
        if self.git_service.repo is None:
            await self._init_git_service()

    async def disconnect(self, keep_key_pair: bool = False) -> SourceControlPreferences:
        """Forget the connection, delete the working folder and (optionally) the key pair."""
        try:
            preferences = await self.preferences_service.set_preferences(
                {"connected": False, "branch_name": ""}
            )
            await self.db.commit()
            await self.export_service.delete_repository_folder()
            if not keep_key_pair:
                await self.preferences_service.delete_key_pair_files()
            self.session.close()
        except (SourceControlError, ExportError, OSError, SQLAlchemyError) as e:
            raise SourceControlError(f"Failed to disconnect from source control: {e}") from e
        logger.info("Disconnected from source control")
        return preferences

    # ==========================================================================
    # Repository & Branches
    # ==========================================================================

    @wrap_database_errors
    async def initialize_repository(
        self,
        preferences: SourceControlPreferences,
        user: SourceControlUser,
    ) -> BranchesResult:
        """
        Connect the working folder to the remote and settle on a branch.

        - preferred branch exists remotely: switch to it
        - remote has no branches: commit a README and force-push it as the
          preferred branch
        - otherwise: clear the branch preference so the user can pick one
        """
        await self._ensure_git_service()
        logger.debug("Initializing repository...")
        await self.git_service.init_repository(preferences, user)

        try:
            branches = await self.get_branches()
        except TransportError as e:
            if HOST_KEY_ADDED_WARNING not in f"{e.message} {e.stderr}":
                raise
            logger.debug("Added repository host to the list of known hosts. Retrying...")
            branches = await self.get_branches()

        if preferences.branch_name in branches.branches:
            await self.git_service.set_branch(preferences.branch_name)
        elif not branches.branches:
            try:
                branches = await self._bootstrap_branch(preferences.branch_name)
            except BootstrapError as e:
                logger.error(f"Failed to create initial commit: {e.message}")
        else:
            await self.preferences_service.set_preferences(
                {"branch_name": "", "connected": True}
            )
            await self.db.commit()

        return branches

    async def _bootstrap_branch(self, branch: str) -> BranchesResult:
        """Create the first commit of an empty repository on `branch`."""
        try:
            (self.session.git_folder / README_FILE).write_text(README_CONTENT, encoding="utf-8")
            await self.git_service.stage({README_FILE})
            await self.git_service.commit(INITIAL_COMMIT_MESSAGE)
            await self.git_service.push(branch=branch, force=True)
            branches = await self.get_branches()
            await self.git_service.set_branch(branch)
        except (TransportError, OSError) as e:
            raise BootstrapError(str(e)) from e
        logger.info(f"Created initial commit on {branch}")
        return branches

    async def get_branches(self) -> BranchesResult:
        """Fetch, then list remote branches."""
        await self._ensure_git_service()
        await self.git_service.fetch()
        return await self.git_service.get_branches()

    @wrap_database_errors
    async def set_branch(self, branch: str) -> BranchesResult:
        await self._ensure_git_service()
        await self.preferences_service.set_preferences(
            {"branch_name": branch, "connected": bool(branch)}
        )
        await self.db.commit()
        return await self.git_service.set_branch(branch)

    async def set_git_user_details(
        self,
        name: str = DEFAULT_AUTHOR_NAME,
        email: str = DEFAULT_AUTHOR_EMAIL,
    ) -> None:
        await self._ensure_git_service()
        await self.git_service.set_git_user_details(name, email)

    # ==========================================================================
    # Status
    # ==========================================================================

    @wrap_database_errors
    async def get_status(
        self, request: GetStatusRequest | None = None
    ) -> list[SourceControlledFile] | VerboseStatus:
        """
        Refresh the working folder and reconcile every kind.

        Returns the flat changeset, or VerboseStatus when request.verbose.
        """
        request = request or GetStatusRequest()
        diffs = await self._reconcile_all(request.prefer_local_version)

        files = union(diffs, request.direction)
        logger.info(f"Status ({request.direction.value}): {len(files)} changed items")

        if request.verbose:
            return VerboseStatus(
                kinds={diff.kind: diff.to_detail() for diff in diffs},
                source_controlled_files=files,
            )
        return files

    async def _reconcile_all(self, prefer_local: bool) -> list[KindDiff]:
        """Refresh the working folder, then reconcile every kind in KIND_ORDER."""
        await self._ensure_git_service()

        try:
            refreshed = await WorkFolder(
                self.session.git_folder, self.git_service, self.export_service
            ).refresh()
        except ExportError as e:
            raise BadRequestError(str(e)) from e

        reader = EntitySnapshotReader(refreshed, self.repository)
        diffs = []
        for kind in KIND_ORDER:
            local, remote = await reader.read_pair(kind)
            if remote.unreadable_files:
                logger.warning(f"Unreadable {kind.value} files: {list(remote.unreadable_files)}")
            diffs.append(reconcile_kind(kind, local, remote, prefer_local))
        return diffs

    @wrap_database_errors
    async def get_work_folder_status(self) -> list[SourceControlledFile]:
        """
        Classify files by git state: export local entities, stage them,
        fetch, and map the local and remote diffs to changeset items.
        """
        await self._ensure_git_service()
        await self._export_all()

        await self.git_service.reset_branch()
        status = await self.git_service.status()
        await self.git_service.stage(
            {*status.not_added, *status.created, *status.modified}, set(status.deleted)
        )
        await self.git_service.fetch()

        try:
            diff_remote = await self.git_service.diff_remote()
            diff_local = await self.git_service.diff_local()
            status = await self.git_service.status()
            index = await self._build_work_folder_index([*diff_remote, *diff_local])

            items = []
            for location, file_names in (
                (SourceControlledFileLocation.REMOTE, diff_remote),
                (SourceControlledFileLocation.LOCAL, diff_local),
            ):
                for file_name in file_names:
                    item = classify_work_folder_file(file_name, location, status, index)
                    if item is not None:
                        items.append(item)
        finally:
            await self.git_service.reset_branch()

        return mark_duplicate_conflicts(items)

    async def _build_work_folder_index(self, file_names: list[str]) -> WorkFolderIndex:
        workflows = {w.id: w for w in await self.repository.get_workflow_versions()}
        credentials = {c.id: c for c in await self.repository.get_credentials()}
        tags = await self.repository.get_tags()

        files: dict[str, ExportedEntity] = {}
        for file_name in set(file_names):
            parsed = None
            if file_name.startswith(f"{self.export_service.workflow_export_folder.name}/"):
                parsed = await self.export_service.get_workflow_from_file(file_name)
            elif file_name.startswith(f"{self.export_service.credential_export_folder.name}/"):
                parsed = await self.export_service.get_credential_from_file(file_name)
            if parsed is not None:
                files[file_name] = ExportedEntity(id=parsed.id, name=parsed.name)

        stamps = [t.updated_at for t in tags if t.updated_at is not None]
        return WorkFolderIndex(
            workflows=workflows,
            credentials=credentials,
            files=files,
            tags_updated_at=max(stamps) if stamps else None,
        )

    # ==========================================================================
    # Push
    # ==========================================================================

    @wrap_database_errors
    async def push_workfolder(self, request: PushWorkFolderRequest) -> PushWorkFolderResult:
        """
        Push local changes to the preferred branch.

        Raises:
            ReadOnlyBranchError: If the branch is read-only (no git call is made)
        """
        if self.preferences_service.is_branch_read_only():
            raise ReadOnlyBranchError()
        await self._ensure_git_service()

        diff_result = list(request.file_names or [])
        if not diff_result:
            status = await self.get_status(
                GetStatusRequest(
                    direction=SyncDirection.PUSH,
                    prefer_local_version=True,
                    verbose=False,
                )
            )
            diff_result = list(status)

        if not request.force and any(item.conflict for item in diff_result):
            logger.info(f"Push blocked by {sum(i.conflict for i in diff_result)} conflicting items")
            return PushWorkFolderResult(status=409, push_result=None, diff_result=diff_result)

        await self._export_changeset(diff_result)
        await self._stage(diff_result)

        if request.file_names:
            requested = {item.file for item in request.file_names}
            diff_result = [
                item.model_copy(update={"pushed": True}) if item.file in requested else item
                for item in diff_result
            ]

        await self.git_service.commit(request.message or DEFAULT_COMMIT_MESSAGE)
        push_result = await self.git_service.push(
            branch=self.preferences_service.get_branch_name(),
            force=request.force,
        )
        return PushWorkFolderResult(status=200, push_result=push_result, diff_result=diff_result)

    async def _export_changeset(self, items: list[SourceControlledFile]) -> None:
        """Write the local version of every changeset entity into the working folder."""
        exportable = [i for i in items if i.status != SourceControlledFileStatus.DELETED]
        workflow_ids = [i.id for i in exportable if i.type == SourceControlledFileType.WORKFLOW]
        credential_ids = [i.id for i in exportable if i.type == SourceControlledFileType.CREDENTIAL]
        kinds = {i.type for i in exportable}

        try:
            if workflow_ids:
                await self.export_service.export_workflows_to_work_folder(workflow_ids)
            if credential_ids:
                await self.export_service.export_credentials_to_work_folder(credential_ids)
            if SourceControlledFileType.VARIABLES in kinds:
                await self.export_service.export_variables_to_work_folder()
            if SourceControlledFileType.TAGS in kinds:
                await self.export_service.export_tags_to_work_folder()
        except ExportError as e:
            raise BadRequestError(str(e)) from e

    async def _export_all(self) -> None:
        try:
            await self.export_service.clean_work_folder()
            await self.export_service.export_tags_to_work_folder()
            await self.export_service.export_variables_to_work_folder()
            await self.export_service.export_workflows_to_work_folder()
            await self.export_service.export_credentials_to_work_folder()
        except ExportError as e:
            raise BadRequestError(str(e)) from e

    async def _stage(self, items: list[SourceControlledFile]) -> None:
        files = {i.file for i in items if i.status != SourceControlledFileStatus.DELETED}
        deleted = {i.file for i in items if i.status == SourceControlledFileStatus.DELETED}
        # Drop anything staged by an earlier operation
        await self.git_service.reset_branch()
        await self.git_service.stage(files, deleted)

    # ==========================================================================
    # Pull / Reset
    # ==========================================================================

    @wrap_database_errors
    async def reset_workfolder(self, request: PullWorkFolderRequest) -> ImportResult | None:
        """
        Discard local working-folder changes: hard reset to the upstream ref
        and pull, then optionally import into the database.
        """
        await self._ensure_git_service()
        current = await self.git_service.get_current_branch()

        try:
            await self.export_service.clean_work_folder()
        except ExportError as e:
            raise BadRequestError(str(e)) from e

        await self.git_service.reset_branch(hard=True, target=current.remote)
        await self.git_service.pull()

        if request.import_after_pull:
            return await self._import(request)
        return None

    @wrap_database_errors
    async def pull_workfolder(self, request: PullWorkFolderRequest) -> PullWorkFolderResult:
        """
        Pull remote changes into the database.

        Blocks with 409 when a workflow or the tags file changed on both
        sides, or when a variable's value differs between the sides, unless
        forced. Credential changes never block: local secrets are kept on
        import.
        """
        diffs = await self._reconcile_all(prefer_local=True)
        status = union(diffs, SyncDirection.PULL)
        logger.info(f"Status (pull): {len(status)} changed items")
        diverged = [
            record.key
            for diff in diffs
            for record in diverged_variables(diff)
        ]

        # A pull never creates local entities
        diff_result = [
            item for item in status
            if not (
                item.status == SourceControlledFileStatus.CREATED
                and item.location == SourceControlledFileLocation.LOCAL
            )
        ]

        blocking = [
            item for item in diff_result
            if (item.conflict or item.status == SourceControlledFileStatus.MODIFIED)
            and (
                item.type not in (SourceControlledFileType.CREDENTIAL, SourceControlledFileType.VARIABLES)
                or (item.type == SourceControlledFileType.VARIABLES and diverged)
            )
        ]
        if blocking and not request.force:
            if diverged:
                logger.info(f"Variables with diverged values: {diverged}")
            logger.info(f"Pull blocked by {len(blocking)} conflicting items")
            return PullWorkFolderResult(status=409, diff_result=diff_result)

        import_result = await self.reset_workfolder(request)
        return PullWorkFolderResult(status=200, diff_result=diff_result, import_result=import_result)

    async def _import(self, request: PullWorkFolderRequest) -> ImportResult:
        try:
            result = await self.import_service.import_from_work_folder(request)
        except EntityImportError as e:
            await self.db.rollback()
            raise BadRequestError(str(e)) from e
        await self.db.commit()
        return result
