"""
End-to-end synchronization tests.

SourceControlService runs with its real collaborators: the in-memory SQLite
database on one side and a local bare git repository on the other.
"""

import json
from pathlib import Path

import pytest
import pytest_asyncio
from git import Repo

from sourcecontrol.models.contracts.source_control import (
    GetStatusRequest,
    PullWorkFolderRequest,
    PushWorkFolderRequest,
    SourceControlPreferences,
    SourceControlUser,
)
from sourcecontrol.models.enums import (
    SourceControlledFileLocation,
    SourceControlledFileStatus,
    SourceControlledFileType,
    SyncDirection,
)
from sourcecontrol.models.orm import Tag, Variable, Workflow, WorkflowTagMapping
from sourcecontrol.services.source_control import SourceControlService
from sourcecontrol.services.source_control_session import SourceControlSession

pytestmark = pytest.mark.integration


@pytest.fixture
def preferences(bare_repo: Path) -> SourceControlPreferences:
    return SourceControlPreferences(connected=True, repository_url=str(bare_repo), branch_name="main")


@pytest.fixture
def user() -> SourceControlUser:
    return SourceControlUser(first_name="Ada", last_name="Lovelace", email="ada@example.com")


@pytest_asyncio.fixture
async def service(db_session, settings):
    session = SourceControlSession.from_settings(settings)
    svc = SourceControlService(db_session, session, settings)
    yield svc
    session.close()


@pytest_asyncio.fixture
async def connected(service, preferences, user):
    """Service connected to an empty remote (bootstrapped with a README)."""
    await service.initialize_repository(preferences, user)
    return service


def remote_log(bare_repo: Path) -> list[str]:
    return Repo(str(bare_repo)).git.log("--format=%s", "main").splitlines()


def remote_file(bare_repo: Path, path: str) -> str:
    return Repo(str(bare_repo)).git.show(f"main:{path}")


class TestBootstrap:

    @pytest.mark.asyncio
    async def test_empty_remote_gets_single_readme_commit(self, service, preferences, user, bare_repo):
        result = await service.initialize_repository(preferences, user)

        assert result.branches == ["main"]
        assert remote_log(bare_repo) == ["Initial commit"]
        assert remote_file(bare_repo, "README.md").startswith("# Source Control Repository")
        files = Repo(str(bare_repo)).git.ls_tree("-r", "--name-only", "main").splitlines()
        assert files == ["README.md"]

    @pytest.mark.asyncio
    async def test_existing_branch_is_checked_out(
        self, service, preferences, user, bare_repo, tmp_path, remote_commit
    ):
        remote_commit(bare_repo, tmp_path / "other", {"workflows/w1.json": "{}"})

        result = await service.initialize_repository(preferences, user)

        assert result.branches == ["main"]
        assert remote_log(bare_repo) == ["test data"]
        assert (service.session.git_folder / "workflows" / "w1.json").exists()


class TestPushThenPull:

    @pytest.mark.asyncio
    async def test_push_exports_local_entities(self, connected, db_session, bare_repo):
        db_session.add_all([
            Workflow(id="w1", name="Flow", version_id="v1"),
            Variable(id="var1", key="REGION", value="eu"),
            Tag(id="t1", name="prod"),
        ])
        await db_session.flush()
        db_session.add(WorkflowTagMapping(tag_id="t1", workflow_id="w1"))
        await db_session.flush()

        status = await connected.get_status()
        assert {(i.type, i.status) for i in status} == {
            (SourceControlledFileType.WORKFLOW, SourceControlledFileStatus.CREATED),
            (SourceControlledFileType.VARIABLES, SourceControlledFileStatus.MODIFIED),
            (SourceControlledFileType.TAGS, SourceControlledFileStatus.MODIFIED),
        }

        # Aggregated files are always flagged as conflicting
        blocked = await connected.push_workfolder(PushWorkFolderRequest())
        assert blocked.status == 409

        result = await connected.push_workfolder(PushWorkFolderRequest(message="First sync", force=True))

        assert result.status == 200
        assert remote_log(bare_repo)[0] == "First sync"
        assert json.loads(remote_file(bare_repo, "workflows/w1.json"))["versionId"] == "v1"
        assert json.loads(remote_file(bare_repo, "variables.json"))[0]["key"] == "REGION"
        assert json.loads(remote_file(bare_repo, "tags.json"))["mappings"] == [
            {"tagId": "t1", "workflowId": "w1"}
        ]
        # Nothing left to push
        assert await connected.get_status() == []

    @pytest.mark.asyncio
    async def test_concurrent_edit_blocks_push_and_pull(
        self, connected, db_session, bare_repo, tmp_path, remote_commit
    ):
        db_session.add(Workflow(id="w1", name="Flow", version_id="v1"))
        await db_session.flush()
        await connected.push_workfolder(PushWorkFolderRequest())

        # Someone else saves w1 remotely; we save it locally
        remote_commit(bare_repo, tmp_path / "other", {
            "workflows/w1.json": json.dumps({"id": "w1", "name": "Remote Flow", "versionId": "v2"}),
        })
        workflow = await db_session.get(Workflow, "w1")
        workflow.version_id = "v3"
        await db_session.flush()

        push = await connected.push_workfolder(PushWorkFolderRequest())
        assert push.status == 409
        assert push.diff_result[0].conflict is True
        assert remote_log(bare_repo)[0] == "test data"

        pull = await connected.pull_workfolder(PullWorkFolderRequest())
        assert pull.status == 409
        assert (await db_session.get(Workflow, "w1")).version_id == "v3"

    @pytest.mark.asyncio
    async def test_forced_pull_imports_remote_changes(
        self, connected, db_session, bare_repo, tmp_path, remote_commit
    ):
        db_session.add(Workflow(id="w1", name="Flow", version_id="v1"))
        await db_session.flush()
        await connected.push_workfolder(PushWorkFolderRequest())

        remote_commit(bare_repo, tmp_path / "other", {
            "workflows/w1.json": json.dumps({"id": "w1", "name": "Remote Flow", "versionId": "v2"}),
            "workflows/w2.json": json.dumps({"id": "w2", "name": "New Flow", "versionId": "v1"}),
        })

        result = await connected.pull_workfolder(PullWorkFolderRequest(force=True))

        assert result.status == 200
        assert sorted(w.id for w in result.import_result.workflows) == ["w1", "w2"]
        assert (await db_session.get(Workflow, "w1")).name == "Remote Flow"
        assert (await db_session.get(Workflow, "w2")).active is False

    @pytest.mark.asyncio
    async def test_remote_only_workflow_is_created_on_pull(
        self, connected, db_session, bare_repo, tmp_path, remote_commit
    ):
        remote_commit(bare_repo, tmp_path / "other", {
            "workflows/w9.json": json.dumps({"id": "w9", "name": "Remote Only", "versionId": "v1"}),
        })

        status = await connected.get_status(GetStatusRequest(direction=SyncDirection.PULL))
        assert [(i.id, i.status, i.location) for i in status] == [
            ("w9", SourceControlledFileStatus.CREATED, SourceControlledFileLocation.REMOTE)
        ]

        result = await connected.pull_workfolder(PullWorkFolderRequest())

        assert result.status == 200
        assert (await db_session.get(Workflow, "w9")).name == "Remote Only"

    @pytest.mark.asyncio
    async def test_pulled_variable_id_converges(
        self, connected, db_session, bare_repo, tmp_path, remote_commit
    ):
        db_session.add(Variable(id="var1", key="REGION", value="eu"))
        await db_session.flush()
        await connected.push_workfolder(PushWorkFolderRequest(force=True))

        # Recreated remotely under a new id with the same value
        remote_commit(bare_repo, tmp_path / "other", {
            "variables.json": json.dumps([{"id": "var9", "key": "REGION", "type": "string", "value": "eu"}]),
        })

        result = await connected.pull_workfolder(PullWorkFolderRequest())

        assert result.status == 200
        assert [v.id for v in await connected.repository.get_variables()] == ["var9"]
        assert await connected.get_status(GetStatusRequest(direction=SyncDirection.PULL)) == []
