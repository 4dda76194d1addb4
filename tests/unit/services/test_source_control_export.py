"""
Unit tests for SourceControlExportService.

Runs against the in-memory SQLite database and writes into tmp_path.
"""

import json

import pytest
import pytest_asyncio

from sourcecontrol.core.exceptions import ExportError
from sourcecontrol.core.security import encrypt_credential_data
from sourcecontrol.models.orm import Credential, Tag, Variable, Workflow, WorkflowTagMapping
from sourcecontrol.services.source_control_export import (
    SourceControlExportService,
    sanitize_credential_data,
)


@pytest.fixture
def git_folder(tmp_path):
    folder = tmp_path / "git"
    folder.mkdir()
    return folder


@pytest_asyncio.fixture
async def export_service(db_session, git_folder, settings):
    return SourceControlExportService(db_session, git_folder, settings)


class TestSanitizeCredentialData:
    """Secrets are blanked; expressions are kept."""

    def test_blanks_plain_strings(self):
        assert sanitize_credential_data({"apiKey": "s3cret"}) == {"apiKey": ""}

    def test_keeps_expressions(self):
        data = {"token": "={{ $env.TOKEN }}", "user": "admin"}
        assert sanitize_credential_data(data) == {"token": "={{ $env.TOKEN }}", "user": ""}

    def test_recurses_and_keeps_non_strings(self):
        data = {"headers": [{"name": "X-Key", "value": "abc"}], "port": 443, "tls": True}
        assert sanitize_credential_data(data) == {
            "headers": [{"name": "", "value": ""}],
            "port": 443,
            "tls": True,
        }


class TestExportWorkflows:

    @pytest.mark.asyncio
    async def test_writes_one_file_per_workflow(self, export_service, db_session, git_folder):
        db_session.add_all([
            Workflow(id="w1", name="First", nodes=[{"type": "start"}], connections={}, version_id="v1"),
            Workflow(id="w2", name="Second", nodes=[], connections={}, version_id="v7"),
        ])
        await db_session.flush()

        result = await export_service.export_workflows_to_work_folder()

        assert result.count == 2
        assert result.folder == "workflows"
        data = json.loads((git_folder / "workflows" / "w1.json").read_text())
        assert data["id"] == "w1"
        assert data["versionId"] == "v1"
        assert data["nodes"] == [{"type": "start"}]
        assert (git_folder / "workflows" / "w2.json").exists()

    @pytest.mark.asyncio
    async def test_exports_only_requested_ids(self, export_service, db_session, git_folder):
        db_session.add_all([
            Workflow(id="w1", name="First", version_id="v1"),
            Workflow(id="w2", name="Second", version_id="v1"),
        ])
        await db_session.flush()

        result = await export_service.export_workflows_to_work_folder(["w2"])

        assert [f.id for f in result.files] == ["w2"]
        assert not (git_folder / "workflows" / "w1.json").exists()

    @pytest.mark.asyncio
    async def test_file_reads_back(self, export_service, db_session):
        db_session.add(Workflow(id="w1", name="First", version_id="v1"))
        await db_session.flush()
        await export_service.export_workflows_to_work_folder()

        workflow = await export_service.get_workflow_from_file("workflows/w1.json")

        assert workflow.id == "w1"
        assert workflow.version_id == "v1"

    @pytest.mark.asyncio
    async def test_unreadable_file_reads_back_as_none(self, export_service, git_folder):
        path = git_folder / "workflows" / "bad.json"
        path.parent.mkdir()
        path.write_text("[1, 2")

        assert await export_service.get_workflow_from_file(path) is None


class TestExportCredentials:

    @pytest.mark.asyncio
    async def test_secrets_never_written(self, export_service, db_session, git_folder, settings):
        db_session.add(
            Credential(
                id="c1",
                name="Slack",
                type="slackApi",
                data=encrypt_credential_data({"accessToken": "xoxb-123", "url": "=$env.URL"}, settings),
                nodes_access=[{"nodeType": "slack"}],
            )
        )
        await db_session.flush()

        await export_service.export_credentials_to_work_folder()

        raw = (git_folder / "credentials" / "c1.json").read_text()
        assert "xoxb-123" not in raw
        data = json.loads(raw)
        assert data["data"] == {"accessToken": "", "url": "=$env.URL"}
        assert data["nodesAccess"] == [{"nodeType": "slack"}]

    @pytest.mark.asyncio
    async def test_undecryptable_data_exported_empty(self, export_service, db_session, git_folder, caplog):
        db_session.add(Credential(id="c1", name="Broken", type="t", data="not-a-token"))
        await db_session.flush()

        result = await export_service.export_credentials_to_work_folder()

        assert result.count == 1
        assert json.loads((git_folder / "credentials" / "c1.json").read_text())["data"] == {}
        assert "Could not decrypt credential c1" in caplog.text


class TestExportAggregatedFiles:

    @pytest.mark.asyncio
    async def test_variables_written_sorted_by_key(self, export_service, db_session, git_folder):
        db_session.add_all([
            Variable(id="v2", key="ZED", value="z"),
            Variable(id="v1", key="ALPHA", value="a"),
        ])
        await db_session.flush()

        result = await export_service.export_variables_to_work_folder()

        data = json.loads((git_folder / "variables.json").read_text())
        assert [v["key"] for v in data] == ["ALPHA", "ZED"]
        assert result.count == 2

    @pytest.mark.asyncio
    async def test_no_variables_removes_stale_file(self, export_service, git_folder):
        (git_folder / "variables.json").write_text("[]")

        result = await export_service.export_variables_to_work_folder()

        assert result.removed == ["variables.json"]
        assert not (git_folder / "variables.json").exists()

    @pytest.mark.asyncio
    async def test_tags_and_mappings(self, export_service, db_session, git_folder):
        db_session.add_all([
            Workflow(id="w1", name="Flow"),
            Tag(id="t1", name="prod"),
        ])
        await db_session.flush()
        db_session.add(WorkflowTagMapping(tag_id="t1", workflow_id="w1"))
        await db_session.flush()

        await export_service.export_tags_to_work_folder()

        data = json.loads((git_folder / "tags.json").read_text())
        assert [t["name"] for t in data["tags"]] == ["prod"]
        assert data["mappings"] == [{"tagId": "t1", "workflowId": "w1"}]

    @pytest.mark.asyncio
    async def test_no_tags_and_no_file(self, export_service, git_folder):
        result = await export_service.export_tags_to_work_folder()

        assert result.count == 0
        assert result.removed == []


class TestWorkFolderMaintenance:

    @pytest.mark.asyncio
    async def test_clean_removes_exports_only(self, export_service, git_folder):
        for relative in ("workflows/w1.json", "credentials/c1.json", "variables.json", "tags.json", "README.md"):
            path = git_folder / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("{}")

        await export_service.clean_work_folder()

        remaining = sorted(p.relative_to(git_folder).as_posix() for p in git_folder.rglob("*") if p.is_file())
        assert remaining == ["README.md"]

    @pytest.mark.asyncio
    async def test_clean_on_missing_folder_is_noop(self, db_session, tmp_path, settings):
        service = SourceControlExportService(db_session, tmp_path / "absent", settings)
        await service.clean_work_folder()

    @pytest.mark.asyncio
    async def test_delete_repository_folder(self, export_service, git_folder):
        (git_folder / "README.md").write_text("x")

        await export_service.delete_repository_folder()

        assert not git_folder.exists()

    @pytest.mark.asyncio
    async def test_write_failure_raises_export_error(self, export_service, db_session, git_folder):
        db_session.add(Workflow(id="w1", name="Flow"))
        await db_session.flush()
        # A file where the folder should be
        (git_folder / "workflows").write_text("")

        with pytest.raises(ExportError, match="Failed to export workflows"):
            await export_service.export_workflows_to_work_folder()
