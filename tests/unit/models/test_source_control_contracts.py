"""Test source control contracts and export file models."""
import pytest
from pydantic import ValidationError

from sourcecontrol.models.contracts.export_import import (
    ExportableCredential,
    ExportableTags,
    ExportableWorkflow,
)
from sourcecontrol.models.contracts.source_control import (
    GitStatusResult,
    RenamedFile,
    SourceControlledFile,
    SourceControlPreferences,
    SourceControlUser,
)
from sourcecontrol.models.enums import SourceControlledFileStatus


def test_workflow_file_uses_camel_case_keys():
    """Exported workflow files keep the on-disk camelCase names."""
    workflow = ExportableWorkflow(id="w1", name="Flow", version_id="v1")

    data = workflow.model_dump(mode="json", by_alias=True)

    assert data["versionId"] == "v1"
    assert "version_id" not in data
    assert ExportableWorkflow.model_validate(data) == workflow


def test_credential_file_accepts_camel_case():
    credential = ExportableCredential.model_validate(
        {"id": "c1", "name": "API", "type": "t", "nodesAccess": [{"nodeType": "http"}]}
    )

    assert credential.nodes_access == [{"nodeType": "http"}]
    assert credential.data == {}


def test_tags_file_requires_mapping_ids():
    with pytest.raises(ValidationError):
        ExportableTags.model_validate({"tags": [], "mappings": [{"tagId": "t1"}]})


def test_changeset_item_defaults():
    item = SourceControlledFile(
        file="variables.json",
        id="variables",
        name="variables",
        type="variables",
        status="modified",
        location="local",
    )

    assert item.status == SourceControlledFileStatus.MODIFIED
    assert item.conflict is False
    assert item.pushed is False
    assert item.updated_at is None


def test_changeset_item_rejects_unknown_status():
    with pytest.raises(ValidationError):
        SourceControlledFile(
            file="x", id="x", name="x", type="workflow", status="merged", location="local"
        )


def test_preferences_defaults():
    preferences = SourceControlPreferences()

    assert preferences.connected is False
    assert preferences.branch_name == "main"
    assert preferences.branch_read_only is False
    assert preferences.initialize_repo is True


def test_user_full_name():
    assert SourceControlUser(first_name="Ada", last_name="Lovelace", email="a@b.c").full_name == "Ada Lovelace"
    assert SourceControlUser(email="a@b.c").full_name == ""


def test_git_status_files_are_unique():
    status = GitStatusResult(
        modified=["a.json"],
        staged=["a.json", "b.json"],
        renamed=[RenamedFile(from_path="old.json", to="c.json")],
    )

    assert status.files == ["a.json", "c.json", "b.json"]
