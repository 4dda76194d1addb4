"""
Unit tests for the source control repositories (SQLite-backed).
"""

import pytest

from sourcecontrol.models.contracts.export_import import ExportableWorkflow
from sourcecontrol.models.orm import Credential, Tag, Variable, Workflow, WorkflowTagMapping
from sourcecontrol.models.snapshots import TagMappingRecord, VariableRecord
from sourcecontrol.repositories import SourceControlRepository


@pytest.fixture
def repository(db_session):
    return SourceControlRepository(db_session)


class TestProjections:

    @pytest.mark.asyncio
    async def test_workflow_versions(self, repository, db_session):
        db_session.add_all([
            Workflow(id="w2", name="Second", version_id="v9", nodes=[{"big": "payload"}]),
            Workflow(id="w1", name="First", version_id="v1"),
        ])
        await db_session.flush()

        records = await repository.get_workflow_versions()

        assert [(r.id, r.version_id, r.filename) for r in records] == [
            ("w1", "v1", "workflows/w1.json"),
            ("w2", "v9", "workflows/w2.json"),
        ]
        assert records[0].updated_at is not None

    @pytest.mark.asyncio
    async def test_credentials_omit_secret_data(self, repository, db_session):
        db_session.add(
            Credential(id="c1", name="API", type="httpAuth", data="encrypted", nodes_access=[{"nodeType": "http"}])
        )
        await db_session.flush()

        [record] = await repository.get_credentials()

        assert record.filename == "credentials/c1.json"
        assert record.nodes_access == ({"nodeType": "http"},)
        assert not hasattr(record, "data")

    @pytest.mark.asyncio
    async def test_variables_ordered_by_key(self, repository, db_session):
        db_session.add_all([Variable(id="a", key="ZED", value="1"), Variable(id="b", key="ALPHA")])
        await db_session.flush()

        assert await repository.get_variables() == [
            VariableRecord(id="b", key="ALPHA", type="string", value=None),
            VariableRecord(id="a", key="ZED", type="string", value="1"),
        ]

    @pytest.mark.asyncio
    async def test_tags_and_mappings(self, repository, db_session):
        db_session.add_all([Workflow(id="w1", name="Flow"), Tag(id="t1", name="prod")])
        await db_session.flush()
        db_session.add(WorkflowTagMapping(tag_id="t1", workflow_id="w1"))
        await db_session.flush()

        assert [t.name for t in await repository.get_tags()] == ["prod"]
        assert await repository.get_tag_mappings() == [TagMappingRecord(tag_id="t1", workflow_id="w1")]


class TestWrites:

    @pytest.mark.asyncio
    async def test_workflow_upsert_and_exists(self, repository):
        assert await repository.workflows.exists("w1") is False

        await repository.workflows.upsert(ExportableWorkflow(id="w1", name="Flow", version_id="v1"))
        await repository.workflows.upsert(ExportableWorkflow(id="w1", name="Renamed", version_id="v2"))

        assert await repository.workflows.exists("w1") is True
        [workflow] = await repository.workflows.get_many()
        assert (workflow.name, workflow.version_id) == ("Renamed", "v2")

    @pytest.mark.asyncio
    async def test_get_many_filters_by_id(self, repository, db_session):
        db_session.add_all([Workflow(id="w1", name="A"), Workflow(id="w2", name="B")])
        await db_session.flush()

        assert [w.id for w in await repository.workflows.get_many(["w2"])] == ["w2"]
        assert await repository.workflows.get_many([]) == []

    @pytest.mark.asyncio
    async def test_ensure_mapping_is_idempotent(self, repository, db_session):
        db_session.add_all([Workflow(id="w1", name="Flow"), Tag(id="t1", name="prod")])
        await db_session.flush()

        assert await repository.tags.ensure_mapping("t1", "w1") is True
        assert await repository.tags.ensure_mapping("t1", "w1") is False

    @pytest.mark.asyncio
    async def test_tag_upsert_renames(self, repository):
        await repository.tags.upsert("t1", "prod")
        tag = await repository.tags.upsert("t1", "production")

        assert tag.name == "production"
        assert len(await repository.tags.list_all()) == 1

    @pytest.mark.asyncio
    async def test_base_delete(self, repository, db_session):
        db_session.add(Variable(id="v1", key="K"))
        await db_session.flush()

        variable = await repository.variables.get(key="K")
        await repository.variables.delete(variable)

        assert await repository.variables.get_by_id("v1") is None
