"""Pydantic models for the exported work folder files and export/import results.

Field aliases are the on-disk (camelCase) names; they are part of the
repository layout contract and must not change.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# --- Workflows ---

class ExportableWorkflow(BaseModel):
    id: str
    name: str
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    connections: dict[str, Any] = Field(default_factory=dict)
    settings: dict[str, Any] | None = None
    active: bool = False
    version_id: str | None = Field(None, alias="versionId")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}


# --- Credentials ---

class ExportableCredential(BaseModel):
    id: str
    name: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)  # Sanitized, never secrets
    nodes_access: list[dict[str, Any]] = Field(default_factory=list, alias="nodesAccess")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}


# --- Variables ---

class ExportableVariable(BaseModel):
    id: str
    key: str
    type: str = "string"
    value: str | None = None


# --- Tags ---

class ExportableTag(BaseModel):
    id: str
    name: str
    updated_at: datetime | None = Field(None, alias="updatedAt")

    model_config = {"populate_by_name": True}


class ExportableTagMapping(BaseModel):
    tag_id: str = Field(..., alias="tagId")
    workflow_id: str = Field(..., alias="workflowId")

    model_config = {"populate_by_name": True}


class ExportableTags(BaseModel):
    tags: list[ExportableTag] = Field(default_factory=list)
    mappings: list[ExportableTagMapping] = Field(default_factory=list)


# --- Results ---

class ExportedEntity(BaseModel):
    id: str
    name: str


class ExportResult(BaseModel):
    """Outcome of writing one entity kind to the work folder."""
    count: int = Field(default=0, description="Number of entities written")
    folder: str = Field(..., description="Folder or file written to")
    files: list[ExportedEntity] = Field(default_factory=list, description="Entities written")
    removed: list[str] = Field(default_factory=list, description="Files removed from the work folder")


class ImportResult(BaseModel):
    """Outcome of materializing the work folder into the database."""
    workflows: list[ExportedEntity] = Field(default_factory=list)
    credentials: list[ExportedEntity] = Field(default_factory=list)
    variables: list[str] = Field(default_factory=list, description="Imported variable keys")
    tags: list[ExportedEntity] = Field(default_factory=list)
    mappings: list[ExportableTagMapping] = Field(default_factory=list)
    skipped_files: list[str] = Field(default_factory=list, description="Files that could not be parsed")
