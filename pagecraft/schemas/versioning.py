# pagecraft/schemas/versioning.py
# Pydantic: requests/responses del ciclo de vida de versiones
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VersionCreate(BaseModel):
    version_name: Optional[str] = Field(None, max_length=255)
    metadata: Optional[Dict[str, Any]] = None
    publish: bool = False

    model_config = ConfigDict(extra="ignore")


class VersionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    page_id: int
    version_number: int
    version_name: Optional[str] = None
    # columna "metadata" mapeada como .meta en el ORM
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="meta")
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    is_published: bool = False


class VersionDetailOut(VersionOut):
    snapshot_json: Dict[str, Any]


class VersionHistoryOut(BaseModel):
    versions: List[VersionOut]
    total_count: int
    limit: int
    offset: int
    has_unpublished_changes: bool


class VersionMeta(BaseModel):
    id: int
    version_number: int
    version_name: Optional[str] = None
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None


class DraftMeta(BaseModel):
    page_id: int
    keyword: str
    url: Optional[str] = None
    updated_at: Optional[datetime] = None


class VersionCompareOut(BaseModel):
    version1: VersionMeta
    version2: VersionMeta
    format: str
    diff: Any


class DraftCompareOut(BaseModel):
    draft: DraftMeta
    version: VersionMeta
    format: str
    diff: Any


class UnpublishedChangesOut(BaseModel):
    page_id: int
    has_unpublished_changes: bool
    published_version_id: Optional[int] = None


class PublishStateOut(BaseModel):
    page_id: int
    published_version_id: Optional[int] = None
