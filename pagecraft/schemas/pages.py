# pagecraft/schemas/pages.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DataTableScopes(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # "global" es palabra reservada en Python
    global_: List[str] = Field(default_factory=list, alias="global")
    user: List[str] = Field(default_factory=list)


class CacheScopesOut(BaseModel):
    page: int
    language: int
    user: Optional[int] = None
    data_tables: DataTableScopes


class RenderedPageOut(BaseModel):
    """Sections stay free-form: their fields depend on each section's style."""

    page: Dict[str, Any]
    cache_scopes: CacheScopesOut
