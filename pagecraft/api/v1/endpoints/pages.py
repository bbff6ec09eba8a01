# pagecraft/api/v1/endpoints/pages.py
# Render en vivo de páginas
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pagecraft.api.deps.context import get_request_context
from pagecraft.core.errors import ServiceError
from pagecraft.db.session import get_db
from pagecraft.schemas.pages import RenderedPageOut
from pagecraft.services.page_service import render_page
from pagecraft.services.variables import RequestContext

router = APIRouter()


@router.get("/{page_id}/render", response_model=RenderedPageOut)
def render_page_endpoint(
    page_id: int,
    language_id: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    try:
        return render_page(db, page_id, language_id, context)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
