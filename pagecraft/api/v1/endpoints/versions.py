# =============================================================================
# Page Version Endpoints (create, publish/unpublish, history, delete, compare)
# pagecraft/api/v1/endpoints/versions.py
# =============================================================================
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from pagecraft.api.deps.context import get_current_user_id_optional
from pagecraft.core.errors import ServiceError
from pagecraft.db.session import get_db
from pagecraft.models.versioning import PageVersion
from pagecraft.schemas.versioning import (
    DraftCompareOut,
    PublishStateOut,
    UnpublishedChangesOut,
    VersionCompareOut,
    VersionCreate,
    VersionDetailOut,
    VersionHistoryOut,
    VersionOut,
)
from pagecraft.services import versioning_service as vs
from pagecraft.services.json_diff import DiffFormat
from pagecraft.services.page_service import get_page_or_404

router = APIRouter()


def _out(version: PageVersion, published_version_id: Optional[int], *, detail: bool = False) -> VersionOut:
    model = VersionDetailOut if detail else VersionOut
    out = model.model_validate(version)
    out.is_published = version.id == published_version_id
    return out


def _http_error(db: Session, e: ServiceError) -> HTTPException:
    db.rollback()
    return HTTPException(status_code=e.status_code, detail=e.message)


# ======================
# Crear / listar / leer
# ======================
@router.post("/{page_id}/versions", response_model=VersionOut, status_code=status.HTTP_201_CREATED)
def create_version_endpoint(
    page_id: int,
    payload: VersionCreate,
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(get_current_user_id_optional),
):
    try:
        create = vs.create_and_publish_version if payload.publish else vs.create_version
        version = create(
            db,
            page_id,
            version_name=payload.version_name,
            metadata=payload.metadata,
            created_by=user_id,
        )
        page = get_page_or_404(db, page_id)
    except ServiceError as e:
        raise _http_error(db, e)
    return _out(version, page.published_version_id)


@router.get("/{page_id}/versions", response_model=VersionHistoryOut)
def list_versions_endpoint(
    page_id: int,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    try:
        history = vs.get_version_history(db, page_id, limit=limit, offset=offset)
        page = get_page_or_404(db, page_id)
    except ServiceError as e:
        raise _http_error(db, e)
    return VersionHistoryOut(
        versions=[_out(v, page.published_version_id) for v in history["versions"]],
        total_count=history["total_count"],
        limit=history["limit"],
        offset=history["offset"],
        has_unpublished_changes=history["has_unpublished_changes"],
    )


@router.get("/{page_id}/versions/compare/{version1_id}/{version2_id}", response_model=VersionCompareOut)
def compare_versions_endpoint(
    page_id: int,
    version1_id: int,
    version2_id: int,
    format: str = Query(DiffFormat.UNIFIED.value),
    db: Session = Depends(get_db),
):
    try:
        return vs.compare_versions(db, version1_id, version2_id, format, page_id=page_id)
    except ServiceError as e:
        raise _http_error(db, e)


@router.get("/{page_id}/versions/{version_id}", response_model=VersionDetailOut)
def get_version_endpoint(page_id: int, version_id: int, db: Session = Depends(get_db)):
    try:
        version = vs.get_version(db, version_id, page_id=page_id)
        page = get_page_or_404(db, page_id)
    except ServiceError as e:
        raise _http_error(db, e)
    return _out(version, page.published_version_id, detail=True)


@router.get("/{page_id}/versions/{version_id}/compare-draft", response_model=DraftCompareOut)
def compare_draft_endpoint(
    page_id: int,
    version_id: int,
    format: str = Query(DiffFormat.SIDE_BY_SIDE.value),
    db: Session = Depends(get_db),
):
    try:
        return vs.compare_draft_with_version(db, page_id, version_id, format)
    except ServiceError as e:
        raise _http_error(db, e)


# ======================
# Publicación
# ======================
@router.post("/{page_id}/versions/{version_id}/publish", response_model=VersionOut)
def publish_version_endpoint(page_id: int, version_id: int, db: Session = Depends(get_db)):
    try:
        version = vs.publish_version(db, page_id, version_id)
    except ServiceError as e:
        raise _http_error(db, e)
    return _out(version, version.id)


@router.post("/{page_id}/unpublish", response_model=PublishStateOut)
def unpublish_page_endpoint(page_id: int, db: Session = Depends(get_db)):
    try:
        page = vs.unpublish_page(db, page_id)
    except ServiceError as e:
        raise _http_error(db, e)
    return PublishStateOut(page_id=page.id, published_version_id=page.published_version_id)


@router.get("/{page_id}/unpublished-changes", response_model=UnpublishedChangesOut)
def unpublished_changes_endpoint(page_id: int, db: Session = Depends(get_db)):
    try:
        changed = vs.has_unpublished_changes(db, page_id)
        page = get_page_or_404(db, page_id)
    except ServiceError as e:
        raise _http_error(db, e)
    return UnpublishedChangesOut(
        page_id=page.id,
        has_unpublished_changes=changed,
        published_version_id=page.published_version_id,
    )


# ======================
# Borrado
# ======================
@router.delete("/{page_id}/versions/{version_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_version_endpoint(page_id: int, version_id: int, db: Session = Depends(get_db)):
    try:
        vs.delete_version(db, version_id, page_id=page_id)
    except ServiceError as e:
        raise _http_error(db, e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
