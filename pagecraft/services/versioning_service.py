# pagecraft/services/versioning_service.py
# Ciclo de vida de versiones de página: crear, publicar, despublicar, borrar, retención, comparar
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pagecraft.core.errors import BadRequestError, InvalidStateError, NotFoundError, ServiceError
from pagecraft.core.settings import settings
from pagecraft.db.session import transactional
from pagecraft.models.content import Page
from pagecraft.models.versioning import PageVersion
from pagecraft.services.json_diff import DiffFormat, compare, generate_structure_hash, parse_format
from pagecraft.services.page_service import build_draft_snapshot, get_page_or_404

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------
# Lecturas
# -----------------------------
def get_version(db: Session, version_id: int, *, page_id: Optional[int] = None) -> PageVersion:
    version = db.get(PageVersion, version_id)
    if version is None or (page_id is not None and version.page_id != page_id):
        raise NotFoundError(f"Version with ID {version_id} not found")
    return version


def get_page_versions(db: Session, page_id: int, *, limit: Optional[int] = None, offset: int = 0) -> List[PageVersion]:
    """Versions of a page, newest first."""
    stmt = (
        select(PageVersion)
        .where(PageVersion.page_id == page_id)
        .order_by(PageVersion.version_number.desc())
        .offset(offset)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.scalars(stmt))


def get_published_version(db: Session, page_id: int) -> Optional[PageVersion]:
    page = get_page_or_404(db, page_id)
    if page.published_version_id is None:
        return None
    return db.get(PageVersion, page.published_version_id)


def _next_version_number(db: Session, page_id: int) -> int:
    max_number = db.scalar(
        select(func.max(PageVersion.version_number)).where(PageVersion.page_id == page_id)
    )
    return 1 if max_number is None else int(max_number) + 1


# -----------------------------
# Creación / publicación
# -----------------------------
def create_version(
    db: Session,
    page_id: int,
    *,
    version_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    created_by: Optional[int] = None,
) -> PageVersion:
    """
    Snapshot the current draft as the page's next version.

    The number is ``max + 1``; a concurrent insert of the same number trips the
    unique ``(page_id, version_number)`` constraint and the allocation is retried.
    """
    get_page_or_404(db, page_id)
    snapshot = build_draft_snapshot(db, page_id)

    max_attempts = settings.VERSION_CREATE_MAX_RETRIES
    for attempt in range(1, max_attempts + 1):
        try:
            with transactional(db):
                version = PageVersion(
                    page_id=page_id,
                    version_number=_next_version_number(db, page_id),
                    version_name=version_name,
                    snapshot_json=snapshot,
                    meta=metadata,
                    created_by=created_by,
                )
                db.add(version)
                db.flush()
        except IntegrityError as e:
            if attempt >= max_attempts:
                raise ServiceError(f"Failed to create page version: {e.orig}") from e
            logger.warning("Version number conflict on page %s (attempt %d/%d); retrying", page_id, attempt, max_attempts)
            continue
        except SQLAlchemyError as e:
            raise ServiceError(f"Failed to create page version: {e}") from e

        logger.info("Created version %s (#%s) of page %s", version.id, version.version_number, page_id)
        return version

    raise ServiceError("Failed to create page version: retries exhausted")


def _clear_published_at(db: Session, page_id: int, *, keep_id: Optional[int] = None) -> None:
    stmt = select(PageVersion).where(PageVersion.page_id == page_id, PageVersion.published_at.is_not(None))
    if keep_id is not None:
        stmt = stmt.where(PageVersion.id != keep_id)
    for other in db.scalars(stmt):
        other.published_at = None


def publish_version(db: Session, page_id: int, version_id: int) -> PageVersion:
    page = get_page_or_404(db, page_id)
    version = get_version(db, version_id)
    if version.page_id != page.id:
        raise BadRequestError("Version does not belong to this page")

    with transactional(db):
        _clear_published_at(db, page.id, keep_id=version.id)
        version.published_at = _now_utc()
        page.published_version_id = version.id

    logger.info("Published version %s (#%s) of page %s", version.id, version.version_number, page_id)
    return version


def create_and_publish_version(
    db: Session,
    page_id: int,
    *,
    version_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    created_by: Optional[int] = None,
) -> PageVersion:
    version = create_version(db, page_id, version_name=version_name, metadata=metadata, created_by=created_by)
    return publish_version(db, page_id, version.id)


def unpublish_page(db: Session, page_id: int) -> Page:
    page = get_page_or_404(db, page_id)
    with transactional(db):
        _clear_published_at(db, page.id)
        page.published_version_id = None
    logger.info("Unpublished page %s", page_id)
    return page


# -----------------------------
# Borrado / retención
# -----------------------------
def delete_version(db: Session, version_id: int, *, page_id: Optional[int] = None) -> None:
    version = get_version(db, version_id, page_id=page_id)
    page = get_page_or_404(db, version.page_id)
    if page.published_version_id == version.id:
        raise InvalidStateError("Cannot delete the currently published version. Unpublish it first.")

    with transactional(db):
        db.delete(version)
    logger.info("Deleted version %s of page %s", version_id, version.page_id)


def versions_beyond_retention(db: Session, page_id: int, keep: int) -> List[PageVersion]:
    """Versions that fall outside the newest ``keep``; the published one is never included."""
    if keep < 0:
        raise BadRequestError("keep must be >= 0")
    page = get_page_or_404(db, page_id)
    versions = get_page_versions(db, page_id)
    return [v for v in versions[keep:] if v.id != page.published_version_id]


def apply_retention_policy(db: Session, page_id: int, keep: Optional[int] = None) -> int:
    keep = settings.VERSION_RETENTION_KEEP if keep is None else keep
    doomed = versions_beyond_retention(db, page_id, keep)
    if not doomed:
        return 0
    with transactional(db):
        for v in doomed:
            db.delete(v)
    logger.info("Retention on page %s (keep=%d): deleted %d versions", page_id, keep, len(doomed))
    return len(doomed)


# -----------------------------
# Cambios sin publicar
# -----------------------------
def has_unpublished_changes(db: Session, page_id: int) -> bool:
    """True when there is no published version or the draft hashes differently from it."""
    published = get_published_version(db, page_id)
    if published is None:
        return True
    try:
        draft = build_draft_snapshot(db, page_id)
        return generate_structure_hash(draft) != generate_structure_hash(published.snapshot_json)
    except Exception as e:  # ante la duda, hay cambios
        logger.warning("Could not compare draft of page %s with its published version: %s", page_id, e)
        return True


def get_version_history(db: Session, page_id: int, *, limit: int = 10, offset: int = 0) -> Dict[str, Any]:
    get_page_or_404(db, page_id)
    total = db.scalar(select(func.count(PageVersion.id)).where(PageVersion.page_id == page_id)) or 0
    return {
        "versions": get_page_versions(db, page_id, limit=limit, offset=offset),
        "total_count": int(total),
        "limit": limit,
        "offset": offset,
        "has_unpublished_changes": has_unpublished_changes(db, page_id),
    }


# -----------------------------
# Comparaciones
# -----------------------------
def _version_meta(version: PageVersion) -> Dict[str, Any]:
    return {
        "id": version.id,
        "version_number": version.version_number,
        "version_name": version.version_name,
        "created_at": version.created_at,
        "published_at": version.published_at,
    }


def compare_versions(
    db: Session,
    version1_id: int,
    version2_id: int,
    fmt: "DiffFormat | str" = DiffFormat.UNIFIED,
    *,
    page_id: Optional[int] = None,
) -> Dict[str, Any]:
    fmt = parse_format(fmt)
    v1 = get_version(db, version1_id, page_id=page_id)
    v2 = get_version(db, version2_id, page_id=page_id)
    if v1.page_id != v2.page_id:
        raise BadRequestError("Versions must belong to the same page")

    diff = compare(
        v1.snapshot_json,
        v2.snapshot_json,
        fmt,
        from_label=f"version {v1.version_number}",
        to_label=f"version {v2.version_number}",
    )
    return {"version1": _version_meta(v1), "version2": _version_meta(v2), "format": fmt.value, "diff": diff}


def compare_draft_with_version(
    db: Session,
    page_id: int,
    version_id: int,
    fmt: "DiffFormat | str" = DiffFormat.SIDE_BY_SIDE,
) -> Dict[str, Any]:
    fmt = parse_format(fmt)
    page = get_page_or_404(db, page_id)
    version = get_version(db, version_id)
    if version.page_id != page.id:
        raise BadRequestError("Version does not belong to this page")

    draft = build_draft_snapshot(db, page_id)
    diff = compare(
        version.snapshot_json,
        draft,
        fmt,
        from_label=f"version {version.version_number}",
        to_label="draft",
    )
    return {
        "draft": {"page_id": page.id, "keyword": page.keyword, "url": page.url, "updated_at": page.updated_at},
        "version": _version_meta(version),
        "format": fmt.value,
        "diff": diff,
    }
