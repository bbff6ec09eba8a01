# pagecraft/services/page_service.py
# Render en vivo de una página y snapshot del borrador (sin datos ni condiciones)
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from pagecraft.core.errors import NotFoundError
from pagecraft.core.settings import settings
from pagecraft.models.content import Page
from pagecraft.services.conditions import ConditionEvaluator, get_condition_evaluator
from pagecraft.services.data_retrieval import DataRetrievalStage, DataRetriever, TableDataRetriever
from pagecraft.services.orchestrator import SectionPipeline, collect_cache_scopes
from pagecraft.services.section_tree import build_section_tree, fetch_page_section_rows
from pagecraft.services.translations import (
    apply_live_translations,
    apply_snapshot_translations,
    get_default_language_id,
)
from pagecraft.services.variables import RequestContext, build_root_scope

logger = logging.getLogger(__name__)


def get_page_or_404(db: Session, page_id: int) -> Page:
    page = db.get(Page, page_id)
    if page is None:
        raise NotFoundError(f"Page with ID {page_id} not found")
    return page


def page_meta(page: Page) -> Dict[str, Any]:
    return {
        "id": page.id,
        "keyword": page.keyword,
        "url": page.url,
        "parent_page_id": page.parent_page_id,
        "is_headless": bool(page.is_headless),
        "nav_position": page.nav_position,
        "footer_position": page.footer_position,
    }


def determine_language_id(db: Session, language_id: Optional[int], context: RequestContext) -> int:
    """Explicit language, then the caller's language, then the CMS default."""
    if language_id is not None:
        return language_id
    if context.language_id is not None:
        return context.language_id
    return get_default_language_id(db)


def render_page(
    db: Session,
    page_id: int,
    language_id: Optional[int] = None,
    context: Optional[RequestContext] = None,
    *,
    retriever: Optional[DataRetriever] = None,
    evaluator: Optional[ConditionEvaluator] = None,
) -> Dict[str, Any]:
    context = context or RequestContext()
    page = get_page_or_404(db, page_id)
    language_id = determine_language_id(db, language_id, context)
    user_id = context.effective_user_id

    tree = build_section_tree(fetch_page_section_rows(db, page_id))
    apply_live_translations(db, tree, language_id)
    cache_scopes = collect_cache_scopes(tree, page_id=page.id, language_id=language_id, user_id=user_id)

    stage = DataRetrievalStage(
        retriever or TableDataRetriever(db),
        language_id=language_id,
        user_id=user_id,
        timezone=settings.CMS_TIMEZONE,
    )
    pipeline = SectionPipeline(
        stage=stage,
        evaluator=evaluator or get_condition_evaluator(settings.CONDITION_ENGINE),
        user_id=user_id,
    )
    root_scope = build_root_scope(db, context, language_id=language_id, page_keyword=page.keyword)
    sections = pipeline.process(tree, root_scope)

    logger.debug("Rendered page %s (language %s): %d root sections", page_id, language_id, len(sections))
    return {
        "page": {**page_meta(page), "language_id": language_id, "sections": sections},
        "cache_scopes": cache_scopes,
    }


def build_draft_snapshot(db: Session, page_id: int) -> Dict[str, Any]:
    """Current draft of the page in the stored version shape (every language, nothing resolved)."""
    page = get_page_or_404(db, page_id)
    tree = build_section_tree(fetch_page_section_rows(db, page_id))
    apply_snapshot_translations(db, tree)
    return {"page": {**page_meta(page), "sections": [n.to_snapshot() for n in tree]}}
