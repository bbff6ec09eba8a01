# pagecraft/services/translations.py
# Resolución de traducciones por idioma (con fallback) y de campos de propiedades
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pagecraft.core.settings import settings
from pagecraft.models.content import CmsPreference, Field, SectionFieldTranslation, StyleField
from pagecraft.services.section_tree import SectionNode, iter_nodes

FieldMap = Dict[str, dict]


def get_default_language_id(db: Session) -> int:
    """Default language from ``cms_preferences``; settings fallback otherwise."""
    lang_id = db.scalar(
        select(CmsPreference.default_language_id)
        .where(CmsPreference.default_language_id.is_not(None))
        .order_by(CmsPreference.id.asc())
        .limit(1)
    )
    return int(lang_id) if lang_id is not None else settings.DEFAULT_LANGUAGE_ID


def _entry(content: Optional[str], meta: Optional[str]) -> dict:
    return {"content": content, "meta": meta}


def fetch_translations(db: Session, section_ids: List[int], language_id: int) -> Dict[int, FieldMap]:
    if not section_ids:
        return {}
    rows = db.execute(
        select(
            SectionFieldTranslation.section_id,
            Field.name,
            SectionFieldTranslation.content,
            SectionFieldTranslation.meta,
        )
        .join(Field, Field.id == SectionFieldTranslation.field_id)
        .where(
            SectionFieldTranslation.section_id.in_(section_ids),
            SectionFieldTranslation.language_id == language_id,
        )
    ).all()
    out: Dict[int, FieldMap] = {}
    for section_id, field_name, content, meta in rows:
        out.setdefault(section_id, {})[field_name] = _entry(content, meta)
    return out


def fetch_all_language_translations(db: Session, section_ids: List[int]) -> Dict[int, Dict[str, FieldMap]]:
    """``{section_id: {language_id: {field: {content, meta}}}}`` for every real language."""
    if not section_ids:
        return {}
    rows = db.execute(
        select(
            SectionFieldTranslation.section_id,
            SectionFieldTranslation.language_id,
            Field.name,
            SectionFieldTranslation.content,
            SectionFieldTranslation.meta,
        )
        .join(Field, Field.id == SectionFieldTranslation.field_id)
        .where(
            SectionFieldTranslation.section_id.in_(section_ids),
            SectionFieldTranslation.language_id != settings.PROPERTY_LANGUAGE_ID,
        )
    ).all()
    out: Dict[int, Dict[str, FieldMap]] = {}
    for section_id, language_id, field_name, content, meta in rows:
        # claves str: el snapshot pasa por JSON y debe hashear igual antes y después
        out.setdefault(section_id, {}).setdefault(str(language_id), {})[field_name] = _entry(content, meta)
    return out


def fetch_style_defaults(db: Session, style_ids: Iterable[int]) -> Dict[int, Dict[str, str]]:
    style_ids = sorted({s for s in style_ids if s is not None})
    if not style_ids:
        return {}
    rows = db.execute(
        select(StyleField.style_id, Field.name, StyleField.default_value)
        .join(Field, Field.id == StyleField.field_id)
        .where(StyleField.style_id.in_(style_ids))
    ).all()
    out: Dict[int, Dict[str, str]] = {}
    for style_id, field_name, default_value in rows:
        if default_value not in (None, ""):
            out.setdefault(style_id, {})[field_name] = default_value
    return out


def apply_live_translations(db: Session, tree: List[SectionNode], language_id: int) -> None:
    """
    Fill ``node.fields`` for one language.

    Order: property fields, default-language content, requested-language
    content, then style defaults for fields still missing or empty. A field
    absent everywhere stays absent.
    """
    nodes = list(iter_nodes(tree))
    section_ids = [n.id for n in nodes]
    default_language_id = get_default_language_id(db)

    properties = fetch_translations(db, section_ids, settings.PROPERTY_LANGUAGE_ID)
    requested = fetch_translations(db, section_ids, language_id)
    fallback = (
        fetch_translations(db, section_ids, default_language_id)
        if default_language_id != language_id
        else {}
    )
    style_defaults = fetch_style_defaults(db, (n.style_id for n in nodes))

    for node in nodes:
        node.properties = dict(properties.get(node.id, {}))
        merged: FieldMap = {}
        merged.update(node.properties)
        merged.update(fallback.get(node.id, {}))
        merged.update(requested.get(node.id, {}))
        for field_name, default_value in style_defaults.get(node.style_id, {}).items():
            current = merged.get(field_name)
            if current is None or current.get("content") in (None, ""):
                merged[field_name] = _entry(default_value, current.get("meta") if current else None)
        node.fields = merged


def apply_snapshot_translations(db: Session, tree: List[SectionNode]) -> None:
    """Fill ``properties`` and the all-language ``translations`` map used by snapshots."""
    nodes = list(iter_nodes(tree))
    section_ids = [n.id for n in nodes]
    properties = fetch_translations(db, section_ids, settings.PROPERTY_LANGUAGE_ID)
    all_languages = fetch_all_language_translations(db, section_ids)
    for node in nodes:
        node.properties = properties.get(node.id, {})
        node.translations = all_languages.get(node.id, {})
