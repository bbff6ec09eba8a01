# pagecraft/services/section_tree.py
# Filas planas (pages_sections + sections_hierarchy) -> árbol de SectionNode
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pagecraft.models.content import PageSection, Section, SectionHierarchy, Style

logger = logging.getLogger(__name__)


@dataclass
class SectionRow:
    """One section as read from the database, before nesting."""

    id: int
    section_name: str
    position: int
    parent_id: Optional[int] = None
    style_id: Optional[int] = None
    style_name: Optional[str] = None
    condition: Optional[str] = None
    data_config: Optional[str] = None
    css: Optional[str] = None
    css_mobile: Optional[str] = None
    debug: bool = False


@dataclass
class SectionNode:
    id: int
    section_name: str
    position: int
    style_id: Optional[int] = None
    style_name: Optional[str] = None
    condition: Optional[str] = None
    # lista decodificada; texto crudo si no era JSON válido
    data_config: Any = None
    css: Optional[str] = None
    css_mobile: Optional[str] = None
    debug: bool = False

    # field -> {"content", "meta"} (idioma de propiedades, sin fallback)
    properties: dict = field(default_factory=dict)
    # field -> {"content", "meta"} resuelto para el idioma pedido (ruta en vivo)
    fields: dict = field(default_factory=dict)
    # language_id (str) -> field -> {"content", "meta"} (snapshots)
    translations: dict = field(default_factory=dict)

    children: List["SectionNode"] = field(default_factory=list)

    def to_snapshot(self) -> dict:
        """Serialise into the pre-resolution shape stored in page versions."""
        return {
            "id": self.id,
            "section_name": self.section_name,
            "style_name": self.style_name,
            "position": self.position,
            "condition": self.condition,
            "data_config": self.data_config,
            "css": self.css,
            "css_mobile": self.css_mobile,
            "debug": self.debug,
            "properties": self.properties,
            "translations": self.translations,
            "children": [c.to_snapshot() for c in self.children],
        }


def decode_data_config(raw: Optional[str]) -> Any:
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        # se conserva el texto; la etapa de datos lo descarta completo
        return raw


def build_section_tree(rows: Iterable[SectionRow]) -> List[SectionNode]:
    """
    Nest flat rows by ``parent_id``, ordering every sibling list by position.

    A row whose parent is not among the rows is promoted to the root list.
    """
    rows = list(rows)
    index: dict[int, SectionNode] = {}
    for r in rows:
        index[r.id] = SectionNode(
            id=r.id,
            section_name=r.section_name,
            position=r.position,
            style_id=r.style_id,
            style_name=r.style_name,
            condition=r.condition,
            data_config=decode_data_config(r.data_config),
            css=r.css,
            css_mobile=r.css_mobile,
            debug=bool(r.debug),
        )

    roots: List[SectionNode] = []
    for r in rows:
        node = index[r.id]
        parent = index.get(r.parent_id) if r.parent_id is not None else None
        if parent is None or parent is node:
            if r.parent_id is not None:
                logger.warning("Section %s references missing parent %s; promoted to root", r.id, r.parent_id)
            roots.append(node)
        else:
            parent.children.append(node)

    def _sort(nodes: List[SectionNode]) -> None:
        nodes.sort(key=lambda n: n.position)
        for n in nodes:
            _sort(n.children)

    _sort(roots)
    return roots


def iter_nodes(tree: Iterable[SectionNode]) -> Iterator[SectionNode]:
    for node in tree:
        yield node
        yield from iter_nodes(node.children)


def extract_section_ids(tree: Iterable[SectionNode]) -> List[int]:
    return [n.id for n in iter_nodes(tree)]


def _row_from(section: Section, style_name: Optional[str], position: int, parent_id: Optional[int]) -> SectionRow:
    return SectionRow(
        id=section.id,
        section_name=section.name,
        position=position,
        parent_id=parent_id,
        style_id=section.style_id,
        style_name=style_name,
        condition=section.condition,
        data_config=section.data_config,
        css=section.css,
        css_mobile=section.css_mobile,
        debug=bool(section.debug),
    )


def fetch_page_section_rows(db: Session, page_id: int) -> List[SectionRow]:
    """
    Load the page's root sections and all their descendants as flat rows.

    Descendants are followed level by level through ``sections_hierarchy``;
    a section already visited is not expanded again, so cycles terminate.
    """
    roots = db.execute(
        select(Section, Style.name, PageSection.position)
        .join(PageSection, PageSection.section_id == Section.id)
        .outerjoin(Style, Style.id == Section.style_id)
        .where(PageSection.page_id == page_id)
        .order_by(PageSection.position.asc())
    ).all()

    rows: List[SectionRow] = []
    seen: set[int] = set()
    frontier: List[int] = []
    for section, style_name, position in roots:
        if section.id in seen:
            continue
        seen.add(section.id)
        rows.append(_row_from(section, style_name, position, None))
        frontier.append(section.id)

    while frontier:
        children = db.execute(
            select(Section, Style.name, SectionHierarchy.position, SectionHierarchy.parent_id)
            .join(SectionHierarchy, SectionHierarchy.child_id == Section.id)
            .outerjoin(Style, Style.id == Section.style_id)
            .where(SectionHierarchy.parent_id.in_(frontier))
            .order_by(SectionHierarchy.parent_id.asc(), SectionHierarchy.position.asc())
        ).all()
        frontier = []
        for section, style_name, position, parent_id in children:
            if section.id in seen:
                logger.warning("Section %s reachable twice under page %s; skipped", section.id, page_id)
                continue
            seen.add(section.id)
            rows.append(_row_from(section, style_name, position, parent_id))
            frontier.append(section.id)

    return rows
