# tests/conftest.py
from __future__ import annotations

import json
from typing import Any, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pagecraft.db.base import Base
from pagecraft.db.session import get_db
from pagecraft.models.content import (
    CmsPreference,
    DataRecord,
    DataTable,
    Field,
    GlobalValue,
    Language,
    Page,
    PageSection,
    Section,
    SectionFieldTranslation,
    SectionHierarchy,
    Style,
    StyleField,
)
import pagecraft.models.versioning  # noqa: F401

# SQLite en memoria compartida entre conexiones (StaticPool)
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

PROPERTY_LANG = 1
DE = 2
EN = 3


@pytest.fixture(scope="function")
def db() -> Session:
    """
    Esquema nuevo por prueba: create_all al entrar, drop_all al salir.
    Los servicios hacen commit, así que no basta con un rollback.
    """
    Base.metadata.create_all(engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _override_get_db(request):
    """
    Todos los endpoints usan la misma sesión de la prueba en curso
    (solo cuando la prueba pidió la fixture ``db``).
    """
    if "db" not in request.fixturenames:
        yield
        return
    db = request.getfixturevalue("db")
    from pagecraft.main import app  # import tardío para evitar ciclos

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from pagecraft.main import app

    return TestClient(app)


class CmsBuilder:
    """Small helper to lay out pages, sections and translations in the test DB."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._fields: dict[str, Field] = {}

    def _add(self, obj):
        self.db.add(obj)
        self.db.flush()
        return obj

    def languages(self) -> "CmsBuilder":
        self._add(Language(id=PROPERTY_LANG, locale="all", name="Properties"))
        self._add(Language(id=DE, locale="de-CH", name="Deutsch"))
        self._add(Language(id=EN, locale="en-GB", name="English"))
        self._add(CmsPreference(default_language_id=DE))
        return self

    def field(self, name: str, *, is_property: bool = False) -> Field:
        if name not in self._fields:
            self._fields[name] = self._add(Field(name=name, is_property=is_property))
        return self._fields[name]

    def style(self, name: str, defaults: Optional[dict[str, str]] = None) -> Style:
        style = self._add(Style(name=name))
        for field_name, value in (defaults or {}).items():
            self._add(StyleField(style_id=style.id, field_id=self.field(field_name).id, default_value=value))
        return style

    def page(self, keyword: str, url: Optional[str] = None) -> Page:
        return self._add(Page(keyword=keyword, url=url or f"/{keyword}"))

    def section(
        self,
        name: str,
        *,
        style: Optional[Style] = None,
        condition: Any = None,
        data_config: Any = None,
        css: Optional[str] = None,
        debug: bool = False,
    ) -> Section:
        if condition is not None and not isinstance(condition, str):
            condition = json.dumps(condition)
        if data_config is not None and not isinstance(data_config, str):
            data_config = json.dumps(data_config)
        return self._add(Section(
            name=name,
            style_id=style.id if style else None,
            condition=condition,
            data_config=data_config,
            css=css,
            debug=debug,
        ))

    def attach(self, page: Page, section: Section, position: int) -> None:
        self._add(PageSection(page_id=page.id, section_id=section.id, position=position))

    def child(self, parent: Section, child: Section, position: int) -> None:
        self._add(SectionHierarchy(parent_id=parent.id, child_id=child.id, position=position))

    def translate(self, section: Section, field_name: str, language_id: int, content: Optional[str], meta: Optional[str] = None) -> None:
        field = self.field(field_name, is_property=language_id == PROPERTY_LANG)
        self._add(SectionFieldTranslation(
            section_id=section.id, field_id=field.id, language_id=language_id, content=content, meta=meta,
        ))

    def global_value(self, language_id: int, name: str, value: str) -> None:
        self._add(GlobalValue(language_id=language_id, name=name, value=value))

    def data_table(self, name: str) -> DataTable:
        return self._add(DataTable(name=name, display_name=name))

    def record(
        self,
        table: DataTable,
        data: dict,
        *,
        user_id: Optional[int] = None,
        language_id: Optional[int] = None,
        deleted: bool = False,
    ) -> DataRecord:
        return self._add(DataRecord(table_id=table.id, data=data, user_id=user_id, language_id=language_id, deleted=deleted))


@pytest.fixture
def cms(db) -> CmsBuilder:
    return CmsBuilder(db).languages()
