# Modelos de contenido: Page, Section, jerarquía, traducciones y valores globales
from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pagecraft.db.base import Base, JSONType


class Language(Base):
    __tablename__ = "languages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    locale: Mapped[str] = mapped_column(String(16), unique=True)
    name: Mapped[str] = mapped_column(String(64))


class CmsPreference(Base):
    __tablename__ = "cms_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    default_language_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("languages.id", ondelete="SET NULL"), nullable=True
    )


class Style(Base):
    __tablename__ = "styles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)

    fields: Mapped[list["StyleField"]] = relationship(
        "StyleField", back_populates="style", cascade="all, delete-orphan"
    )


class Field(Base):
    __tablename__ = "fields"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    # True: campo estructural (se resuelve con el idioma de propiedades, sin fallback)
    is_property: Mapped[bool] = mapped_column(Boolean, default=False)


class StyleField(Base):
    """Default value a style provides for a field that has no translation."""

    __tablename__ = "style_fields"

    style_id: Mapped[int] = mapped_column(ForeignKey("styles.id", ondelete="CASCADE"), primary_key=True)
    field_id: Mapped[int] = mapped_column(ForeignKey("fields.id", ondelete="CASCADE"), primary_key=True)
    default_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    style: Mapped["Style"] = relationship("Style", back_populates="fields")
    field: Mapped["Field"] = relationship("Field")


class Page(Base):
    __tablename__ = "pages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    keyword: Mapped[str] = mapped_column(String(100), unique=True)
    url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    parent_page_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("pages.id", ondelete="SET NULL"), nullable=True
    )
    is_headless: Mapped[bool] = mapped_column(Boolean, default=False)
    nav_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    footer_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Versión publicada (None => se sirve el borrador)
    published_version_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("page_versions.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Section(Base):
    __tablename__ = "sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    style_id: Mapped[Optional[int]] = mapped_column(ForeignKey("styles.id", ondelete="SET NULL"), nullable=True)

    # Texto JSON (puede venir doblemente codificado desde el editor)
    condition: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Lista JSON de declaraciones de fuentes de datos
    data_config: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    css: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    css_mobile: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    debug: Mapped[bool] = mapped_column(Boolean, default=False)

    style: Mapped[Optional["Style"]] = relationship("Style")


class PageSection(Base):
    __tablename__ = "pages_sections"

    page_id: Mapped[int] = mapped_column(ForeignKey("pages.id", ondelete="CASCADE"), primary_key=True)
    section_id: Mapped[int] = mapped_column(ForeignKey("sections.id", ondelete="CASCADE"), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("page_id", "position", name="uq_pages_sections_position"),
    )


class SectionHierarchy(Base):
    __tablename__ = "sections_hierarchy"

    parent_id: Mapped[int] = mapped_column(ForeignKey("sections.id", ondelete="CASCADE"), primary_key=True)
    child_id: Mapped[int] = mapped_column(ForeignKey("sections.id", ondelete="CASCADE"), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("parent_id", "position", name="uq_sections_hierarchy_position"),
        # una sección cuelga de a lo sumo un padre
        UniqueConstraint("child_id", name="uq_sections_hierarchy_child"),
    )


class SectionFieldTranslation(Base):
    __tablename__ = "sections_fields_translation"

    section_id: Mapped[int] = mapped_column(ForeignKey("sections.id", ondelete="CASCADE"), primary_key=True)
    field_id: Mapped[int] = mapped_column(ForeignKey("fields.id", ondelete="CASCADE"), primary_key=True)
    language_id: Mapped[int] = mapped_column(ForeignKey("languages.id", ondelete="CASCADE"), primary_key=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meta: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    field: Mapped["Field"] = relationship("Field")

    __table_args__ = (
        Index("ix_sft_section_language", "section_id", "language_id"),
    )


class GlobalValue(Base):
    """Admin-managed key/value pairs exposed under the ``globals`` namespace."""

    __tablename__ = "global_values"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    language_id: Mapped[int] = mapped_column(ForeignKey("languages.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(100))
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("language_id", "name", name="uq_global_values_language_name"),
    )


class DataTable(Base):
    """User-submitted data collections that sections read through ``data_config``."""

    __tablename__ = "data_tables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    records: Mapped[list["DataRecord"]] = relationship(
        "DataRecord", back_populates="table", cascade="all, delete-orphan"
    )


class DataRecord(Base):
    __tablename__ = "data_records"

    # id == record_id expuesto a las secciones
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    table_id: Mapped[int] = mapped_column(ForeignKey("data_tables.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    language_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("languages.id", ondelete="SET NULL"), nullable=True
    )
    data: Mapped[dict] = mapped_column(JSONType, default=dict)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    entry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    table: Mapped["DataTable"] = relationship("DataTable", back_populates="records")
