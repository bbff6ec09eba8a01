# pagecraft/models/versioning.py
# Snapshots inmutables de la estructura de una página
from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from pagecraft.db.base import Base, JSONType


class PageVersion(Base):
    __tablename__ = "page_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    page_id: Mapped[int] = mapped_column(ForeignKey("pages.id", ondelete="CASCADE"), index=True)

    version_number: Mapped[int] = mapped_column(Integer)          # 1..N por página
    version_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    snapshot_json: Mapped[dict] = mapped_column(JSONType)             # snapshot completo (todos los idiomas)
    # "metadata" está reservado por DeclarativeBase
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("page_id", "version_number", name="uq_page_versions_page_number"),
        Index("ix_page_versions_page_created", "page_id", "created_at"),
    )
