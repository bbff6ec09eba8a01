"""pages, sections, translations, data tables and page versions

Revision ID: 5b1e0c7d2a41
Revises:
Create Date: 2026-10-16 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5b1e0c7d2a41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        "languages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("locale", sa.String(length=16), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.UniqueConstraint("locale", name="uq_languages_locale"),
    )

    op.create_table(
        "cms_preferences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("default_language_id", sa.Integer(),
                  sa.ForeignKey("languages.id", ondelete="SET NULL", name="fk_cms_preferences_default_language_id_languages"),
                  nullable=True),
    )

    op.create_table(
        "styles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.UniqueConstraint("name", name="uq_styles_name"),
    )

    op.create_table(
        "fields",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("is_property", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("name", name="uq_fields_name"),
    )

    op.create_table(
        "style_fields",
        sa.Column("style_id", sa.Integer(), sa.ForeignKey("styles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("field_id", sa.Integer(), sa.ForeignKey("fields.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("default_value", sa.Text(), nullable=True),
    )

    # published_version_id: la FK se agrega al final (ciclo pages <-> page_versions)
    op.create_table(
        "pages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("keyword", sa.String(length=100), nullable=False),
        sa.Column("url", sa.String(length=255), nullable=True),
        sa.Column("parent_page_id", sa.Integer(), sa.ForeignKey("pages.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_headless", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("nav_position", sa.Integer(), nullable=True),
        sa.Column("footer_position", sa.Integer(), nullable=True),
        sa.Column("published_version_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("keyword", name="uq_pages_keyword"),
    )

    op.create_table(
        "sections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("style_id", sa.Integer(), sa.ForeignKey("styles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("condition", sa.Text(), nullable=True),
        sa.Column("data_config", sa.Text(), nullable=True),
        sa.Column("css", sa.Text(), nullable=True),
        sa.Column("css_mobile", sa.Text(), nullable=True),
        sa.Column("debug", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "pages_sections",
        sa.Column("page_id", sa.Integer(), sa.ForeignKey("pages.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.UniqueConstraint("page_id", "position", name="uq_pages_sections_position"),
    )

    op.create_table(
        "sections_hierarchy",
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("child_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.UniqueConstraint("parent_id", "position", name="uq_sections_hierarchy_position"),
        sa.UniqueConstraint("child_id", name="uq_sections_hierarchy_child"),
    )

    op.create_table(
        "sections_fields_translation",
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("sections.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("field_id", sa.Integer(), sa.ForeignKey("fields.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("language_id", sa.Integer(), sa.ForeignKey("languages.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("meta", sa.Text(), nullable=True),
    )
    op.create_index("ix_sft_section_language", "sections_fields_translation", ["section_id", "language_id"])

    op.create_table(
        "global_values",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("language_id", sa.Integer(), sa.ForeignKey("languages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.UniqueConstraint("language_id", "name", name="uq_global_values_language_name"),
    )
    op.create_index("ix_global_values_language_id", "global_values", ["language_id"])

    op.create_table(
        "data_tables",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.UniqueConstraint("name", name="uq_data_tables_name"),
    )

    op.create_table(
        "data_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("table_id", sa.Integer(), sa.ForeignKey("data_tables.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("language_id", sa.Integer(), sa.ForeignKey("languages.id", ondelete="SET NULL"), nullable=True),
        sa.Column("data", JSONType, nullable=False),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("entry_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_data_records_table_id", "data_records", ["table_id"])
    op.create_index("ix_data_records_user_id", "data_records", ["user_id"])

    op.create_table(
        "page_versions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("page_id", sa.Integer(), sa.ForeignKey("pages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("version_name", sa.String(length=255), nullable=True),
        sa.Column("snapshot_json", JSONType, nullable=False),
        sa.Column("metadata", JSONType, nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("page_id", "version_number", name="uq_page_versions_page_number"),
    )
    op.create_index("ix_page_versions_page_id", "page_versions", ["page_id"])
    op.create_index("ix_page_versions_page_created", "page_versions", ["page_id", "created_at"])

    with op.batch_alter_table("pages") as batch:
        batch.create_foreign_key(
            "fk_pages_published_version_id_page_versions",
            "page_versions",
            ["published_version_id"],
            ["id"],
            ondelete="SET NULL",
        )


def downgrade():
    with op.batch_alter_table("pages") as batch:
        batch.drop_constraint("fk_pages_published_version_id_page_versions", type_="foreignkey")

    op.drop_index("ix_page_versions_page_created", table_name="page_versions")
    op.drop_index("ix_page_versions_page_id", table_name="page_versions")
    op.drop_table("page_versions")
    op.drop_index("ix_data_records_user_id", table_name="data_records")
    op.drop_index("ix_data_records_table_id", table_name="data_records")
    op.drop_table("data_records")
    op.drop_table("data_tables")
    op.drop_index("ix_global_values_language_id", table_name="global_values")
    op.drop_table("global_values")
    op.drop_index("ix_sft_section_language", table_name="sections_fields_translation")
    op.drop_table("sections_fields_translation")
    op.drop_table("sections_hierarchy")
    op.drop_table("pages_sections")
    op.drop_table("sections")
    op.drop_table("pages")
    op.drop_table("style_fields")
    op.drop_table("fields")
    op.drop_table("styles")
    op.drop_table("cms_preferences")
    op.drop_table("languages")
