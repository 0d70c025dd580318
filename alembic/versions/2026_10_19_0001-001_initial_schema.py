"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

All 3 tables as defined in app/models/database_models.py:
prds, prd_comments, app_settings.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── prds ──────────────────────────────────────────────────────────────
    op.create_table(
        "prds",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False, server_default="New PRD"),
        sa.Column("product_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("short_description", sa.Text, nullable=False, server_default=""),
        sa.Column("sections", sa.JSON, nullable=False),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("public_settings", sa.JSON, nullable=False),
        sa.Column("upvotes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft", index=True),
        sa.Column("approval_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("upvotes >= 0", name="ck_prds_upvotes_non_negative"),
    )

    # ── prd_comments ──────────────────────────────────────────────────────
    op.create_table(
        "prd_comments",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("prd_id", sa.String(64), sa.ForeignKey("prds.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("author", sa.String(255), nullable=False),
        sa.Column("avatar", sa.String(512), nullable=False, server_default=""),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )

    # ── app_settings ──────────────────────────────────────────────────────
    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(64), primary_key=True),
        sa.Column("data", sa.JSON, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("app_settings")
    op.drop_table("prd_comments")
    op.drop_table("prds")
