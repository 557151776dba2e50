"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates all tables:
- entitlement
- document, analysis, document_version
- chat_turn, audit_log
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # entitlement table
    op.create_table(
        "entitlement",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tier", sa.Text(), server_default=sa.text("'free'"), nullable=False),
        sa.Column("credits", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("payment_customer_id", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("payment_customer_id", name="uq_entitlement_payment_customer"),
        sa.CheckConstraint("credits >= 0", name="ck_entitlement_credits_non_negative"),
    )

    # document table
    op.create_table(
        "document",
        sa.Column("document_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("media_type", sa.Text(), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'success', 'error')",
            name="ck_document_status",
        ),
    )
    op.create_index("idx_document_user_created", "document", ["user_id", "created_at"])

    # analysis table
    op.create_table(
        "analysis",
        sa.Column("analysis_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("document_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("result", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document.document_id"]),
        sa.UniqueConstraint("document_id", name="uq_analysis_document"),
    )

    # document_version table
    op.create_table(
        "document_version",
        sa.Column("version_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("document_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("content_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document.document_id"]),
        sa.UniqueConstraint("document_id", "version_number", name="uq_version_document_number"),
        sa.CheckConstraint("version_number >= 1", name="ck_version_number_positive"),
    )

    # chat_turn table
    op.create_table(
        "chat_turn",
        sa.Column("turn_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("document_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_message", sa.Text(), nullable=False),
        sa.Column("ai_response", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document.document_id"]),
    )
    op.create_index("idx_chat_turn_document_created", "chat_turn", ["document_id", "created_at"])
    op.create_index("idx_chat_turn_user_created", "chat_turn", ["user_id", "created_at"])

    # audit_log table
    op.create_table(
        "audit_log",
        sa.Column("audit_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("details", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("idx_audit_user_created", "audit_log", ["user_id", "created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_audit_user_created", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("idx_chat_turn_user_created", table_name="chat_turn")
    op.drop_index("idx_chat_turn_document_created", table_name="chat_turn")
    op.drop_table("chat_turn")
    op.drop_table("document_version")
    op.drop_table("analysis")
    op.drop_index("idx_document_user_created", table_name="document")
    op.drop_table("document")
    op.drop_table("entitlement")
