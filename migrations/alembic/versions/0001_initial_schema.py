"""Initial schema - profiles, notebooks, sources, notes, chat, documents, storage, attempts

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Every row-owning table cascades from profiles, and every notebook child
cascades from notebooks, so deleting a profile removes everything it owns.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # ==========================================================================
    # profiles table (id = auth user id)
    # ==========================================================================
    op.create_table(
        "profiles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("email", sa.Text(), server_default="", nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), server_default="user", nullable=False),
        sa.Column("security_question", sa.Text(), nullable=True),
        sa.Column("security_answer_hash", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("role IN ('admin', 'user')", name="ck_profiles_role"),
    )
    op.create_index("idx_profiles_role", "profiles", ["role"])
    op.create_index("idx_profiles_email", "profiles", ["email"])

    # ==========================================================================
    # notebooks table
    # ==========================================================================
    op.create_table(
        "notebooks",
        sa.Column(
            "id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.Text(), server_default="gray", nullable=True),
        sa.Column("generation_status", sa.Text(), server_default="completed", nullable=True),
        sa.Column("audio_overview_url", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_notebooks_user_id", "notebooks", ["user_id"])

    # ==========================================================================
    # sources table
    # ==========================================================================
    source_type = sa.Enum("pdf", "text", "website", "youtube", "audio", name="source_type")
    op.create_table(
        "sources",
        sa.Column(
            "id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("notebook_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("type", source_type, nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("file_path", sa.Text(), nullable=True),
        sa.Column("processing_status", sa.Text(), server_default="pending", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["notebook_id"], ["notebooks.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_sources_notebook_id", "sources", ["notebook_id"])

    # ==========================================================================
    # notes table (user-specific)
    # ==========================================================================
    op.create_table(
        "notes",
        sa.Column(
            "id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("notebook_id", sa.UUID(), nullable=True),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("source_type", sa.Text(), server_default="user", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["notebook_id"], ["notebooks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_notes_notebook_id", "notes", ["notebook_id"])
    op.create_index("idx_notes_user_id", "notes", ["user_id"])

    # ==========================================================================
    # chat_messages table (append-only; session_id is the notebook)
    # ==========================================================================
    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("session_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("message", postgresql.JSONB(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["notebooks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_chat_messages_session_id", "chat_messages", ["session_id"])
    op.create_index(
        "idx_chat_messages_session_user", "chat_messages", ["session_id", "user_id"]
    )

    # ==========================================================================
    # documents table (embedded chunks; metadata->>'notebook_id' links to notebook)
    # ==========================================================================
    op.create_table(
        "documents",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    # pgvector column is not mapped by the ORM
    op.execute("ALTER TABLE documents ADD COLUMN embedding vector(1536)")
    op.execute(
        "CREATE INDEX idx_documents_notebook_id ON documents ((metadata->>'notebook_id'))"
    )

    # ==========================================================================
    # storage_objects table (source and audio objects are "<notebook_id>/<file>")
    # ==========================================================================
    op.create_table(
        "storage_objects",
        sa.Column(
            "id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("bucket_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_storage_objects_bucket_name", "storage_objects", ["bucket_id", "name"], unique=True
    )

    # ==========================================================================
    # security_question_attempts table (append-only)
    # ==========================================================================
    op.create_table(
        "security_question_attempts",
        sa.Column(
            "id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("ip_address", postgresql.INET(), nullable=True),
        sa.Column(
            "attempted_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("success", sa.Boolean(), server_default="false", nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_security_attempts_user_time",
        "security_question_attempts",
        ["user_id", "attempted_at"],
    )
    op.create_index(
        "idx_security_attempts_ip_time",
        "security_question_attempts",
        ["ip_address", "attempted_at"],
    )


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_table("security_question_attempts")
    op.drop_table("storage_objects")
    op.drop_table("documents")
    op.drop_table("chat_messages")
    op.drop_table("notes")
    op.drop_table("sources")
    op.drop_table("notebooks")
    op.drop_table("profiles")
    sa.Enum(name="source_type").drop(op.get_bind(), checkfirst=True)

    # vector and pgcrypto extensions are left installed
