"""SQLAlchemy ORM models for Insights.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are the portable SQLAlchemy generics (Uuid, JSON,
DateTime(timezone=True)); they map to native uuid/jsonb/timestamptz on
PostgreSQL and still create cleanly on SQLite for the test suite.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import INET, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# jsonb on PostgreSQL, plain JSON elsewhere
JsonType = JSON().with_variant(JSONB(), "postgresql")
# bigserial on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPk = BigInteger().with_variant(Integer(), "sqlite")
IpAddress = String(45).with_variant(INET(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class ProfileRole(str, PyEnum):
    """Stored profile roles. Anonymous is never persisted."""

    admin = "admin"
    user = "user"


class SourceType(str, PyEnum):
    """Kinds of notebook sources."""

    pdf = "pdf"
    text = "text"
    website = "website"
    youtube = "youtube"
    audio = "audio"


class StorageBucket(str, PyEnum):
    """Storage buckets and their access profile.

    sources: uploaded source files, managed by the notebook owner
    audio: generated audio overviews, written by the service only
    public-images: public assets

    Objects in sources and audio are named "<notebook_id>/<file>".
    """

    sources = "sources"
    audio = "audio"
    public_images = "public-images"


def _timestamp(**kwargs) -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        **kwargs,
    )


# =============================================================================
# Models
# =============================================================================


class Profile(Base):
    """User profile, one per authenticated identity.

    The profile ID matches the Supabase auth user ID (sub claim).
    Created on first sign-in with role 'user'.
    """

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    email: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    full_name: Mapped[str | None] = mapped_column(Text)
    avatar_url: Mapped[str | None] = mapped_column(Text)
    role: Mapped[str] = mapped_column(
        Text, nullable=False, default=ProfileRole.user.value, server_default=ProfileRole.user.value
    )
    security_question: Mapped[str | None] = mapped_column(Text)
    security_answer_hash: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp(onupdate=func.now())

    # Relationships (profile deletion cascades to everything the user owns)
    notebooks: Mapped[list["Notebook"]] = relationship(
        "Notebook", back_populates="owner", cascade="all, delete-orphan"
    )
    notes: Mapped[list["Note"]] = relationship(
        "Note", back_populates="owner", cascade="all, delete-orphan"
    )
    chat_messages: Mapped[list["ChatMessage"]] = relationship(
        "ChatMessage", back_populates="author", cascade="all, delete-orphan"
    )
    security_attempts: Mapped[list["SecurityAttempt"]] = relationship(
        "SecurityAttempt", back_populates="profile", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'user')", name="ck_profiles_role"),
        Index("idx_profiles_role", "role"),
        Index("idx_profiles_email", "email"),
    )


class Notebook(Base):
    """Notebook: the parent of sources, notes, chat history and audio files."""

    __tablename__ = "notebooks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    color: Mapped[str | None] = mapped_column(Text, server_default="gray")
    generation_status: Mapped[str | None] = mapped_column(Text, server_default="completed")
    audio_overview_url: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp(onupdate=func.now())

    owner: Mapped["Profile"] = relationship("Profile", back_populates="notebooks")
    sources: Mapped[list["Source"]] = relationship(
        "Source", back_populates="notebook", cascade="all, delete-orphan"
    )
    notes: Mapped[list["Note"]] = relationship(
        "Note", back_populates="notebook", cascade="all, delete-orphan"
    )
    chat_messages: Mapped[list["ChatMessage"]] = relationship(
        "ChatMessage", back_populates="notebook", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_notebooks_user_id", "user_id"),)


class Source(Base):
    """A source (pdf, text, website, ...) attached to a notebook."""

    __tablename__ = "sources"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    notebook_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("notebooks.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[SourceType] = mapped_column(
        Enum(SourceType, name="source_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    url: Mapped[str | None] = mapped_column(Text)
    file_path: Mapped[str | None] = mapped_column(Text)
    processing_status: Mapped[str | None] = mapped_column(Text, server_default="pending")
    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp(onupdate=func.now())

    notebook: Mapped["Notebook"] = relationship("Notebook", back_populates="sources")

    __table_args__ = (Index("idx_sources_notebook_id", "notebook_id"),)


class Note(Base):
    """A user-specific note inside a notebook."""

    __tablename__ = "notes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    notebook_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("notebooks.id", ondelete="CASCADE")
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    source_type: Mapped[str | None] = mapped_column(Text, server_default="user")
    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp(onupdate=func.now())

    owner: Mapped["Profile"] = relationship("Profile", back_populates="notes")
    notebook: Mapped["Notebook"] = relationship("Notebook", back_populates="notes")

    __table_args__ = (
        Index("idx_notes_notebook_id", "notebook_id"),
        Index("idx_notes_user_id", "user_id"),
    )


class ChatMessage(Base):
    """One chat turn. session_id is the notebook the conversation belongs to.

    Append-only: never updated by non-service principals.
    """

    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("notebooks.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE")
    )
    message: Mapped[dict] = mapped_column(JsonType, nullable=False)
    created_at: Mapped[datetime] = _timestamp()

    notebook: Mapped["Notebook"] = relationship("Notebook", back_populates="chat_messages")
    author: Mapped["Profile"] = relationship("Profile", back_populates="chat_messages")

    __table_args__ = (
        Index("idx_chat_messages_session_id", "session_id"),
        Index("idx_chat_messages_session_user", "session_id", "user_id"),
    )


class Document(Base):
    """Embedded document chunk. metadata["notebook_id"] links it to a notebook.

    The embedding column exists only in the PostgreSQL schema (pgvector) and
    is not mapped here.
    """

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(BigIntPk, primary_key=True, autoincrement=True)
    content: Mapped[str | None] = mapped_column(Text)
    # "metadata" is reserved on declarative classes
    doc_metadata: Mapped[dict | None] = mapped_column("metadata", JsonType)


class StorageObject(Base):
    """A stored file. For the audio bucket the first path segment is the notebook id."""

    __tablename__ = "storage_objects"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    bucket_id: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = _timestamp()

    __table_args__ = (Index("idx_storage_objects_bucket_name", "bucket_id", "name", unique=True),)


class SecurityAttempt(Base):
    """Append-only record of a security-question answer attempt."""

    __tablename__ = "security_question_attempts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    ip_address: Mapped[str | None] = mapped_column(IpAddress)
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    profile: Mapped["Profile"] = relationship("Profile", back_populates="security_attempts")

    __table_args__ = (
        Index("idx_security_attempts_user_time", "user_id", "attempted_at"),
        Index("idx_security_attempts_ip_time", "ip_address", "attempted_at"),
    )
