"""SQLAlchemy-backed subject registry.

Reads go through the caller's session, so rows written earlier in the same
request are visible to later policy checks. Every lookup is a primary-key
point query; nothing is cached between calls.

On PostgreSQL each lookup runs under a transaction-local statement_timeout;
a cancelled statement (SQLSTATE 57014) or an exhausted connection pool
surfaces as LookupTimeout.
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from insights.auth.principal import Role
from insights.db.models import (
    ChatMessage,
    Document,
    Note,
    Notebook,
    Profile,
    SecurityAttempt,
    Source,
    StorageBucket,
    StorageObject,
)
from insights.errors import LookupTimeout, NotFoundError
from insights.logging import get_logger
from insights.policy.model import EntityType, as_uuid, entity_key
from insights.registry.base import EntityId, notebook_id_from_path

logger = get_logger(__name__)

QUERY_CANCELED_SQLSTATE = "57014"

# Storage entity types and the bucket their objects live in
_BUCKET_BY_ENTITY = {
    EntityType.source_file.value: StorageBucket.sources,
    EntityType.audio_file.value: StorageBucket.audio,
}


def _int_id(value: EntityId) -> int:
    if isinstance(value, bool):
        raise NotFoundError()
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise NotFoundError() from e


def _uuid_id(value: EntityId) -> UUID:
    parsed = as_uuid(value)
    if parsed is None:
        raise NotFoundError()
    return parsed


class SqlSubjectRegistry:
    """SubjectRegistry over the application's relational schema."""

    def __init__(self, db: Session):
        self.db = db

    # -- timeout handling ---------------------------------------------------

    @contextmanager
    def _deadline(self, timeout: float | None) -> Generator[None, None, None]:
        if timeout is not None and timeout <= 0:
            raise LookupTimeout()

        is_postgres = self.db.get_bind().dialect.name == "postgresql"
        previous = None
        if timeout is not None and is_postgres:
            previous = self.db.execute(
                text("SELECT current_setting('statement_timeout')")
            ).scalar_one()
            self._set_statement_timeout(f"{max(1, int(timeout * 1000))}ms")

        restore = previous is not None
        try:
            yield
        except OperationalError as e:
            # The failed statement aborted the transaction; rollback resets the setting
            restore = False
            sqlstate = getattr(e.orig, "sqlstate", None)
            if sqlstate == QUERY_CANCELED_SQLSTATE:
                logger.warning("registry.lookup_timeout", timeout=timeout)
                raise LookupTimeout() from e
            raise
        except PoolTimeoutError as e:
            restore = False
            logger.warning("registry.pool_timeout", timeout=timeout)
            raise LookupTimeout() from e
        finally:
            if restore:
                self._set_statement_timeout(previous)

    def _set_statement_timeout(self, value: str) -> None:
        # is_local=true scopes the setting to the current transaction
        self.db.execute(
            text("SELECT set_config('statement_timeout', :value, true)"),
            {"value": value},
        )

    # -- row access ---------------------------------------------------------

    def _one(self, stmt: Any, what: str) -> Any:
        row = self.db.execute(stmt).one_or_none()
        if row is None:
            raise NotFoundError(message=f"{what} not found")
        return row

    def _notebook_owner(self, notebook_id: UUID | None) -> UUID:
        if notebook_id is None:
            raise NotFoundError(message="Notebook not found")
        row = self._one(select(Notebook.user_id).where(Notebook.id == notebook_id), "notebook")
        return row.user_id

    def _parent_notebook(self, key: str, entity_id: EntityId) -> UUID | None:
        """Parent notebook id of a child row; NotFoundError if the row is absent."""
        if key == EntityType.source.value:
            row = self._one(
                select(Source.notebook_id).where(Source.id == _uuid_id(entity_id)), key
            )
            return row.notebook_id
        if key == EntityType.note.value:
            row = self._one(select(Note.notebook_id).where(Note.id == _uuid_id(entity_id)), key)
            return row.notebook_id
        if key == EntityType.chat_message.value:
            row = self._one(
                select(ChatMessage.session_id).where(ChatMessage.id == _int_id(entity_id)), key
            )
            return row.session_id
        if key == EntityType.document.value:
            row = self._one(
                select(Document.doc_metadata).where(Document.id == _int_id(entity_id)), key
            )
            metadata = row.doc_metadata or {}
            raw = metadata.get("notebook_id") if isinstance(metadata, dict) else None
            return as_uuid(raw) if raw is not None else None
        if key in _BUCKET_BY_ENTITY:
            row = self._one(
                select(StorageObject.name).where(
                    StorageObject.id == _uuid_id(entity_id),
                    StorageObject.bucket_id == _BUCKET_BY_ENTITY[key].value,
                ),
                key,
            )
            return notebook_id_from_path(row.name)
        raise NotFoundError(message=f"{key} has no parent notebook")

    def _owner(self, key: str, entity_id: EntityId) -> UUID:
        if key == EntityType.notebook.value:
            return self._notebook_owner(_uuid_id(entity_id))
        if key == EntityType.profile.value:
            row = self._one(select(Profile.id).where(Profile.id == _uuid_id(entity_id)), key)
            return row.id
        if key == EntityType.note.value:
            row = self._one(select(Note.user_id).where(Note.id == _uuid_id(entity_id)), key)
            return row.user_id
        if key == EntityType.security_attempt.value:
            row = self._one(
                select(SecurityAttempt.user_id).where(SecurityAttempt.id == _uuid_id(entity_id)),
                key,
            )
            return row.user_id
        if key == EntityType.chat_message.value:
            row = self._one(
                select(ChatMessage.user_id, ChatMessage.session_id).where(
                    ChatMessage.id == _int_id(entity_id)
                ),
                key,
            )
            if row.user_id is not None:
                return row.user_id
            # Messages without an author belong to the notebook owner
            return self._notebook_owner(row.session_id)
        if key in _BUCKET_BY_ENTITY or key in (
            EntityType.source.value,
            EntityType.document.value,
        ):
            return self._notebook_owner(self._parent_notebook(key, entity_id))
        raise NotFoundError(message=f"{key} has no owner")

    # -- SubjectRegistry ----------------------------------------------------

    def owner_of(
        self, entity_type: EntityType | str, entity_id: EntityId, *, timeout: float | None = None
    ) -> UUID:
        with self._deadline(timeout):
            return self._owner(entity_key(entity_type), entity_id)

    def notebook_of(
        self, entity_type: EntityType | str, entity_id: EntityId, *, timeout: float | None = None
    ) -> UUID:
        key = entity_key(entity_type)
        with self._deadline(timeout):
            if key == EntityType.notebook.value:
                notebook_id = _uuid_id(entity_id)
                self._notebook_owner(notebook_id)
                return notebook_id
            notebook_id = self._parent_notebook(key, entity_id)
        if notebook_id is None:
            raise NotFoundError(message="Notebook not found")
        return notebook_id

    def role_of(self, user_id: UUID, *, timeout: float | None = None) -> Role:
        with self._deadline(timeout):
            row = self._one(select(Profile.role).where(Profile.id == user_id), "profile")
        return Role(row.role)
