"""Dict-backed subject registry.

Used by tests and by embedders that keep ownership state in process. Each
row stores its direct owner and/or its parent notebook; ownership of child
rows is resolved through the notebook at lookup time, so reassigning a
notebook is visible to its children immediately.
"""

from dataclasses import dataclass
from uuid import UUID

from insights.auth.principal import Role
from insights.errors import LookupTimeout, NotFoundError
from insights.policy.model import EntityType, as_uuid, entity_key
from insights.registry.base import EntityId, notebook_id_from_path


@dataclass(frozen=True)
class _Row:
    owner_id: UUID | None = None
    notebook_id: UUID | None = None


class InMemorySubjectRegistry:
    """In-process SubjectRegistry.

    Args:
        latency: Simulated lookup latency in seconds. A lookup whose timeout
            is smaller than the latency raises LookupTimeout.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._roles: dict[UUID, Role] = {}
        self._rows: dict[str, dict[EntityId, _Row]] = {}

    # -- population ---------------------------------------------------------

    def add_profile(self, user_id: UUID, role: Role = Role.user) -> None:
        if role is Role.anonymous:
            raise ValueError("stored profiles carry user or admin")
        self._roles[user_id] = role
        self._put(EntityType.profile, user_id, _Row(owner_id=user_id))

    def set_role(self, user_id: UUID, role: Role) -> None:
        if user_id not in self._roles:
            raise NotFoundError(message="Profile not found")
        self._roles[user_id] = role

    def add_notebook(self, notebook_id: UUID, owner_id: UUID) -> None:
        self._put(EntityType.notebook, notebook_id, _Row(owner_id=owner_id))

    def add_source(self, source_id: UUID, notebook_id: UUID) -> None:
        self._put(EntityType.source, source_id, _Row(notebook_id=notebook_id))

    def add_note(self, note_id: UUID, owner_id: UUID, notebook_id: UUID | None = None) -> None:
        self._put(EntityType.note, note_id, _Row(owner_id=owner_id, notebook_id=notebook_id))

    def add_chat_message(
        self, message_id: EntityId, notebook_id: UUID, user_id: UUID | None
    ) -> None:
        self._put(
            EntityType.chat_message, message_id, _Row(owner_id=user_id, notebook_id=notebook_id)
        )

    def add_document(self, document_id: EntityId, notebook_id: UUID | None) -> None:
        self._put(EntityType.document, document_id, _Row(notebook_id=notebook_id))

    def add_storage_object(
        self,
        object_id: UUID,
        name: str,
        entity_type: EntityType | str = EntityType.audio_file,
    ) -> None:
        """Register a source or audio file; its notebook is the first path segment."""
        self._put(entity_type, object_id, _Row(notebook_id=notebook_id_from_path(name)))

    def add_security_attempt(self, attempt_id: UUID, user_id: UUID) -> None:
        self._put(EntityType.security_attempt, attempt_id, _Row(owner_id=user_id))

    def add_row(
        self,
        entity_type: EntityType | str,
        entity_id: EntityId,
        *,
        owner_id: UUID | None = None,
        notebook_id: UUID | None = None,
    ) -> None:
        """Register a row of any entity type, including ones added to the table as data."""
        self._put(entity_type, entity_id, _Row(owner_id=owner_id, notebook_id=notebook_id))

    def remove(self, entity_type: EntityType | str, entity_id: EntityId) -> None:
        self._rows.get(entity_key(entity_type), {}).pop(entity_id, None)
        if entity_key(entity_type) == EntityType.profile.value:
            self._roles.pop(entity_id, None)

    def _put(self, entity_type: EntityType | str, entity_id: EntityId, row: _Row) -> None:
        self._rows.setdefault(entity_key(entity_type), {})[entity_id] = row

    # -- lookups ------------------------------------------------------------

    def _check_deadline(self, timeout: float | None) -> None:
        if timeout is None:
            return
        if timeout <= 0 or self.latency > timeout:
            raise LookupTimeout()

    def _row(self, entity_type: EntityType | str, entity_id: EntityId) -> _Row:
        key = entity_key(entity_type)
        rows = self._rows.get(key, {})
        row = rows.get(entity_id)
        if row is None and isinstance(entity_id, str):
            # Accept canonical string ids for UUID-keyed rows
            row = rows.get(as_uuid(entity_id))
        if row is None:
            raise NotFoundError(message=f"{key} not found")
        return row

    def owner_of(
        self, entity_type: EntityType | str, entity_id: EntityId, *, timeout: float | None = None
    ) -> UUID:
        self._check_deadline(timeout)
        row = self._row(entity_type, entity_id)
        if row.owner_id is not None:
            return row.owner_id
        if row.notebook_id is None:
            raise NotFoundError(message="Owner not found")
        return self._row(EntityType.notebook, row.notebook_id).owner_id

    def notebook_of(
        self, entity_type: EntityType | str, entity_id: EntityId, *, timeout: float | None = None
    ) -> UUID:
        self._check_deadline(timeout)
        if entity_key(entity_type) == EntityType.notebook.value:
            self._row(entity_type, entity_id)
            return as_uuid(entity_id) or entity_id
        row = self._row(entity_type, entity_id)
        if row.notebook_id is None:
            raise NotFoundError(message="Notebook not found")
        return row.notebook_id

    def role_of(self, user_id: UUID, *, timeout: float | None = None) -> Role:
        self._check_deadline(timeout)
        role = self._roles.get(user_id)
        if role is None:
            raise NotFoundError(message="Profile not found")
        return role
