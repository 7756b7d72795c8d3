"""Policy vocabulary: actions, entity types, clauses, row references, decisions.

Everything here is plain immutable data so that the policy table can be
expressed (and swapped) without touching the evaluator.
"""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class Action(str, Enum):
    """Row operations a policy governs."""

    select = "select"
    insert = "insert"
    update = "update"
    delete = "delete"


class EntityType(str, Enum):
    """Protected entity types shipped with the default table.

    The table itself is keyed by the string value, so deployments can add
    entity types without extending this enum.
    """

    notebook = "notebook"
    source = "source"
    note = "note"
    chat_message = "chat_message"
    document = "document"
    source_file = "source_file"
    audio_file = "audio_file"
    public_image = "public_image"
    profile = "profile"
    security_attempt = "security_attempt"


def entity_key(entity_type: object) -> str:
    """Table key for an entity type given as EntityType or plain string."""
    if isinstance(entity_type, Enum):
        return str(entity_type.value)
    return str(entity_type)


class Visibility(str, Enum):
    """Read visibility of an entity type."""

    global_ = "global"
    owner_only = "owner_only"


VISIBILITY: dict[EntityType, Visibility] = {
    EntityType.notebook: Visibility.global_,
    EntityType.source: Visibility.global_,
    EntityType.document: Visibility.global_,
    EntityType.public_image: Visibility.global_,
    EntityType.note: Visibility.owner_only,
    EntityType.chat_message: Visibility.owner_only,
    EntityType.security_attempt: Visibility.owner_only,
    EntityType.profile: Visibility.owner_only,
    EntityType.source_file: Visibility.owner_only,
    EntityType.audio_file: Visibility.owner_only,
}


class Clause(str, Enum):
    """Predicates a policy cell is built from. A cell holds a conjunction.

    allow: always holds (global read)
    authenticated: principal is not anonymous
    admin_only: never holds for a non-admin (admins are allowed before cells are read)
    service_only: reserved for the service principal; denies admins too
    append_only: the row is immutable; denies admins too
    owner: row owner equals the principal (on insert: the proposed owner)
    self: the row id equals the principal id (profiles)
    parent_exists: the parent notebook exists
    notebook_owner: the parent notebook's owner equals the principal
    """

    allow = "allow"
    authenticated = "authenticated"
    admin_only = "admin_only"
    service_only = "service_only"
    append_only = "append_only"
    owner = "owner"
    self_ = "self"
    parent_exists = "parent_exists"
    notebook_owner = "notebook_owner"


# Clauses that deny every non-service principal, checked before the admin override
RESERVED_CLAUSES = frozenset({Clause.service_only, Clause.append_only})


def as_uuid(value: object) -> UUID | None:
    """Coerce an id to UUID, returning None for anything that is not one."""
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class EntityRef:
    """The row an action targets.

    Ids given as UUID strings are stored as UUID, so every comparison
    against a principal id sees one canonical form. Other strings and
    integer ids (chat messages, documents) are kept as given.

    Attributes:
        entity_id: Existing row id. For inserts, the proposed id when the
            caller chooses it (profiles use the user id).
        owner_id: Proposed owner for inserts.
        notebook_id: Proposed parent notebook for inserts.
        changes: Column names an update modifies.
    """

    entity_id: UUID | str | int | None = None
    owner_id: UUID | str | None = None
    notebook_id: UUID | str | None = None
    changes: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for name in ("entity_id", "owner_id", "notebook_id"):
            value = getattr(self, name)
            if isinstance(value, str):
                parsed = as_uuid(value)
                if parsed is not None:
                    object.__setattr__(self, name, parsed)
        # Accept any iterable of column names
        if not isinstance(self.changes, frozenset):
            object.__setattr__(self, "changes", frozenset(self.changes))


class DecisionReason(str, Enum):
    """Why a decision was reached. Logged, never shown to end users."""

    service = "service"
    admin = "admin"
    rule = "rule"
    self_protection = "self_protection"
    reserved = "reserved"
    no_rule = "no_rule"
    unknown_entity = "unknown_entity"
    not_found = "not_found"
    rule_failed = "rule_failed"
    lookup_error = "lookup_error"


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy evaluation."""

    allowed: bool
    reason: DecisionReason

    @classmethod
    def allow(cls, reason: DecisionReason) -> "Decision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: DecisionReason) -> "Decision":
        return cls(allowed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed
