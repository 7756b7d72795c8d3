"""Subject registry contract.

The policy engine asks the registry three questions: who owns a row, which
notebook a row belongs to, and which role a user holds. Child entities
resolve ownership through their parent notebook.
"""

from typing import Protocol
from uuid import UUID

from insights.auth.principal import Role
from insights.policy.model import EntityType

EntityId = UUID | str | int


class SubjectRegistry(Protocol):
    """Point lookups over current row state."""

    def owner_of(
        self, entity_type: EntityType | str, entity_id: EntityId, *, timeout: float | None = None
    ) -> UUID:
        """Return the owning user id, resolving through parents where needed.

        Raises:
            NotFoundError: The row, its parent, or its owner does not exist.
            LookupTimeout: The lookup did not finish within timeout seconds.
        """
        ...

    def notebook_of(
        self, entity_type: EntityType | str, entity_id: EntityId, *, timeout: float | None = None
    ) -> UUID:
        """Return the id of the notebook the row belongs to.

        Raises:
            NotFoundError: The row does not exist or has no parent notebook.
            LookupTimeout: The lookup did not finish within timeout seconds.
        """
        ...

    def role_of(self, user_id: UUID, *, timeout: float | None = None) -> Role:
        """Return the stored role of a user.

        Raises:
            NotFoundError: No profile exists for user_id.
            LookupTimeout: The lookup did not finish within timeout seconds.
        """
        ...


def notebook_id_from_path(name: str) -> UUID | None:
    """Parse the notebook id from a storage object path.

    Source and audio files live under "<notebook_id>/<file>". Returns None
    when the first segment is not a UUID.
    """
    first, _, rest = name.lstrip("/").partition("/")
    if not rest:
        return None
    try:
        return UUID(first)
    except ValueError:
        return None


