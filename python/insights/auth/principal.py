"""Resolved request identity.

A Principal is built once per request by the PrincipalResolver and passed
explicitly to every authorization call. There is no ambient "current user".
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Principal roles.

    anonymous: no valid credential
    user: authenticated, profile role 'user'
    admin: authenticated, profile role 'admin'
    """

    anonymous = "anonymous"
    user = "user"
    admin = "admin"


@dataclass(frozen=True)
class Principal:
    """Immutable per-request identity.

    Attributes:
        id: The user's ID (JWT sub claim), None for anonymous and service.
        role: Role resolved once at authentication time.
        is_service: Backend-only service credential. Bypasses every
            ownership and role check; never carries a human id.
    """

    id: UUID | None
    role: Role
    is_service: bool = False

    def __post_init__(self) -> None:
        if self.is_service:
            if self.id is not None:
                raise ValueError("service principal cannot carry a user id")
            if self.role is not Role.anonymous:
                raise ValueError("service principal cannot carry a user role")
            return
        if self.role is Role.anonymous and self.id is not None:
            raise ValueError("anonymous principal cannot carry a user id")
        if self.role is not Role.anonymous and self.id is None:
            raise ValueError(f"{self.role.value} principal requires a user id")

    @classmethod
    def user(cls, user_id: UUID) -> "Principal":
        return cls(id=user_id, role=Role.user)

    @classmethod
    def admin(cls, user_id: UUID) -> "Principal":
        return cls(id=user_id, role=Role.admin)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin

    @property
    def is_anonymous(self) -> bool:
        return not self.is_service and self.role is Role.anonymous

    @property
    def kind(self) -> str:
        """Label used in logs: anonymous | user | admin | service."""
        return "service" if self.is_service else self.role.value


ANONYMOUS = Principal(id=None, role=Role.anonymous)
SERVICE = Principal(id=None, role=Role.anonymous, is_service=True)
