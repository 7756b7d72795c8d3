"""Profile bootstrap and profile management.

ensure_profile() is the first-sign-in hook: it creates exactly one profile
per identity with role 'user' and is safe under concurrent sign-ins.

The management functions back the admin panel and the /profiles routes.
Every one of them goes through the policy engine before touching rows.
"""

from collections.abc import Callable
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from insights.auth.principal import Principal, Role
from insights.db.models import Profile, ProfileRole
from insights.db.session import get_session_factory, transaction
from insights.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from insights.logging import get_logger
from insights.policy import Action, EntityRef, EntityType, PolicyEngine, authorize
from insights.registry.sql import SqlSubjectRegistry

logger = get_logger(__name__)

# Columns a profile update may touch
UPDATABLE_FIELDS = frozenset({"full_name", "avatar_url", "role"})


def _insert_profile_if_missing(
    db: Session, user_id: UUID, email: str, full_name: str | None
) -> None:
    dialect = db.get_bind().dialect.name
    values = {
        "id": user_id,
        "email": email,
        "full_name": full_name,
        "role": ProfileRole.user.value,
    }
    if dialect == "postgresql":
        stmt = postgresql.insert(Profile).values(**values).on_conflict_do_nothing(
            index_elements=["id"]
        )
    elif dialect == "sqlite":
        stmt = sqlite.insert(Profile).values(**values).on_conflict_do_nothing(
            index_elements=["id"]
        )
    else:
        raise RuntimeError(f"Unsupported database dialect for profile bootstrap: {dialect}")
    result = db.execute(stmt)
    if result.rowcount:
        logger.info("profile.created", user_id=str(user_id))


def ensure_profile(
    db: Session,
    user_id: UUID,
    email: str | None = None,
    full_name: str | None = None,
    *,
    timeout: float | None = None,
) -> Role:
    """Ensure a profile exists for user_id and return its stored role.

    Race-safe and idempotent: concurrent first sign-ins converge on a single
    row (INSERT ... ON CONFLICT DO NOTHING). An existing profile is never
    modified, so a promoted admin stays admin.

    Raises:
        LookupTimeout: The role lookup timed out.
    """
    with transaction(db):
        _insert_profile_if_missing(db, user_id, email or "", full_name)
    return SqlSubjectRegistry(db).role_of(user_id, timeout=timeout)


def create_role_loader(
    session_factory: sessionmaker[Session] | None = None,
    timeout: float | None = None,
) -> Callable[[UUID, dict[str, Any]], Role]:
    """Build the PrincipalResolver role loader backed by profile bootstrap.

    Each call opens its own short-lived session, so resolution happens
    outside the request's unit of work.
    """

    def load_role(user_id: UUID, claims: dict[str, Any]) -> Role:
        metadata = claims.get("user_metadata") or {}
        factory = session_factory or get_session_factory()
        db = factory()
        try:
            return ensure_profile(
                db,
                user_id,
                email=claims.get("email"),
                full_name=metadata.get("full_name") if isinstance(metadata, dict) else None,
                timeout=timeout,
            )
        finally:
            db.close()

    return load_role


# =============================================================================
# Management
# =============================================================================


def _load(db: Session, profile_id: UUID) -> Profile:
    profile = db.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError(ApiErrorCode.E_PROFILE_NOT_FOUND, "Profile not found")
    return profile


def list_profiles(db: Session, engine: PolicyEngine, principal: Principal) -> list[Profile]:
    """Return the profiles the principal may see, oldest first.

    Admins see every profile; users see only their own.
    """
    profiles = db.scalars(select(Profile).order_by(Profile.created_at, Profile.id)).all()
    return [
        profile
        for profile in profiles
        if engine.evaluate(
            principal, Action.select, EntityType.profile, EntityRef(entity_id=profile.id)
        ).allowed
    ]


def get_profile(
    db: Session, engine: PolicyEngine, principal: Principal, profile_id: UUID
) -> Profile:
    authorize(engine, principal, Action.select, EntityType.profile, EntityRef(entity_id=profile_id))
    return _load(db, profile_id)


def update_profile(
    db: Session,
    engine: PolicyEngine,
    principal: Principal,
    profile_id: UUID,
    changes: dict[str, Any],
) -> Profile:
    """Apply changes to a profile.

    Args:
        changes: Mapping of column name to new value. Only full_name,
            avatar_url and role may be changed.

    Raises:
        InvalidRequestError: Unknown field, empty update or invalid role.
        SelfProtectionViolation: The principal tried to change its own role.
        ForbiddenError: Any other denial.
        NotFoundError: The profile does not exist.
    """
    if not changes:
        raise InvalidRequestError(message="No fields to update")
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise InvalidRequestError(message=f"Cannot update fields: {', '.join(sorted(unknown))}")
    if "role" in changes:
        try:
            changes = {**changes, "role": ProfileRole(changes["role"]).value}
        except ValueError as e:
            raise InvalidRequestError(message="Role must be 'admin' or 'user'") from e

    authorize(
        engine,
        principal,
        Action.update,
        EntityType.profile,
        EntityRef(entity_id=profile_id, changes=frozenset(changes)),
    )

    with transaction(db):
        profile = _load(db, profile_id)
        for field, value in changes.items():
            setattr(profile, field, value)

    if "role" in changes:
        logger.info("profile.role_changed", profile_id=str(profile_id), role=changes["role"])
    return profile


def change_role(
    db: Session,
    engine: PolicyEngine,
    principal: Principal,
    profile_id: UUID,
    role: ProfileRole | str,
) -> Profile:
    return update_profile(db, engine, principal, profile_id, {"role": role})


def delete_profile(
    db: Session, engine: PolicyEngine, principal: Principal, profile_id: UUID
) -> None:
    """Delete a profile and everything it owns (notebooks, notes, attempts)."""
    authorize(engine, principal, Action.delete, EntityType.profile, EntityRef(entity_id=profile_id))

    with transaction(db):
        db.delete(_load(db, profile_id))

    logger.info("profile.deleted", profile_id=str(profile_id))
