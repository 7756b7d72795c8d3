"""Policy evaluation.

PolicyEngine.evaluate() is a pure function of its inputs and the registry
state visible at lookup time. Order of evaluation, first match wins:

1. service principal -> allow
2. invariant guards (apply to admins too):
   unknown entity type, self-protection, reserved cells
3. admin -> allow
4. table cell: every clause must hold
5. no cell -> deny

Registry NotFoundError denies; LookupTimeout propagates so callers can tell
"denied" apart from "could not decide"; any other lookup failure denies.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from insights.auth.principal import Principal
from insights.errors import LookupTimeout, NotFoundError
from insights.logging import get_logger
from insights.policy.model import (
    RESERVED_CLAUSES,
    Action,
    Clause,
    Decision,
    DecisionReason,
    EntityRef,
    EntityType,
    entity_key,
)
from insights.policy.table import DEFAULT_POLICY_TABLE, PolicyTable

if TYPE_CHECKING:
    from insights.registry.base import SubjectRegistry

logger = get_logger(__name__)

_NOTEBOOK = EntityType.notebook.value
_PROFILE = EntityType.profile.value


class PolicyEngine:
    """Evaluate (principal, action, entity type, row) requests against a table."""

    def __init__(
        self,
        registry: "SubjectRegistry",
        table: PolicyTable = DEFAULT_POLICY_TABLE,
        *,
        default_timeout: float | None = None,
    ):
        """Initialize the engine.

        Args:
            registry: Ownership and parent lookups.
            table: Policy table; defaults to DEFAULT_POLICY_TABLE.
            default_timeout: Lookup timeout in seconds used when evaluate()
                is called without one.
        """
        self.registry = registry
        self.table = table
        self.default_timeout = default_timeout

    def evaluate(
        self,
        principal: Principal,
        action: Action | str,
        entity_type: EntityType | str,
        ref: EntityRef | None = None,
        *,
        timeout: float | None = None,
    ) -> Decision:
        """Decide whether principal may perform action on the referenced row.

        Raises:
            ValueError: principal is missing or action is not a known Action.
            LookupTimeout: A registry lookup exceeded its timeout.
        """
        if principal is None:
            raise ValueError("principal is required")

        action = Action(action)
        key = entity_key(entity_type)
        ref = ref if ref is not None else EntityRef()
        if timeout is None:
            timeout = self.default_timeout

        decision = self._decide(principal, action, key, ref, timeout)

        log = logger.info if not decision.allowed else logger.debug
        log(
            "policy.decision",
            entity_type=key,
            action=action.value,
            allowed=decision.allowed,
            reason=decision.reason.value,
            principal_kind=principal.kind,
        )
        return decision

    def _decide(
        self,
        principal: Principal,
        action: Action,
        key: str,
        ref: EntityRef,
        timeout: float | None,
    ) -> Decision:
        if principal.is_service:
            return Decision.allow(DecisionReason.service)

        if key not in self.table:
            return Decision.deny(DecisionReason.unknown_entity)

        if _violates_self_protection(principal, action, key, ref):
            return Decision.deny(DecisionReason.self_protection)

        cell = self.table.cell(key, action)
        if cell is not None and RESERVED_CLAUSES.intersection(cell):
            return Decision.deny(DecisionReason.reserved)

        if principal.is_admin:
            return Decision.allow(DecisionReason.admin)

        if cell is None:
            return Decision.deny(DecisionReason.no_rule)

        try:
            for clause in cell:
                if not self._holds(clause, principal, action, key, ref, timeout):
                    return Decision.deny(DecisionReason.rule_failed)
        except NotFoundError:
            return Decision.deny(DecisionReason.not_found)
        except LookupTimeout:
            raise
        except Exception:
            logger.exception("policy.lookup_failed", entity_type=key, action=action.value)
            return Decision.deny(DecisionReason.lookup_error)

        return Decision.allow(DecisionReason.rule)

    def _holds(
        self,
        clause: Clause,
        principal: Principal,
        action: Action,
        key: str,
        ref: EntityRef,
        timeout: float | None,
    ) -> bool:
        if clause is Clause.allow:
            return True
        if clause is Clause.authenticated:
            return not principal.is_anonymous
        if clause is Clause.self_:
            return principal.id is not None and ref.entity_id == principal.id
        if clause is Clause.owner:
            if principal.id is None:
                return False
            return self._owner(action, key, ref, timeout) == principal.id
        if clause is Clause.parent_exists:
            notebook_id = self._parent_notebook(action, key, ref, timeout)
            # Raises NotFoundError when the notebook is gone
            self.registry.owner_of(_NOTEBOOK, notebook_id, timeout=timeout)
            return True
        if clause is Clause.notebook_owner:
            if principal.id is None:
                return False
            notebook_id = self._parent_notebook(action, key, ref, timeout)
            return self.registry.owner_of(_NOTEBOOK, notebook_id, timeout=timeout) == principal.id
        # admin_only, and any clause this engine does not know, never hold
        return False

    def _owner(self, action: Action, key: str, ref: EntityRef, timeout: float | None) -> UUID:
        if action is Action.insert:
            if ref.owner_id is None:
                raise NotFoundError(message="Proposed owner missing")
            return ref.owner_id
        return self.registry.owner_of(key, _require_id(ref), timeout=timeout)

    def _parent_notebook(
        self, action: Action, key: str, ref: EntityRef, timeout: float | None
    ) -> UUID:
        if action is Action.insert:
            if ref.notebook_id is None:
                raise NotFoundError(message="Parent notebook missing")
            return ref.notebook_id
        return self.registry.notebook_of(key, _require_id(ref), timeout=timeout)


def _require_id(ref: EntityRef) -> UUID | str | int:
    if ref.entity_id is None:
        raise NotFoundError(message="Entity id missing")
    return ref.entity_id


def _violates_self_protection(
    principal: Principal, action: Action, key: str, ref: EntityRef
) -> bool:
    """A principal may never delete its own profile or change its own role."""
    if key != _PROFILE or principal.id is None or ref.entity_id != principal.id:
        return False
    if action is Action.delete:
        return True
    return action is Action.update and "role" in ref.changes
