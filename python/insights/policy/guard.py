"""Dispatcher helper: evaluate and raise on deny."""

from insights.auth.principal import Principal
from insights.errors import ForbiddenError, SelfProtectionViolation
from insights.policy.engine import PolicyEngine
from insights.policy.model import Action, Decision, DecisionReason, EntityRef, EntityType


def authorize(
    engine: PolicyEngine,
    principal: Principal,
    action: Action | str,
    entity_type: EntityType | str,
    ref: EntityRef | None = None,
    *,
    timeout: float | None = None,
) -> Decision:
    """Require an Allow decision.

    Every deny surfaces as the same generic ForbiddenError so callers cannot
    search for rows they may not see. Self-protection is the one exception:
    it gets its own code so the UI can explain it.

    Raises:
        SelfProtectionViolation: Own role change or own profile deletion.
        ForbiddenError: Any other deny.
        LookupTimeout: The decision could not be made in time.
    """
    decision = engine.evaluate(principal, action, entity_type, ref, timeout=timeout)
    if decision.allowed:
        return decision
    if decision.reason is DecisionReason.self_protection:
        raise SelfProtectionViolation()
    raise ForbiddenError()
