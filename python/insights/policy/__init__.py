"""Authorization policy: vocabulary, table, evaluator and dispatcher guard."""

from insights.policy.model import (
    VISIBILITY,
    Action,
    Clause,
    Decision,
    DecisionReason,
    EntityRef,
    EntityType,
    Visibility,
)
from insights.policy.table import (
    DEFAULT_POLICY_TABLE,
    PolicyTable,
    load_policy_table,
)
from insights.policy.engine import PolicyEngine
from insights.policy.guard import authorize

__all__ = [
    "Action",
    "Clause",
    "DEFAULT_POLICY_TABLE",
    "Decision",
    "DecisionReason",
    "EntityRef",
    "EntityType",
    "PolicyEngine",
    "PolicyTable",
    "VISIBILITY",
    "Visibility",
    "authorize",
    "load_policy_table",
]
