"""Business logic services.

Service functions are called by route handlers (and by embedders directly)
and run every row access through the policy engine first.
"""

from insights.services.ledger import AttemptLedger
from insights.services.profiles import (
    change_role,
    create_role_loader,
    delete_profile,
    ensure_profile,
    get_profile,
    list_profiles,
    update_profile,
)
from insights.services.recovery import (
    check_security_answer,
    get_security_question,
    set_security_answer,
)

__all__ = [
    "AttemptLedger",
    "change_role",
    "check_security_answer",
    "create_role_loader",
    "delete_profile",
    "ensure_profile",
    "get_profile",
    "get_security_question",
    "list_profiles",
    "set_security_answer",
    "update_profile",
]
