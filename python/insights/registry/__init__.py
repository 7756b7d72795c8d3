"""Subject registries: ownership, parent and role lookups for the policy engine."""

from insights.registry.base import SubjectRegistry, notebook_id_from_path
from insights.registry.memory import InMemorySubjectRegistry
from insights.registry.sql import SqlSubjectRegistry

__all__ = [
    "InMemorySubjectRegistry",
    "SqlSubjectRegistry",
    "SubjectRegistry",
    "notebook_id_from_path",
]
