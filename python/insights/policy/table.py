"""Per-entity-type x per-action policy table.

The table is plain data. Each cell is a list of clauses that must all hold;
a missing cell denies. Deployments can replace the default table with a
JSON document of the same shape:

    {
        "note": {"select": ["owner"], "insert": ["owner"]},
        "chat_message": {"select": ["parent_exists", "owner"]}
    }
"""

import json
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Any

from pydantic import BeforeValidator, RootModel, field_validator

from insights.policy.model import Action, Clause, EntityType, entity_key

# Clauses that only make sense as the whole cell
_STANDALONE_CLAUSES = frozenset(
    {Clause.allow, Clause.admin_only, Clause.service_only, Clause.append_only}
)


def _as_clause_list(value: Any) -> Any:
    # "owner" is shorthand for ["owner"]
    if isinstance(value, str):
        return [value]
    return value


CellSpec = Annotated[list[Clause], BeforeValidator(_as_clause_list)]


class PolicyTableDocument(RootModel[dict[str, dict[Action, CellSpec]]]):
    """Validated wire shape of a policy table."""

    @field_validator("root")
    @classmethod
    def validate_cells(cls, v: dict[str, dict[Action, list[Clause]]]):
        for entity, cells in v.items():
            if not entity or not entity.strip():
                raise ValueError("entity type must be a non-empty string")
            for action, clauses in cells.items():
                where = f"{entity}.{action.value}"
                if not clauses:
                    raise ValueError(f"{where}: cell must list at least one clause")
                if len(clauses) > 1 and _STANDALONE_CLAUSES.intersection(clauses):
                    raise ValueError(
                        f"{where}: allow, admin_only, service_only and append_only "
                        "cannot be combined with other clauses"
                    )
        return v


class PolicyTable:
    """Immutable policy table keyed by entity type string and Action."""

    def __init__(self, cells: Mapping[str, Mapping[Action, tuple[Clause, ...]]]):
        self._cells = MappingProxyType(
            {entity: MappingProxyType(dict(actions)) for entity, actions in cells.items()}
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PolicyTable":
        """Build a table from a plain mapping, validating every cell.

        Raises:
            pydantic.ValidationError: Unknown action or clause, empty cell,
                or a standalone clause combined with others.
        """
        document = PolicyTableDocument.model_validate(dict(data))
        return cls(
            {
                entity: {action: tuple(clauses) for action, clauses in actions.items()}
                for entity, actions in document.root.items()
            }
        )

    @classmethod
    def from_json(cls, path: str | Path) -> "PolicyTable":
        """Load a table from a JSON file."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"policy table {path} must be a JSON object")
        return cls.from_mapping(data)

    def __contains__(self, entity_type: object) -> bool:
        return entity_key(entity_type) in self._cells

    @property
    def entity_types(self) -> frozenset[str]:
        return frozenset(self._cells)

    def cell(self, entity_type: EntityType | str, action: Action) -> tuple[Clause, ...] | None:
        """Return the clauses for a cell, or None when the cell is absent."""
        actions = self._cells.get(entity_key(entity_type))
        if actions is None:
            return None
        return actions.get(Action(action))

    def with_entity(
        self, entity_type: EntityType | str, cells: Mapping[str, Any]
    ) -> "PolicyTable":
        """Return a copy of the table with one entity type added or replaced."""
        data = self.to_mapping()
        data[entity_key(entity_type)] = dict(cells)
        return PolicyTable.from_mapping(data)

    def without_entity(self, entity_type: EntityType | str) -> "PolicyTable":
        data = self.to_mapping()
        data.pop(entity_key(entity_type), None)
        return PolicyTable.from_mapping(data)

    def to_mapping(self) -> dict[str, dict[str, list[str]]]:
        """Plain-data form, suitable for JSON serialization."""
        return {
            entity: {
                action.value: [clause.value for clause in clauses]
                for action, clauses in actions.items()
            }
            for entity, actions in self._cells.items()
        }


DEFAULT_POLICY_TABLE_DATA: dict[str, dict[str, list[str]]] = {
    "notebook": {
        "select": ["allow"],
        "insert": ["admin_only"],
        "update": ["admin_only"],
        "delete": ["admin_only"],
    },
    "source": {
        "select": ["allow"],
        "insert": ["admin_only"],
        "update": ["admin_only"],
        "delete": ["admin_only"],
    },
    "note": {
        "select": ["owner"],
        "insert": ["owner"],
        "update": ["owner"],
        "delete": ["owner"],
    },
    "chat_message": {
        "select": ["parent_exists", "owner"],
        "insert": ["parent_exists", "owner"],
        "update": ["append_only"],
        "delete": ["service_only"],
    },
    "document": {
        "select": ["allow"],
        "insert": ["admin_only"],
        "update": ["service_only"],
        "delete": ["service_only"],
    },
    "source_file": {
        "select": ["notebook_owner"],
        "insert": ["notebook_owner"],
        "update": ["notebook_owner"],
        "delete": ["notebook_owner"],
    },
    "audio_file": {
        "select": ["notebook_owner"],
        "insert": ["service_only"],
        "update": ["service_only"],
        "delete": ["notebook_owner"],
    },
    "public_image": {
        "select": ["allow"],
        "insert": ["service_only"],
        "update": ["service_only"],
        "delete": ["service_only"],
    },
    "security_attempt": {
        "select": ["owner"],
        "insert": ["owner"],
        "update": ["append_only"],
        "delete": ["append_only"],
    },
    "profile": {
        "select": ["self"],
        "insert": ["self"],
        "update": ["self"],
        "delete": ["admin_only"],
    },
}

DEFAULT_POLICY_TABLE = PolicyTable.from_mapping(DEFAULT_POLICY_TABLE_DATA)


def load_policy_table(path: str | Path | None = None) -> PolicyTable:
    """Return the table at path, or the default table when no path is configured."""
    if path is None:
        return DEFAULT_POLICY_TABLE
    return PolicyTable.from_json(path)
