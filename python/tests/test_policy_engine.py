"""Tests for PolicyEngine.evaluate over the default table.

Tests cover:
- Evaluation order: service, invariant guards, admin, table cell, default deny
- Self-protection for admins and users
- Ownership rules (note, chat message, source and audio files, security attempt)
- Canonical string UUIDs behave exactly like UUID values
- Global read invariant
- Default deny for unknown entity types and missing cells
- Registry failures: NotFound denies, LookupTimeout propagates, other errors deny

Key invariants tested:
- Admin can never delete its own profile or change its own role
- Non-owner users are denied every action on another user's note
- Everyone can select notebooks
- NotFound is Deny, never Allow and never a crash
- Identical inputs give identical decisions
"""

from uuid import UUID, uuid4

import pytest

from insights.auth.principal import ANONYMOUS, SERVICE, Principal, Role
from insights.errors import LookupTimeout, NotFoundError
from insights.policy import (
    DEFAULT_POLICY_TABLE,
    Action,
    DecisionReason,
    EntityRef,
    EntityType,
    PolicyEngine,
)
from insights.registry import InMemorySubjectRegistry

ALL_ACTIONS = list(Action)


@pytest.fixture
def world(memory_registry: InMemorySubjectRegistry):
    """u1 and u2 are users, a1 is an admin; u1 owns a notebook with content."""
    u1, u2, a1 = uuid4(), uuid4(), uuid4()
    for uid, role in ((u1, Role.user), (u2, Role.user), (a1, Role.admin)):
        memory_registry.add_profile(uid, role)

    notebook_id = uuid4()
    memory_registry.add_notebook(notebook_id, owner_id=u1)
    note_id = uuid4()
    memory_registry.add_note(note_id, owner_id=u1, notebook_id=notebook_id)
    memory_registry.add_chat_message(1, notebook_id=notebook_id, user_id=u1)
    attempt_id = uuid4()
    memory_registry.add_security_attempt(attempt_id, user_id=u1)

    return {
        "u1": Principal.user(u1),
        "u2": Principal.user(u2),
        "a1": Principal.admin(a1),
        "notebook_id": notebook_id,
        "note_id": note_id,
        "attempt_id": attempt_id,
        "registry": memory_registry,
    }


class TestScenario:
    """The u1/u2/a1 walk-through."""

    def test_user_creates_own_note(self, memory_engine, world):
        u1 = world["u1"]
        decision = memory_engine.evaluate(
            u1, Action.insert, EntityType.note, EntityRef(owner_id=u1.id)
        )
        assert decision.allowed
        assert decision.reason is DecisionReason.rule

    def test_other_user_cannot_read_note(self, memory_engine, world):
        decision = memory_engine.evaluate(
            world["u2"], Action.select, EntityType.note, EntityRef(entity_id=world["note_id"])
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.rule_failed

    def test_admin_can_read_note(self, memory_engine, world):
        decision = memory_engine.evaluate(
            world["a1"], Action.select, EntityType.note, EntityRef(entity_id=world["note_id"])
        )
        assert decision.allowed
        assert decision.reason is DecisionReason.admin

    def test_admin_cannot_delete_own_profile(self, memory_engine, world):
        a1 = world["a1"]
        decision = memory_engine.evaluate(
            a1, Action.delete, EntityType.profile, EntityRef(entity_id=a1.id)
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.self_protection


class TestServicePrincipal:
    """Service bypasses every rule, including reserved cells."""

    @pytest.mark.parametrize("entity_type", [e.value for e in EntityType] + ["not_in_table"])
    @pytest.mark.parametrize("action", ALL_ACTIONS)
    def test_service_always_allowed(self, memory_engine, entity_type, action):
        decision = memory_engine.evaluate(SERVICE, action, entity_type, EntityRef())
        assert decision.allowed
        assert decision.reason is DecisionReason.service

    def test_service_allowed_without_registry_rows(self, memory_engine):
        decision = memory_engine.evaluate(
            SERVICE, Action.delete, EntityType.chat_message, EntityRef(entity_id=999)
        )
        assert decision.allowed


class TestSelfProtection:
    """A principal can never change its own role or delete its own profile."""

    @pytest.mark.parametrize("_", range(5))
    def test_any_admin_cannot_delete_self(self, memory_registry, _):
        admin_id = uuid4()
        memory_registry.add_profile(admin_id, Role.admin)
        engine = PolicyEngine(memory_registry)
        decision = engine.evaluate(
            Principal.admin(admin_id), Action.delete, EntityType.profile, EntityRef(entity_id=admin_id)
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.self_protection

    def test_admin_self_delete_denied_even_if_profile_missing(self, memory_engine):
        admin = Principal.admin(uuid4())
        decision = memory_engine.evaluate(
            admin, Action.delete, EntityType.profile, EntityRef(entity_id=admin.id)
        )
        assert decision.reason is DecisionReason.self_protection

    def test_admin_cannot_change_own_role(self, memory_engine, world):
        a1 = world["a1"]
        decision = memory_engine.evaluate(
            a1,
            Action.update,
            EntityType.profile,
            EntityRef(entity_id=a1.id, changes={"role"}),
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.self_protection

    def test_user_cannot_escalate_own_role(self, memory_engine, world):
        u1 = world["u1"]
        decision = memory_engine.evaluate(
            u1,
            Action.update,
            EntityType.profile,
            EntityRef(entity_id=u1.id, changes={"role", "full_name"}),
        )
        assert decision.reason is DecisionReason.self_protection

    def test_user_cannot_delete_own_profile(self, memory_engine, world):
        u1 = world["u1"]
        decision = memory_engine.evaluate(
            u1, Action.delete, EntityType.profile, EntityRef(entity_id=u1.id)
        )
        assert decision.reason is DecisionReason.self_protection

    def test_admin_can_edit_own_name(self, memory_engine, world):
        a1 = world["a1"]
        decision = memory_engine.evaluate(
            a1, Action.update, EntityType.profile, EntityRef(entity_id=a1.id, changes={"full_name"})
        )
        assert decision.allowed

    def test_user_can_edit_own_name(self, memory_engine, world):
        u1 = world["u1"]
        decision = memory_engine.evaluate(
            u1, Action.update, EntityType.profile, EntityRef(entity_id=u1.id, changes={"full_name"})
        )
        assert decision.allowed
        assert decision.reason is DecisionReason.rule

    def test_admin_can_change_other_role(self, memory_engine, world):
        decision = memory_engine.evaluate(
            world["a1"],
            Action.update,
            EntityType.profile,
            EntityRef(entity_id=world["u1"].id, changes={"role"}),
        )
        assert decision.allowed
        assert decision.reason is DecisionReason.admin

    def test_admin_can_delete_other_profile(self, memory_engine, world):
        decision = memory_engine.evaluate(
            world["a1"], Action.delete, EntityType.profile, EntityRef(entity_id=world["u1"].id)
        )
        assert decision.allowed

    def test_user_cannot_edit_other_profile(self, memory_engine, world):
        decision = memory_engine.evaluate(
            world["u2"],
            Action.update,
            EntityType.profile,
            EntityRef(entity_id=world["u1"].id, changes={"full_name"}),
        )
        assert not decision.allowed


class TestNoteOwnership:
    """Notes are private to their owner."""

    @pytest.mark.parametrize("action", [Action.select, Action.update, Action.delete])
    def test_non_owner_denied(self, memory_engine, world, action):
        decision = memory_engine.evaluate(
            world["u2"], action, EntityType.note, EntityRef(entity_id=world["note_id"])
        )
        assert not decision.allowed

    def test_non_owner_cannot_insert_for_owner(self, memory_engine, world):
        decision = memory_engine.evaluate(
            world["u2"], Action.insert, EntityType.note, EntityRef(owner_id=world["u1"].id)
        )
        assert not decision.allowed

    @pytest.mark.parametrize("action", ALL_ACTIONS)
    def test_anonymous_denied(self, memory_engine, world, action):
        ref = EntityRef(entity_id=world["note_id"], owner_id=world["u1"].id)
        assert not memory_engine.evaluate(ANONYMOUS, action, EntityType.note, ref).allowed

    @pytest.mark.parametrize("action", [Action.select, Action.update, Action.delete])
    def test_owner_allowed(self, memory_engine, world, action):
        decision = memory_engine.evaluate(
            world["u1"], action, EntityType.note, EntityRef(entity_id=world["note_id"])
        )
        assert decision.allowed

    def test_insert_without_owner_denied(self, memory_engine, world):
        decision = memory_engine.evaluate(world["u1"], Action.insert, EntityType.note, EntityRef())
        assert not decision.allowed

    def test_missing_note_denied_as_not_found(self, memory_engine, world):
        decision = memory_engine.evaluate(
            world["u1"], Action.select, EntityType.note, EntityRef(entity_id=uuid4())
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.not_found

    def test_many_non_owners_denied(self, memory_registry, world):
        engine = PolicyEngine(memory_registry)
        for _ in range(20):
            stranger = Principal.user(uuid4())
            for action in ALL_ACTIONS:
                ref = EntityRef(entity_id=world["note_id"], owner_id=world["u1"].id)
                assert not engine.evaluate(stranger, action, EntityType.note, ref).allowed


class TestGlobalRead:
    """Notebooks, sources, documents and public images are readable by everyone."""

    @pytest.mark.parametrize(
        "entity_type",
        [EntityType.notebook, EntityType.source, EntityType.document, EntityType.public_image],
    )
    def test_everyone_can_select(self, memory_engine, world, entity_type):
        principals = [ANONYMOUS, SERVICE, world["u1"], world["u2"], world["a1"]]
        for principal in principals:
            decision = memory_engine.evaluate(
                principal, Action.select, entity_type, EntityRef(entity_id=uuid4())
            )
            assert decision.allowed, principal

    @pytest.mark.parametrize("action", [Action.insert, Action.update, Action.delete])
    def test_notebook_writes_admin_only(self, memory_engine, world, action):
        ref = EntityRef(entity_id=world["notebook_id"], owner_id=world["u1"].id)
        assert not memory_engine.evaluate(world["u1"], action, EntityType.notebook, ref).allowed
        assert memory_engine.evaluate(world["a1"], action, EntityType.notebook, ref).allowed


class TestChatMessages:
    """Chat history: owner-restricted, parent notebook must exist, append-only."""

    def test_author_can_read_message(self, memory_engine, world):
        decision = memory_engine.evaluate(
            world["u1"], Action.select, EntityType.chat_message, EntityRef(entity_id=1)
        )
        assert decision.allowed

    def test_other_user_cannot_read_message(self, memory_engine, world):
        decision = memory_engine.evaluate(
            world["u2"], Action.select, EntityType.chat_message, EntityRef(entity_id=1)
        )
        assert not decision.allowed

    def test_insert_into_missing_notebook_denied(self, memory_engine, world):
        u1 = world["u1"]
        decision = memory_engine.evaluate(
            u1,
            Action.insert,
            EntityType.chat_message,
            EntityRef(owner_id=u1.id, notebook_id=uuid4()),
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.not_found

    def test_message_referencing_missing_notebook_denied(self, memory_registry, world):
        orphan_notebook = uuid4()
        memory_registry.add_chat_message(2, notebook_id=orphan_notebook, user_id=world["u1"].id)
        engine = PolicyEngine(memory_registry)
        decision = engine.evaluate(
            world["u1"], Action.select, EntityType.chat_message, EntityRef(entity_id=2)
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.not_found

    def test_insert_into_existing_notebook_allowed(self, memory_engine, world):
        u2 = world["u2"]
        decision = memory_engine.evaluate(
            u2,
            Action.insert,
            EntityType.chat_message,
            EntityRef(owner_id=u2.id, notebook_id=world["notebook_id"]),
        )
        assert decision.allowed

    @pytest.mark.parametrize("principal_key", ["u1", "a1"])
    def test_update_is_reserved(self, memory_engine, world, principal_key):
        decision = memory_engine.evaluate(
            world[principal_key], Action.update, EntityType.chat_message, EntityRef(entity_id=1)
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.reserved

    def test_delete_is_service_only(self, memory_engine, world):
        ref = EntityRef(entity_id=1)
        assert not memory_engine.evaluate(world["a1"], Action.delete, EntityType.chat_message, ref)
        assert memory_engine.evaluate(SERVICE, Action.delete, EntityType.chat_message, ref)


class TestSecurityAttempts:
    """Attempts are readable and insertable by their owner and otherwise immutable."""

    def test_owner_can_select(self, memory_engine, world):
        ref = EntityRef(entity_id=world["attempt_id"])
        assert memory_engine.evaluate(world["u1"], Action.select, EntityType.security_attempt, ref)
        assert not memory_engine.evaluate(
            world["u2"], Action.select, EntityType.security_attempt, ref
        )

    def test_owner_can_insert_own(self, memory_engine, world):
        u1 = world["u1"]
        ref = EntityRef(owner_id=u1.id)
        assert memory_engine.evaluate(u1, Action.insert, EntityType.security_attempt, ref)

    @pytest.mark.parametrize("action", [Action.update, Action.delete])
    @pytest.mark.parametrize("principal_key", ["u1", "a1"])
    def test_append_only(self, memory_engine, world, action, principal_key):
        decision = memory_engine.evaluate(
            world[principal_key],
            action,
            EntityType.security_attempt,
            EntityRef(entity_id=world["attempt_id"]),
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.reserved


class TestStorageObjects:
    """Source and audio files belong to the owner of the notebook in their path."""

    @pytest.fixture
    def files(self, memory_registry, world):
        source_file, audio_file = uuid4(), uuid4()
        memory_registry.add_storage_object(
            source_file, f"{world['notebook_id']}/paper.pdf", EntityType.source_file
        )
        memory_registry.add_storage_object(
            audio_file, f"{world['notebook_id']}/overview.mp3", EntityType.audio_file
        )
        return {EntityType.source_file: source_file, EntityType.audio_file: audio_file}

    @pytest.mark.parametrize("action", ALL_ACTIONS)
    def test_notebook_owner_manages_source_files(self, memory_engine, world, files, action):
        ref = EntityRef(
            entity_id=files[EntityType.source_file], notebook_id=world["notebook_id"]
        )
        decision = memory_engine.evaluate(world["u1"], action, EntityType.source_file, ref)
        assert decision.allowed
        assert not memory_engine.evaluate(world["u2"], action, EntityType.source_file, ref)

    def test_upload_into_foreign_notebook_denied(self, memory_engine, world):
        ref = EntityRef(notebook_id=world["notebook_id"])
        assert not memory_engine.evaluate(world["u2"], Action.insert, EntityType.source_file, ref)

    @pytest.mark.parametrize("action", [Action.select, Action.delete])
    def test_notebook_owner_reads_and_deletes_audio(self, memory_engine, world, files, action):
        ref = EntityRef(entity_id=files[EntityType.audio_file])
        assert memory_engine.evaluate(world["u1"], action, EntityType.audio_file, ref)
        assert not memory_engine.evaluate(world["u2"], action, EntityType.audio_file, ref)

    @pytest.mark.parametrize("action", [Action.insert, Action.update])
    @pytest.mark.parametrize("principal_key", ["u1", "a1"])
    def test_audio_writes_service_only(self, memory_engine, world, files, action, principal_key):
        ref = EntityRef(
            entity_id=files[EntityType.audio_file], notebook_id=world["notebook_id"]
        )
        decision = memory_engine.evaluate(world[principal_key], action, EntityType.audio_file, ref)
        assert not decision.allowed
        assert decision.reason is DecisionReason.reserved
        assert memory_engine.evaluate(SERVICE, action, EntityType.audio_file, ref)

    def test_path_without_notebook_denied(self, memory_registry, world):
        object_id = uuid4()
        memory_registry.add_storage_object(object_id, "loose-file.mp3")
        engine = PolicyEngine(memory_registry)
        decision = engine.evaluate(
            world["u1"], Action.select, EntityType.audio_file, EntityRef(entity_id=object_id)
        )
        assert decision.reason is DecisionReason.not_found

    @pytest.mark.parametrize("action", [Action.insert, Action.update, Action.delete])
    def test_public_images_writes_service_only(self, memory_engine, world, action):
        ref = EntityRef(entity_id=uuid4())
        decision = memory_engine.evaluate(world["a1"], action, EntityType.public_image, ref)
        assert not decision.allowed
        assert decision.reason is DecisionReason.reserved
        assert memory_engine.evaluate(SERVICE, action, EntityType.public_image, ref)


class TestStringIds:
    """UUIDs rendered as canonical strings are the same ids as UUID values."""

    def test_entity_ref_canonicalizes(self):
        user_id, notebook_id = uuid4(), uuid4()
        ref = EntityRef(
            entity_id=str(user_id).upper(), owner_id=str(user_id), notebook_id=str(notebook_id)
        )
        assert ref == EntityRef(entity_id=user_id, owner_id=user_id, notebook_id=notebook_id)

    def test_non_uuid_ids_kept(self):
        assert EntityRef(entity_id=7).entity_id == 7
        assert EntityRef(entity_id="msg-7").entity_id == "msg-7"

    @pytest.mark.parametrize("principal_key", ["a1", "u1"])
    def test_cannot_delete_own_profile_by_string_id(self, memory_engine, world, principal_key):
        principal = world[principal_key]
        decision = memory_engine.evaluate(
            principal, Action.delete, EntityType.profile, EntityRef(entity_id=str(principal.id))
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.self_protection

    @pytest.mark.parametrize("principal_key", ["a1", "u1"])
    def test_cannot_change_own_role_by_string_id(self, memory_engine, world, principal_key):
        principal = world[principal_key]
        ref = EntityRef(entity_id=str(principal.id), changes={"role"})
        decision = memory_engine.evaluate(principal, Action.update, EntityType.profile, ref)
        assert not decision.allowed
        assert decision.reason is DecisionReason.self_protection

    def test_self_clause(self, memory_engine, world):
        u1 = world["u1"]
        ref = EntityRef(entity_id=str(u1.id), changes={"full_name"})
        assert memory_engine.evaluate(u1, Action.update, EntityType.profile, ref).allowed
        assert not memory_engine.evaluate(world["u2"], Action.update, EntityType.profile, ref)

    @pytest.mark.parametrize("action", [Action.select, Action.update, Action.delete])
    def test_owner_clause_on_existing_row(self, memory_engine, world, action):
        ref = EntityRef(entity_id=str(world["note_id"]))
        assert memory_engine.evaluate(world["u1"], action, EntityType.note, ref).allowed
        assert not memory_engine.evaluate(world["u2"], action, EntityType.note, ref).allowed

    def test_owner_clause_on_insert(self, memory_engine, world):
        ref = EntityRef(owner_id=str(world["u1"].id))
        assert memory_engine.evaluate(world["u1"], Action.insert, EntityType.note, ref).allowed
        assert not memory_engine.evaluate(world["u2"], Action.insert, EntityType.note, ref).allowed

    def test_parent_exists_clause(self, memory_engine, world):
        u1 = world["u1"]
        ref = EntityRef(owner_id=str(u1.id), notebook_id=str(world["notebook_id"]))
        assert memory_engine.evaluate(u1, Action.insert, EntityType.chat_message, ref).allowed

        missing = EntityRef(owner_id=str(u1.id), notebook_id=str(uuid4()))
        decision = memory_engine.evaluate(u1, Action.insert, EntityType.chat_message, missing)
        assert decision.reason is DecisionReason.not_found

    def test_notebook_owner_clause(self, memory_engine, world):
        ref = EntityRef(notebook_id=str(world["notebook_id"]))
        assert memory_engine.evaluate(world["u1"], Action.insert, EntityType.source_file, ref)
        assert not memory_engine.evaluate(world["u2"], Action.insert, EntityType.source_file, ref)

    def test_malformed_string_id_denied(self, memory_engine, world):
        ref = EntityRef(notebook_id="not-a-uuid")
        decision = memory_engine.evaluate(world["u1"], Action.insert, EntityType.source_file, ref)
        assert not decision.allowed


class TestDefaultDeny:
    """Anything the table does not grant is denied."""

    @pytest.mark.parametrize("action", ALL_ACTIONS)
    def test_unknown_entity_type_denied(self, memory_engine, world, action):
        for key in ("u1", "a1"):
            decision = memory_engine.evaluate(world[key], action, "invoice", EntityRef())
            assert not decision.allowed
            assert decision.reason is DecisionReason.unknown_entity
        assert not memory_engine.evaluate(ANONYMOUS, action, "invoice", EntityRef()).allowed

    def test_missing_cell_denied(self, memory_registry, world):
        table = DEFAULT_POLICY_TABLE.with_entity("note", {"select": ["owner"]})
        engine = PolicyEngine(memory_registry, table)
        decision = engine.evaluate(
            world["u1"], Action.delete, EntityType.note, EntityRef(entity_id=world["note_id"])
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.no_rule

    def test_admin_allowed_on_missing_cell(self, memory_registry, world):
        table = DEFAULT_POLICY_TABLE.with_entity("note", {"select": ["owner"]})
        engine = PolicyEngine(memory_registry, table)
        decision = engine.evaluate(
            world["a1"], Action.delete, EntityType.note, EntityRef(entity_id=world["note_id"])
        )
        assert decision.allowed

    def test_new_entity_type_added_as_data(self, memory_registry, world):
        table = DEFAULT_POLICY_TABLE.with_entity(
            "flashcard", {"select": ["owner"], "insert": ["owner"]}
        )
        card_id = uuid4()
        memory_registry.add_row("flashcard", card_id, owner_id=world["u1"].id)
        engine = PolicyEngine(memory_registry, table)
        ref = EntityRef(entity_id=card_id)
        assert engine.evaluate(world["u1"], Action.select, "flashcard", ref).allowed
        assert not engine.evaluate(world["u2"], Action.select, "flashcard", ref).allowed
        assert not engine.evaluate(world["u1"], Action.delete, "flashcard", ref).allowed


class TestDeterminism:
    def test_repeated_evaluation_identical(self, memory_engine, world):
        inputs = [
            (world["u1"], Action.select, EntityType.note, EntityRef(entity_id=world["note_id"])),
            (world["u2"], Action.update, EntityType.note, EntityRef(entity_id=world["note_id"])),
            (world["a1"], Action.delete, EntityType.profile, EntityRef(entity_id=world["a1"].id)),
            (ANONYMOUS, Action.select, EntityType.notebook, EntityRef()),
        ]
        first = [memory_engine.evaluate(*args) for args in inputs]
        for _ in range(10):
            assert [memory_engine.evaluate(*args) for args in inputs] == first

    def test_string_action_and_entity_accepted(self, memory_engine, world):
        ref = EntityRef(entity_id=world["note_id"])
        assert memory_engine.evaluate(world["u1"], "select", "note", ref) == memory_engine.evaluate(
            world["u1"], Action.select, EntityType.note, ref
        )


class TestFailures:
    """Malformed input and registry failures."""

    def test_missing_principal_is_caller_error(self, memory_engine):
        with pytest.raises(ValueError, match="principal"):
            memory_engine.evaluate(None, Action.select, EntityType.note, EntityRef())  # type: ignore[arg-type]

    def test_unknown_action_is_caller_error(self, memory_engine, world):
        with pytest.raises(ValueError):
            memory_engine.evaluate(world["u1"], "upsert", EntityType.note, EntityRef())

    def test_lookup_timeout_propagates(self, world):
        registry: InMemorySubjectRegistry = world["registry"]
        registry.latency = 5.0
        engine = PolicyEngine(registry)
        with pytest.raises(LookupTimeout):
            engine.evaluate(
                world["u1"],
                Action.select,
                EntityType.note,
                EntityRef(entity_id=world["note_id"]),
                timeout=0.5,
            )

    def test_default_timeout_applies(self, world):
        registry: InMemorySubjectRegistry = world["registry"]
        registry.latency = 5.0
        engine = PolicyEngine(registry, default_timeout=1.0)
        with pytest.raises(LookupTimeout):
            engine.evaluate(
                world["u1"], Action.select, EntityType.note, EntityRef(entity_id=world["note_id"])
            )

    def test_timeout_irrelevant_without_lookup(self, world):
        registry: InMemorySubjectRegistry = world["registry"]
        registry.latency = 5.0
        engine = PolicyEngine(registry)
        decision = engine.evaluate(
            world["u1"], Action.select, EntityType.notebook, EntityRef(), timeout=0.1
        )
        assert decision.allowed

    def test_unexpected_registry_error_denies(self, world):
        class BrokenRegistry:
            def owner_of(self, entity_type, entity_id, *, timeout=None) -> UUID:
                raise RuntimeError("connection reset")

            def notebook_of(self, entity_type, entity_id, *, timeout=None) -> UUID:
                raise RuntimeError("connection reset")

            def role_of(self, user_id, *, timeout=None) -> Role:
                raise RuntimeError("connection reset")

        engine = PolicyEngine(BrokenRegistry())
        decision = engine.evaluate(
            world["u1"], Action.select, EntityType.note, EntityRef(entity_id=world["note_id"])
        )
        assert not decision.allowed
        assert decision.reason is DecisionReason.lookup_error

    def test_not_found_from_registry_denies(self, world):
        class EmptyRegistry:
            def owner_of(self, entity_type, entity_id, *, timeout=None) -> UUID:
                raise NotFoundError()

            def notebook_of(self, entity_type, entity_id, *, timeout=None) -> UUID:
                raise NotFoundError()

            def role_of(self, user_id, *, timeout=None) -> Role:
                raise NotFoundError()

        engine = PolicyEngine(EmptyRegistry())
        for entity_type in (EntityType.note, EntityType.chat_message, EntityType.audio_file):
            decision = engine.evaluate(
                world["u1"], Action.select, entity_type, EntityRef(entity_id=uuid4())
            )
            assert decision.reason is DecisionReason.not_found
