"""Tests for CommandOrchestrator end to end over the in-memory store."""

import pytest

from app.features.commands.intents import IntentAction
from app.features.commands.orchestrator import (
    CommandOrchestrator,
    NOT_UNDERSTOOD_MESSAGE,
    STORE_ERROR_MESSAGE,
)
from app.features.commands.schemas import OutcomeStatus


@pytest.fixture
def orchestrator(fake_store) -> CommandOrchestrator:
    return CommandOrchestrator(fake_store)


@pytest.fixture
async def with_editor(fake_store):
    """Role "Content Editor" and permission "edit articles" exist; writes cleared."""
    await fake_store.create_role("Content Editor")
    await fake_store.create_permission("edit articles")
    fake_store.writes.clear()
    return fake_store


class TestCreate:

    async def test_create_permission_then_listed(self, orchestrator, fake_store) -> None:
        outcome = await orchestrator.execute('Create a new permission called "manage settings"')

        assert outcome.status == OutcomeStatus.SUCCESS
        assert outcome.succeeded
        assert outcome.action == IntentAction.CREATE_PERMISSION
        assert outcome.permission_name == "manage settings"
        assert outcome.message == 'Permission "manage settings" created successfully'
        names = [p.name for p in await fake_store.list_permissions()]
        assert names == ["manage settings"]
        assert (await fake_store.list_permissions())[0].description == "Permission to manage settings"

    async def test_create_permission_twice(self, orchestrator) -> None:
        command = 'create permission "view reports"'
        first = await orchestrator.execute(command)
        second = await orchestrator.execute(command)

        assert first.status == OutcomeStatus.SUCCESS
        assert second.status == OutcomeStatus.DUPLICATE_NAME
        assert second.message == 'Permission "view reports" already exists'
        assert second.permission_name is None

    async def test_create_role_keeps_casing(self, orchestrator, fake_store) -> None:
        outcome = await orchestrator.execute('CREATE ROLE "Billing Admin"')
        assert outcome.role_name == "Billing Admin"
        assert outcome.message == 'Role "Billing Admin" created successfully'
        assert [r.name for r in fake_store.roles.values()] == ["Billing Admin"]

    async def test_create_does_not_read_snapshot(self, orchestrator, fake_store) -> None:
        fake_store.fail_on.update({"list_roles", "list_permissions"})
        outcome = await orchestrator.execute('create role "Moderator"')
        assert outcome.status == OutcomeStatus.SUCCESS

    async def test_create_role_with_overlong_name(self, orchestrator, fake_store) -> None:
        outcome = await orchestrator.execute('create role "' + "x" * 150 + '"')

        assert outcome.status == OutcomeStatus.INVALID_NAME
        assert outcome.message == "Role name must be 1 to 100 characters"
        assert outcome.role_name is None
        assert fake_store.roles == {}

    async def test_create_permission_at_length_limit(self, orchestrator, fake_store) -> None:
        outcome = await orchestrator.execute('create permission "' + "p" * 100 + '"')
        assert outcome.status == OutcomeStatus.SUCCESS
        assert len(fake_store.permissions) == 1


class TestAssign:

    async def test_assign_twice_is_idempotent(self, orchestrator, with_editor) -> None:
        command = 'Give the role "Content Editor" the permission to "edit articles"'
        first = await orchestrator.execute(command)
        second = await orchestrator.execute(command)

        assert first.status == OutcomeStatus.SUCCESS
        assert first.changed is True
        assert first.message == 'Assigned permission "edit articles" to role "Content Editor"'
        assert second.status == OutcomeStatus.SUCCESS
        assert second.changed is False
        assert second.message == 'Permission "edit articles" is already assigned to role "Content Editor"'
        assert len(with_editor.pairs) == 1

    async def test_outcome_uses_stored_names(self, orchestrator, with_editor) -> None:
        outcome = await orchestrator.execute('assign role "CONTENT EDITOR" permission "Edit Articles"')
        assert outcome.role_name == "Content Editor"
        assert outcome.permission_name == "edit articles"
        assert outcome.intent.role_name == "CONTENT EDITOR"

    async def test_unknown_role_makes_no_mutation(self, orchestrator, with_editor) -> None:
        outcome = await orchestrator.execute('assign role "Ghost" permission "edit articles"')

        assert outcome.status == OutcomeStatus.ROLE_NOT_FOUND
        assert outcome.message == 'Role "Ghost" not found'
        assert with_editor.writes == []

    async def test_unknown_permission(self, orchestrator, with_editor) -> None:
        outcome = await orchestrator.execute('assign role "Content Editor" permission "fly"')
        assert outcome.status == OutcomeStatus.PERMISSION_NOT_FOUND
        assert outcome.message == 'Permission "fly" not found'
        assert with_editor.writes == []


class TestRemove:

    async def test_remove_assigned(self, orchestrator, with_editor) -> None:
        await orchestrator.execute('assign role "Content Editor" permission "edit articles"')
        outcome = await orchestrator.execute('Remove the permission "edit articles" from role "Content Editor"')

        assert outcome.status == OutcomeStatus.SUCCESS
        assert outcome.changed is True
        assert outcome.message == 'Removed permission "edit articles" from role "Content Editor"'
        assert with_editor.pairs == set()

    async def test_remove_absent_is_success(self, orchestrator, with_editor) -> None:
        outcome = await orchestrator.execute('remove permission "edit articles" role "Content Editor"')
        assert outcome.status == OutcomeStatus.SUCCESS
        assert outcome.changed is False
        assert outcome.message == 'Permission "edit articles" was not assigned to role "Content Editor"'


class TestDelete:

    async def test_delete_role(self, orchestrator, with_editor) -> None:
        outcome = await orchestrator.execute('delete role "content editor"')
        assert outcome.status == OutcomeStatus.SUCCESS
        assert outcome.message == 'Role "Content Editor" deleted successfully'
        assert with_editor.roles == {}

    async def test_delete_permission(self, orchestrator, with_editor) -> None:
        outcome = await orchestrator.execute('delete permission "edit articles"')
        assert outcome.status == OutcomeStatus.SUCCESS
        assert outcome.permission_name == "edit articles"
        assert with_editor.permissions == {}

    async def test_delete_missing_role(self, orchestrator, with_editor) -> None:
        outcome = await orchestrator.execute('delete role "Ghost"')
        assert outcome.status == OutcomeStatus.ROLE_NOT_FOUND
        assert with_editor.writes == []

    async def test_delete_raced_by_another_session(self, fake_store, with_editor) -> None:
        """Entity vanishes between snapshot and delete."""
        orchestrator = CommandOrchestrator(fake_store)
        real_delete = fake_store.delete_role

        async def delete_twice(role_id: str) -> bool:
            await real_delete(role_id)
            return await real_delete(role_id)

        fake_store.delete_role = delete_twice
        outcome = await orchestrator.execute('delete role "Content Editor"')
        assert outcome.status == OutcomeStatus.ROLE_NOT_FOUND
        assert outcome.message == 'Role "Content Editor" not found'


class TestFailures:

    @pytest.mark.parametrize("text", ["what time is it", "", 'make "x" happen'])
    async def test_not_understood(self, orchestrator, fake_store, text) -> None:
        outcome = await orchestrator.execute(text)
        assert outcome.status == OutcomeStatus.NOT_UNDERSTOOD
        assert outcome.message == NOT_UNDERSTOOD_MESSAGE
        assert outcome.intent is None
        assert fake_store.writes == []

    async def test_store_error_on_snapshot(self, orchestrator, with_editor) -> None:
        with_editor.fail_on.add("list_roles")
        outcome = await orchestrator.execute('assign role "Content Editor" permission "edit articles"')
        assert outcome.status == OutcomeStatus.STORE_ERROR
        assert outcome.message == STORE_ERROR_MESSAGE
        assert outcome.action == IntentAction.ASSIGN_PERMISSION

    async def test_store_error_on_mutation(self, orchestrator, with_editor) -> None:
        with_editor.fail_on.add("add_role_permission")
        outcome = await orchestrator.execute('assign role "Content Editor" permission "edit articles"')
        assert outcome.status == OutcomeStatus.STORE_ERROR
        assert with_editor.pairs == set()

    async def test_unexpected_error_becomes_store_error(self, orchestrator, fake_store) -> None:
        async def broken_create_role(name):
            raise RuntimeError("connection reset")

        fake_store.create_role = broken_create_role
        outcome = await orchestrator.execute('create role "Moderator"')

        assert outcome.status == OutcomeStatus.STORE_ERROR
        assert outcome.message == STORE_ERROR_MESSAGE
        assert outcome.action == IntentAction.CREATE_ROLE


def test_interpret_does_not_touch_store(orchestrator, fake_store) -> None:
    fake_store.fail_on.update({"list_roles", "list_permissions", "create_role"})
    preview = orchestrator.interpret('create role "Moderator"')
    assert preview.understood is True
    assert preview.intent.action == IntentAction.CREATE_ROLE
    assert preview.intent.role_name == "Moderator"

    assert orchestrator.interpret("what time is it").understood is False
