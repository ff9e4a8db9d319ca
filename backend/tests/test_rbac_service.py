import pytest

from app.core.exceptions import ResourceAlreadyExistsError, ResourceNotFoundError
from app.schemas.rbac import PermissionCreate, RoleCreate, RoleUpdate
from app.schemas.user import UserUpdate
from app.services.rbac_service import DEFAULT_PERMISSIONS


def test_ensure_defaults_is_idempotent(container):
    first = container.rbac.ensure_defaults()
    second = container.rbac.ensure_defaults()

    assert first.id == second.id
    assert len(container.rbac.list_permissions()) == len(DEFAULT_PERMISSIONS)
    admin = container.rbac.list_roles()[0]
    assert admin.name == "admin"
    assert {perm.name for perm in admin.permissions} == {name for name, *_ in DEFAULT_PERMISSIONS}


def test_snapshot_of_user_without_roles_is_empty(container, make_user):
    user = make_user()
    snapshot = container.rbac.snapshot(user.id)
    assert snapshot.roles == []
    assert snapshot.permissions == []
    assert container.rbac.primary_role_with_permissions(user.id) is None


def test_permissions_are_ordered_by_resource_then_action(container):
    container.rbac.create_permission(PermissionCreate(name="z", resource="users", action="delete"))
    container.rbac.create_permission(PermissionCreate(name="a", resource="roles", action="read"))
    container.rbac.create_permission(PermissionCreate(name="m", resource="users", action="create"))

    labels = [perm.label for perm in container.rbac.list_permissions()]

    assert labels == ["roles.read", "users.create", "users.delete"]


def test_create_role_with_permissions(container, make_user):
    read = container.rbac.create_permission(
        PermissionCreate(name="reports.read", resource="reports", action="read")
    )
    role = container.rbac.create_role(
        RoleCreate(role_name="analyst", description="Reads reports", permission_ids=[read.id])
    )
    user = make_user()
    container.rbac.assign_role(user.id, role.id)

    snapshot = container.rbac.snapshot(user.id)

    assert [r.name for r in snapshot.roles] == ["analyst"]
    assert [p.label for p in snapshot.permissions] == ["reports.read"]
    assert container.rbac.primary_role_with_permissions(user.id).permissions[0].id == read.id


def test_create_role_rejects_duplicate_name(container):
    container.rbac.create_role(RoleCreate(role_name="analyst"))
    with pytest.raises(ResourceAlreadyExistsError):
        container.rbac.create_role(RoleCreate(role_name="analyst"))


def test_create_role_with_unknown_permission(container):
    with pytest.raises(ResourceNotFoundError):
        container.rbac.create_role(RoleCreate(role_name="analyst", permission_ids=[999]))

    assert "analyst" not in [r.name for r in container.rbac.list_roles()]


def test_update_role_with_unknown_permission_keeps_role(container):
    role = container.rbac.create_role(RoleCreate(role_name="analyst", description="Reads"))

    with pytest.raises(ResourceNotFoundError):
        container.rbac.update_role(role.id, RoleUpdate(role_name="reporter", permission_ids=[999]))

    unchanged = container.rbac.get_role(role.id)
    assert unchanged.name == "analyst"
    assert unchanged.description == "Reads"


def test_update_role_replaces_permissions_only_when_given(container):
    read = container.rbac.create_permission(
        PermissionCreate(name="reports.read", resource="reports", action="read")
    )
    write = container.rbac.create_permission(
        PermissionCreate(name="reports.write", resource="reports", action="write")
    )
    role = container.rbac.create_role(RoleCreate(role_name="analyst", permission_ids=[read.id]))

    renamed = container.rbac.update_role(role.id, RoleUpdate(role_name="reporter"))
    assert renamed.name == "reporter"
    assert [p.id for p in renamed.permissions] == [read.id]

    replaced = container.rbac.update_role(role.id, RoleUpdate(role_name="reporter", permission_ids=[write.id]))
    assert [p.id for p in replaced.permissions] == [write.id]


def test_update_missing_role(container):
    with pytest.raises(ResourceNotFoundError):
        container.rbac.update_role(404, RoleUpdate(role_name="ghost"))


def test_assign_role_replaces_previous_role(container, make_user):
    user = make_user()
    first = container.rbac.create_role(RoleCreate(role_name="first"))
    second = container.rbac.create_role(RoleCreate(role_name="second"))

    container.rbac.assign_role(user.id, first.id)
    container.rbac.assign_role(user.id, second.id)

    assert [r.name for r in container.rbac.roles_of(user.id)] == ["second"]


def test_assign_unknown_role_or_user(container, make_user):
    user = make_user()
    role = container.rbac.create_role(RoleCreate(role_name="first"))
    with pytest.raises(ResourceNotFoundError):
        container.rbac.assign_role(user.id, 999)
    with pytest.raises(ResourceNotFoundError):
        container.rbac.assign_role(999, role.id)


def test_update_user_with_unknown_role_changes_nothing(container, make_user):
    user = make_user(first_name="Alice")

    with pytest.raises(ResourceNotFoundError):
        container.users.update_user(
            user.id,
            UserUpdate(first_name="Mallory", last_name="X", email="mallory@example.com", role_id=999),
        )

    unchanged = container.users.get_user_by_id(user.id)
    assert unchanged.first_name == "Alice"
    assert unchanged.email == "alice@example.com"
