"""RBAC snapshot resolution plus role/permission administration"""

from typing import Iterable, List
import logging

from app.core.exceptions import ResourceNotFoundError
from app.schemas.rbac import (
    PermissionCreate,
    PermissionResponse,
    RBACSnapshot,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    RoleWithPermissions,
)
from app.stores.base import RoleStore

logger = logging.getLogger(__name__)

# Seeded at startup; the admin role receives all of them.
DEFAULT_PERMISSIONS = [
    ("users.read", "users", "read", "View users"),
    ("users.update", "users", "update", "Update, deactivate and toggle users"),
    ("roles.read", "roles", "read", "View roles"),
    ("roles.create", "roles", "create", "Create roles"),
    ("roles.update", "roles", "update", "Update roles and their permissions"),
    ("permissions.read", "permissions", "read", "View permissions"),
]


class RBACService:
    """Resolve the roles/permissions embedded in tokens and manage the catalogue"""

    def __init__(self, roles: RoleStore):
        self._roles = roles

    def roles_of(self, user_id: int) -> List[RoleResponse]:
        return self._roles.get_user_roles(user_id)

    def permissions_of(self, user_id: int) -> List[PermissionResponse]:
        return self._roles.get_user_permissions(user_id)

    def snapshot(self, user_id: int) -> RBACSnapshot:
        """
        Current roles and permissions for a user

        A user with no roles gets an empty snapshot; store errors propagate.
        """
        return RBACSnapshot(roles=self.roles_of(user_id), permissions=self.permissions_of(user_id))

    def primary_role_with_permissions(self, user_id: int):
        roles = self.roles_of(user_id)
        if not roles:
            return None
        role = roles[0]
        return RoleWithPermissions(
            **role.model_dump(),
            permissions=self._roles.get_role_permissions(role.id),
        )

    def get_role(self, role_id: int) -> RoleResponse:
        role = self._roles.get_role(role_id)
        if role is None:
            raise ResourceNotFoundError("Role")
        return role

    def assign_role(self, user_id: int, role_id: int) -> None:
        """Make `role_id` the user's only role"""
        self._roles.assign_role(user_id, role_id)
        logger.info(f"Assigned role {role_id} to user {user_id}")

    def list_roles(self) -> List[RoleWithPermissions]:
        return self._roles.list_roles()

    def list_permissions(self) -> List[PermissionResponse]:
        return self._roles.list_permissions()

    def _check_permission_ids(self, permission_ids: Iterable[int]) -> None:
        """Raise before any write when a permission id is unknown"""
        known = {perm.id for perm in self._roles.list_permissions()}
        if set(permission_ids) - known:
            raise ResourceNotFoundError("Permission")

    def create_permission(self, data: PermissionCreate) -> PermissionResponse:
        perm = self._roles.create_permission(data.name, data.resource, data.action, data.description)
        logger.info(f"Created permission: {perm.name} ({perm.label})")
        return perm

    def create_role(self, data: RoleCreate) -> RoleWithPermissions:
        self._check_permission_ids(data.permission_ids)
        role = self._roles.create_role(data.role_name, data.description)
        if data.permission_ids:
            self._roles.replace_role_permissions(role.id, data.permission_ids)
        logger.info(f"Created role: {role.name} ({len(data.permission_ids)} permissions)")
        return RoleWithPermissions(
            **role.model_dump(),
            permissions=self._roles.get_role_permissions(role.id),
        )

    def update_role(self, role_id: int, data: RoleUpdate) -> RoleWithPermissions:
        if data.permission_ids is not None:
            self._check_permission_ids(data.permission_ids)
        role = self._roles.update_role(role_id, data.role_name, data.description)
        if role is None:
            raise ResourceNotFoundError("Role")
        if data.permission_ids is not None:
            self._roles.replace_role_permissions(role_id, data.permission_ids)
        logger.info(f"Updated role: {role.name}")
        return RoleWithPermissions(
            **role.model_dump(),
            permissions=self._roles.get_role_permissions(role_id),
        )

    def ensure_defaults(self, admin_role_name: str = "admin") -> RoleResponse:
        """Create the default permission catalogue and an admin role holding all of it"""
        existing = {perm.name: perm for perm in self._roles.list_permissions()}
        for name, resource, action, description in DEFAULT_PERMISSIONS:
            if name not in existing:
                existing[name] = self._roles.create_permission(name, resource, action, description)
                logger.info(f"Seeded permission: {name}")

        role = self._roles.get_role_by_name(admin_role_name)
        if role is None:
            role = self._roles.create_role(admin_role_name, "Full administrative access")
            logger.info(f"Seeded role: {admin_role_name}")
        self._roles.replace_role_permissions(role.id, [perm.id for perm in existing.values()])
        return role
