"""Role routes"""

from fastapi import APIRouter, Depends, status
from typing import List

from app.schemas.auth import IntrospectResponse
from app.schemas.rbac import RoleCreate, RoleUpdate, RoleWithPermissions
from app.services.rbac_service import RBACService
from app.api.deps import get_rbac_service, require_permission

router = APIRouter()


@router.get("/", response_model=List[RoleWithPermissions])
def list_roles(
    _: IntrospectResponse = Depends(require_permission("roles.read")),
    rbac_service: RBACService = Depends(get_rbac_service)
):
    """List roles with their permissions"""
    return rbac_service.list_roles()


@router.post("/", response_model=RoleWithPermissions, status_code=status.HTTP_201_CREATED)
def create_role(
    role_data: RoleCreate,
    _: IntrospectResponse = Depends(require_permission("roles.create")),
    rbac_service: RBACService = Depends(get_rbac_service)
):
    """
    Create a role

    Args:
        role_data: Role name, description and the permission ids to grant

    Returns:
        Created role with its permissions
    """
    return rbac_service.create_role(role_data)


@router.put("/{role_id}", response_model=RoleWithPermissions)
def update_role(
    role_id: int,
    role_data: RoleUpdate,
    _: IntrospectResponse = Depends(require_permission("roles.update")),
    rbac_service: RBACService = Depends(get_rbac_service)
):
    """
    Update a role

    Permissions are replaced only when `permission_ids` is sent.
    """
    return rbac_service.update_role(role_id, role_data)
