"""Permission routes"""

from fastapi import APIRouter, Depends, status
from typing import List

from app.schemas.auth import IntrospectResponse
from app.schemas.rbac import PermissionCreate, PermissionResponse
from app.services.rbac_service import RBACService
from app.api.deps import get_rbac_service, require_permission

router = APIRouter()


@router.get("/", response_model=List[PermissionResponse])
def list_permissions(
    _: IntrospectResponse = Depends(require_permission("permissions.read")),
    rbac_service: RBACService = Depends(get_rbac_service)
):
    return rbac_service.list_permissions()


@router.post("/", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
def create_permission(
    permission_data: PermissionCreate,
    _: IntrospectResponse = Depends(require_permission("roles.create")),
    rbac_service: RBACService = Depends(get_rbac_service)
):
    """Create a `resource.action` permission"""
    return rbac_service.create_permission(permission_data)
