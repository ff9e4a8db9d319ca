"""User management routes"""

from fastapi import APIRouter, Depends
from typing import List

from app.schemas.auth import IntrospectResponse
from app.schemas.session import SessionResponse
from app.schemas.user import UserResponse, UserStatusResponse, UserUpdate, UserWithRole
from app.services.user_service import UserService
from app.api.deps import get_user_service, require_permission

router = APIRouter()


@router.get("/", response_model=List[UserWithRole])
def get_all_users(
    _: IntrospectResponse = Depends(require_permission("users.read")),
    user_service: UserService = Depends(get_user_service)
):
    """
    Get all users with their role and its permissions

    Returns:
        List of users
    """
    return user_service.get_all_users()


@router.get("/id/{user_id}", response_model=UserResponse)
def get_user_by_id(
    user_id: int,
    _: IntrospectResponse = Depends(require_permission("users.read")),
    user_service: UserService = Depends(get_user_service)
):
    return user_service.get_user_by_id(user_id)


@router.get("/username/{username}", response_model=UserResponse)
def get_user_by_username(
    username: str,
    _: IntrospectResponse = Depends(require_permission("users.read")),
    user_service: UserService = Depends(get_user_service)
):
    return user_service.get_user_by_username(username)


@router.get("/email/{email}", response_model=UserResponse)
def get_user_by_email(
    email: str,
    _: IntrospectResponse = Depends(require_permission("users.read")),
    user_service: UserService = Depends(get_user_service)
):
    return user_service.get_user_by_email(email)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    user_data: UserUpdate,
    _: IntrospectResponse = Depends(require_permission("users.update")),
    user_service: UserService = Depends(get_user_service)
):
    """
    Update a user's profile, active flag and role

    Args:
        user_id: User ID to update
        user_data: New profile values

    Returns:
        Updated user
    """
    return user_service.update_user(user_id, user_data)


@router.put("/{user_id}/deactivate", response_model=UserStatusResponse)
def deactivate_user(
    user_id: int,
    _: IntrospectResponse = Depends(require_permission("users.update")),
    user_service: UserService = Depends(get_user_service)
):
    """Deactivate a user; their tokens stop refreshing and introspecting"""
    return user_service.deactivate(user_id)


@router.put("/{user_id}/toggle", response_model=UserStatusResponse)
def toggle_user_status(
    user_id: int,
    _: IntrospectResponse = Depends(require_permission("users.update")),
    user_service: UserService = Depends(get_user_service)
):
    return user_service.toggle_status(user_id)


@router.get("/{user_id}/sessions", response_model=List[SessionResponse])
def list_user_sessions(
    user_id: int,
    _: IntrospectResponse = Depends(require_permission("users.read")),
    user_service: UserService = Depends(get_user_service)
):
    """
    List sessions of a user, newest first

    Args:
        user_id: User ID

    Returns:
        Sessions without their token hashes
    """
    return user_service.list_sessions(user_id)


@router.post("/{user_id}/sessions/revoke", response_model=UserStatusResponse)
def revoke_user_sessions(
    user_id: int,
    _: IntrospectResponse = Depends(require_permission("users.update")),
    user_service: UserService = Depends(get_user_service)
):
    """Revoke every open session of a user"""
    return user_service.revoke_sessions(user_id)
