"""User service - lookups and account administration"""

from typing import List
import logging

from app.core.exceptions import ResourceNotFoundError
from app.schemas.session import SessionResponse
from app.schemas.user import (
    UserResponse,
    UserStatusResponse,
    UserUpdate,
    UserWithRole,
)
from app.services.rbac_service import RBACService
from app.stores.base import SessionStore, UserStore

logger = logging.getLogger(__name__)


class UserService:
    """Service for user management"""

    def __init__(self, users: UserStore, sessions: SessionStore, rbac: RBACService):
        self._users = users
        self._sessions = sessions
        self._rbac = rbac

    def get_user_by_id(self, user_id: int) -> UserResponse:
        """Get user by ID"""
        user = self._users.get_by_id(user_id)
        if not user:
            raise ResourceNotFoundError("User")
        return user.public()

    def get_user_by_username(self, username: str) -> UserResponse:
        """Get user by username"""
        user = self._users.get_by_username(username)
        if not user:
            raise ResourceNotFoundError("User")
        return user.public()

    def get_user_by_email(self, email: str) -> UserResponse:
        """Get user by email"""
        user = self._users.get_by_email(email.lower())
        if not user:
            raise ResourceNotFoundError("User")
        return user.public()

    def get_all_users(self) -> List[UserWithRole]:
        """
        Get all users with their primary role and its permissions

        Returns:
            List of users
        """
        return [
            UserWithRole(
                **user.public().model_dump(),
                role=self._rbac.primary_role_with_permissions(user.id),
            )
            for user in self._users.list_all()
        ]

    def update_user(self, user_id: int, data: UserUpdate) -> UserResponse:
        """
        Update profile fields, optionally the active flag and the role

        Args:
            user_id: User ID
            data: Update payload; `is_active`/`role_id` are left alone when omitted

        Returns:
            Updated user
        """
        existing = self._users.get_by_id(user_id)
        if not existing:
            raise ResourceNotFoundError("User")
        if data.role_id is not None:
            self._rbac.get_role(data.role_id)

        is_active = existing.is_active if data.is_active is None else data.is_active
        user = self._users.update(
            user_id,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            email=data.email,
            is_active=is_active,
        )
        if user is None:
            raise ResourceNotFoundError("User")

        if data.role_id is not None:
            self._rbac.assign_role(user_id, data.role_id)

        logger.info(f"Updated user: {user.username}")
        return user.public()

    def deactivate(self, user_id: int) -> UserStatusResponse:
        """
        Deactivate a user

        Open sessions stay in place; refresh and introspection reject them
        while the account is inactive.

        Args:
            user_id: User ID

        Returns:
            New status
        """
        if not self._users.set_active(user_id, False):
            raise ResourceNotFoundError("User")
        logger.info(f"Deactivated user {user_id}")
        return UserStatusResponse(id=user_id, is_active=False)

    def toggle_status(self, user_id: int) -> UserStatusResponse:
        """Flip the active flag"""
        new_status = self._users.toggle_active(user_id)
        if new_status is None:
            raise ResourceNotFoundError("User")
        logger.info(f"Toggled user {user_id} to is_active={new_status}")
        return UserStatusResponse(id=user_id, is_active=new_status)

    def revoke_sessions(self, user_id: int) -> UserStatusResponse:
        """Force-logout: revoke every open session of a user"""
        user = self._users.get_by_id(user_id)
        if not user:
            raise ResourceNotFoundError("User")
        revoked = self._sessions.revoke_all(user_id)
        logger.info(f"Revoked {revoked} sessions for user {user_id}")
        return UserStatusResponse(id=user_id, is_active=user.is_active, sessions_revoked=revoked)

    def list_sessions(self, user_id: int) -> List[SessionResponse]:
        """Sessions of a user, newest first"""
        if not self._users.get_by_id(user_id):
            raise ResourceNotFoundError("User")
        return [SessionResponse.model_validate(s) for s in self._sessions.list_for_user(user_id)]
