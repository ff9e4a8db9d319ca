"""Persistence contracts consumed by the services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from app.schemas.rbac import PermissionResponse, RoleResponse, RoleWithPermissions
from app.schemas.session import SessionCreate, SessionRecord
from app.schemas.user import UserInDB


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends that drop tzinfo."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class UserStore(ABC):
    """User records keyed by id, username and email."""

    @abstractmethod
    def get_by_id(self, user_id: int) -> Optional[UserInDB]: ...

    @abstractmethod
    def get_by_username(self, username: str) -> Optional[UserInDB]: ...

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[UserInDB]: ...

    @abstractmethod
    def list_all(self) -> List[UserInDB]: ...

    @abstractmethod
    def create(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        first_name: str = "",
        last_name: str = "",
        phone: str = "",
        is_active: bool = True,
        is_email_verified: bool = False,
    ) -> UserInDB:
        """Persist a user; raises DuplicateUsernameError / DuplicateEmailError."""

    @abstractmethod
    def update(
        self,
        user_id: int,
        *,
        first_name: str,
        last_name: str,
        phone: str,
        email: str,
        is_active: bool,
    ) -> Optional[UserInDB]: ...

    @abstractmethod
    def set_active(self, user_id: int, active: bool) -> bool: ...

    @abstractmethod
    def toggle_active(self, user_id: int) -> Optional[bool]:
        """Flip is_active; returns the new value or None if the user is missing."""

    @abstractmethod
    def touch_last_login(self, user_id: int, now: datetime) -> None: ...


class RoleStore(ABC):
    """Roles, permissions and their associations."""

    @abstractmethod
    def get_user_roles(self, user_id: int) -> List[RoleResponse]:
        """Roles held by the user, ordered by role id."""

    @abstractmethod
    def get_user_permissions(self, user_id: int) -> List[PermissionResponse]:
        """Distinct permissions across the user's roles, ordered by resource, action, name."""

    @abstractmethod
    def get_role(self, role_id: int) -> Optional[RoleResponse]: ...

    @abstractmethod
    def get_role_by_name(self, name: str) -> Optional[RoleResponse]: ...

    @abstractmethod
    def get_role_permissions(self, role_id: int) -> List[PermissionResponse]: ...

    @abstractmethod
    def list_roles(self) -> List[RoleWithPermissions]: ...

    @abstractmethod
    def create_role(self, name: str, description: str = "") -> RoleResponse: ...

    @abstractmethod
    def update_role(self, role_id: int, name: str, description: str = "") -> Optional[RoleResponse]: ...

    @abstractmethod
    def replace_role_permissions(self, role_id: int, permission_ids: Iterable[int]) -> None: ...

    @abstractmethod
    def assign_role(self, user_id: int, role_id: int) -> None:
        """Make `role_id` the user's only role."""

    @abstractmethod
    def list_permissions(self) -> List[PermissionResponse]: ...

    @abstractmethod
    def create_permission(
        self, name: str, resource: str, action: str, description: str = ""
    ) -> PermissionResponse: ...


class SessionStore(ABC):
    """Login sessions holding token digests."""

    @abstractmethod
    def create(self, session: SessionCreate) -> int: ...

    @abstractmethod
    def find_by_access_hash(self, token_hash: str, now: datetime) -> Optional[SessionRecord]:
        """Unrevoked session whose access token has not expired."""

    @abstractmethod
    def find_by_refresh_hash(self, token_hash: str, now: datetime) -> Optional[SessionRecord]:
        """Unrevoked session whose refresh token has not expired."""

    @abstractmethod
    def update_access_token(
        self, session_id: int, token_hash: str, expires_at: datetime, now: datetime
    ) -> bool: ...

    @abstractmethod
    def revoke(self, session_id: int) -> bool: ...

    @abstractmethod
    def revoke_all(self, user_id: int) -> int: ...

    @abstractmethod
    def sweep_expired(self, user_id: int, now: datetime) -> int:
        """Delete the user's sessions whose refresh token has expired."""

    @abstractmethod
    def list_for_user(self, user_id: int) -> List[SessionRecord]: ...
