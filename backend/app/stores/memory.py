"""In-process stores for tests and single-node development."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from app.core.exceptions import (
    DuplicateEmailError,
    DuplicateUsernameError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
)
from app.schemas.rbac import PermissionResponse, RoleResponse, RoleWithPermissions
from app.schemas.session import SessionCreate, SessionRecord
from app.schemas.user import UserInDB
from app.stores.base import RoleStore, SessionStore, UserStore


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryUserStore(UserStore):
    """Users kept in a dict keyed by id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: Dict[int, UserInDB] = {}
        self._ids = itertools.count(1)

    def _find(self, **match) -> Optional[UserInDB]:
        with self._lock:
            for user in self._users.values():
                if all(getattr(user, key) == value for key, value in match.items()):
                    return user.model_copy()
        return None

    def exists(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._users

    def get_by_id(self, user_id: int) -> Optional[UserInDB]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    def get_by_username(self, username: str) -> Optional[UserInDB]:
        return self._find(username=username)

    def get_by_email(self, email: str) -> Optional[UserInDB]:
        return self._find(email=email)

    def list_all(self) -> List[UserInDB]:
        with self._lock:
            return [self._users[uid].model_copy() for uid in sorted(self._users)]

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
        with self._lock:
            for existing in self._users.values():
                if existing.username == username:
                    raise DuplicateUsernameError(username)
                if existing.email == email:
                    raise DuplicateEmailError(email)
            now = _now()
            user = UserInDB(
                id=next(self._ids),
                username=username,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                is_active=is_active,
                is_email_verified=is_email_verified,
                created_at=now,
                updated_at=now,
            )
            self._users[user.id] = user
            return user.model_copy()

    def update(
        self,
        user_id: int,
        *,
        first_name: str,
        last_name: str,
        phone: str,
        email: str,
        is_active: bool,
    ) -> Optional[UserInDB]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            if any(other.id != user_id and other.email == email for other in self._users.values()):
                raise DuplicateEmailError(email)
            updated = user.model_copy(update={
                "first_name": first_name,
                "last_name": last_name,
                "phone": phone,
                "email": email,
                "is_active": is_active,
                "updated_at": _now(),
            })
            self._users[user_id] = updated
            return updated.model_copy()

    def set_active(self, user_id: int, active: bool) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            self._users[user_id] = user.model_copy(update={"is_active": active, "updated_at": _now()})
            return True

    def toggle_active(self, user_id: int) -> Optional[bool]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            new_status = not user.is_active
            self._users[user_id] = user.model_copy(update={"is_active": new_status, "updated_at": _now()})
            return new_status

    def touch_last_login(self, user_id: int, now: datetime) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is not None:
                self._users[user_id] = user.model_copy(update={"last_login": now})


class MemoryRoleStore(RoleStore):
    """Roles, permissions and both association maps."""

    def __init__(self, users: Optional[MemoryUserStore] = None) -> None:
        self._lock = threading.Lock()
        self._users = users
        self._roles: Dict[int, RoleResponse] = {}
        self._permissions: Dict[int, PermissionResponse] = {}
        self._role_permissions: Dict[int, Set[int]] = {}
        self._user_roles: Dict[int, List[int]] = {}
        self._role_ids = itertools.count(1)
        self._permission_ids = itertools.count(1)

    def _sorted_permissions(self, permission_ids: Iterable[int]) -> List[PermissionResponse]:
        perms = [self._permissions[pid] for pid in set(permission_ids) if pid in self._permissions]
        return sorted(perms, key=lambda p: (p.resource, p.action, p.name))

    def get_user_roles(self, user_id: int) -> List[RoleResponse]:
        with self._lock:
            role_ids = sorted(self._user_roles.get(user_id, []))
            return [self._roles[rid] for rid in role_ids if rid in self._roles]

    def get_user_permissions(self, user_id: int) -> List[PermissionResponse]:
        with self._lock:
            permission_ids: Set[int] = set()
            for rid in self._user_roles.get(user_id, []):
                permission_ids |= self._role_permissions.get(rid, set())
            return self._sorted_permissions(permission_ids)

    def get_role(self, role_id: int) -> Optional[RoleResponse]:
        with self._lock:
            return self._roles.get(role_id)

    def get_role_by_name(self, name: str) -> Optional[RoleResponse]:
        with self._lock:
            for role in self._roles.values():
                if role.name == name:
                    return role
        return None

    def get_role_permissions(self, role_id: int) -> List[PermissionResponse]:
        with self._lock:
            return self._sorted_permissions(self._role_permissions.get(role_id, set()))

    def list_roles(self) -> List[RoleWithPermissions]:
        with self._lock:
            return [
                RoleWithPermissions(
                    **role.model_dump(),
                    permissions=self._sorted_permissions(self._role_permissions.get(role.id, set())),
                )
                for role in sorted(self._roles.values(), key=lambda r: r.name)
            ]

    def create_role(self, name: str, description: str = "") -> RoleResponse:
        with self._lock:
            if any(role.name == name for role in self._roles.values()):
                raise ResourceAlreadyExistsError("Role")
            role = RoleResponse(id=next(self._role_ids), name=name, description=description, created_at=_now())
            self._roles[role.id] = role
            self._role_permissions[role.id] = set()
            return role

    def update_role(self, role_id: int, name: str, description: str = "") -> Optional[RoleResponse]:
        with self._lock:
            role = self._roles.get(role_id)
            if role is None:
                return None
            if any(r.name == name and r.id != role_id for r in self._roles.values()):
                raise ResourceAlreadyExistsError("Role")
            updated = role.model_copy(update={"name": name, "description": description})
            self._roles[role_id] = updated
            return updated

    def replace_role_permissions(self, role_id: int, permission_ids: Iterable[int]) -> None:
        wanted = set(permission_ids)
        with self._lock:
            if role_id not in self._roles:
                raise ResourceNotFoundError("Role")
            if not wanted <= set(self._permissions):
                raise ResourceNotFoundError("Permission")
            self._role_permissions[role_id] = wanted

    def assign_role(self, user_id: int, role_id: int) -> None:
        if self._users is not None and not self._users.exists(user_id):
            raise ResourceNotFoundError("User")
        with self._lock:
            if role_id not in self._roles:
                raise ResourceNotFoundError("Role")
            self._user_roles[user_id] = [role_id]

    def list_permissions(self) -> List[PermissionResponse]:
        with self._lock:
            return self._sorted_permissions(self._permissions)

    def create_permission(
        self, name: str, resource: str, action: str, description: str = ""
    ) -> PermissionResponse:
        with self._lock:
            if any(p.name == name for p in self._permissions.values()):
                raise ResourceAlreadyExistsError("Permission")
            perm = PermissionResponse(
                id=next(self._permission_ids),
                name=name,
                resource=resource,
                action=action,
                description=description,
                created_at=_now(),
            )
            self._permissions[perm.id] = perm
            return perm


class MemorySessionStore(SessionStore):
    """Sessions kept in a dict keyed by id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[int, SessionRecord] = {}
        self._ids = itertools.count(1)

    def create(self, session: SessionCreate) -> int:
        with self._lock:
            record = SessionRecord(id=next(self._ids), **session.model_dump())
            self._sessions[record.id] = record
            return record.id

    def find_by_access_hash(self, token_hash: str, now: datetime) -> Optional[SessionRecord]:
        with self._lock:
            for record in self._sessions.values():
                if (
                    record.access_token_hash == token_hash
                    and not record.is_revoked
                    and record.access_token_expires_at > now
                ):
                    return record.model_copy()
        return None

    def find_by_refresh_hash(self, token_hash: str, now: datetime) -> Optional[SessionRecord]:
        with self._lock:
            for record in self._sessions.values():
                if (
                    record.refresh_token_hash == token_hash
                    and not record.is_revoked
                    and record.refresh_token_expires_at > now
                ):
                    return record.model_copy()
        return None

    def update_access_token(
        self, session_id: int, token_hash: str, expires_at: datetime, now: datetime
    ) -> bool:
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None:
                return False
            self._sessions[session_id] = record.model_copy(update={
                "access_token_hash": token_hash,
                "access_token_expires_at": expires_at,
                "last_refreshed_at": now,
            })
            return True

    def revoke(self, session_id: int) -> bool:
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None:
                return False
            self._sessions[session_id] = record.model_copy(update={"is_revoked": True})
            return True

    def revoke_all(self, user_id: int) -> int:
        with self._lock:
            targets = [
                sid for sid, record in self._sessions.items()
                if record.user_id == user_id and not record.is_revoked
            ]
            for sid in targets:
                self._sessions[sid] = self._sessions[sid].model_copy(update={"is_revoked": True})
            return len(targets)

    def sweep_expired(self, user_id: int, now: datetime) -> int:
        with self._lock:
            expired = [
                sid for sid, record in self._sessions.items()
                if record.user_id == user_id and record.refresh_token_expires_at < now
            ]
            for sid in expired:
                del self._sessions[sid]
            return len(expired)

    def list_for_user(self, user_id: int) -> List[SessionRecord]:
        with self._lock:
            return [
                self._sessions[sid].model_copy()
                for sid in sorted(self._sessions, reverse=True)
                if self._sessions[sid].user_id == user_id
            ]


@dataclass
class MemoryBackend:
    """The three memory stores wired together."""

    users: MemoryUserStore = field(default_factory=MemoryUserStore)
    roles: Optional[MemoryRoleStore] = None
    sessions: MemorySessionStore = field(default_factory=MemorySessionStore)

    def __post_init__(self) -> None:
        if self.roles is None:
            self.roles = MemoryRoleStore(self.users)
