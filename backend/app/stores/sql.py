"""SQLAlchemy-backed stores. Every public method runs in its own transaction."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterable, Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    DuplicateEmailError,
    DuplicateUsernameError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    StoreUnavailableError,
)
from app.models.rbac import Permission, Role, role_permissions, user_roles
from app.models.security import UserSession
from app.models.user import User
from app.schemas.rbac import PermissionResponse, RoleResponse, RoleWithPermissions
from app.schemas.session import SessionCreate, SessionRecord
from app.schemas.user import UserInDB
from app.stores.base import RoleStore, SessionStore, UserStore, as_utc

logger = logging.getLogger(__name__)


class _SqlStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("%s operation failed: %s", type(self).__name__, exc)
            raise StoreUnavailableError() from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def _user_record(user: User) -> UserInDB:
    record = UserInDB.model_validate(user)
    return record.model_copy(update={
        "created_at": as_utc(record.created_at),
        "updated_at": as_utc(record.updated_at),
        "last_login": as_utc(record.last_login),
    })


def _session_record(row: UserSession) -> SessionRecord:
    record = SessionRecord.model_validate(row)
    return record.model_copy(update={
        "access_token_expires_at": as_utc(record.access_token_expires_at),
        "refresh_token_expires_at": as_utc(record.refresh_token_expires_at),
        "created_at": as_utc(record.created_at),
        "last_refreshed_at": as_utc(record.last_refreshed_at),
    })


def _sorted_permissions(perms: Iterable[Permission]) -> List[PermissionResponse]:
    ordered = sorted(perms, key=lambda p: (p.resource, p.action, p.name))
    return [PermissionResponse.model_validate(p) for p in ordered]


class SqlUserStore(_SqlStore, UserStore):
    """Users table access."""

    def _get(self, *criteria) -> Optional[UserInDB]:
        with self._session() as db:
            user = db.query(User).filter(*criteria).first()
            return _user_record(user) if user else None

    def get_by_id(self, user_id: int) -> Optional[UserInDB]:
        return self._get(User.id == user_id)

    def get_by_username(self, username: str) -> Optional[UserInDB]:
        return self._get(User.username == username)

    def get_by_email(self, email: str) -> Optional[UserInDB]:
        return self._get(User.email == email)

    def list_all(self) -> List[UserInDB]:
        with self._session() as db:
            return [_user_record(u) for u in db.query(User).order_by(User.id).all()]

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
        with self._session() as db:
            user = User(
                username=username,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                is_active=is_active,
                is_email_verified=is_email_verified,
            )
            db.add(user)
            try:
                db.flush()
            except IntegrityError:
                db.rollback()
                if db.query(User.id).filter(User.username == username).first():
                    raise DuplicateUsernameError(username)
                raise DuplicateEmailError(email)
            db.refresh(user)
            return _user_record(user)

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
        with self._session() as db:
            user = db.query(User).filter(User.id == user_id).first()
            if not user:
                return None
            clash = db.query(User.id).filter(User.email == email, User.id != user_id).first()
            if clash:
                raise DuplicateEmailError(email)
            user.first_name = first_name
            user.last_name = last_name
            user.phone = phone
            user.email = email
            user.is_active = is_active
            db.flush()
            db.refresh(user)
            return _user_record(user)

    def set_active(self, user_id: int, active: bool) -> bool:
        with self._session() as db:
            count = db.query(User).filter(User.id == user_id).update(
                {User.is_active: active}, synchronize_session=False
            )
            return count > 0

    def toggle_active(self, user_id: int) -> Optional[bool]:
        with self._session() as db:
            user = db.query(User).filter(User.id == user_id).with_for_update().first()
            if not user:
                return None
            user.is_active = not user.is_active
            return user.is_active

    def touch_last_login(self, user_id: int, now: datetime) -> None:
        with self._session() as db:
            db.query(User).filter(User.id == user_id).update(
                {User.last_login: now}, synchronize_session=False
            )


class SqlRoleStore(_SqlStore, RoleStore):
    """Roles, permissions and association tables."""

    def get_user_roles(self, user_id: int) -> List[RoleResponse]:
        with self._session() as db:
            roles = (
                db.query(Role)
                .join(user_roles, user_roles.c.role_id == Role.id)
                .filter(user_roles.c.user_id == user_id)
                .order_by(Role.id)
                .all()
            )
            return [RoleResponse.model_validate(r) for r in roles]

    def get_user_permissions(self, user_id: int) -> List[PermissionResponse]:
        with self._session() as db:
            perms = (
                db.query(Permission)
                .join(role_permissions, role_permissions.c.permission_id == Permission.id)
                .join(user_roles, user_roles.c.role_id == role_permissions.c.role_id)
                .filter(user_roles.c.user_id == user_id)
                .distinct()
                .order_by(Permission.resource, Permission.action, Permission.name)
                .all()
            )
            return [PermissionResponse.model_validate(p) for p in perms]

    def get_role(self, role_id: int) -> Optional[RoleResponse]:
        with self._session() as db:
            role = db.query(Role).filter(Role.id == role_id).first()
            return RoleResponse.model_validate(role) if role else None

    def get_role_by_name(self, name: str) -> Optional[RoleResponse]:
        with self._session() as db:
            role = db.query(Role).filter(Role.name == name).first()
            return RoleResponse.model_validate(role) if role else None

    def get_role_permissions(self, role_id: int) -> List[PermissionResponse]:
        with self._session() as db:
            role = db.query(Role).filter(Role.id == role_id).first()
            return _sorted_permissions(role.permissions) if role else []

    def list_roles(self) -> List[RoleWithPermissions]:
        with self._session() as db:
            return [
                RoleWithPermissions(
                    **RoleResponse.model_validate(role).model_dump(),
                    permissions=_sorted_permissions(role.permissions),
                )
                for role in db.query(Role).order_by(Role.name.asc()).all()
            ]

    def create_role(self, name: str, description: str = "") -> RoleResponse:
        with self._session() as db:
            if db.query(Role.id).filter(Role.name == name).first():
                raise ResourceAlreadyExistsError("Role")
            role = Role(name=name, description=description)
            db.add(role)
            db.flush()
            db.refresh(role)
            return RoleResponse.model_validate(role)

    def update_role(self, role_id: int, name: str, description: str = "") -> Optional[RoleResponse]:
        with self._session() as db:
            role = db.query(Role).filter(Role.id == role_id).first()
            if not role:
                return None
            if db.query(Role.id).filter(Role.name == name, Role.id != role_id).first():
                raise ResourceAlreadyExistsError("Role")
            role.name = name
            role.description = description
            db.flush()
            return RoleResponse.model_validate(role)

    def replace_role_permissions(self, role_id: int, permission_ids: Iterable[int]) -> None:
        wanted = set(permission_ids)
        with self._session() as db:
            role = db.query(Role).filter(Role.id == role_id).first()
            if not role:
                raise ResourceNotFoundError("Role")
            perms = db.query(Permission).filter(Permission.id.in_(wanted)).all() if wanted else []
            if len(perms) != len(wanted):
                raise ResourceNotFoundError("Permission")
            role.permissions = perms

    def assign_role(self, user_id: int, role_id: int) -> None:
        with self._session() as db:
            user = db.query(User).filter(User.id == user_id).first()
            if not user:
                raise ResourceNotFoundError("User")
            role = db.query(Role).filter(Role.id == role_id).first()
            if not role:
                raise ResourceNotFoundError("Role")
            user.roles = [role]

    def list_permissions(self) -> List[PermissionResponse]:
        with self._session() as db:
            return _sorted_permissions(db.query(Permission).all())

    def create_permission(
        self, name: str, resource: str, action: str, description: str = ""
    ) -> PermissionResponse:
        with self._session() as db:
            if db.query(Permission.id).filter(Permission.name == name).first():
                raise ResourceAlreadyExistsError("Permission")
            perm = Permission(name=name, resource=resource, action=action, description=description)
            db.add(perm)
            db.flush()
            db.refresh(perm)
            return PermissionResponse.model_validate(perm)


class SqlSessionStore(_SqlStore, SessionStore):
    """user_sessions table access."""

    def create(self, session: SessionCreate) -> int:
        with self._session() as db:
            row = UserSession(**session.model_dump(), is_revoked=False)
            db.add(row)
            db.flush()
            return row.id

    def find_by_access_hash(self, token_hash: str, now: datetime) -> Optional[SessionRecord]:
        with self._session() as db:
            row = (
                db.query(UserSession)
                .filter(
                    UserSession.access_token_hash == token_hash,
                    UserSession.is_revoked == False,  # noqa: E712
                    UserSession.access_token_expires_at > now,
                )
                .first()
            )
            return _session_record(row) if row else None

    def find_by_refresh_hash(self, token_hash: str, now: datetime) -> Optional[SessionRecord]:
        with self._session() as db:
            row = (
                db.query(UserSession)
                .filter(
                    UserSession.refresh_token_hash == token_hash,
                    UserSession.is_revoked == False,  # noqa: E712
                    UserSession.refresh_token_expires_at > now,
                )
                .first()
            )
            return _session_record(row) if row else None

    def update_access_token(
        self, session_id: int, token_hash: str, expires_at: datetime, now: datetime
    ) -> bool:
        with self._session() as db:
            count = db.query(UserSession).filter(UserSession.id == session_id).update(
                {
                    UserSession.access_token_hash: token_hash,
                    UserSession.access_token_expires_at: expires_at,
                    UserSession.last_refreshed_at: now,
                },
                synchronize_session=False,
            )
            return count > 0

    def revoke(self, session_id: int) -> bool:
        with self._session() as db:
            count = db.query(UserSession).filter(UserSession.id == session_id).update(
                {UserSession.is_revoked: True}, synchronize_session=False
            )
            return count > 0

    def revoke_all(self, user_id: int) -> int:
        with self._session() as db:
            return db.query(UserSession).filter(
                UserSession.user_id == user_id,
                UserSession.is_revoked == False,  # noqa: E712
            ).update({UserSession.is_revoked: True}, synchronize_session=False)

    def sweep_expired(self, user_id: int, now: datetime) -> int:
        with self._session() as db:
            return db.query(UserSession).filter(
                UserSession.user_id == user_id,
                UserSession.refresh_token_expires_at < now,
            ).delete(synchronize_session=False)

    def list_for_user(self, user_id: int) -> List[SessionRecord]:
        with self._session() as db:
            rows = (
                db.query(UserSession)
                .filter(UserSession.user_id == user_id)
                .order_by(UserSession.id.desc())
                .all()
            )
            return [_session_record(r) for r in rows]
