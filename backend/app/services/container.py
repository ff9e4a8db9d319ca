"""Wiring of stores, codec and services"""

from dataclasses import dataclass
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from app.config import Settings
from app.core.exceptions import ResourceNotFoundError
from app.core.tokens import TokenCodec
from app.schemas.user import UserCreate
from app.services.auth_service import AuthService
from app.services.background import BackgroundRunner
from app.services.rbac_service import RBACService
from app.services.user_service import UserService
from app.stores.base import RoleStore, SessionStore, UserStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    auth: AuthService
    users: UserService
    rbac: RBACService


def build_codec(settings: Settings) -> TokenCodec:
    return TokenCodec(
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        access_token_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        refresh_token_days=settings.REFRESH_TOKEN_EXPIRE_DAYS,
        issuer=settings.TOKEN_ISSUER,
    )


def build_container(
    settings: Settings,
    users: UserStore,
    roles: RoleStore,
    sessions: SessionStore,
    background: Optional[BackgroundRunner] = None,
    **auth_kwargs,
) -> ServiceContainer:
    rbac = RBACService(roles)
    auth = AuthService(
        users=users,
        sessions=sessions,
        rbac=rbac,
        codec=build_codec(settings),
        bcrypt_cost=settings.BCRYPT_COST,
        background=background,
        **auth_kwargs,
    )
    return ServiceContainer(auth=auth, users=UserService(users, sessions, rbac), rbac=rbac)


def build_sql_container(settings: Settings, session_factory: Callable[[], Session]) -> ServiceContainer:
    """Container backed by the SQL stores"""
    from app.stores.sql import SqlRoleStore, SqlSessionStore, SqlUserStore

    return build_container(
        settings,
        users=SqlUserStore(session_factory),
        roles=SqlRoleStore(session_factory),
        sessions=SqlSessionStore(session_factory),
    )


def seed_defaults(container: ServiceContainer, settings: Settings) -> None:
    """
    Seed the permission catalogue, the admin role and the admin user

    Safe to run on every startup; existing rows are left in place.
    """
    admin_role = container.rbac.ensure_defaults()

    try:
        admin = container.users.get_user_by_username(settings.ADMIN_USERNAME)
    except ResourceNotFoundError:
        admin = container.auth.register(UserCreate(
            username=settings.ADMIN_USERNAME,
            email=settings.ADMIN_EMAIL,
            password=settings.ADMIN_PASSWORD,
        ))
        logger.info(f"Created admin user: {settings.ADMIN_USERNAME}")

    if admin_role.name not in [role.name for role in container.rbac.roles_of(admin.id)]:
        container.rbac.assign_role(admin.id, admin_role.id)
