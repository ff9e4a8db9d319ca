"""API dependencies - service wiring, authentication and authorization"""

from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config import settings
from app.core.database import SessionLocal
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.schemas.auth import IntrospectResponse
from app.schemas.user import UserResponse
from app.services.auth_service import AuthService
from app.services.container import ServiceContainer, build_sql_container
from app.services.rbac_service import RBACService
from app.services.user_service import UserService

# HTTP Bearer token scheme; a missing header yields None
security = HTTPBearer(auto_error=False)


@lru_cache()
def get_container() -> ServiceContainer:
    """Process-wide services bound to the SQL stores"""
    return build_sql_container(settings, SessionLocal)


def get_auth_service(container: ServiceContainer = Depends(get_container)) -> AuthService:
    return container.auth


def get_user_service(container: ServiceContainer = Depends(get_container)) -> UserService:
    return container.users


def get_rbac_service(container: ServiceContainer = Depends(get_container)) -> RBACService:
    return container.rbac


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Extract the bearer token

    Raises:
        AuthenticationError: If the Authorization header is missing or not Bearer
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Authorization header is required")
    return credentials.credentials


def get_introspection(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> IntrospectResponse:
    """
    Authenticate the request by introspecting its access token

    Raises:
        AuthenticationError: If the token is not active
    """
    result = auth_service.introspect(token)
    if not result.active:
        raise AuthenticationError("Token validation failed")
    return result


def get_current_user(
    introspection: IntrospectResponse = Depends(get_introspection),
) -> UserResponse:
    """Current authenticated user"""
    return introspection.user


def require_permission(permission: str) -> Callable[..., IntrospectResponse]:
    """
    Build a dependency that demands a `resource.action` permission

    Args:
        permission: Permission label, e.g. "users.read"
    """
    def _check(introspection: IntrospectResponse = Depends(get_introspection)) -> IntrospectResponse:
        if permission not in introspection.permissions:
            raise AuthorizationError(f"Permission '{permission}' is required")
        return introspection

    return _check
