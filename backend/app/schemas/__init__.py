"""Pydantic schemas for API validation"""

from app.schemas.user import (
    UserCreate,
    UserUpdate,
    UserResponse,
    UserInDB,
    UserWithRole,
    UserStatusResponse,
)
from app.schemas.rbac import (
    PermissionCreate,
    PermissionResponse,
    RoleCreate,
    RoleUpdate,
    RoleResponse,
    RoleWithPermissions,
    RBACSnapshot,
)
from app.schemas.session import SessionCreate, SessionRecord, SessionResponse
from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
    TokenClaims,
    IntrospectResponse,
)
from app.schemas.response import ErrorResponse, HealthResponse

__all__ = [
    "UserCreate", "UserUpdate", "UserResponse", "UserInDB", "UserWithRole", "UserStatusResponse",
    "PermissionCreate", "PermissionResponse", "RoleCreate", "RoleUpdate", "RoleResponse",
    "RoleWithPermissions", "RBACSnapshot",
    "SessionCreate", "SessionRecord", "SessionResponse",
    "LoginRequest", "LoginResponse", "RefreshTokenRequest", "RefreshTokenResponse",
    "TokenClaims", "IntrospectResponse",
    "ErrorResponse", "HealthResponse",
]
