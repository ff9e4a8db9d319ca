"""Authentication request/response schemas and token claims"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from app.schemas.rbac import PermissionResponse, RoleResponse
from app.schemas.user import UserResponse

ACCESS = "access"
REFRESH = "refresh"


class LoginRequest(BaseModel):
    """Login schema"""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Issued token pair plus the RBAC snapshot embedded in it"""
    access_token: str
    access_token_expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime
    token_type: str = "bearer"
    session_id: int
    roles: List[RoleResponse] = []
    permissions: List[PermissionResponse] = []
    user: UserResponse


class RefreshTokenResponse(BaseModel):
    access_token: str
    access_token_expires_at: datetime
    token_type: str = "bearer"


class TokenClaims(BaseModel):
    """Decoded JWT payload"""
    user_id: int
    username: str
    email: str
    token_type: Literal["access", "refresh"]
    role: str = ""
    roles: List[str] = []
    permissions: List[str] = []
    exp: int
    iat: int
    sub: str
    iss: str
    jti: Optional[str] = None


class IntrospectResponse(BaseModel):
    """Introspection result; inactive tokens carry no user"""
    active: bool
    user: Optional[UserResponse] = None
    session_id: Optional[int] = None
    role: Optional[str] = None
    roles: List[str] = []
    permissions: List[str] = []
