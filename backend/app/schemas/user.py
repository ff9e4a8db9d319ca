"""User schemas"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from app.schemas.rbac import RoleWithPermissions


class UserCreate(BaseModel):
    """User registration schema"""
    username: str = Field(..., min_length=3, max_length=50, pattern=r'^[a-zA-Z0-9._-]+$')
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field("", max_length=50)
    last_name: str = Field("", max_length=50)
    phone: str = Field("", max_length=20)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Emails are matched case-insensitively"""
        return v.lower()

    @field_validator('password')
    @classmethod
    def password_fits_bcrypt(cls, v):
        """bcrypt only accepts 72 bytes of input"""
        if len(v.encode('utf-8')) > 72:
            raise ValueError('Password must be at most 72 bytes')
        return v


class UserUpdate(BaseModel):
    """Profile update schema"""
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    phone: str = Field("", max_length=20)
    email: EmailStr
    is_active: Optional[bool] = None
    role_id: Optional[int] = None

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class UserResponse(BaseModel):
    """User response schema"""
    id: int
    username: str
    email: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    is_active: bool
    is_email_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserInDB(UserResponse):
    """Stored user including the credential hash; never returned by the API"""
    password_hash: str

    def public(self) -> UserResponse:
        return UserResponse.model_validate(self.model_dump(exclude={"password_hash"}))


class UserWithRole(UserResponse):
    """User listing entry with the primary role and its permissions"""
    role: Optional[RoleWithPermissions] = None


class UserStatusResponse(BaseModel):
    """Result of an activation toggle"""
    id: int
    is_active: bool
    sessions_revoked: int = 0
