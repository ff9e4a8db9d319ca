"""Role and permission schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class PermissionResponse(BaseModel):
    """Permission as stored"""
    id: int
    name: str
    resource: str
    action: str
    description: str = ""
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def label(self) -> str:
        return f"{self.resource}.{self.action}"


class PermissionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    resource: str = Field(..., min_length=1, max_length=50)
    action: str = Field(..., min_length=1, max_length=50)
    description: str = ""


class RoleResponse(BaseModel):
    """Role as stored"""
    id: int
    name: str
    description: str = ""
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoleWithPermissions(RoleResponse):
    permissions: List[PermissionResponse] = []


class RoleCreate(BaseModel):
    role_name: str = Field(..., min_length=1, max_length=50)
    description: str = ""
    permission_ids: List[int] = []


class RoleUpdate(BaseModel):
    role_name: str = Field(..., min_length=1, max_length=50)
    description: str = ""
    permission_ids: Optional[List[int]] = None


class RBACSnapshot(BaseModel):
    """Roles and permissions resolved for a user at token-mint time"""
    roles: List[RoleResponse] = []
    permissions: List[PermissionResponse] = []
