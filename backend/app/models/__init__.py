"""Database models"""

from app.models.rbac import Role, Permission, role_permissions, user_roles
from app.models.user import User
from app.models.security import UserSession

__all__ = ["User", "Role", "Permission", "role_permissions", "user_roles", "UserSession"]
