"""Authentication routes"""

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials
from typing import Optional

from app.schemas.auth import (
    IntrospectResponse,
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
)
from app.schemas.user import UserCreate, UserResponse
from app.services.auth_service import AuthService
from app.api.deps import get_auth_service, get_bearer_token, get_current_user, security

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a new account

    Args:
        user_data: Username, email, password and optional profile fields

    Returns:
        Created user
    """
    return auth_service.register(user_data)


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Login endpoint - authenticate user and open a session

    Args:
        credentials: Email and password

    Returns:
        Access and refresh tokens, session id and the RBAC snapshot
    """
    return auth_service.login(credentials.email, credentials.password)


@router.post("/refresh", response_model=RefreshTokenResponse)
def refresh_token(
    req: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Exchange a refresh token for a new access token

    Args:
        req: Refresh token

    Returns:
        New access token and its expiry
    """
    return auth_service.refresh_token(req.refresh_token)


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Logout endpoint - revoke the session of the presented access token

    Returns:
        Success message
    """
    auth_service.logout(token)
    return {
        "success": True,
        "message": "Logged out successfully"
    }


@router.get("/introspect", response_model=IntrospectResponse)
def introspect(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Report whether the presented access token is usable

    Always answers 200; a missing or bad token yields `active: false`.
    """
    if not credentials or not credentials.credentials:
        return IntrospectResponse(active=False)
    return auth_service.introspect(credentials.credentials)


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: UserResponse = Depends(get_current_user)
):
    """
    Get current user information

    Args:
        current_user: Current authenticated user

    Returns:
        User information
    """
    return current_user
