"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, status_code=401)


class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password (deliberately indistinguishable)"""
    def __init__(self):
        super().__init__("Invalid credentials")


class AccountDeactivatedError(BaseAPIException):
    """User account is not active"""
    def __init__(self):
        super().__init__("Account is deactivated", status_code=403)


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""
    def __init__(self):
        super().__init__("Token has expired")


class InvalidSignatureError(AuthenticationError):
    """JWT signature, algorithm or issuer did not verify"""
    def __init__(self):
        super().__init__("Invalid token")


class MalformedTokenError(AuthenticationError):
    """JWT could not be decoded or its claims are incomplete"""
    def __init__(self):
        super().__init__("Malformed token")


class NotAnAccessTokenError(AuthenticationError):
    """A refresh token was presented where an access token is required"""
    def __init__(self):
        super().__init__("Token is not an access token")


class NotARefreshTokenError(AuthenticationError):
    """An access token was presented where a refresh token is required"""
    def __init__(self):
        super().__init__("Token is not a refresh token")


class InvalidOrExpiredRefreshTokenError(AuthenticationError):
    """No live session holds this refresh token"""
    def __init__(self):
        super().__init__("Invalid or expired refresh token")


class SessionNotFoundError(AuthenticationError):
    """No live session holds this access token"""
    def __init__(self):
        super().__init__("Session not found")


class UnauthorizedError(AuthenticationError):
    """Session owner does not match the token subject"""
    def __init__(self):
        super().__init__("Unauthorized")


class InvalidTokenKindError(ValueError):
    """Token kind other than access/refresh requested from the codec"""
    def __init__(self, kind: str):
        super().__init__(f"Invalid token type: {kind}")


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class ResourceAlreadyExistsError(BaseAPIException):
    """Resource already exists"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} already exists", status_code=409)


class DuplicateUsernameError(ResourceAlreadyExistsError):
    """Username already exists"""
    def __init__(self, username: str):
        BaseAPIException.__init__(self, f"Username '{username}' already exists", status_code=409)


class DuplicateEmailError(ResourceAlreadyExistsError):
    """Email already exists"""
    def __init__(self, email: str):
        BaseAPIException.__init__(self, f"Email '{email}' already exists", status_code=409)


# System Errors
class StoreUnavailableError(BaseAPIException):
    """Persistence operation failed"""
    def __init__(self, message: str = "A storage error occurred. Please try again later."):
        super().__init__(message, status_code=500)


class HashingError(BaseAPIException):
    """Password hashing failed"""
    def __init__(self, message: str = "Failed to hash password"):
        super().__init__(message, status_code=500)
