"""JWT codec for access and refresh tokens"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence, Tuple

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import (
    InvalidSignatureError,
    InvalidTokenKindError,
    MalformedTokenError,
    NotAnAccessTokenError,
    NotARefreshTokenError,
    TokenExpiredError,
)
from app.schemas.auth import ACCESS, REFRESH, TokenClaims
from app.schemas.rbac import PermissionResponse, RoleResponse
from app.schemas.user import UserResponse

DEFAULT_ISSUER = "user-management-service"

_KIND_ERRORS = {
    ACCESS: NotAnAccessTokenError,
    REFRESH: NotARefreshTokenError,
}


def primary_role_label(roles: Sequence[RoleResponse]) -> str:
    """Collapse a user's roles to the single label carried in the `role` claim"""
    return roles[0].name if roles else ""


def permission_labels(permissions: Sequence[PermissionResponse]) -> list:
    """Render permissions as `resource.action` strings"""
    return [f"{perm.resource}.{perm.action}" for perm in permissions]


class TokenCodec:
    """
    Mint and verify HMAC-signed JWTs.

    The codec never reads the wall clock; callers pass `now` explicitly.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_minutes: int = 15,
        refresh_token_days: int = 7,
        issuer: str = DEFAULT_ISSUER,
    ):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_minutes = access_token_minutes
        self.refresh_token_days = refresh_token_days
        self.issuer = issuer

    def _lifetime(self, kind: str) -> timedelta:
        if kind == ACCESS:
            return timedelta(minutes=self.access_token_minutes)
        if kind == REFRESH:
            return timedelta(days=self.refresh_token_days)
        raise InvalidTokenKindError(kind)

    def mint(
        self,
        user: UserResponse,
        kind: str,
        roles: Sequence[RoleResponse],
        permissions: Sequence[PermissionResponse],
        now: datetime,
    ) -> Tuple[str, datetime]:
        """
        Create a signed token

        Args:
            user: Token subject
            kind: "access" or "refresh"
            roles: Role snapshot
            permissions: Permission snapshot
            now: Issue time (timezone-aware UTC)

        Returns:
            Tuple of (encoded token, expiry)
        """
        issued_at = now.replace(microsecond=0)
        expires_at = issued_at + self._lifetime(kind)

        claims = TokenClaims(
            user_id=user.id,
            username=user.username,
            email=user.email,
            token_type=kind,
            role=primary_role_label(roles),
            roles=[role.name for role in roles],
            permissions=permission_labels(permissions),
            exp=int(expires_at.timestamp()),
            iat=int(issued_at.timestamp()),
            sub=str(user.id),
            iss=self.issuer,
            jti=secrets.token_urlsafe(16),
        )
        token = jwt.encode(claims.model_dump(), self._secret_key, algorithm=self.algorithm)
        return token, expires_at

    def verify(self, token: str, now: datetime, expected_kind: Optional[str] = None) -> TokenClaims:
        """
        Decode and verify a token

        Args:
            token: Encoded JWT
            now: Reference time for the expiry check
            expected_kind: Reject tokens of any other kind when given

        Returns:
            TokenClaims: Typed claim set

        Raises:
            MalformedTokenError: Token cannot be parsed or claims are incomplete
            InvalidSignatureError: Algorithm, signature or issuer mismatch
            TokenExpiredError: `now` is at or past `exp`
            NotAnAccessTokenError / NotARefreshTokenError: Wrong kind
        """
        if expected_kind is not None and expected_kind not in _KIND_ERRORS:
            raise InvalidTokenKindError(expected_kind)

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedTokenError() from exc

        if header.get("alg") != self.algorithm:
            raise InvalidSignatureError()

        # An unreadable payload is malformed whatever the signature says
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedTokenError() from exc

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTClaimsError as exc:
            # wrong issuer
            raise InvalidSignatureError() from exc
        except JWTError as exc:
            raise InvalidSignatureError() from exc

        try:
            claims = TokenClaims.model_validate(payload)
        except PydanticValidationError as exc:
            raise MalformedTokenError() from exc

        if int(now.timestamp()) >= claims.exp:
            raise TokenExpiredError()

        if expected_kind is not None and claims.token_type != expected_kind:
            raise _KIND_ERRORS[expected_kind]()

        return claims


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
