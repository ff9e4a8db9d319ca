"""Authentication and session lifecycle: register, login, refresh, logout, introspect"""

from __future__ import annotations

from datetime import datetime
from functools import cached_property
from typing import Callable, Optional
import logging

from prometheus_client import Counter

from app.core.exceptions import (
    AccountDeactivatedError,
    BaseAPIException,
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    InvalidOrExpiredRefreshTokenError,
    SessionNotFoundError,
    UnauthorizedError,
)
from app.core.security import get_password_hash, hash_token, verify_password
from app.core.tokens import TokenCodec, utcnow
from app.schemas.auth import (
    ACCESS,
    REFRESH,
    IntrospectResponse,
    LoginResponse,
    RefreshTokenResponse,
)
from app.schemas.session import SessionCreate
from app.schemas.user import UserCreate, UserResponse
from app.services.background import BackgroundRunner
from app.services.rbac_service import RBACService
from app.stores.base import SessionStore, UserStore

logger = logging.getLogger(__name__)

AUTH_EVENTS = Counter(
    "usermgmt_auth_events_total",
    "Authentication operations by outcome",
    ["operation", "outcome"],
)


class AuthService:
    """
    Orchestrates credential checks, token minting and session bookkeeping.

    Holds no per-request state; safe to share across worker threads.
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        rbac: RBACService,
        codec: TokenCodec,
        bcrypt_cost: int = 12,
        background: Optional[BackgroundRunner] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._users = users
        self._sessions = sessions
        self._rbac = rbac
        self._codec = codec
        self._bcrypt_cost = bcrypt_cost
        self._background = background or BackgroundRunner(name="session-sweep")
        self._clock = clock

    @cached_property
    def _dummy_hash(self) -> str:
        return get_password_hash("timing-equalization-placeholder", self._bcrypt_cost)

    def register(self, data: UserCreate) -> UserResponse:
        """
        Create an active, unverified user

        Args:
            data: Registration payload

        Returns:
            Created user without its password hash

        Raises:
            DuplicateUsernameError: Username taken
            DuplicateEmailError: Email taken
        """
        if self._users.get_by_username(data.username):
            raise DuplicateUsernameError(data.username)
        if self._users.get_by_email(data.email):
            raise DuplicateEmailError(data.email)

        password_hash = get_password_hash(data.password, self._bcrypt_cost)
        user = self._users.create(
            username=data.username,
            email=data.email,
            password_hash=password_hash,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            is_active=True,
            is_email_verified=False,
        )
        AUTH_EVENTS.labels("register", "success").inc()
        logger.info(f"Registered user: {user.username} (id: {user.id})")
        return user.public()

    def login(self, email: str, password: str) -> LoginResponse:
        """
        Verify credentials and open a session

        Args:
            email: Account email
            password: Plain text password

        Returns:
            Access and refresh tokens, their expiries, session id and RBAC snapshot
        """
        user = self._users.get_by_email(email.lower())
        if user is None:
            verify_password(password, self._dummy_hash)
            AUTH_EVENTS.labels("login", "invalid_credentials").inc()
            raise InvalidCredentialsError()

        if not user.is_active:
            AUTH_EVENTS.labels("login", "deactivated").inc()
            raise AccountDeactivatedError()

        if not verify_password(password, user.password_hash):
            AUTH_EVENTS.labels("login", "invalid_credentials").inc()
            raise InvalidCredentialsError()

        now = self._clock()
        try:
            self._users.touch_last_login(user.id, now)
            user = user.model_copy(update={"last_login": now})
        except BaseAPIException as exc:
            logger.warning(f"Failed to update last login for user {user.id}: {exc.message}")

        snapshot = self._rbac.snapshot(user.id)
        public_user = user.public()
        access_token, access_expires_at = self._codec.mint(
            public_user, ACCESS, snapshot.roles, snapshot.permissions, now
        )
        refresh_token, refresh_expires_at = self._codec.mint(
            public_user, REFRESH, snapshot.roles, snapshot.permissions, now
        )

        session_id = self._sessions.create(SessionCreate(
            user_id=user.id,
            access_token_hash=hash_token(access_token),
            access_token_expires_at=access_expires_at,
            refresh_token_hash=hash_token(refresh_token),
            refresh_token_expires_at=refresh_expires_at,
            created_at=now,
        ))

        self._background.submit(self._sweep_expired_sessions, user.id)

        AUTH_EVENTS.labels("login", "success").inc()
        logger.info(f"User logged in: {user.username} (session: {session_id})")
        return LoginResponse(
            access_token=access_token,
            access_token_expires_at=access_expires_at,
            refresh_token=refresh_token,
            refresh_token_expires_at=refresh_expires_at,
            session_id=session_id,
            roles=snapshot.roles,
            permissions=snapshot.permissions,
            user=public_user,
        )

    def _sweep_expired_sessions(self, user_id: int) -> None:
        try:
            removed = self._sessions.sweep_expired(user_id, self._clock())
        except BaseAPIException as exc:
            logger.warning(f"Failed to clean up expired sessions for user {user_id}: {exc.message}")
            return
        if removed:
            logger.info(f"Removed {removed} expired sessions for user {user_id}")

    def refresh_token(self, refresh_token: str) -> RefreshTokenResponse:
        """
        Exchange a refresh token for a new access token

        The refresh token itself is not rotated; only the session's access
        side is overwritten.
        """
        now = self._clock()
        claims = self._codec.verify(refresh_token, now, expected_kind=REFRESH)

        session = self._sessions.find_by_refresh_hash(hash_token(refresh_token), now)
        if session is None:
            AUTH_EVENTS.labels("refresh", "no_session").inc()
            raise InvalidOrExpiredRefreshTokenError()

        if session.user_id != claims.user_id:
            AUTH_EVENTS.labels("refresh", "owner_mismatch").inc()
            logger.warning(
                f"Refresh token subject {claims.user_id} does not own session {session.id}"
            )
            raise UnauthorizedError()

        user = self._users.get_by_id(claims.user_id)
        if user is None:
            raise InvalidOrExpiredRefreshTokenError()
        if not user.is_active:
            AUTH_EVENTS.labels("refresh", "deactivated").inc()
            raise AccountDeactivatedError()

        snapshot = self._rbac.snapshot(user.id)
        access_token, access_expires_at = self._codec.mint(
            user.public(), ACCESS, snapshot.roles, snapshot.permissions, now
        )
        if not self._sessions.update_access_token(
            session.id, hash_token(access_token), access_expires_at, now
        ):
            raise SessionNotFoundError()

        AUTH_EVENTS.labels("refresh", "success").inc()
        return RefreshTokenResponse(access_token=access_token, access_token_expires_at=access_expires_at)

    def logout(self, access_token: str) -> None:
        """
        Revoke the session holding this access token

        A second logout with the same token raises SessionNotFoundError.
        """
        now = self._clock()
        claims = self._codec.verify(access_token, now, expected_kind=ACCESS)

        session = self._sessions.find_by_access_hash(hash_token(access_token), now)
        if session is None:
            raise SessionNotFoundError()

        if session.user_id != claims.user_id:
            logger.warning(
                f"Access token subject {claims.user_id} does not own session {session.id}"
            )
            raise UnauthorizedError()

        if not self._sessions.revoke(session.id):
            raise SessionNotFoundError()

        AUTH_EVENTS.labels("logout", "success").inc()
        logger.info(f"Session {session.id} revoked for user {claims.user_id}")

    def introspect(self, access_token: str) -> IntrospectResponse:
        """
        Report whether an access token is currently usable

        Never raises for token or store failures; they all yield inactive.
        """
        inactive = IntrospectResponse(active=False)
        now = self._clock()
        try:
            claims = self._codec.verify(access_token, now, expected_kind=ACCESS)
            session = self._sessions.find_by_access_hash(hash_token(access_token), now)
            if session is None or session.user_id != claims.user_id:
                return inactive
            user = self._users.get_by_id(claims.user_id)
        except BaseAPIException as exc:
            logger.debug(f"Introspection rejected token: {exc.message}")
            return inactive

        if user is None or not user.is_active:
            return inactive

        return IntrospectResponse(
            active=True,
            user=user.public(),
            session_id=session.id,
            role=claims.role,
            roles=claims.roles,
            permissions=claims.permissions,
        )
