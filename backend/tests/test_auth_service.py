import pytest

from app.core.exceptions import (
    AccountDeactivatedError,
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    InvalidOrExpiredRefreshTokenError,
    NotAnAccessTokenError,
    NotARefreshTokenError,
    SessionNotFoundError,
    StoreUnavailableError,
    TokenExpiredError,
    UnauthorizedError,
)
from app.core.security import hash_token, verify_password
from app.schemas.auth import ACCESS
from app.schemas.session import SessionCreate
from app.schemas.user import UserCreate


def _login(container, email="alice@example.com", password="correct-horse-1"):
    return container.auth.login(email, password)


def test_register_creates_active_unverified_user(container, backend, make_user):
    user = make_user(first_name="Alice", last_name="Liddell", phone="555-0100")

    assert user.id == 1
    assert user.is_active is True
    assert user.is_email_verified is False
    assert user.first_name == "Alice"
    assert not hasattr(user, "password_hash")

    stored = backend.users.get_by_id(user.id)
    assert stored.password_hash != "correct-horse-1"
    assert verify_password("correct-horse-1", stored.password_hash)


def test_register_rejects_duplicate_username(make_user):
    make_user()
    with pytest.raises(DuplicateUsernameError):
        make_user(email="other@example.com")


def test_register_rejects_duplicate_email_case_insensitively(make_user):
    make_user()
    with pytest.raises(DuplicateEmailError):
        make_user(username="alice2", email="ALICE@example.com")


def test_login_returns_tokens_session_and_snapshot(container, backend, clock, make_user):
    user = make_user()
    admin_role = container.rbac.ensure_defaults()
    container.rbac.assign_role(user.id, admin_role.id)

    result = _login(container)

    assert result.user.id == user.id
    assert result.user.last_login == clock.now
    assert result.token_type == "bearer"
    assert [role.name for role in result.roles] == ["admin"]
    assert "users.read" in [perm.label for perm in result.permissions]

    sessions = backend.sessions.list_for_user(user.id)
    assert [s.id for s in sessions] == [result.session_id]
    assert sessions[0].access_token_hash == hash_token(result.access_token)
    assert sessions[0].refresh_token_hash == hash_token(result.refresh_token)
    assert sessions[0].access_token_expires_at == result.access_token_expires_at
    assert sessions[0].refresh_token_expires_at == result.refresh_token_expires_at
    assert backend.users.get_by_id(user.id).last_login == clock.now


def test_login_matches_email_case_insensitively(container, make_user):
    make_user()
    assert _login(container, email="Alice@Example.COM").user.username == "alice"


def test_login_unknown_email(container):
    with pytest.raises(InvalidCredentialsError):
        _login(container, email="nobody@example.com")


def test_wrong_password_creates_no_session(container, backend, make_user):
    user = make_user()
    with pytest.raises(InvalidCredentialsError):
        _login(container, password="wrong-password")
    assert backend.sessions.list_for_user(user.id) == []


def test_deactivated_account_is_refused_before_password_check(container, make_user):
    user = make_user()
    container.users.deactivate(user.id)

    with pytest.raises(AccountDeactivatedError):
        _login(container)
    with pytest.raises(AccountDeactivatedError):
        _login(container, password="wrong-password")


def test_register_login_introspect_scenario(container, make_user):
    user = make_user()
    tokens = _login(container)

    result = container.auth.introspect(tokens.access_token)

    assert result.active is True
    assert result.user.id == user.id
    assert result.session_id == tokens.session_id
    assert result.role == ""
    assert result.roles == []
    assert result.permissions == []


def test_introspect_carries_role_and_permission_labels(container, admin_user):
    tokens = _login(container, email="root@example.com", password="admin-pass-123")

    result = container.auth.introspect(tokens.access_token)

    assert result.role == "admin"
    assert result.roles == ["admin"]
    assert "roles.create" in result.permissions


def test_introspect_rejects_garbage_and_refresh_tokens(container, make_user):
    make_user()
    tokens = _login(container)

    assert container.auth.introspect("garbage").active is False
    assert container.auth.introspect(tokens.refresh_token).active is False


def test_logout_twice(container, make_user):
    make_user()
    tokens = _login(container)

    container.auth.logout(tokens.access_token)

    assert container.auth.introspect(tokens.access_token).active is False
    with pytest.raises(SessionNotFoundError):
        container.auth.logout(tokens.access_token)


def test_logout_with_refresh_token(container, make_user):
    make_user()
    tokens = _login(container)
    with pytest.raises(NotAnAccessTokenError):
        container.auth.logout(tokens.refresh_token)


def test_refresh_with_access_token(container, make_user):
    make_user()
    tokens = _login(container)
    with pytest.raises(NotARefreshTokenError):
        container.auth.refresh_token(tokens.access_token)


def test_refresh_replaces_access_side_only(container, backend, clock, make_user):
    user = make_user()
    tokens = _login(container)
    clock.advance(minutes=5)

    refreshed = container.auth.refresh_token(tokens.refresh_token)

    session = backend.sessions.list_for_user(user.id)[0]
    assert session.refresh_token_hash == hash_token(tokens.refresh_token)
    assert session.access_token_hash == hash_token(refreshed.access_token)
    assert session.access_token_expires_at == refreshed.access_token_expires_at
    assert session.last_refreshed_at == clock.now

    assert container.auth.introspect(tokens.access_token).active is False
    assert container.auth.introspect(refreshed.access_token).active is True

    # The same refresh token keeps working.
    container.auth.refresh_token(tokens.refresh_token)


def test_refresh_picks_up_current_permissions(container, make_user):
    user = make_user()
    tokens = _login(container)
    admin_role = container.rbac.ensure_defaults()
    container.rbac.assign_role(user.id, admin_role.id)

    refreshed = container.auth.refresh_token(tokens.refresh_token)

    assert "users.update" in container.auth.introspect(refreshed.access_token).permissions


def test_refresh_after_logout(container, make_user):
    make_user()
    tokens = _login(container)
    container.auth.logout(tokens.access_token)

    with pytest.raises(InvalidOrExpiredRefreshTokenError):
        container.auth.refresh_token(tokens.refresh_token)


def test_deactivation_mid_session(container, make_user):
    user = make_user()
    tokens = _login(container)

    container.users.deactivate(user.id)

    assert container.auth.introspect(tokens.access_token).active is False
    with pytest.raises(AccountDeactivatedError):
        container.auth.refresh_token(tokens.refresh_token)


def test_reactivation_restores_open_session(container, make_user):
    user = make_user()
    tokens = _login(container)
    container.users.toggle_status(user.id)
    container.users.toggle_status(user.id)

    assert container.auth.introspect(tokens.access_token).active is True


def test_expired_access_token(container, clock, make_user):
    make_user()
    tokens = _login(container)
    clock.now = tokens.access_token_expires_at

    assert container.auth.introspect(tokens.access_token).active is False
    with pytest.raises(TokenExpiredError):
        container.auth.logout(tokens.access_token)

    # Refresh is still possible within the refresh lifetime.
    refreshed = container.auth.refresh_token(tokens.refresh_token)
    assert container.auth.introspect(refreshed.access_token).active is True


def test_session_owned_by_someone_else(container, backend, clock, make_user):
    alice = make_user()
    bob = make_user(username="bob", email="bob@example.com")
    codec = container.auth._codec
    bob_token, expires_at = codec.mint(bob, ACCESS, [], [], clock.now)
    backend.sessions.create(SessionCreate(
        user_id=alice.id,
        access_token_hash=hash_token(bob_token),
        access_token_expires_at=expires_at,
        refresh_token_hash=hash_token("unused-refresh"),
        refresh_token_expires_at=expires_at,
        created_at=clock.now,
    ))

    assert container.auth.introspect(bob_token).active is False
    with pytest.raises(UnauthorizedError):
        container.auth.logout(bob_token)


def test_login_sweeps_sessions_past_refresh_expiry(container, backend, clock, make_user):
    user = make_user()
    first = _login(container)
    clock.advance(days=8)

    second = _login(container)

    assert [s.id for s in backend.sessions.list_for_user(user.id)] == [second.session_id]
    assert first.session_id != second.session_id


def test_failing_last_login_touch_does_not_fail_login(container, backend, monkeypatch, make_user):
    make_user()

    def broken_touch(user_id, now):
        raise StoreUnavailableError()

    monkeypatch.setattr(backend.users, "touch_last_login", broken_touch)

    result = _login(container)
    assert result.user.last_login is None
    assert container.auth.introspect(result.access_token).active is True


def test_failing_sweep_does_not_fail_login(container, backend, monkeypatch, make_user):
    make_user()

    def broken_sweep(user_id, now):
        raise StoreUnavailableError()

    monkeypatch.setattr(backend.sessions, "sweep_expired", broken_sweep)

    assert _login(container).session_id == 1


def test_unexpected_sweep_error_is_contained(container, backend, monkeypatch, make_user):
    make_user()

    def exploding_sweep(user_id, now):
        raise RuntimeError("boom")

    monkeypatch.setattr(backend.sessions, "sweep_expired", exploding_sweep)

    assert _login(container).session_id == 1


def test_revoke_sessions_logs_out_everywhere(container, make_user):
    user = make_user()
    first = _login(container)
    second = _login(container)

    status = container.users.revoke_sessions(user.id)

    assert status.sessions_revoked == 2
    assert container.auth.introspect(first.access_token).active is False
    assert container.auth.introspect(second.access_token).active is False
    assert container.users.revoke_sessions(user.id).sessions_revoked == 0


def test_register_payload_validation():
    with pytest.raises(ValueError):
        UserCreate(username="a b", email="alice@example.com", password="correct-horse-1")
    with pytest.raises(ValueError):
        UserCreate(username="alice", email="not-an-email", password="correct-horse-1")
    with pytest.raises(ValueError):
        UserCreate(username="alice", email="alice@example.com", password="short")


def test_password_limit_counts_utf8_bytes():
    # 40 characters, 80 bytes
    with pytest.raises(ValueError):
        UserCreate(username="alice", email="alice@example.com", password="é" * 40)

    fits = UserCreate(username="alice", email="alice@example.com", password="é" * 36)
    assert len(fits.password.encode("utf-8")) == 72
