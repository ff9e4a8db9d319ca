from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from jose.utils import base64url_encode

from app.core.exceptions import (
    InvalidSignatureError,
    InvalidTokenKindError,
    MalformedTokenError,
    NotAnAccessTokenError,
    NotARefreshTokenError,
    TokenExpiredError,
)
from app.core.tokens import TokenCodec, permission_labels, primary_role_label
from app.schemas.auth import ACCESS, REFRESH
from app.schemas.rbac import PermissionResponse, RoleResponse
from app.schemas.user import UserResponse

NOW = datetime(2026, 3, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)
SECRET = "unit-test-secret-key"

USER = UserResponse(id=42, username="alice", email="alice@example.com", is_active=True)
ROLES = [
    RoleResponse(id=1, name="admin"),
    RoleResponse(id=3, name="auditor"),
]
PERMISSIONS = [
    PermissionResponse(id=2, name="roles.read", resource="roles", action="read"),
    PermissionResponse(id=1, name="users.read", resource="users", action="read"),
]


def _codec(**overrides):
    return TokenCodec(secret_key=overrides.pop("secret_key", SECRET), **overrides)


def test_access_token_round_trip():
    token, expires_at = _codec().mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    claims = _codec().verify(token, NOW, expected_kind=ACCESS)

    assert claims.user_id == 42
    assert claims.username == "alice"
    assert claims.email == "alice@example.com"
    assert claims.token_type == ACCESS
    assert claims.role == "admin"
    assert claims.roles == ["admin", "auditor"]
    assert claims.permissions == ["roles.read", "users.read"]
    assert claims.sub == "42"
    assert claims.iss == "user-management-service"
    assert claims.iat == int(NOW.replace(microsecond=0).timestamp())
    assert expires_at == NOW.replace(microsecond=0) + timedelta(minutes=15)
    assert claims.exp == int(expires_at.timestamp())


def test_refresh_token_lifetime_is_days():
    _, expires_at = _codec(refresh_token_days=7).mint(USER, REFRESH, [], [], NOW)
    assert expires_at == NOW.replace(microsecond=0) + timedelta(days=7)


def test_tokens_minted_in_same_second_differ():
    first, _ = _codec().mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    second, _ = _codec().mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    assert first != second


def test_user_without_roles_gets_empty_role_claims():
    token, _ = _codec().mint(USER, ACCESS, [], [], NOW)
    claims = _codec().verify(token, NOW)
    assert claims.role == ""
    assert claims.roles == []
    assert claims.permissions == []


def test_refresh_token_rejected_where_access_expected():
    token, _ = _codec().mint(USER, REFRESH, ROLES, PERMISSIONS, NOW)
    with pytest.raises(NotAnAccessTokenError):
        _codec().verify(token, NOW, expected_kind=ACCESS)


def test_access_token_rejected_where_refresh_expected():
    token, _ = _codec().mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    with pytest.raises(NotARefreshTokenError):
        _codec().verify(token, NOW, expected_kind=REFRESH)


def test_expiry_boundary():
    token, expires_at = _codec().mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)

    _codec().verify(token, expires_at - timedelta(seconds=1))
    with pytest.raises(TokenExpiredError):
        _codec().verify(token, expires_at)


def test_foreign_secret_is_rejected():
    token, _ = _codec(secret_key="someone-else").mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    with pytest.raises(InvalidSignatureError):
        _codec().verify(token, NOW)


def test_tampered_payload_is_rejected():
    token, _ = _codec().mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    header, payload, signature = token.split(".")
    forged_payload = payload[:-2] + ("AA" if payload[-2:] != "AA" else "BB")
    with pytest.raises((InvalidSignatureError, MalformedTokenError)):
        _codec().verify(".".join([header, forged_payload, signature]), NOW)


def test_algorithm_mismatch_is_rejected():
    token, _ = _codec(algorithm="HS512").mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    with pytest.raises(InvalidSignatureError):
        _codec(algorithm="HS256").verify(token, NOW)


def test_foreign_issuer_is_rejected():
    token, _ = _codec(issuer="another-service").mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    with pytest.raises(InvalidSignatureError):
        _codec().verify(token, NOW)


def test_garbage_token_is_malformed():
    with pytest.raises(MalformedTokenError):
        _codec().verify("not-a-jwt", NOW)


@pytest.mark.parametrize("raw_payload", [b"not json", b"[1, 2]", b"\xff\xfe"])
def test_unreadable_payload_is_malformed_not_forged(raw_payload):
    token, _ = _codec().mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    header, _, signature = token.split(".")
    payload = base64url_encode(raw_payload).decode("ascii")
    with pytest.raises(MalformedTokenError):
        _codec().verify(".".join([header, payload, signature]), NOW)


def test_readable_payload_with_stale_signature_is_forged():
    token, _ = _codec().mint(USER, ACCESS, ROLES, PERMISSIONS, NOW)
    header, _, signature = token.split(".")
    other, _ = _codec().mint(USER, REFRESH, ROLES, PERMISSIONS, NOW)
    with pytest.raises(InvalidSignatureError):
        _codec().verify(".".join([header, other.split(".")[1], signature]), NOW)


def test_incomplete_claims_are_malformed():
    token = jwt.encode(
        {"sub": "42", "iss": "user-management-service"}, SECRET, algorithm="HS256"
    )
    with pytest.raises(MalformedTokenError):
        _codec().verify(token, NOW)


def test_unknown_kind_is_programming_error():
    with pytest.raises(InvalidTokenKindError):
        _codec().mint(USER, "id", ROLES, PERMISSIONS, NOW)
    with pytest.raises(ValueError):
        _codec().verify("irrelevant", NOW, expected_kind="id")


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        TokenCodec(secret_key="")


def test_claim_helpers():
    assert primary_role_label(ROLES) == "admin"
    assert primary_role_label([]) == ""
    assert permission_labels(PERMISSIONS) == ["roles.read", "users.read"]
