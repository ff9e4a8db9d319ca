import bcrypt
import pytest

from app.core.exceptions import HashingError
from app.core.security import get_password_hash, hash_token, verify_password


def test_password_hash_round_trip():
    hashed = get_password_hash("s3cret-password", cost=4)
    assert hashed != "s3cret-password"
    assert verify_password("s3cret-password", hashed)
    assert not verify_password("wrong-password", hashed)


def test_password_hash_uses_requested_cost():
    assert get_password_hash("s3cret-password", cost=5).startswith("$2b$05$")


def test_out_of_range_cost_falls_back_to_default():
    assert get_password_hash("s3cret-password", cost=2).startswith("$2b$12$")


def test_verify_rejects_malformed_and_empty_hashes():
    assert not verify_password("anything", "not-a-bcrypt-hash")
    assert not verify_password("anything", "")


def test_hash_token_is_stable_sha256_hex():
    digest = hash_token("header.payload.signature")
    assert digest == hash_token("header.payload.signature")
    assert len(digest) == 64
    assert digest != hash_token("header.payload.signaturf")


def test_hashing_failure_message_is_generic(monkeypatch):
    def _reject(password, salt):
        raise ValueError("password cannot be longer than 72 bytes")

    monkeypatch.setattr(bcrypt, "hashpw", _reject)

    with pytest.raises(HashingError) as exc_info:
        get_password_hash("correct-horse-1", cost=4)

    assert exc_info.value.message == "Failed to hash password"
    assert exc_info.value.status_code == 500
