"""Security utilities - password hashing and token digests"""

import hashlib
import logging

import bcrypt

from app.core.exceptions import HashingError

logger = logging.getLogger(__name__)

MIN_BCRYPT_COST = 4
MAX_BCRYPT_COST = 31
DEFAULT_BCRYPT_COST = 12


def _effective_cost(cost: int) -> int:
    if cost < MIN_BCRYPT_COST or cost > MAX_BCRYPT_COST:
        return DEFAULT_BCRYPT_COST
    return cost


def get_password_hash(password: str, cost: int = DEFAULT_BCRYPT_COST) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password
        cost: bcrypt work factor; out-of-range values fall back to the default

    Returns:
        str: Hashed password

    Raises:
        HashingError: If bcrypt rejects the input
    """
    try:
        return bcrypt.hashpw(
            password.encode('utf-8'),
            bcrypt.gensalt(rounds=_effective_cost(cost))
        ).decode('utf-8')
    except ValueError as exc:
        logger.error(f"bcrypt rejected password input: {exc}")
        raise HashingError() from exc


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches; a malformed hash never matches
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def hash_token(token: str) -> str:
    """SHA-256 hex digest of an encoded token string"""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()

