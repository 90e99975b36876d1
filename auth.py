"""
auth.py
Authentication utilities (bcrypt hashing, verify, login, change password)
and the temporary password generator for new members.
"""

from __future__ import annotations

import logging
import secrets
import string

import bcrypt

from config import Config
from errors import BackendError

logger = logging.getLogger(__name__)

LOWER = string.ascii_lowercase
UPPER = string.ascii_uppercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*()-_=+?"

_rng = secrets.SystemRandom()


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against stored bcrypt hash.
    """
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def generate_password(length: int | None = None) -> str:
    """
    Random password with at least one lowercase, uppercase, digit and symbol.
    """
    if length is None:
        length = Config.PASSWORD_LENGTH
    if length < 4:
        raise ValueError("Password length must be at least 4.")
    chars = [
        _rng.choice(LOWER),
        _rng.choice(UPPER),
        _rng.choice(DIGITS),
        _rng.choice(SYMBOLS),
    ]
    pool = LOWER + UPPER + DIGITS + SYMBOLS
    chars.extend(_rng.choice(pool) for _ in range(length - 4))
    _rng.shuffle(chars)
    return "".join(chars)


def login(client, username: str, password: str) -> bool:
    try:
        client.sign_in(username, password)
    except BackendError as e:
        logger.warning(f"Login failed for {username}: {e}")
        return False
    return True


def logout(client) -> None:
    client.sign_out()


def change_password(client, username: str, new_password: str) -> None:
    # Only the local backend keeps its own admin accounts
    client.change_admin_password(username, hash_password(new_password))
