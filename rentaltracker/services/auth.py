"""
Login - shared password and signed session tokens

There is a single password for the whole app. It is configured through the
environment, either in plain text (APP_PASSWORD_PLAIN) or as a scrypt hash
(APP_PASSWORD_HASH, or base64 encoded in APP_PASSWORD_HASH_B64). Generate a
hash with scripts/hash_password.py.

A successful login gets a session token: an HS256 JWT with a 30 day expiry,
signed with APP_SESSION_SECRET.
"""
import base64
import binascii
import hashlib
import hmac
import logging
import os
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from rentaltracker.config import (
    ENV_PASSWORD_HASH, ENV_PASSWORD_HASH_B64, ENV_PASSWORD_PLAIN, ENV_SESSION_SECRET,
    PASSWORD_HASH_PREFIX, PASSWORD_KEY_LENGTH, SESSION_TTL_SECONDS,
)

logger = logging.getLogger(__name__)


# === PASSWORD ===

def _scrypt(password: str, salt: str, length: int) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=16384, r=8, p=1,
        dklen=length,
    )


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Hash a password as 'scrypt$<salt>$<hex digest>'"""
    salt = salt or secrets.token_hex(16)
    digest = _scrypt(password, salt, PASSWORD_KEY_LENGTH)
    return f"{PASSWORD_HASH_PREFIX}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Check a password against a stored hash"""
    parts = (stored or "").split("$")
    if len(parts) != 3:
        return False
    prefix, salt, hash_hex = parts
    if prefix != PASSWORD_HASH_PREFIX or not salt or not hash_hex:
        return False
    try:
        expected = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    return hmac.compare_digest(_scrypt(password, salt, len(expected)), expected)


def get_stored_password_hash() -> Optional[str]:
    """The configured password hash, if any"""
    encoded = os.environ.get(ENV_PASSWORD_HASH_B64)
    if encoded:
        try:
            return base64.b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.warning("%s is not valid base64", ENV_PASSWORD_HASH_B64)
            return None
    return os.environ.get(ENV_PASSWORD_HASH)


def verify_password_from_env(password: str) -> bool:
    """Check a login attempt against the configured password"""
    plain = os.environ.get(ENV_PASSWORD_PLAIN)
    if plain:
        return hmac.compare_digest(password.encode("utf-8"), plain.encode("utf-8"))

    stored = get_stored_password_hash()
    if not stored:
        logger.warning("No password configured; refusing login")
        return False
    return verify_password(password, stored)


# === SESSION ===

def _secret() -> str:
    secret = os.environ.get(ENV_SESSION_SECRET)
    if not secret:
        raise RuntimeError(f"{ENV_SESSION_SECRET} is not set")
    return secret


def create_session_token(now: Optional[float] = None) -> str:
    """New signed session token valid for SESSION_TTL_SECONDS from now"""
    issued = datetime.fromtimestamp(time.time() if now is None else now, tz=timezone.utc)
    payload = {
        "iat": issued,
        "exp": issued + timedelta(seconds=SESSION_TTL_SECONDS),
        "nonce": secrets.token_hex(16),
    }
    return jwt.encode(payload, _secret(), algorithm="HS256")


def validate_session_token(token: Optional[str]) -> bool:
    """True if the token is correctly signed and not expired"""
    if not token:
        return False
    try:
        jwt.decode(token, _secret(), algorithms=["HS256"], options={"require": ["exp"]})
    except jwt.ExpiredSignatureError:
        logger.info("Session expired")
        return False
    except jwt.InvalidTokenError:
        return False
    return True
