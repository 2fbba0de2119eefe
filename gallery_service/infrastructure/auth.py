"""
Password hashing utilities
"""
import logging
import re
from typing import Optional, Tuple

import bcrypt

from ..config import settings

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

_BCRYPT_HASH = re.compile(r"^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$")


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password with bcrypt"""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a stored bcrypt hash in constant time"""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError as e:
        logger.warning(f"Unusable password hash: {e}")
        return False


def is_password_hash(value: Optional[str]) -> bool:
    """Whether value already looks like a bcrypt hash"""
    return bool(value) and _BCRYPT_HASH.match(value) is not None


def validate_password_strength(password: str) -> Tuple[bool, str]:
    """
    Validate password length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        return False, f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long"

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False, f"Password must not exceed {MAX_PASSWORD_BYTES} bytes"

    return True, ""
