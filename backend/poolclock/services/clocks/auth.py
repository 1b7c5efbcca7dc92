import hmac
import secrets
import string
from typing import Optional

_KEY_ALPHABET = string.ascii_lowercase + string.digits


def generate_control_key(length: int = 8) -> str:
    """Generate a short random control key for a new game."""
    return ''.join(secrets.choice(_KEY_ALPHABET) for _ in range(length))


def _matches(expected: Optional[str], supplied: str) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(expected.encode('utf-8'), supplied.encode('utf-8'))


def is_authorized(stored_key: Optional[str], supplied_key: Optional[str], master_key: Optional[str]) -> bool:
    """True iff supplied_key is the master key or the game's control key.

    A missing or non-string supplied key never authorizes, whatever is stored.
    """
    if not supplied_key or not isinstance(supplied_key, str):
        return False
    return _matches(master_key, supplied_key) or _matches(stored_key, supplied_key)
