"""
Identifier and clock helpers shared by the property models.

Ids are 26-character lowercase base32 strings (a random UUID without
padding), timestamps are epoch milliseconds.
"""
import base64
import re
import time
import uuid

ID_LENGTH = 26

_ID_PATTERN = re.compile(r'^[a-z0-9]{26}$')


def new_id() -> str:
    """Generate a new unique identifier."""
    return base64.b32encode(uuid.uuid4().bytes).decode('ascii').rstrip('=').lower()


def is_valid_id(value) -> bool:
    """Check that ``value`` has the shape produced by new_id()."""
    return isinstance(value, str) and bool(_ID_PATTERN.match(value))


def get_millis() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def next_millis(previous: int) -> int:
    """Current time in milliseconds, strictly greater than ``previous``."""
    return max(get_millis(), (previous or 0) + 1)
