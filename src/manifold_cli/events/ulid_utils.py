"""ULID generation for audit event ids."""

from __future__ import annotations

import re
import threading

from ulid import ULID

_ULID_PATTERN = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")

_lock = threading.Lock()
_last: ULID | None = None


def generate_event_id() -> str:
    """Return a new ULID string, strictly greater than the previous one.

    ULIDs created within the same millisecond are bumped by one so that ids
    sort in generation order.
    """
    global _last
    with _lock:
        candidate = ULID()
        if _last is not None and int(candidate) <= int(_last):
            candidate = ULID.from_int(int(_last) + 1)
        _last = candidate
        return str(candidate)


def validate_ulid_format(value: str) -> bool:
    return bool(_ULID_PATTERN.match(value.upper()))
