from __future__ import annotations

from .errors import InvalidInputError

# Identifiers are bigserial columns.
MAX_ID = 2**63 - 1


def parse_id(raw: str | int, *, label: str) -> int:
    """
    Parse a path identifier. Only positive base-10 integers that fit a bigint are accepted.
    """
    text = str(raw).strip()
    if not text.isdigit() or not text.isascii():
        raise InvalidInputError(f"Invalid {label} ID")
    value = int(text)
    if value <= 0 or value > MAX_ID:
        raise InvalidInputError(f"Invalid {label} ID")
    return value
