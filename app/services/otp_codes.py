from __future__ import annotations
import secrets
import string

from ..errors import InvalidInput

DIGITS = string.digits


def generate_numeric_code(length: int) -> str:
    """Return `length` decimal digits, each drawn independently from the OS CSPRNG.

    secrets.choice uses rejection sampling, so every digit is uniform over 0-9
    (no modulo bias). Leading zeros are kept.
    """
    if isinstance(length, bool) or not isinstance(length, int) or length <= 0:
        raise InvalidInput(f"code length must be a positive integer, got {length!r}", field="length")
    return "".join(secrets.choice(DIGITS) for _ in range(length))
