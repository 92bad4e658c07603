from __future__ import annotations
from pydantic import ValidationError


class OtpError(Exception):
    """Base class for OTP lifecycle errors."""


class StorageError(OtpError):
    """The OTP store failed (connectivity, timeout, unrelated constraint)."""


class InvalidInput(OtpError, ValueError):
    """Caller supplied a malformed email/purpose/code or an unusable setting."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "InvalidInput":
        # report the first offending field only; enough for the caller to fix the request
        err = exc.errors()[0]
        loc = ".".join(str(p) for p in err.get("loc", ())) or None
        return cls(f"{loc or 'input'}: {err.get('msg', 'invalid value')}", field=loc)
