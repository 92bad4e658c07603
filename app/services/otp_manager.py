from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import Optional, Protocol

from pydantic import ValidationError

from ..domain.schemas.otp import OtpOut, OtpSettings, SendOtpIn, VerifyOtpIn
from ..errors import InvalidInput
from ..models import Otp
from .otp_codes import generate_numeric_code
from .otp_events import LoggingOtpObserver, OtpObserver


class OtpStore(Protocol):
    """Record repository the manager depends on. Holds no policy of its own."""

    async def invalidate_live(self, email: str, purpose: str, now: datetime) -> int: ...
    async def insert(self, record: Otp) -> None: ...
    # invalidate_live + insert as one transaction, serialized per (email, purpose)
    async def replace_live(self, record: Otp, now: datetime) -> int: ...
    async def find_live(self, email: str, code: str, purpose: str, now: datetime) -> Optional[Otp]: ...
    async def list_live(self, email: str, purpose: str, now: datetime) -> list[Otp]: ...
    async def mark_used(self, record: Otp, now: datetime) -> bool: ...
    async def find_expired_before(self, cutoff: datetime, limit: Optional[int] = None) -> list[Otp]: ...
    async def delete(self, record: Otp) -> bool: ...


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class OtpManager:
    """Issues, validates and retires one-time passcodes.

    - generate: invalidates every live code for (email, purpose) and inserts
      the new one in a single store transaction serialized per pair, so
      overlapping calls still leave exactly one live code.
    - validate: returns False for wrong, expired and already-used codes alike;
      the store's conditional update lets exactly one concurrent caller win.
    - cleanup: deletes records whose expiry is older than the retention window.

    No mutable state lives here; one instance can serve concurrent callers.
    StorageError from the store is propagated untouched and never retried.
    """

    def __init__(self, store: OtpStore, settings: OtpSettings, observer: Optional[OtpObserver] = None):
        self._store = store
        self._settings = settings
        self._observer = observer or LoggingOtpObserver()

    @property
    def settings(self) -> OtpSettings:
        return self._settings

    async def generate(self, email: str, purpose: str) -> str:
        req = _parse(SendOtpIn, email=email, purpose=purpose)
        now = _now_utc()

        code = generate_numeric_code(self._settings.length)
        expires_at = now + self._settings.expiration
        record = Otp(
            id=uuid.uuid4(),
            email=req.email,
            code=code,
            purpose=req.purpose,
            created_at=now,
            expires_at=expires_at,
            is_used=False,
            used_at=None,
        )
        invalidated = await self._store.replace_live(record, now)

        self._observer.generated(
            email=req.email, purpose=req.purpose, expires_at=expires_at, invalidated=invalidated
        )
        return code

    async def validate(self, email: str, code: str, purpose: str) -> bool:
        req = _parse(VerifyOtpIn, email=email, code=code, purpose=purpose)
        now = _now_utc()

        otp = await self._store.find_live(req.email, req.code, req.purpose, now)
        if otp is None or not otp.is_live(now) or not await self._store.mark_used(otp, now):
            self._observer.rejected(email=req.email, purpose=req.purpose)
            return False

        self._observer.validated(email=req.email, purpose=req.purpose)
        return True

    async def active_codes(self, email: str, purpose: str) -> list[OtpOut]:
        """Live records for the pair, newest first. Codes are not included."""
        req = _parse(SendOtpIn, email=email, purpose=purpose)
        rows = await self._store.list_live(req.email, req.purpose, _now_utc())
        return [OtpOut.model_validate(r) for r in rows]

    async def cleanup(self, *, batch: Optional[int] = None) -> int:
        if batch is not None and batch <= 0:
            raise InvalidInput("batch must be positive", field="batch")
        cutoff = _now_utc() - self._settings.retention

        removed = 0
        for otp in await self._store.find_expired_before(cutoff, limit=batch):
            # a concurrent cleanup may have deleted it already; count only our deletes
            if await self._store.delete(otp):
                removed += 1

        self._observer.cleaned_up(count=removed, cutoff=cutoff)
        return removed


def build_otp_manager(session_factory=None, settings=None, observer: Optional[OtpObserver] = None) -> OtpManager:
    """Wire an OtpManager to the SQL store using app settings unless overridden."""
    from ..config import get_settings
    from ..repos.otps import SqlOtpStore

    if session_factory is None:
        from ..db import SessionLocal
        session_factory = SessionLocal
    s = settings or get_settings()
    try:
        otp_settings = OtpSettings.from_settings(s)
    except ValidationError as e:
        raise InvalidInput.from_validation_error(e) from e
    return OtpManager(SqlOtpStore(session_factory), otp_settings, observer)


def _parse(model, **fields):
    try:
        return model(**fields)
    except ValidationError as e:
        raise InvalidInput.from_validation_error(e) from e
