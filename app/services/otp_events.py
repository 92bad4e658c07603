from __future__ import annotations
import logging
from datetime import datetime
from typing import Protocol

from ..observability.metrics import OTP_CLEANED_UP, OTP_GENERATED, OTP_VALIDATIONS

log = logging.getLogger("app.otp")


class OtpObserver(Protocol):
    """Receives lifecycle events from OtpManager. Never sees a code."""

    def generated(self, *, email: str, purpose: str, expires_at: datetime, invalidated: int) -> None: ...
    def validated(self, *, email: str, purpose: str) -> None: ...
    def rejected(self, *, email: str, purpose: str) -> None: ...
    def cleaned_up(self, *, count: int, cutoff: datetime) -> None: ...


class LoggingOtpObserver:
    """Default observer: JSON log lines + Prometheus counters."""

    def generated(self, *, email: str, purpose: str, expires_at: datetime, invalidated: int) -> None:
        OTP_GENERATED.labels(purpose=purpose).inc()
        log.info(
            "otp_generated",
            extra={"email": email, "purpose": purpose, "expires_at": expires_at.isoformat(), "invalidated": invalidated},
        )

    def validated(self, *, email: str, purpose: str) -> None:
        OTP_VALIDATIONS.labels(purpose=purpose, outcome="validated").inc()
        log.info("otp_validated", extra={"email": email, "purpose": purpose})

    def rejected(self, *, email: str, purpose: str) -> None:
        OTP_VALIDATIONS.labels(purpose=purpose, outcome="rejected").inc()
        log.warning("otp_rejected", extra={"email": email, "purpose": purpose})

    def cleaned_up(self, *, count: int, cutoff: datetime) -> None:
        OTP_CLEANED_UP.inc(count)
        log.info("otp_cleaned_up", extra={"count": count, "cutoff": cutoff.isoformat()})
