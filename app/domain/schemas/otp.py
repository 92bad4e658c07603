import uuid
from datetime import datetime, timedelta

from pydantic import BaseModel, EmailStr, Field, field_validator, StringConstraints
from typing import Annotated

Purpose = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
OtpCode = Annotated[str, StringConstraints(strip_whitespace=True, min_length=4, max_length=10)]


class SendOtpIn(BaseModel):
    email: EmailStr
    purpose: Purpose  # "Registration" | "PasswordReset" | ...

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.lower()
        if len(v) > 150:
            raise ValueError("email too long (max 150)")
        return v


class VerifyOtpIn(SendOtpIn):
    code: OtpCode


class OtpOut(BaseModel):
    """Status view of a record. Deliberately has no code field."""
    id: uuid.UUID
    email: str
    purpose: str
    created_at: datetime
    expires_at: datetime
    is_used: bool
    used_at: datetime | None = None

    model_config = {"from_attributes": True}


class OtpSettings(BaseModel):
    # must fit VerifyOtpIn.code and the code column
    length: Annotated[int, Field(ge=4, le=10)] = 6
    expiration: timedelta = timedelta(minutes=5)
    retention: timedelta = timedelta(days=7)

    @field_validator("expiration")
    @classmethod
    def positive_expiration(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("expiration must be positive")
        return v

    @field_validator("retention")
    @classmethod
    def non_negative_retention(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            raise ValueError("retention must not be negative")
        return v

    @classmethod
    def from_settings(cls, s) -> "OtpSettings":
        return cls(
            length=s.OTP_LENGTH,
            expiration=timedelta(minutes=s.OTP_EXPIRATION_MINUTES),
            retention=timedelta(days=s.OTP_RETENTION_DAYS),
        )
