from datetime import timedelta

import pytest

from app.config import Settings
from app.domain.schemas.otp import OtpSettings
from app.errors import InvalidInput
from app.repos.otps import SqlOtpStore
from app.services.otp_manager import OtpManager, build_otp_manager


def _settings(**kw) -> Settings:
    kw.setdefault("DATABASE_URL", "postgresql+asyncpg://u:p@db/otp")
    return Settings(**kw)


def test_otp_settings_from_app_settings():
    s = _settings(OTP_LENGTH=8, OTP_EXPIRATION_MINUTES=15, OTP_RETENTION_DAYS=30)
    o = OtpSettings.from_settings(s)
    assert o.length == 8
    assert o.expiration == timedelta(minutes=15)
    assert o.retention == timedelta(days=30)


def test_default_policy():
    o = OtpSettings.from_settings(_settings())
    assert (o.length, o.expiration, o.retention) == (6, timedelta(minutes=5), timedelta(days=7))


def test_sync_url_derived_for_alembic():
    assert _settings().SYNC_DATABASE_URL == "postgresql+psycopg://u:p@db/otp"
    explicit = _settings(SYNC_DATABASE_URL="postgresql+psycopg://other/db")
    assert explicit.SYNC_DATABASE_URL == "postgresql+psycopg://other/db"


def test_build_manager_wires_sql_store():
    mgr = build_otp_manager(settings=_settings(OTP_LENGTH=7))
    assert isinstance(mgr, OtpManager)
    assert isinstance(mgr._store, SqlOtpStore)
    assert mgr.settings.length == 7


@pytest.mark.parametrize(
    "overrides",
    [
        {"OTP_LENGTH": 0},
        {"OTP_LENGTH": -6},
        {"OTP_LENGTH": 11},
        {"OTP_EXPIRATION_MINUTES": 0},
        {"OTP_RETENTION_DAYS": -1},
    ],
)
def test_unusable_settings_rejected(overrides):
    with pytest.raises(InvalidInput):
        build_otp_manager(settings=_settings(**overrides))
