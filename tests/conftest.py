import os
import tempfile
import uuid
from datetime import datetime, timezone, timedelta

# Settings are read once on first import of app.*; point them at a throwaway DB first.
_DB_DIR = tempfile.mkdtemp(prefix="otp-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_DIR}/otp.db")
os.environ.setdefault("METRICS_ENABLED", "false")

import pytest
import pytest_asyncio
from sqlalchemy import select

# IMPORTANT: import engine/SessionLocal only after config is loaded
from app.db import engine, SessionLocal
from app.models import Base, Otp
from app.domain.schemas.otp import OtpSettings
from app.repos.otps import SqlOtpStore
from app.services import otp_manager as otp_manager_mod
from app.services.otp_manager import OtpManager


# Fresh schema per test, on the SAME loop as the test function. Dispose the
# engine afterwards so no pooled connection leaks into the next test's loop.
@pytest_asyncio.fixture(autouse=True)
async def _db_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db():
    async with SessionLocal() as s:
        yield s


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def advance(self, delta: timedelta) -> datetime:
        self.now = self.now + delta
        return self.now


@pytest.fixture
def clock(monkeypatch):
    c = FrozenClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))
    monkeypatch.setattr(otp_manager_mod, "_now_utc", lambda: c.now)
    return c


class RecordingObserver:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def generated(self, **kw): self.events.append(("generated", kw))
    def validated(self, **kw): self.events.append(("validated", kw))
    def rejected(self, **kw): self.events.append(("rejected", kw))
    def cleaned_up(self, **kw): self.events.append(("cleaned_up", kw))

    def kinds(self) -> list[str]:
        return [k for k, _ in self.events]


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def store():
    return SqlOtpStore(SessionLocal)


@pytest.fixture
def manager(store, observer):
    return OtpManager(store, OtpSettings(), observer)


# ---------- helpers ----------
async def all_otps(db) -> list[Otp]:
    db.expire_all()
    return list((await db.execute(select(Otp).order_by(Otp.created_at.asc()))).scalars().all())


async def mk_otp(
    db,
    *,
    email: str = "a@x.com",
    purpose: str = "login",
    code: str = "123456",
    created_at: datetime,
    lifetime: timedelta = timedelta(minutes=5),
    used_at: datetime | None = None,
) -> uuid.UUID:
    otp = Otp(
        id=uuid.uuid4(),
        email=email,
        code=code,
        purpose=purpose,
        created_at=created_at,
        expires_at=created_at + lifetime,
        is_used=used_at is not None,
        used_at=used_at,
    )
    db.add(otp)
    await db.commit()
    return otp.id
