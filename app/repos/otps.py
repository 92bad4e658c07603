from __future__ import annotations
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import StorageError
from ..models import Otp


# ---- queries (caller owns the transaction) ----
# bulk UPDATE/DELETE skip identity-map sync so rowcount is the plain driver count

async def lock_pair(db: AsyncSession, *, email: str, purpose: str) -> None:
    """Serialize writers for one (email, purpose) until the transaction ends.

    Postgres takes a transaction-scoped advisory lock. SQLite needs nothing:
    the first UPDATE takes the database write lock for the rest of the transaction.
    """
    if db.get_bind().dialect.name == "postgresql":
        await db.execute(select(func.pg_advisory_xact_lock(func.hashtext(f"{email}:{purpose}"))))



async def invalidate_live(db: AsyncSession, *, email: str, purpose: str, now: datetime) -> int:
    res = await db.execute(
        update(Otp)
        .where(Otp.email == email, Otp.purpose == purpose, Otp.is_used.is_(False), Otp.expires_at > now)
        .values(is_used=True, used_at=now)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


async def find_live(db: AsyncSession, *, email: str, code: str, purpose: str, now: datetime) -> Optional[Otp]:
    res = await db.execute(
        select(Otp)
        .where(
            Otp.email == email,
            Otp.code == code,
            Otp.purpose == purpose,
            Otp.is_used.is_(False),
            Otp.expires_at > now,
        )
        .order_by(Otp.created_at.desc())
        .limit(1)
    )
    return res.scalar_one_or_none()


async def list_live(db: AsyncSession, *, email: str, purpose: str, now: datetime) -> list[Otp]:
    res = await db.execute(
        select(Otp)
        .where(Otp.email == email, Otp.purpose == purpose, Otp.is_used.is_(False), Otp.expires_at > now)
        .order_by(Otp.created_at.desc())
    )
    return list(res.scalars().all())


async def mark_used(db: AsyncSession, *, otp_id, now: datetime) -> bool:
    # compare-and-set: only the first caller flips an unused, unexpired row
    res = await db.execute(
        update(Otp)
        .where(Otp.id == otp_id, Otp.is_used.is_(False), Otp.expires_at > now)
        .values(is_used=True, used_at=now)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def find_expired_before(db: AsyncSession, *, cutoff: datetime, limit: Optional[int] = None) -> list[Otp]:
    q = select(Otp).where(Otp.expires_at < cutoff).order_by(Otp.expires_at.asc())
    if limit:
        q = q.limit(limit)
    res = await db.execute(q)
    return list(res.scalars().all())


async def delete_by_id(db: AsyncSession, *, otp_id) -> bool:
    res = await db.execute(delete(Otp).where(Otp.id == otp_id).execution_options(synchronize_session=False))
    return res.rowcount == 1


# ---- OtpStore implementation ----

class SqlOtpStore:
    """OTP store backed by SQLAlchemy.

    Every call runs in its own session and commits before returning. The
    store opens its sessions with expire_on_commit=False, so records it hands
    back (or was handed) stay readable after the session closes.
    Driver/database failures surface as StorageError.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _tx(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory(expire_on_commit=False) as db:
                async with db.begin():
                    yield db
        except SQLAlchemyError as e:
            raise StorageError(f"otp store failure: {e.__class__.__name__}") from e

    async def invalidate_live(self, email: str, purpose: str, now: datetime) -> int:
        async with self._tx() as db:
            return await invalidate_live(db, email=email, purpose=purpose, now=now)

    async def insert(self, record: Otp) -> None:
        async with self._tx() as db:
            db.add(record)

    async def replace_live(self, record: Otp, now: datetime) -> int:
        """Invalidate live codes for the record's pair and insert it, in one transaction."""
        async with self._tx() as db:
            await lock_pair(db, email=record.email, purpose=record.purpose)
            invalidated = await invalidate_live(db, email=record.email, purpose=record.purpose, now=now)
            db.add(record)
        return invalidated

    async def find_live(self, email: str, code: str, purpose: str, now: datetime) -> Optional[Otp]:
        async with self._tx() as db:
            return await find_live(db, email=email, code=code, purpose=purpose, now=now)

    async def list_live(self, email: str, purpose: str, now: datetime) -> list[Otp]:
        async with self._tx() as db:
            return await list_live(db, email=email, purpose=purpose, now=now)

    async def mark_used(self, record: Otp, now: datetime) -> bool:
        async with self._tx() as db:
            ok = await mark_used(db, otp_id=record.id, now=now)
        if ok:
            record.is_used = True
            record.used_at = now
        return ok

    async def find_expired_before(self, cutoff: datetime, limit: Optional[int] = None) -> list[Otp]:
        async with self._tx() as db:
            return await find_expired_before(db, cutoff=cutoff, limit=limit)

    async def delete(self, record: Otp) -> bool:
        async with self._tx() as db:
            return await delete_by_id(db, otp_id=record.id)
