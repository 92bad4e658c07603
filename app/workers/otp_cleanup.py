from __future__ import annotations
import asyncio
import contextlib
import logging
from typing import Optional

from ..config import get_settings
from .. import redis_client
from ..errors import StorageError
from ..services.otp_manager import OtpManager, build_otp_manager
from ..observability.heartbeat import beat
from ..observability.logging import setup_logging
from ..observability.metrics import serve_metrics

S = get_settings()
log = logging.getLogger("worker.otp_cleanup")

def _lock_key() -> str: return "lock:otp_cleanup"

async def _acquire_lock() -> bool:
    # Only one instance performs the sweep; others idle until the lock expires
    return await redis_client.redis.set(_lock_key(), "1", ex=S.OTP_CLEANUP_LOCK_TTL_SEC, nx=True) is True

async def run_once(manager: Optional[OtpManager] = None) -> int:
    # Acquire lock; if taken, just skip this tick
    if not await _acquire_lock():
        log.debug("otp_cleanup_skipped_locked")
        return 0
    manager = manager or build_otp_manager()
    removed = await manager.cleanup(batch=S.OTP_CLEANUP_BATCH)
    if removed:
        log.info("otp_cleanup_tick", extra={"removed": removed})
    return removed

async def run_forever(manager: Optional[OtpManager] = None):
    manager = manager or build_otp_manager()
    # heartbeat for ops
    hb = asyncio.create_task(beat("hb:otp_cleanup"))
    try:
        while True:
            try:
                await run_once(manager)
            except StorageError:
                # cleanup is idempotent; the next tick retries the whole pass
                log.exception("otp_cleanup_storage_error")
            except Exception:
                log.exception("otp_cleanup_error")
            await asyncio.sleep(S.OTP_CLEANUP_INTERVAL_SEC)
    finally:
        hb.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await hb

def main():
    setup_logging()
    serve_metrics()
    asyncio.run(run_forever())

if __name__ == "__main__":
    main()
