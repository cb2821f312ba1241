from __future__ import annotations

import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from tokenvault.db.session import session_scope
from tokenvault.models.session_record import utcnow
from tokenvault.services.session_store import SqlSessionStore

log = logging.getLogger(__name__)


def purge_expired_sessions() -> int:
    with session_scope() as db:
        return SqlSessionStore(db).purge_expired(utcnow())


async def purge_loop(interval_seconds: int) -> None:
    """Passive expiry: drop expired session records on a fixed interval."""
    while True:
        try:
            await run_in_threadpool(purge_expired_sessions)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("session purge failed")
        await asyncio.sleep(max(1, interval_seconds))
