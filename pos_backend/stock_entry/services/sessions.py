# stock_entry/services/sessions.py

"""
STOCK ENTRY SESSIONS

A grid lives in the Django cache, keyed per user, for
STOCK_ENTRY_SESSION_TTL seconds after its last write. Nothing here is
persisted to the database; commit.py is the only path into the ledger.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager

from django.conf import settings
from django.core.cache import cache

from stock_entry.services.exceptions import StockEntrySessionBusy, StockEntrySessionNotFound
from stock_entry.services.grid import StockEntryGrid

logger = logging.getLogger(__name__)


def _key(user, session_id: str) -> str:
    return f"stock-entry:{getattr(user, 'pk', None)}:{session_id}"


def _ttl() -> int:
    return int(getattr(settings, "STOCK_ENTRY_SESSION_TTL", 8 * 60 * 60))


LOCK_TIMEOUT = 30
LOCK_WAIT = 5.0
LOCK_POLL = 0.05
COMMIT_LOCK_TIMEOUT = 300


@contextmanager
def session_lock(user, session_id: str, *, scope: str = "write", wait: float = LOCK_WAIT, timeout: int = LOCK_TIMEOUT):
    """
    Serialize read-modify-write cycles on one session.

    Each scope is a separate lock: "write" guards load-mutate-save,
    "commit" keeps two commits of the same grid from both applying it.

    cache.add is atomic on every shared backend, so only one holder at a
    time. The lock expires on its own after `timeout` seconds if a worker dies.
    """
    lock_key = f"{_key(user, session_id)}:lock:{scope}"
    token = uuid.uuid4().hex
    deadline = time.monotonic() + wait

    while not cache.add(lock_key, token, timeout=timeout):
        if time.monotonic() >= deadline:
            logger.warning("stock entry session busy: session=%s scope=%s", session_id, scope)
            raise StockEntrySessionBusy(
                f"Stock entry session {session_id} is busy, try again",
                session_id=session_id,
            )
        time.sleep(LOCK_POLL)

    try:
        yield
    finally:
        if cache.get(lock_key) == token:
            cache.delete(lock_key)


def save_session(user, grid: StockEntryGrid) -> StockEntryGrid:
    cache.set(_key(user, grid.session_id), grid.to_dict(), timeout=_ttl())
    return grid


def create_session(user) -> StockEntryGrid:
    grid = StockEntryGrid()
    save_session(user, grid)
    logger.info("stock entry session opened: session=%s user=%s", grid.session_id, getattr(user, "pk", None))
    return grid


def load_session(user, session_id: str) -> StockEntryGrid:
    data = cache.get(_key(user, session_id))
    if data is None:
        raise StockEntrySessionNotFound(
            f"Stock entry session {session_id} not found or expired",
            session_id=session_id,
        )
    return StockEntryGrid.from_dict(data)


def delete_session(user, session_id: str) -> None:
    # raises when the session is already gone
    load_session(user, session_id)
    cache.delete(_key(user, session_id))


def settle_commit(user, session_id: str, row_ids) -> StockEntryGrid:
    """
    Drop committed rows from the session as it is now.

    The commit loop runs on a snapshot without holding the lock, so rows
    scanned or edited meanwhile must survive.
    """
    with session_lock(user, session_id):
        grid = load_session(user, session_id)
        grid.drop_rows(row_ids)
        return save_session(user, grid)
