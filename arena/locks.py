from __future__ import annotations

import logging
import time
import zlib
from contextlib import contextmanager

from django.db import connection
from django.db.utils import OperationalError

logger = logging.getLogger(__name__)


class BattleLockError(Exception):
    """Raised when the per-character battle lock cannot be acquired."""


_LOCK_PREFIX = "arena:battle:"
_PG_POLL_INTERVAL = 0.1


def _lock_name(character_id: int) -> str:
    return f"{_LOCK_PREFIX}{character_id}"


def _pg_key(name: str) -> int:
    # pg advisory locks take a signed 64-bit key; crc32 fits.
    return zlib.crc32(name.encode("utf-8"))


def _acquire_mysql(name: str, timeout: int) -> bool:
    with connection.cursor() as cursor:
        cursor.execute("SELECT GET_LOCK(%s, %s)", [name, timeout])
        row = cursor.fetchone()
    return bool(row) and row[0] == 1


def _release_mysql(name: str) -> None:
    with connection.cursor() as cursor:
        cursor.execute("SELECT RELEASE_LOCK(%s)", [name])


def _acquire_postgresql(name: str, timeout: int) -> bool:
    deadline = time.monotonic() + timeout
    key = _pg_key(name)
    while True:
        with connection.cursor() as cursor:
            cursor.execute("SELECT pg_try_advisory_lock(%s)", [key])
            row = cursor.fetchone()
        if row and row[0]:
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(_PG_POLL_INTERVAL)


def _release_postgresql(name: str) -> None:
    with connection.cursor() as cursor:
        cursor.execute("SELECT pg_advisory_unlock(%s)", [_pg_key(name)])


_BACKENDS = {
    "mysql": (_acquire_mysql, _release_mysql),
    "postgresql": (_acquire_postgresql, _release_postgresql),
}


@contextmanager
def character_battle_lock(character_id: int, timeout: int = 5):
    """Serialize battles started by one character, from cooldown check to commit.

    Uses a named database lock. SQLite has no named locks and allows one
    writer at a time, so there the block runs unlocked.
    """

    backend = _BACKENDS.get(connection.vendor)
    if backend is None:
        logger.debug("No named locks on %s; battle lock skipped.", connection.vendor)
        yield
        return

    acquire, release = backend
    name = _lock_name(character_id)
    try:
        acquired = acquire(name, timeout)
    except OperationalError as exc:
        raise BattleLockError(f"Failed to acquire battle lock: {exc}") from exc

    if not acquired:
        raise BattleLockError("Another battle is in progress for this character.")

    try:
        yield
    finally:
        try:
            release(name)
        except OperationalError:
            # Lock is dropped server-side when the connection closes.
            logger.warning("Failed to release battle lock %s", name)
