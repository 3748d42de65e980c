"""Bounded row-lock waits for the order core's atomic units.

Every mutating use case (transition, claim, release, settle) runs inside
``locked_atomic()``: a ``transaction.atomic()`` block whose lock waits are
capped at ``LEDGER_LOCK_TIMEOUT_SECONDS``.  When the cap is hit the database
raises an ``OperationalError`` which is translated into ``Busy`` so a burst
of simultaneous claims degrades to "try again" instead of piling up.

Vendor handling:
- PostgreSQL: ``SET LOCAL lock_timeout`` (scoped to the transaction).
- MySQL: ``innodb_lock_wait_timeout`` for the session.
- SQLite: no per-transaction setting.  The busy handler waits for the
  connection ``timeout`` option, which the settings derive from
  ``LEDGER_LOCK_TIMEOUT_SECONDS`` when the connection is opened, so a
  per-call *seconds* only shapes ``retry_after`` there.

Any other ``OperationalError`` is an infrastructure fault and propagates.
"""

from __future__ import annotations

import math
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, OperationalError, connections, transaction

from modules.core.exceptions import Busy

logger = structlog.get_logger(__name__)

_PG_LOCK_SQLSTATES = {"55P03", "40P01"}  # lock_not_available, deadlock_detected
_MYSQL_LOCK_ERRNOS = {1205, 1213}  # lock wait timeout, deadlock
_SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked")


def is_lock_contention(exc: BaseException) -> bool:
    """Return ``True`` if *exc* signals a lock wait timeout or deadlock."""
    cause = exc.__cause__ or exc
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate in _PG_LOCK_SQLSTATES:
        return True
    args = getattr(cause, "args", ())
    if args and args[0] in _MYSQL_LOCK_ERRNOS:
        return True
    message = str(exc).lower()
    return any(fragment in message for fragment in _SQLITE_LOCK_MESSAGES)


def _apply_lock_timeout(using: str, seconds: float) -> None:
    connection = connections[using]
    if connection.vendor == "postgresql":
        with connection.cursor() as cursor:
            cursor.execute(
                "SET LOCAL lock_timeout = %s", [f"{int(seconds * 1000)}ms"]
            )
    elif connection.vendor == "mysql":
        with connection.cursor() as cursor:
            cursor.execute(
                "SET SESSION innodb_lock_wait_timeout = %s",
                [max(1, math.ceil(seconds))],
            )


@contextmanager
def locked_atomic(
    seconds: Optional[float] = None,
    using: str = DEFAULT_DB_ALIAS,
) -> Iterator[None]:
    """``transaction.atomic()`` with a bounded lock wait.

    Raises:
        Busy: a row lock was not acquired within *seconds*.
    """
    if seconds is None:
        seconds = settings.LEDGER_LOCK_TIMEOUT_SECONDS
    try:
        with transaction.atomic(using=using):
            _apply_lock_timeout(using, seconds)
            yield
    except OperationalError as exc:
        if not is_lock_contention(exc):
            raise
        logger.warning("ledger.lock_timeout", timeout_seconds=seconds, error=str(exc))
        raise Busy(
            "Could not acquire the order lock in time, try again.",
            retry_after=max(1, math.ceil(seconds)),
        ) from exc
