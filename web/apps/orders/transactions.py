"""Transaction boundary for the order service.

``DjangoTransactionRunner`` implements ``TransactionPort`` on top of
``django.db.transaction.atomic``: everything the callback writes commits
together or is rolled back together. It adds:

- Retries with exponential backoff for transient contention reported by
  the database as ``OperationalError`` (deadlocks, serialization
  failures, SQLite's "database is locked"). The whole callback is
  re-run in a fresh transaction, so it must not keep state between
  attempts.
- Mapping of any other database failure to ``PersistenceError``.

Domain errors (``OrderError``) raised by the callback roll the
transaction back and propagate unchanged; they are never retried.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from django.conf import settings
from django.db import DatabaseError, OperationalError, connections, transaction

from .errors import PersistenceError

logger = logging.getLogger("orders.transactions")

T = TypeVar("T")


def _retry_policy():
    """Return retry configuration as (max_retries, backoff_base, max_sleep)."""
    return (
        getattr(settings, "ORDERS_TX_RETRY_MAX", 3),
        getattr(settings, "ORDERS_TX_RETRY_BACKOFF_BASE", 0.05),
        getattr(settings, "ORDERS_TX_RETRY_MAX_SLEEP", 0.5),
    )


class DjangoTransactionRunner:
    """Run callables inside a Django atomic block with retry on contention."""

    def __init__(self, using: Optional[str] = None):
        self.using = using

    def _in_outer_transaction(self) -> bool:
        alias = self.using or "default"
        return connections[alias].in_atomic_block

    def run(self, fn: Callable[[], T]) -> T:
        """Execute ``fn`` atomically.

        When already inside an atomic block the callback runs once in a
        savepoint: the outer block owns the transaction, so a retry here
        could not undo what the outer block already did.

        Args:
            fn: Zero-argument callable performing the unit of work.

        Returns:
            Whatever ``fn`` returns.

        Raises:
            OrderError: Any domain error raised by ``fn``.
            PersistenceError: On database failures, after retries for
                transient ones.
        """
        if self._in_outer_transaction():
            try:
                with transaction.atomic(using=self.using):
                    return fn()
            except DatabaseError as exc:
                raise PersistenceError(str(exc)) from exc

        max_retries, backoff, cap = _retry_policy()
        tries = 0
        while True:
            try:
                with transaction.atomic(using=self.using):
                    return fn()
            except OperationalError as exc:
                tries += 1
                if tries > max_retries:
                    logger.error("transaction failed after retries", extra={"tries": tries, "error": str(exc)})
                    raise PersistenceError(str(exc)) from exc
                sleep_s = min(backoff * (2 ** (tries - 1)), cap)  # exponential backoff
                logger.warning(
                    "transient database error, retrying",
                    extra={"tries": tries, "sleep_s": sleep_s, "error": str(exc)},
                )
                time.sleep(sleep_s)
            except DatabaseError as exc:
                raise PersistenceError(str(exc)) from exc

    def read(self, fn: Callable[[], T]) -> T:
        """Execute a read-only ``fn`` once, without a transaction or retries.

        Raises:
            OrderError: Any domain error raised by ``fn``.
            PersistenceError: On any database failure.
        """
        try:
            return fn()
        except DatabaseError as exc:
            logger.error("read failed", extra={"error": str(exc)})
            raise PersistenceError(str(exc)) from exc
