"""Explicit unit-of-work handle over a Django database transaction.

Repositories and the stock ledger receive a ``UnitOfWork`` argument instead
of relying on whatever transaction happens to be open on the current
thread.  Every write they issue goes through ``uow.using`` and is refused
when the handle is not open, so transaction boundaries are visible at each
call site.
"""

from __future__ import annotations

from types import TracebackType
from typing import Callable, Optional, Type

from django.db import DEFAULT_DB_ALIAS, transaction


class TransactionRequired(RuntimeError):
    """A transactional write was attempted outside an open ``UnitOfWork``."""


class UnitOfWork:
    """Context manager wrapping ``transaction.atomic`` for one alias.

    Usage::

        with UnitOfWork() as uow:
            ledger.reserve(uow, option_id, 2)
            repo.create_order(uow, draft)

    Nesting a ``UnitOfWork`` inside another creates a savepoint, exactly as
    nested ``atomic`` blocks do.
    """

    def __init__(self, using: str = DEFAULT_DB_ALIAS) -> None:
        self.using = using
        self._atomic: Optional[transaction.Atomic] = None

    def __enter__(self) -> UnitOfWork:
        if self._atomic is not None:
            raise RuntimeError("UnitOfWork is not re-entrant; open a new one.")
        self._atomic = transaction.atomic(using=self.using)
        self._atomic.__enter__()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        atomic, self._atomic = self._atomic, None
        if atomic is not None:
            atomic.__exit__(exc_type, exc, tb)

    @property
    def active(self) -> bool:
        return (
            self._atomic is not None
            and transaction.get_connection(self.using).in_atomic_block
        )

    def ensure_active(self) -> None:
        if not self.active:
            raise TransactionRequired(
                "This operation must run inside an open UnitOfWork."
            )

    def on_commit(self, func: Callable[[], None]) -> None:
        """Run *func* after the outermost transaction commits."""
        transaction.on_commit(func, using=self.using)
