"""Receipt lookup/creation and merchant reference generation."""

from __future__ import annotations

import secrets
import time
from typing import Optional

import structlog
from django.conf import settings
from django.db import IntegrityError

from modules.orders.models import Receipt
from modules.orders.repositories.interfaces import IReceiptRepository
from shared.infrastructure.uow import UnitOfWork

logger = structlog.get_logger(__name__)


class ReceiptManager:
    """Idempotent access to the Receipt identified by a merchant reference.

    The reference is unique in the database.  When two checkouts race to
    create the same Receipt the insert runs in a savepoint; the loser's
    ``IntegrityError`` is rolled back to that savepoint and the winner's
    row is returned instead.
    """

    def __init__(
        self,
        receipt_repository: IReceiptRepository,
        reference_length: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> None:
        self._receipts = receipt_repository
        self._length = reference_length or settings.MERCHANT_REFERENCE_LENGTH
        self._max_attempts = max_attempts or settings.MERCHANT_REFERENCE_MAX_ATTEMPTS

    def find_or_create(
        self,
        uow: UnitOfWork,
        merchant_reference: str,
        total_amount: int,
        refresh_total: bool = True,
    ) -> Receipt:
        """Return the Receipt for *merchant_reference*, creating it if absent.

        An existing Receipt has its ``total_amount`` overwritten with
        *total_amount* (unless *refresh_total* is false); its payment status
        is never changed here.
        """
        uow.ensure_active()
        log = logger.bind(merchant_reference=merchant_reference)

        receipt = self._receipts.get_by_reference(merchant_reference)
        if receipt is None:
            try:
                with UnitOfWork(uow.using) as savepoint:
                    receipt = self._receipts.create(savepoint, merchant_reference, total_amount)
                return receipt
            except IntegrityError:
                log.info("receipt.create_conflict")
                receipt = self._receipts.get_by_reference(merchant_reference)
                if receipt is None:
                    raise

        log.info("receipt.reused", receipt_id=str(receipt.id))
        if refresh_total:
            self._receipts.update_total(uow, receipt, total_amount)
        return receipt

    def generate_merchant_reference(self) -> str:
        """Return a numeric reference not used by any stored Receipt.

        Random ``MERCHANT_REFERENCE_LENGTH``-digit candidates are tried up
        to ``MERCHANT_REFERENCE_MAX_ATTEMPTS`` times, then a
        millisecond-timestamp value is used.  Uniqueness is finally
        guaranteed by the database constraint, not by this check.
        """
        for _ in range(self._max_attempts):
            candidate = self._random_digits()
            if not self._receipts.reference_exists(candidate):
                return candidate
        fallback = str(int(time.time() * 1000))[-self._length :].zfill(self._length)
        logger.warning("receipt.reference_fallback", merchant_reference=fallback)
        return fallback

    def _random_digits(self) -> str:
        first = str(secrets.randbelow(9) + 1)
        rest = "".join(str(secrets.randbelow(10)) for _ in range(self._length - 1))
        return first + rest
