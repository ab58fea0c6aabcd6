"""Payment reconciliation (Use Cases).

``ReconciliationService.verify`` drives a Receipt and its Orders from
``PENDING`` to ``PAID`` once the provider confirms the payment:

1. Receipt without orders: the payment arrived before checkout finished.
   If the provider reports it paid, for the receipt's total and merchant
   reference, the receipt alone is marked paid; otherwise
   ``OrderNotYetCreated``.
2. Every order already ``PAID``: success, nothing is written.
3. Orders in mixed or non-pending states: ``InvalidOrderState``.
4. Provider status is not ``paid``: cancel, ``PaymentNotCompleted``.
5. Provider amount differs from the receipt total: cancel,
   ``PaymentAmountMismatch``.
6. Provider merchant reference differs: cancel, ``PaymentReferenceMismatch``.
7. Otherwise, in one transaction, every pending order becomes ``PAID`` and
   the receipt records the payment detail.

"Cancel" is ``cancel_receipt``: its own transaction, restores stock, never
raises.  A provider lookup failure does not cancel anything.

With ``throw_on_error=False`` every ``SettlementError`` is logged and
``False`` returned instead.
"""

from __future__ import annotations

import enum
from collections import Counter
from typing import TYPE_CHECKING, Optional

import structlog

from modules.orders.constants import OrderStatus
from modules.orders.dtos import ReceiptOutputDTO
from modules.orders.exceptions import ReceiptNotFound, SettlementError
from modules.payments.exceptions import (
    InvalidOrderState,
    OrderNotYetCreated,
    PaymentAmountMismatch,
    PaymentNotCompleted,
    PaymentReferenceMismatch,
)
from shared.infrastructure.uow import UnitOfWork

if TYPE_CHECKING:
    from modules.orders.models import Receipt
    from modules.orders.receipts import ReceiptManager
    from modules.orders.repositories.interfaces import IOrderRepository, IReceiptRepository
    from modules.orders.stock import StockLedger
    from modules.payments.dtos import VerifyPaymentDTO
    from modules.payments.gateway import IPaymentGateway, TransactionInfo

logger = structlog.get_logger(__name__)


class WebhookOutcome(str, enum.Enum):
    RECONCILED = "reconciled"
    SETTLED_AHEAD = "settled_ahead"
    IGNORED = "ignored"
    FAILED = "failed"


class ReconciliationService:
    """Application service for payment verification.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        receipt_repository: IReceiptRepository,
        order_repository: IOrderRepository,
        gateway: IPaymentGateway,
        stock_ledger: StockLedger,
        receipt_manager: ReceiptManager,
    ) -> None:
        self._receipts = receipt_repository
        self._orders = order_repository
        self._gateway = gateway
        self._ledger = stock_ledger
        self._receipt_manager = receipt_manager

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_payment(
        self, dto: VerifyPaymentDTO, max_delay: Optional[float] = None
    ) -> ReceiptOutputDTO:
        """Client-initiated verification for the buyer's own receipt.

        Raises:
            ReceiptNotFound: unknown reference, a receipt without orders, or
                orders of another buyer.
            SettlementError: any failure from ``verify``.
        """
        receipt = self._receipts.get_by_reference(dto.merchant_reference)
        if receipt is None:
            raise ReceiptNotFound(f"Receipt {dto.merchant_reference} not found.")
        orders = self._orders.list_for_receipt(str(receipt.id))
        if not orders or any(order.buyer_id != dto.buyer_id for order in orders):
            raise ReceiptNotFound(f"Receipt {dto.merchant_reference} not found.")

        self.verify(
            receipt,
            dto.provider_transaction_id,
            dto.merchant_reference,
            throw_on_error=True,
            max_delay=max_delay,
        )
        return ReceiptOutputDTO.from_entity(self._receipts.get_by_id(str(receipt.id)))

    def verify(
        self,
        receipt: Receipt,
        provider_transaction_id: str,
        merchant_reference: str,
        throw_on_error: bool,
        max_delay: Optional[float] = None,
        transaction: Optional[TransactionInfo] = None,
    ) -> bool:
        """Reconcile *receipt* against the provider transaction.

        *transaction* may be passed when the caller already fetched it.
        Returns ``True`` when the receipt ends up paid.
        """
        log = logger.bind(
            receipt_id=str(receipt.id),
            merchant_reference=merchant_reference,
            provider_transaction_id=provider_transaction_id,
        )
        try:
            return self._verify(
                receipt, provider_transaction_id, merchant_reference, max_delay, transaction, log
            )
        except SettlementError as exc:
            if throw_on_error:
                raise
            log.warning("reconciliation.verify_failed", code=exc.code, error=str(exc))
            return False

    def _verify(
        self,
        receipt: Receipt,
        provider_transaction_id: str,
        merchant_reference: str,
        max_delay: Optional[float],
        transaction: Optional[TransactionInfo],
        log,
    ) -> bool:
        orders = self._orders.list_for_receipt(str(receipt.id))

        # 1. Payment ahead of checkout
        if not orders:
            if receipt.is_paid:
                return True
            transaction = transaction or self._gateway.fetch_transaction(
                provider_transaction_id, max_delay=max_delay
            )
            if (
                transaction.is_paid
                and transaction.amount == receipt.total_amount
                and transaction.merchant_reference == merchant_reference
            ):
                with UnitOfWork() as uow:
                    settled = self._settle_receipt(uow, receipt, transaction)
                if not settled:
                    if not receipt.is_paid:
                        raise InvalidOrderState(f"Receipt is {receipt.payment_status}.")
                    log.info("reconciliation.already_paid")
                    return True
                log.info("reconciliation.receipt_settled_ahead", amount=transaction.amount)
                return True
            raise OrderNotYetCreated(f"Receipt {merchant_reference} has no orders.")

        # 2-3. Current order states
        statuses = {order.status for order in orders}
        if statuses == {OrderStatus.PAID}:
            log.info("reconciliation.already_paid")
            return True
        if statuses != {OrderStatus.PENDING}:
            raise InvalidOrderState(f"Order statuses: {', '.join(sorted(statuses))}.")

        # 4-6. Provider checks
        transaction = transaction or self._gateway.fetch_transaction(
            provider_transaction_id, max_delay=max_delay
        )
        if not transaction.is_paid:
            self.cancel_receipt(str(receipt.id), reason="payment_not_completed")
            raise PaymentNotCompleted(f"Provider status is '{transaction.status}'.")
        if transaction.amount != receipt.total_amount:
            self.cancel_receipt(str(receipt.id), reason="amount_mismatch")
            raise PaymentAmountMismatch(expected=receipt.total_amount, actual=transaction.amount)
        if transaction.merchant_reference != merchant_reference:
            self.cancel_receipt(str(receipt.id), reason="reference_mismatch")
            raise PaymentReferenceMismatch(
                f"Transaction belongs to '{transaction.merchant_reference}'."
            )

        # 7. Confirm
        with UnitOfWork() as uow:
            flipped = self._orders.mark_paid(uow, receipt)
            if flipped == 0:
                current = {order.status for order in self._orders.list_for_receipt(str(receipt.id))}
                if current == {OrderStatus.PAID}:
                    log.info("reconciliation.already_paid")
                    return True
                raise InvalidOrderState(f"Order statuses: {', '.join(sorted(current))}.")
            self._settle_receipt(uow, receipt, transaction)

        log.info("reconciliation.verified", order_count=flipped, amount=transaction.amount)
        return True

    def _settle_receipt(
        self, uow: UnitOfWork, receipt: Receipt, transaction: TransactionInfo
    ) -> bool:
        return self._receipts.mark_paid(
            uow,
            receipt,
            payment_method=transaction.pay_method,
            payment_gateway=self._gateway.name,
            transaction=transaction.to_detail(),
        )

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    def cancel_receipt(self, receipt_id: str, reason: str = "") -> bool:
        """Cancel every pending order of a receipt and restore its stock.

        Runs in its own transaction and never raises; returns ``False``
        (after logging) when the cancellation could not be applied.
        A receipt with paid orders keeps its payment status.
        """
        log = logger.bind(receipt_id=receipt_id, reason=reason)
        try:
            with UnitOfWork() as uow:
                receipt = self._receipts.get_by_id(receipt_id)
                if receipt is None:
                    log.warning("reconciliation.cancel_unknown_receipt")
                    return False

                orders = self._orders.list_for_receipt(receipt_id)
                restock: Counter = Counter()
                cancelled = 0
                for order in orders:
                    if not self._orders.cancel(uow, order, reason):
                        continue
                    cancelled += 1
                    for option in order.options.all():
                        restock[str(option.option_item_id)] += order.quantity
                for option_item_id in sorted(restock):
                    self._ledger.restore(uow, option_item_id, restock[option_item_id])

                if not any(order.status == OrderStatus.PAID for order in orders):
                    self._receipts.mark_cancelled(uow, receipt)
        except Exception:
            log.exception("reconciliation.cancel_failed")
            return False

        log.info("reconciliation.cancelled", order_count=cancelled, restocked=dict(restock))
        return True

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def handle_webhook(self, provider_transaction_id: str, merchant_reference: str) -> WebhookOutcome:
        """Provider notification entry point; never raises.

        When no receipt exists yet for *merchant_reference* and the provider
        reports the payment as paid, a receipt is created for the paid
        amount and settled ahead of the checkout.
        """
        log = logger.bind(
            provider_transaction_id=provider_transaction_id,
            merchant_reference=merchant_reference,
        )
        try:
            receipt = self._receipts.get_by_reference(merchant_reference)
            if receipt is not None:
                ok = self.verify(
                    receipt, provider_transaction_id, merchant_reference, throw_on_error=False
                )
                outcome = WebhookOutcome.RECONCILED if ok else WebhookOutcome.FAILED
            else:
                outcome = self._settle_ahead(provider_transaction_id, merchant_reference, log)
        except Exception:
            log.exception("webhook.failed")
            return WebhookOutcome.FAILED

        log.info("webhook.handled", outcome=outcome.value)
        return outcome

    def _settle_ahead(
        self, provider_transaction_id: str, merchant_reference: str, log
    ) -> WebhookOutcome:
        transaction = self._gateway.fetch_transaction(provider_transaction_id)
        if not transaction.is_paid or transaction.merchant_reference != merchant_reference:
            log.info(
                "webhook.ignored",
                status=transaction.status,
                transaction_reference=transaction.merchant_reference,
            )
            return WebhookOutcome.IGNORED

        with UnitOfWork() as uow:
            receipt = self._receipt_manager.find_or_create(
                uow, merchant_reference, transaction.amount, refresh_total=False
            )
        ok = self.verify(
            receipt,
            provider_transaction_id,
            merchant_reference,
            throw_on_error=False,
            transaction=transaction,
        )
        return WebhookOutcome.SETTLED_AHEAD if ok else WebhookOutcome.FAILED
