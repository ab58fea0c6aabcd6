"""Asynchronous tasks for payment reconciliation."""

from __future__ import annotations

import structlog
from celery import shared_task

from modules.orders.receipts import ReceiptManager
from modules.orders.repositories.django_repository import (
    OrderDjangoRepository,
    ReceiptDjangoRepository,
)
from modules.orders.stock import StockLedger
from modules.payments.gateway import get_payment_gateway
from modules.payments.services import ReconciliationService

logger = structlog.get_logger(__name__)


def build_reconciliation_service() -> ReconciliationService:
    receipts = ReceiptDjangoRepository()
    return ReconciliationService(
        receipt_repository=receipts,
        order_repository=OrderDjangoRepository(),
        gateway=get_payment_gateway(),
        stock_ledger=StockLedger(),
        receipt_manager=ReceiptManager(receipts),
    )


@shared_task(name="payments.reconcile_webhook")
def reconcile_webhook(provider_transaction_id: str, merchant_reference: str) -> str:
    """Reconcile one provider notification; returns the ``WebhookOutcome`` value."""
    outcome = build_reconciliation_service().handle_webhook(
        provider_transaction_id, merchant_reference
    )
    return outcome.value
