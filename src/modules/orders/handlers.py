"""Event handlers for settlement domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import OrderCancelled, OrderPaid, ReceiptSettled
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderPaidHandler(IEventHandler[OrderPaid]):
    def handle(self, event: OrderPaid) -> None:
        logger.info(
            "order.paid_event_handled",
            order_id=str(event.aggregate_id),
            receipt_id=event.receipt_id,
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.cancelled_event_handled",
            order_id=str(event.aggregate_id),
            receipt_id=event.receipt_id,
            reason=event.reason,
        )


class ReceiptSettledHandler(IEventHandler[ReceiptSettled]):
    def handle(self, event: ReceiptSettled) -> None:
        logger.info(
            "receipt.settled_event_handled",
            receipt_id=str(event.aggregate_id),
            payment_status=event.payment_status,
            total_amount=event.total_amount,
        )


order_paid_handler = OrderPaidHandler()
order_cancelled_handler = OrderCancelledHandler()
receipt_settled_handler = ReceiptSettledHandler()
