"""Unit tests for settlement event handlers, event payloads and the in-memory bus."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from modules.orders.events import OrderCancelled, OrderPaid, ReceiptSettled
from modules.orders.handlers import (
    OrderCancelledHandler,
    OrderPaidHandler,
    ReceiptSettledHandler,
)
from shared.domain.events import event_from_payload
from shared.infrastructure.bus import InMemoryEventBus, event_bus

pytestmark = pytest.mark.unit


def test_order_paid_handler_logs(caplog):
    handler = OrderPaidHandler()
    event = OrderPaid(aggregate_id=uuid4(), receipt_id="r-1")

    with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
        handler.handle(event)

    assert any("order.paid_event_handled" in record.getMessage() for record in caplog.records)


def test_order_cancelled_handler_logs(caplog):
    handler = OrderCancelledHandler()
    event = OrderCancelled(aggregate_id=uuid4(), reason="amount_mismatch")

    with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
        handler.handle(event)

    assert any("amount_mismatch" in record.getMessage() for record in caplog.records)


def test_receipt_settled_handler_logs(caplog):
    handler = ReceiptSettledHandler()
    event = ReceiptSettled(aggregate_id=uuid4(), payment_status="paid", total_amount=58000)

    with caplog.at_level(logging.INFO, logger="modules.orders.handlers"):
        handler.handle(event)

    assert any("receipt.settled_event_handled" in record.getMessage() for record in caplog.records)


def test_in_memory_event_bus_routes_events():
    bus = InMemoryEventBus()
    paid_handler = MagicMock()
    cancelled_handler = MagicMock()
    bus.subscribe(OrderPaid, paid_handler)
    bus.subscribe(OrderCancelled, cancelled_handler)

    event = OrderPaid(aggregate_id=uuid4())
    bus.publish(event)

    paid_handler.handle.assert_called_once_with(event)
    cancelled_handler.handle.assert_not_called()


def test_subscribe_is_idempotent():
    bus = InMemoryEventBus()
    handler = MagicMock()
    bus.subscribe(OrderPaid, handler)
    bus.subscribe(OrderPaid, handler)

    bus.publish(OrderPaid(aggregate_id=uuid4()))

    assert handler.handle.call_count == 1


def test_resolve_by_event_name():
    bus = InMemoryEventBus()
    bus.subscribe(ReceiptSettled, MagicMock())

    assert bus.resolve("ReceiptSettled") is ReceiptSettled
    assert bus.resolve("Unknown") is None


def test_app_ready_registers_settlement_events():
    for event_class in (OrderPaid, OrderCancelled, ReceiptSettled):
        assert event_bus.resolve(event_class.__name__) is event_class


def test_payload_round_trip_preserves_fields():
    event = OrderCancelled(aggregate_id=uuid4(), receipt_id="r-9", reason="timeout")

    payload = event.to_payload()
    rebuilt = event_from_payload(OrderCancelled, payload)

    assert payload["event_name"] == "OrderCancelled"
    assert isinstance(payload["aggregate_id"], str)
    assert rebuilt.aggregate_id == event.aggregate_id
    assert rebuilt.event_id == event.event_id
    assert rebuilt.occurred_on == event.occurred_on
    assert rebuilt.reason == "timeout"
