"""Unit tests for the Order state machine and model helpers."""

from __future__ import annotations

import pytest
from django.db import IntegrityError, transaction

from modules.catalog.models import OptionItem
from modules.orders.constants import TERMINAL_STATES, VALID_TRANSITIONS, OrderStatus
from modules.orders.models import Order

pytestmark = pytest.mark.unit


class TestStateMachine:
    def test_pending_can_become_paid_or_cancelled(self):
        assert VALID_TRANSITIONS[OrderStatus.PENDING] == {OrderStatus.PAID, OrderStatus.CANCELLED}

    @pytest.mark.parametrize("status", [OrderStatus.PAID, OrderStatus.CANCELLED])
    def test_terminal_states_have_no_exit(self, status):
        assert status in TERMINAL_STATES
        assert VALID_TRANSITIONS[status] == set()

    def test_can_transition_to(self):
        order = Order(status=OrderStatus.PENDING)
        assert order.can_transition_to(OrderStatus.PAID)
        assert not order.is_terminal

        order.status = OrderStatus.CANCELLED
        assert not order.can_transition_to(OrderStatus.PAID)
        assert order.is_terminal


class TestOrderModel:
    def test_total_amount(self):
        assert Order(price=110000, delivery_fee=3000).total_amount == 113000

    def test_str(self, place_order, item):
        place_order(item, merchant_reference="400000000001")

        assert str(Order.objects.get()) == "Linen Jacket x1 [PENDING]"


class TestOptionItemStock:
    def test_negative_stock_rejected_by_database(self, color_group):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                OptionItem.objects.create(option_group=color_group, name="Bad", quantity=-1)

    def test_label_without_extra_price(self, large):
        assert large.label == "Size L"
