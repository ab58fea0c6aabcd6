"""Unit tests for CheckoutService and OrderQueryService.

Covers:
- Single-item and reform checkout: pricing, stock reservation, receipt.
- All-or-nothing: a failed reservation rolls back earlier ones.
- Cart checkout: one order per line, bundled delivery fee, cart cleared.
- Replays of the same merchant reference, including orders placed by a
  concurrent checkout after the early replay check.
- Receipts paid ahead of checkout by the webhook.
- Order sheets (read-only previews).
- Order lookup by id, order number or merchant reference.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

import pytest

from modules.addresses.exceptions import InvalidDeliveryAddress
from modules.addresses.models import DeliveryAddress
from modules.cart.exceptions import CartLineNotFound
from modules.cart.models import CartLine
from modules.core.models import OutboxEvent
from modules.orders.constants import OrderStatus, OrderTargetKind, PaymentStatus
from modules.orders.dtos import (
    CartCheckoutDTO,
    CartSheetDTO,
    CheckoutDTO,
    OrderSheetDTO,
)
from modules.orders.exceptions import (
    InsufficientStock,
    InvalidOption,
    OrderNotFound,
    ReceiptClosed,
)
from modules.orders.models import Order, OrderOption, Receipt
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderQueryService, bundle_delivery_fees
from modules.payments.exceptions import PaymentAmountMismatch

pytestmark = pytest.mark.unit

REF = "200000000001"


class TestSingleCheckout:
    def test_creates_pending_order_and_receipt(self, place_order, item, navy, default_address):
        result = place_order(item, [navy], quantity=2, merchant_reference=REF)

        receipt = Receipt.objects.get(merchant_reference=REF)
        order = Order.objects.get(receipt=receipt)
        assert result.replayed is False
        assert receipt.total_amount == 113000
        assert receipt.payment_status == PaymentStatus.PENDING
        assert order.status == OrderStatus.PENDING
        assert order.price == 110000
        assert order.delivery_fee == 3000
        assert order.address_id == default_address.id
        assert order.seller_id == "seller-1"
        assert result.orders[0].options[0].label == "Color Navy (+5,000)"

    def test_reserves_stock(self, place_order, item, navy, large):
        place_order(item, [navy, large], quantity=1, merchant_reference=REF)

        navy.refresh_from_db()
        large.refresh_from_db()
        assert navy.quantity == 9
        assert large.quantity == 0

    def test_unlimited_option(self, place_order, item, ivory):
        place_order(item, [ivory], quantity=100, merchant_reference=REF)

        ivory.refresh_from_db()
        assert ivory.quantity is None

    def test_order_options_recorded(self, place_order, item, navy, large):
        result = place_order(item, [navy, large], merchant_reference=REF)

        options = OrderOption.objects.filter(order_id=result.orders[0].id)
        assert {o.option_item_id for o in options} == {navy.id, large.id}

    def test_failed_reservation_rolls_back_everything(self, place_order, item, navy, large):
        with pytest.raises(InsufficientStock):
            place_order(item, [navy, large], quantity=2, merchant_reference=REF)

        navy.refresh_from_db()
        large.refresh_from_db()
        assert navy.quantity == 10
        assert large.quantity == 1
        assert not Receipt.objects.filter(merchant_reference=REF).exists()
        assert not Order.objects.exists()

    def test_invalid_option_creates_nothing(self, place_order, item, navy, ivory):
        with pytest.raises(InvalidOption):
            place_order(item, [navy, ivory], merchant_reference=REF)

        assert not Receipt.objects.exists()

    def test_reform_proposal(self, checkout_service, buyer_id, default_address, proposal):
        result = checkout_service.checkout(
            CheckoutDTO(
                buyer_id=buyer_id,
                merchant_reference=REF,
                target_kind=OrderTargetKind.REFORM,
                target_id=proposal.id,
            )
        )

        order = Order.objects.get(id=result.orders[0].id)
        assert order.target_kind == OrderTargetKind.REFORM
        assert order.target_id == proposal.id
        assert result.receipt.total_amount == 32500

    def test_new_address_is_saved(self, checkout_service, buyer_id, item):
        result = checkout_service.checkout(
            CheckoutDTO(
                buyer_id=buyer_id,
                merchant_reference=REF,
                target_id=item.id,
                new_address={"postal_code": "06236", "address": "Teheran-ro 152"},
            )
        )

        order = Order.objects.get(id=result.orders[0].id)
        address = DeliveryAddress.objects.get(id=order.address_id)
        assert address.buyer_id == buyer_id
        assert address.postal_code == "06236"

    def test_missing_address_rolls_back_stock(self, checkout_service, buyer_id, item, navy):
        with pytest.raises(InvalidDeliveryAddress):
            checkout_service.checkout(
                CheckoutDTO(
                    buyer_id=buyer_id,
                    merchant_reference=REF,
                    target_id=item.id,
                    option_item_ids=[navy.id],
                )
            )

        navy.refresh_from_db()
        assert navy.quantity == 10

    def test_clears_cart_lines_for_item(self, place_order, make_cart_line, item, other_item):
        make_cart_line(item)
        kept = make_cart_line(other_item)

        place_order(item, merchant_reference=REF)

        assert list(CartLine.objects.values_list("id", flat=True)) == [kept.id]


class TestReplay:
    def test_same_reference_returns_existing_orders(self, place_order, item, navy):
        first = place_order(item, [navy], merchant_reference=REF)
        second = place_order(item, [navy], merchant_reference=REF)

        navy.refresh_from_db()
        assert second.replayed is True
        assert [o.id for o in second.orders] == [o.id for o in first.orders]
        assert navy.quantity == 9
        assert Order.objects.count() == 1

    def test_reference_of_another_buyer(self, place_order, item, other_buyer_id):
        place_order(item, merchant_reference=REF)

        with pytest.raises(ReceiptClosed):
            place_order(item, merchant_reference=REF, buyer=other_buyer_id)

    def test_cancelled_receipt_is_closed(self, place_order, item):
        Receipt.objects.create(
            merchant_reference=REF, total_amount=53000, payment_status=PaymentStatus.CANCELLED
        )

        with pytest.raises(ReceiptClosed):
            place_order(item, merchant_reference=REF)

    def test_orders_placed_after_the_early_check_are_replayed(
        self, checkout_service, place_order, item, navy
    ):
        first = place_order(item, [navy], merchant_reference=REF)

        with patch.object(checkout_service, "_replay", return_value=None):
            second = place_order(item, [navy], merchant_reference=REF)

        navy.refresh_from_db()
        assert second.replayed is True
        assert [o.id for o in second.orders] == [o.id for o in first.orders]
        assert Order.objects.count() == 1
        assert navy.quantity == 9
        assert Receipt.objects.get(merchant_reference=REF).total_amount == 58000

    def test_late_placement_by_another_buyer_is_closed(
        self, checkout_service, place_order, item, navy, other_buyer_id
    ):
        place_order(item, [navy], merchant_reference=REF)

        with patch.object(checkout_service, "_replay", return_value=None):
            with pytest.raises(ReceiptClosed):
                place_order(
                    item,
                    [navy],
                    merchant_reference=REF,
                    buyer=other_buyer_id,
                    new_address={"postal_code": "48058", "address": "Haeundae-ro 264"},
                )

        navy.refresh_from_db()
        assert navy.quantity == 9
        assert Order.objects.count() == 1
        assert not DeliveryAddress.objects.filter(buyer_id=other_buyer_id).exists()

    def test_cart_lines_kept_when_replayed_late(
        self, checkout_service, place_order, make_cart_line, item, navy
    ):
        place_order(item, [navy], merchant_reference=REF)
        make_cart_line(item, [navy])

        with patch.object(checkout_service, "_replay", return_value=None):
            result = place_order(item, [navy], merchant_reference=REF)

        assert result.replayed is True
        assert CartLine.objects.count() == 1


class TestPaidAhead:
    def test_orders_created_paid_when_amount_matches(self, place_order, item, navy):
        Receipt.objects.create(
            merchant_reference=REF,
            total_amount=58000,
            payment_status=PaymentStatus.PAID,
            transaction={"amount": 58000},
        )

        result = place_order(item, [navy], merchant_reference=REF)

        assert result.orders[0].status == OrderStatus.PAID
        assert OutboxEvent.objects.filter(event_type="OrderPaid").count() == 1

    def test_amount_mismatch_rolls_back(self, place_order, item, navy):
        Receipt.objects.create(
            merchant_reference=REF,
            total_amount=40000,
            payment_status=PaymentStatus.PAID,
            transaction={"amount": 40000},
        )

        with pytest.raises(PaymentAmountMismatch):
            place_order(item, [navy], merchant_reference=REF)

        navy.refresh_from_db()
        assert navy.quantity == 10
        assert not Order.objects.exists()
        assert Receipt.objects.get(merchant_reference=REF).total_amount == 40000


class TestCartCheckout:
    @pytest.fixture()
    def lines(self, make_cart_line, item, navy, other_item, scarf_option):
        return [
            make_cart_line(item, [navy], quantity=2),
            make_cart_line(other_item, [scarf_option], quantity=1),
        ]

    def _checkout(self, service, buyer_id, lines, reference=REF):
        return service.checkout_cart(
            CartCheckoutDTO(
                buyer_id=buyer_id,
                merchant_reference=reference,
                cart_line_ids=[line.id for line in lines],
            )
        )

    def test_one_order_per_line_with_bundled_fee(
        self, checkout_service, buyer_id, default_address, lines
    ):
        result = self._checkout(checkout_service, buyer_id, lines)

        assert len(result.orders) == 2
        fees = sorted(o.delivery_fee for o in result.orders)
        assert fees == [0, 5000]
        assert result.receipt.total_amount == 110000 + 20000 + 5000
        assert {o.receipt_id for o in result.orders} == {result.receipt.id}

    def test_reserves_and_clears_cart(
        self, checkout_service, buyer_id, default_address, lines, navy, scarf_option
    ):
        self._checkout(checkout_service, buyer_id, lines)

        navy.refresh_from_db()
        scarf_option.refresh_from_db()
        assert navy.quantity == 8
        assert scarf_option.quantity == 4
        assert not CartLine.objects.exists()

    def test_line_of_another_buyer(
        self, checkout_service, buyer_id, default_address, make_cart_line, item, other_buyer_id
    ):
        foreign = make_cart_line(item, owner=other_buyer_id)

        with pytest.raises(CartLineNotFound):
            self._checkout(checkout_service, buyer_id, [foreign])

        assert CartLine.objects.filter(id=foreign.id).exists()

    def test_insufficient_stock_keeps_cart(
        self, checkout_service, buyer_id, default_address, make_cart_line, item, navy, large
    ):
        lines = [make_cart_line(item, [navy]), make_cart_line(item, [large], quantity=3)]

        with pytest.raises(InsufficientStock):
            self._checkout(checkout_service, buyer_id, lines)

        navy.refresh_from_db()
        assert navy.quantity == 10
        assert CartLine.objects.count() == 2

    def test_cart_replay(self, checkout_service, buyer_id, default_address, lines):
        first = self._checkout(checkout_service, buyer_id, lines)
        second = self._checkout(checkout_service, buyer_id, lines)

        assert second.replayed is True
        assert {o.id for o in second.orders} == {o.id for o in first.orders}


class TestBundleDeliveryFees:
    def test_highest_fee_charged_once(self):
        drafts = [SimpleNamespace(delivery_fee=f) for f in (3000, 5000, 5000, 0)]

        assert bundle_delivery_fees(drafts) == [0, 5000, 0, 0]

    def test_single_draft(self):
        assert bundle_delivery_fees([SimpleNamespace(delivery_fee=3000)]) == [3000]

    def test_empty(self):
        assert bundle_delivery_fees([]) == []


class TestOrderSheet:
    def test_single_item_sheet(self, checkout_service, buyer_id, default_address, item, navy):
        sheet = checkout_service.prepare_order_sheet(
            OrderSheetDTO(buyer_id=buyer_id, target_id=item.id, option_item_ids=[navy.id], quantity=2)
        )

        navy.refresh_from_db()
        assert sheet.product_amount == 110000
        assert sheet.delivery_fee == 3000
        assert sheet.total_amount == 113000
        assert len(sheet.merchant_reference) == 12
        assert sheet.lines[0].options == ["Color Navy (+5,000)"]
        assert sheet.address.id == default_address.id
        assert navy.quantity == 10
        assert not Receipt.objects.exists()

    def test_sheet_rejects_insufficient_stock(self, checkout_service, buyer_id, item, large):
        with pytest.raises(InsufficientStock):
            checkout_service.prepare_order_sheet(
                OrderSheetDTO(
                    buyer_id=buyer_id, target_id=item.id, option_item_ids=[large.id], quantity=2
                )
            )

    def test_sheet_without_address(self, checkout_service, buyer_id, item):
        sheet = checkout_service.prepare_order_sheet(
            OrderSheetDTO(buyer_id=buyer_id, target_id=item.id)
        )

        assert sheet.address is None

    def test_sheet_previews_new_address_without_saving(self, checkout_service, buyer_id, item):
        sheet = checkout_service.prepare_order_sheet(
            OrderSheetDTO(
                buyer_id=buyer_id,
                target_id=item.id,
                new_address={"postal_code": "06236", "address": "Teheran-ro 152"},
            )
        )

        assert sheet.address.id is None
        assert sheet.address.postal_code == "06236"
        assert not DeliveryAddress.objects.exists()

    def test_cart_sheet_bundles_fees(
        self, checkout_service, buyer_id, make_cart_line, item, other_item
    ):
        lines = [make_cart_line(item), make_cart_line(other_item)]

        sheet = checkout_service.prepare_cart_sheet(
            CartSheetDTO(buyer_id=buyer_id, cart_line_ids=[line.id for line in lines])
        )

        assert sheet.product_amount == 70000
        assert sheet.delivery_fee == 5000
        assert sorted(line.delivery_fee for line in sheet.lines) == [0, 5000]


class TestOrderQuery:
    @pytest.fixture()
    def queries(self):
        return OrderQueryService(OrderDjangoRepository())

    def test_by_order_id(self, queries, place_order, item, buyer_id):
        result = place_order(item, merchant_reference=REF)

        detail = queries.get_order(buyer_id, str(result.orders[0].id))

        assert detail.id == result.orders[0].id
        assert detail.receipt.merchant_reference == REF
        assert detail.address.postal_code == "04524"

    def test_by_merchant_reference(self, queries, place_order, item, buyer_id):
        result = place_order(item, merchant_reference=REF)

        assert queries.get_order(buyer_id, REF).id == result.orders[0].id

    def test_by_order_number(self, queries, place_order, item, buyer_id):
        result = place_order(item, merchant_reference=REF)

        detail = queries.get_order(buyer_id, result.orders[0].order_number)

        assert detail.id == result.orders[0].id

    def test_other_buyer_cannot_see(self, queries, place_order, item, other_buyer_id):
        place_order(item, merchant_reference=REF)

        with pytest.raises(OrderNotFound):
            queries.get_order(other_buyer_id, REF)

    def test_unknown_lookup(self, queries, buyer_id):
        with pytest.raises(OrderNotFound):
            queries.get_order(buyer_id, str(uuid4()))
