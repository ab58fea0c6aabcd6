from __future__ import annotations

from typing import Dict, Optional

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.addresses.models import DeliveryAddress
from modules.addresses.resolver import AddressResolver
from modules.cart.models import CartLine, CartLineOption
from modules.cart.repositories.django_repository import CartDjangoRepository
from modules.catalog.models import Item, OptionGroup, OptionItem, ReformProposal
from modules.catalog.repositories.django_repository import CatalogDjangoRepository
from modules.orders.receipts import ReceiptManager
from modules.orders.repositories.django_repository import (
    OrderDjangoRepository,
    ReceiptDjangoRepository,
)
from modules.orders.services import CheckoutService
from modules.orders.stock import StockLedger
from modules.payments.exceptions import PaymentLookupFailed
from modules.payments.gateway import TransactionInfo
from modules.payments.services import ReconciliationService


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """The gateway token lives in the cache; start every test without one."""
    cache.clear()
    yield
    cache.clear()


# ---------------------------------------------------------------------------
# API clients
# ---------------------------------------------------------------------------


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def buyer_user():
    return get_user_model().objects.create_user(username="buyer", password="buyer-pass-123")


@pytest.fixture()
def buyer_id(buyer_user):
    return str(buyer_user.pk)


@pytest.fixture()
def other_buyer_id():
    return str(get_user_model().objects.create_user(username="other", password="x-pass-123").pk)


@pytest.fixture()
def auth_client(api_client, buyer_user):
    api_client.force_authenticate(user=buyer_user)
    return api_client


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def item():
    return Item.objects.create(
        seller_id="seller-1", title="Linen Jacket", base_price=50000, delivery_fee=3000
    )


@pytest.fixture()
def color_group(item):
    return OptionGroup.objects.create(item=item, name="Color")


@pytest.fixture()
def size_group(item):
    return OptionGroup.objects.create(item=item, name="Size")


@pytest.fixture()
def navy(color_group):
    """+5,000, 10 in stock."""
    return OptionItem.objects.create(
        option_group=color_group, name="Navy", extra_price=5000, quantity=10
    )


@pytest.fixture()
def ivory(color_group):
    """Unlimited stock."""
    return OptionItem.objects.create(
        option_group=color_group, name="Ivory", extra_price=0, quantity=None
    )


@pytest.fixture()
def large(size_group):
    """Last unit in stock."""
    return OptionItem.objects.create(
        option_group=size_group, name="L", extra_price=0, quantity=1
    )


@pytest.fixture()
def other_item():
    return Item.objects.create(
        seller_id="seller-2", title="Wool Scarf", base_price=20000, delivery_fee=5000
    )


@pytest.fixture()
def scarf_option(other_item):
    group = OptionGroup.objects.create(item=other_item, name="Pattern")
    return OptionItem.objects.create(option_group=group, name="Check", extra_price=0, quantity=5)


@pytest.fixture()
def proposal():
    return ReformProposal.objects.create(
        seller_id="seller-3", title="Hem alteration", price=30000, delivery_fee=2500
    )


# ---------------------------------------------------------------------------
# Buyer data
# ---------------------------------------------------------------------------


@pytest.fixture()
def default_address(buyer_id):
    return DeliveryAddress.objects.create(
        buyer_id=buyer_id,
        recipient="Kim Minji",
        phone="010-1234-5678",
        postal_code="04524",
        address="Sejong-daero 110, Jung-gu, Seoul",
        address_detail="3F",
        is_default=True,
    )


@pytest.fixture()
def make_cart_line(buyer_id):
    def _make(item, options=(), quantity=1, owner=None):
        line = CartLine.objects.create(buyer_id=owner or buyer_id, item=item, quantity=quantity)
        for option in options:
            CartLineOption.objects.create(cart_line=line, option_item=option)
        return line

    return _make


# ---------------------------------------------------------------------------
# Payment provider
# ---------------------------------------------------------------------------


class FakeGateway:
    """In-memory stand-in for ``PortOneGateway``."""

    name = "portone"

    def __init__(self) -> None:
        self.transactions: Dict[str, TransactionInfo] = {}
        self.error: Optional[Exception] = None
        self.calls = 0

    def add(
        self,
        provider_transaction_id: str,
        merchant_reference: str,
        amount: int,
        status: str = "paid",
        **extra,
    ) -> TransactionInfo:
        transaction = TransactionInfo(
            provider_transaction_id=provider_transaction_id,
            merchant_reference=merchant_reference,
            status=status,
            amount=amount,
            pay_method=extra.pop("pay_method", "card"),
            provider=extra.pop("provider", "html5_inicis"),
            **extra,
        )
        self.transactions[provider_transaction_id] = transaction
        return transaction

    def fetch_transaction(self, provider_transaction_id, max_delay=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        try:
            return self.transactions[provider_transaction_id]
        except KeyError:
            raise PaymentLookupFailed(f"Unknown transaction {provider_transaction_id}.")


@pytest.fixture()
def fake_gateway():
    return FakeGateway()


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def receipt_repository():
    return ReceiptDjangoRepository()


@pytest.fixture()
def order_repository():
    return OrderDjangoRepository()


@pytest.fixture()
def stock_ledger():
    return StockLedger()


@pytest.fixture()
def receipt_manager(receipt_repository):
    return ReceiptManager(receipt_repository)


@pytest.fixture()
def checkout_service(receipt_repository, order_repository, stock_ledger, receipt_manager):
    return CheckoutService(
        receipt_repository=receipt_repository,
        order_repository=order_repository,
        catalog_repository=CatalogDjangoRepository(),
        cart_repository=CartDjangoRepository(),
        address_resolver=AddressResolver(),
        stock_ledger=stock_ledger,
        receipt_manager=receipt_manager,
    )


@pytest.fixture()
def reconciliation_service(
    receipt_repository, order_repository, fake_gateway, stock_ledger, receipt_manager
):
    return ReconciliationService(
        receipt_repository=receipt_repository,
        order_repository=order_repository,
        gateway=fake_gateway,
        stock_ledger=stock_ledger,
        receipt_manager=receipt_manager,
    )


@pytest.fixture()
def place_order(checkout_service, buyer_id, default_address):
    """Check out one item and return the ``CheckoutResultDTO``."""
    from modules.orders.dtos import CheckoutDTO

    def _place(item, options=(), quantity=1, merchant_reference="100000000001", **kwargs):
        return checkout_service.checkout(
            CheckoutDTO(
                buyer_id=kwargs.pop("buyer", buyer_id),
                merchant_reference=merchant_reference,
                target_id=item.id,
                option_item_ids=[o.id for o in options],
                quantity=quantity,
                **kwargs,
            )
        )

    return _place
