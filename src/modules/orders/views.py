"""Order API views.

Exposes ``CheckoutService`` and ``OrderQueryService`` via a DRF ViewSet.
Domain exceptions propagate to ``api_exception_handler``, which renders
them with their own status code.  The authenticated user is the buyer.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.addresses.resolver import AddressResolver
from modules.cart.repositories.django_repository import CartDjangoRepository
from modules.catalog.repositories.django_repository import CatalogDjangoRepository
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.dtos import (
    CartCheckoutDTO,
    CartSheetDTO,
    CheckoutDTO,
    CheckoutResultDTO,
    OrderSheetDTO,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.receipts import ReceiptManager
from modules.orders.repositories.django_repository import (
    OrderDjangoRepository,
    ReceiptDjangoRepository,
)
from modules.orders.serializers import (
    CartCheckoutSerializer,
    CartSheetSerializer,
    CheckoutSerializer,
    OrderListSerializer,
    OrderSheetSerializer,
    target_from,
)
from modules.orders.services import CheckoutService, OrderQueryService
from modules.orders.stock import StockLedger


def build_checkout_service() -> CheckoutService:
    receipts = ReceiptDjangoRepository()
    return CheckoutService(
        receipt_repository=receipts,
        order_repository=OrderDjangoRepository(),
        catalog_repository=CatalogDjangoRepository(),
        cart_repository=CartDjangoRepository(),
        address_resolver=AddressResolver(),
        stock_ledger=StockLedger(),
        receipt_manager=ReceiptManager(receipts),
    )


def _delivery(data: dict) -> dict:
    return {
        "delivery_address_id": data.get("delivery_address_id"),
        "new_address": data.get("new_address"),
    }


class OrderViewSet(GenericViewSet):
    """ViewSet for checkout and the buyer's orders.

    Does **not** extend ``ModelViewSet``; all ORM access goes through the
    service/repository layer.
    """

    queryset = Order.objects.none()
    filterset_class = OrderFilter
    ordering_fields = ["created_at", "price", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    lookup_value_regex = "[^/]+"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._checkout = build_checkout_service()
        self._queries = OrderQueryService(order_repository=OrderDjangoRepository())

    def get_throttles(self) -> list[BaseThrottle]:
        if self.action in {"create", "from_cart"}:
            self.throttle_scope = "checkout"
        return super().get_throttles()

    def get_queryset(self):
        return self._queries.list_orders(self._buyer_id())

    def _buyer_id(self) -> str:
        return str(self.request.user.pk)

    # ------------------------------------------------------------------
    # Order sheets
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"], url_path="sheet")
    def sheet(self, request: Request) -> Response:
        """POST /api/v1/orders/sheet/"""
        serializer = OrderSheetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        kind, target_id = target_from(data)
        dto = OrderSheetDTO(
            buyer_id=self._buyer_id(),
            target_kind=kind,
            target_id=target_id,
            option_item_ids=data["option_item_ids"],
            quantity=data["quantity"],
            **_delivery(data),
        )
        sheet = self._checkout.prepare_order_sheet(dto)
        return Response(sheet.model_dump(mode="json"))

    @action(detail=False, methods=["post"], url_path="sheet/from-cart")
    def sheet_from_cart(self, request: Request) -> Response:
        """POST /api/v1/orders/sheet/from-cart/"""
        serializer = CartSheetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        dto = CartSheetDTO(
            buyer_id=self._buyer_id(),
            cart_line_ids=data["cart_line_ids"],
            **_delivery(data),
        )
        sheet = self._checkout.prepare_cart_sheet(dto)
        return Response(sheet.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Returns 201 for a new checkout, 200 when the merchant reference was
        already checked out by this buyer.
        """
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        kind, target_id = target_from(data)
        dto = CheckoutDTO(
            buyer_id=self._buyer_id(),
            merchant_reference=data["merchant_reference"],
            target_kind=kind,
            target_id=target_id,
            option_item_ids=data["option_item_ids"],
            quantity=data["quantity"],
            **_delivery(data),
        )
        return self._checkout_response(self._checkout.checkout(dto))

    @action(detail=False, methods=["post"], url_path="from-cart")
    def from_cart(self, request: Request) -> Response:
        """POST /api/v1/orders/from-cart/"""
        serializer = CartCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        dto = CartCheckoutDTO(
            buyer_id=self._buyer_id(),
            merchant_reference=data["merchant_reference"],
            cart_line_ids=data["cart_line_ids"],
            **_delivery(data),
        )
        return self._checkout_response(self._checkout.checkout_cart(dto))

    @staticmethod
    def _checkout_response(result: CheckoutResultDTO) -> Response:
        return Response(
            result.model_dump(mode="json"),
            status=status.HTTP_200_OK if result.replayed else status.HTTP_201_CREATED,
        )

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/"""
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{id, order number or merchant reference}/"""
        detail = self._queries.get_order(self._buyer_id(), pk or "")
        return Response(detail.model_dump(mode="json"))
