"""Settlement DRF serializers for API input/output.

The serializers operate at the Interface layer (API views).  Business logic
lives in the services, which receive Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

from rest_framework import serializers

from modules.orders.constants import OrderTargetKind
from modules.orders.models import Order

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class NewAddressSerializer(serializers.Serializer):
    postal_code = serializers.CharField(max_length=10)
    address = serializers.CharField(max_length=255)
    address_detail = serializers.CharField(max_length=255, required=False, default="", allow_blank=True)
    recipient = serializers.CharField(max_length=100, required=False, default="", allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, default="", allow_blank=True)


class _DeliverySerializer(serializers.Serializer):
    delivery_address_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    new_address = NewAddressSerializer(required=False, allow_null=True, default=None)


class OrderSheetSerializer(_DeliverySerializer):
    """Validates a single-target order request.

    Exactly one of ``item_id`` (catalog item) or ``proposal_id`` (reform
    proposal) must be given.
    """

    item_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    proposal_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    option_item_ids = serializers.ListField(
        child=serializers.UUIDField(), required=False, default=list
    )
    quantity = serializers.IntegerField(min_value=1, required=False, default=1)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if bool(attrs.get("item_id")) == bool(attrs.get("proposal_id")):
            raise serializers.ValidationError(
                "Provide exactly one of 'item_id' or 'proposal_id'."
            )
        return attrs


class CheckoutSerializer(OrderSheetSerializer):
    merchant_reference = serializers.RegexField(r"^[A-Za-z0-9_-]{1,64}$")


class CartSheetSerializer(_DeliverySerializer):
    cart_line_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class CartCheckoutSerializer(CartSheetSerializer):
    merchant_reference = serializers.RegexField(r"^[A-Za-z0-9_-]{1,64}$")


def target_from(data: Dict[str, Any]) -> Tuple[str, Any]:
    """``(target_kind, target_id)`` from validated ``OrderSheetSerializer`` data."""
    if data.get("item_id"):
        return OrderTargetKind.ITEM, data["item_id"]
    return OrderTargetKind.REFORM, data["proposal_id"]


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for the order list."""

    merchant_reference = serializers.CharField(source="receipt.merchant_reference", read_only=True)
    payment_status = serializers.CharField(source="receipt.payment_status", read_only=True)
    total_amount = serializers.IntegerField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "merchant_reference",
            "target_kind",
            "target_id",
            "title",
            "seller_id",
            "quantity",
            "price",
            "delivery_fee",
            "total_amount",
            "status",
            "payment_status",
            "created_at",
        ]
        read_only_fields = fields
