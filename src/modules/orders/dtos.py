"""Settlement DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.  They are the
contracts between the API layer (DRF serializers) and the services, and
are immutable (``frozen=True``).

Input:
- ``OrderSheetDTO`` / ``CheckoutDTO``: single target checkout.
- ``CartSheetDTO`` / ``CartCheckoutDTO``: checkout of cart lines.

Output:
- ``OrderSheetOutputDTO``: priced preview with a fresh merchant reference.
- ``CheckoutResultDTO``: the receipt and the orders created under it.
- ``OrderDetailDTO``: one order with its receipt and payment detail.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from modules.orders.constants import OrderTargetKind

if TYPE_CHECKING:
    from modules.addresses.models import DeliveryAddress
    from modules.orders.builder import OrderDraft
    from modules.orders.models import Order, Receipt

MERCHANT_REFERENCE_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class NewAddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    postal_code: str
    address: str
    address_detail: str = ""
    recipient: str = ""
    phone: str = ""


class _DeliveryMixin(BaseModel):
    model_config = ConfigDict(frozen=True)

    delivery_address_id: Optional[UUID] = None
    new_address: Optional[NewAddressDTO] = None


class OrderSheetDTO(_DeliveryMixin):
    """Immutable DTO describing one target plus its option selection."""

    buyer_id: str
    target_kind: OrderTargetKind = OrderTargetKind.ITEM
    target_id: UUID
    option_item_ids: List[UUID] = []
    quantity: int = 1

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CheckoutDTO(OrderSheetDTO):
    merchant_reference: str

    @field_validator("merchant_reference")
    @classmethod
    def reference_must_be_well_formed(cls, v: str) -> str:
        if not MERCHANT_REFERENCE_RE.match(v):
            raise ValueError("merchant_reference must be 1-64 letters, digits, '_' or '-'.")
        return v


class CartSheetDTO(_DeliveryMixin):
    """Immutable DTO selecting cart lines for a combined checkout."""

    buyer_id: str
    cart_line_ids: List[UUID]

    @field_validator("cart_line_ids")
    @classmethod
    def lines_must_be_unique_and_present(cls, v: List[UUID]) -> List[UUID]:
        if not v:
            raise ValueError("At least one cart line is required.")
        if len(v) != len(set(v)):
            raise ValueError("Duplicate cart line IDs are not allowed.")
        return v


class CartCheckoutDTO(CartSheetDTO):
    merchant_reference: str

    @field_validator("merchant_reference")
    @classmethod
    def reference_must_be_well_formed(cls, v: str) -> str:
        if not MERCHANT_REFERENCE_RE.match(v):
            raise ValueError("merchant_reference must be 1-64 letters, digits, '_' or '-'.")
        return v


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


def format_card_info(transaction: Optional[Dict[str, Any]]) -> Optional[str]:
    """``"<card name> <masked number>"`` plus ``" (N-month installment)"`` if any."""
    if not transaction or not transaction.get("card_name"):
        return None
    text = f"{transaction['card_name']} {transaction.get('card_number') or ''}".strip()
    quota = transaction.get("card_quota") or 0
    if quota > 0:
        text += f" ({quota}-month installment)"
    return text


class AddressOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[UUID]
    postal_code: str
    address: str
    address_detail: str
    recipient: str
    phone: str

    @classmethod
    def from_entity(cls, address: DeliveryAddress) -> AddressOutputDTO:
        return cls(
            id=None if address._state.adding else address.id,
            postal_code=address.postal_code,
            address=address.address,
            address_detail=address.address_detail,
            recipient=address.recipient,
            phone=address.phone,
        )


class SheetLineDTO(BaseModel):
    """One priced line of an order sheet."""

    model_config = ConfigDict(frozen=True)

    target_kind: str
    target_id: UUID
    title: str
    seller_id: str
    options: List[str]
    quantity: int
    unit_price: int
    price: int
    delivery_fee: int

    @classmethod
    def from_draft(cls, draft: OrderDraft) -> SheetLineDTO:
        return cls(
            target_kind=draft.target_kind,
            target_id=draft.target_id,
            title=draft.title,
            seller_id=draft.seller_id,
            options=draft.option_labels,
            quantity=draft.quantity,
            unit_price=draft.unit_price,
            price=draft.price,
            delivery_fee=draft.delivery_fee,
        )


class OrderSheetOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    merchant_reference: str
    lines: List[SheetLineDTO]
    product_amount: int
    delivery_fee: int
    total_amount: int
    address: Optional[AddressOutputDTO]


class ReceiptOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    merchant_reference: str
    total_amount: int
    payment_status: str
    payment_method: str
    payment_gateway: str
    card_info: Optional[str]

    @classmethod
    def from_entity(cls, receipt: Receipt) -> ReceiptOutputDTO:
        return cls(
            id=receipt.id,
            merchant_reference=receipt.merchant_reference,
            total_amount=receipt.total_amount,
            payment_status=receipt.payment_status,
            payment_method=receipt.payment_method,
            payment_gateway=receipt.payment_gateway,
            card_info=format_card_info(receipt.transaction),
        )


class OrderOptionOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    option_item_id: UUID
    label: str
    extra_price: int


class OrderOutputDTO(BaseModel):
    """Immutable DTO for order API responses."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    order_number: str
    receipt_id: UUID
    merchant_reference: str
    target_kind: str
    target_id: UUID
    title: str
    seller_id: str
    quantity: int
    price: int
    delivery_fee: int
    total_amount: int
    status: str
    options: List[OrderOptionOutputDTO]
    created_at: datetime

    @classmethod
    def from_entity(cls, order: Order) -> OrderOutputDTO:
        """Build an output DTO from an Order; assumes ``receipt`` and ``options`` are loaded."""
        return cls(
            id=order.id,
            order_number=order.order_number,
            receipt_id=order.receipt_id,
            merchant_reference=order.receipt.merchant_reference,
            target_kind=order.target_kind,
            target_id=order.target_id,
            title=order.title,
            seller_id=order.seller_id,
            quantity=order.quantity,
            price=order.price,
            delivery_fee=order.delivery_fee,
            total_amount=order.total_amount,
            status=order.status,
            options=[
                OrderOptionOutputDTO(
                    option_item_id=option.option_item_id,
                    label=option.label,
                    extra_price=option.extra_price,
                )
                for option in order.options.all()
            ],
            created_at=order.created_at,
        )


class OrderDetailDTO(OrderOutputDTO):
    receipt: ReceiptOutputDTO
    address: Optional[AddressOutputDTO]

    @classmethod
    def from_entity(cls, order: Order) -> OrderDetailDTO:
        base = OrderOutputDTO.from_entity(order).model_dump()
        return cls(
            **base,
            receipt=ReceiptOutputDTO.from_entity(order.receipt),
            address=AddressOutputDTO.from_entity(order.address) if order.address else None,
        )


class CheckoutResultDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    receipt: ReceiptOutputDTO
    orders: List[OrderOutputDTO]
    replayed: bool = False
