"""Receipt, Order and OrderOption models.

- A ``Receipt`` is the payment-level record.  ``merchant_reference`` is the
  id the payment provider knows it by and is unique.
- A ``Receipt`` owns one or more ``Order`` rows.  Orders are never
  deleted; cancellation is a status.
- ``Order.price`` is the frozen product amount
  ``(unit price + option extras) * quantity``; ``delivery_fee`` is the fee
  charged on this order (zero when bundled into another order of the same
  receipt).
- ``OrderOption`` links an order to the option items it was bought with.
  Stock is restored through these rows on cancellation.

Status changes are applied with conditional updates by
``OrderDjangoRepository`` / ``ReceiptDjangoRepository``; the helpers below
only describe the state machine.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    OrderTargetKind,
    PaymentStatus,
)
from shared.domain.events import DomainEventMixin


class Receipt(DomainEventMixin, BaseModel):
    merchant_reference: models.CharField = models.CharField(max_length=64, unique=True)
    total_amount: models.PositiveBigIntegerField = models.PositiveBigIntegerField(default=0)
    payment_status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_method: models.CharField = models.CharField(max_length=50, blank=True, default="")
    payment_gateway: models.CharField = models.CharField(max_length=50, blank=True, default="")
    transaction: models.JSONField = models.JSONField(null=True, blank=True, default=None)

    class Meta:
        db_table = "receipt"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["payment_status"], name="receipt_payment_status_idx"),
        ]

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def __str__(self) -> str:
        return f"{self.merchant_reference} [{self.payment_status}]"


class Order(DomainEventMixin, BaseModel):
    receipt: models.ForeignKey = models.ForeignKey(
        "orders.Receipt",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    order_number: models.CharField = models.CharField(max_length=20, unique=True, editable=False)
    buyer_id: models.CharField = models.CharField(max_length=64)
    seller_id: models.CharField = models.CharField(max_length=64, db_index=True)
    target_kind: models.CharField = models.CharField(
        max_length=10,
        choices=OrderTargetKind.choices,
        default=OrderTargetKind.ITEM,
    )
    target_id: models.UUIDField = models.UUIDField()
    title: models.CharField = models.CharField(max_length=255, blank=True, default="")
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(default=1)
    price: models.PositiveBigIntegerField = models.PositiveBigIntegerField()
    delivery_fee: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    address: models.ForeignKey = models.ForeignKey(
        "addresses.DeliveryAddress",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["buyer_id", "-created_at"], name="orders_buyer_created_idx"),
            models.Index(fields=["status"], name="orders_status_idx"),
        ]

    @property
    def total_amount(self) -> int:
        return self.price + self.delivery_fee

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __str__(self) -> str:
        return f"{self.title or self.target_id} x{self.quantity} [{self.status}]"


class OrderOption(BaseModel):
    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="options",
    )
    option_item: models.ForeignKey = models.ForeignKey(
        "catalog.OptionItem",
        on_delete=models.PROTECT,
        related_name="+",
    )
    label: models.CharField = models.CharField(max_length=255, blank=True, default="")
    extra_price: models.PositiveIntegerField = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "order_option"
        constraints = [
            models.UniqueConstraint(
                fields=["order", "option_item"],
                name="uq_order_option",
            ),
        ]

    def __str__(self) -> str:
        return self.label
