"""Catalog models consumed by checkout.

The catalog itself (browsing, editing, photos) lives elsewhere; these
models describe only what settlement reads:

- ``Item``: base price, delivery fee and the seller that owns it.
- ``OptionGroup`` / ``OptionItem``: mutually exclusive variants of an item.
  ``OptionItem.quantity`` is the stock counter (``NULL`` = unlimited).
- ``ReformProposal``: a priced custom-work offer from a seller; ordered
  without options.

Stock counters are only ever written by ``modules.orders.stock.StockLedger``.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel


class Item(BaseModel):
    seller_id = models.CharField(max_length=64, db_index=True)
    title = models.CharField(max_length=255)
    base_price = models.PositiveIntegerField()
    delivery_fee = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "item"
        ordering = ["title"]

    def __str__(self) -> str:
        return self.title


class OptionGroup(BaseModel):
    item = models.ForeignKey(
        "catalog.Item",
        on_delete=models.CASCADE,
        related_name="option_groups",
    )
    name = models.CharField(max_length=100)

    class Meta:
        db_table = "option_group"
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.item} / {self.name}"


class OptionItem(BaseModel):
    option_group = models.ForeignKey(
        "catalog.OptionGroup",
        on_delete=models.CASCADE,
        related_name="option_items",
    )
    name = models.CharField(max_length=100)
    extra_price = models.PositiveIntegerField(default=0)
    quantity = models.PositiveIntegerField(null=True, blank=True, default=None)

    class Meta:
        db_table = "option_item"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__isnull=True) | models.Q(quantity__gte=0),
                name="option_item_quantity_non_negative",
            ),
        ]

    @property
    def has_finite_stock(self) -> bool:
        return self.quantity is not None

    @property
    def label(self) -> str:
        """Display label, e.g. ``"Color Navy (+5,000)"``."""
        text = f"{self.option_group.name} {self.name}"
        if self.extra_price:
            text += f" (+{self.extra_price:,})"
        return text

    def __str__(self) -> str:
        return self.name


class ReformProposal(BaseModel):
    seller_id = models.CharField(max_length=64, db_index=True)
    title = models.CharField(max_length=255)
    price = models.PositiveIntegerField()
    delivery_fee = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "reform_proposal"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.title
