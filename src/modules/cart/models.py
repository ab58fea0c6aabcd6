"""Shopping cart lines.

A line is one item in a buyer's cart with the option items chosen for it.
Lines consumed by a checkout are deleted in the checkout's transaction.
"""

from __future__ import annotations

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class CartLine(BaseModel):
    buyer_id = models.CharField(max_length=64, db_index=True)
    item = models.ForeignKey(
        "catalog.Item",
        on_delete=models.CASCADE,
        related_name="cart_lines",
    )
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta:
        db_table = "cart_line"
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.item} x{self.quantity}"


class CartLineOption(BaseModel):
    cart_line = models.ForeignKey(
        "cart.CartLine",
        on_delete=models.CASCADE,
        related_name="options",
    )
    option_item = models.ForeignKey(
        "catalog.OptionItem",
        on_delete=models.CASCADE,
        related_name="+",
    )

    class Meta:
        db_table = "cart_line_option"
        constraints = [
            models.UniqueConstraint(
                fields=["cart_line", "option_item"],
                name="uq_cart_line_option",
            ),
        ]
