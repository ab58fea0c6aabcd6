"""Settlement exceptions.

Raised by the checkout and reconciliation services when a business rule is
violated.  ``modules.core.exceptions.api_exception_handler`` renders them
with their ``code`` and ``status_code``.
"""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import DomainError


class SettlementError(DomainError):
    """Base class for every checkout / reconciliation failure."""

    code = "SETTLEMENT-ERROR"
    message = "Settlement failed."
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidOption(SettlementError):
    """An option item is unknown, foreign to the target, or duplicated within a group."""

    code = "INVALID-OPTION"
    message = "Invalid option selection."


class InsufficientStock(SettlementError):
    """An option item does not have enough stock for the requested quantity."""

    code = "INSUFFICIENT-STOCK"
    message = "Insufficient stock."
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, option_name: str, available: int, requested: int) -> None:
        self.option_name = option_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Option '{option_name}' has {available} left, {requested} requested."
        )


class ItemNotFound(SettlementError):
    """The checkout target (item or reform proposal) does not exist."""

    code = "ITEM-NOT-FOUND"
    message = "Order target not found."
    status_code = status.HTTP_404_NOT_FOUND


class EmptyCheckout(SettlementError):
    """A cart checkout was requested without any cart line."""

    code = "EMPTY-CHECKOUT"
    message = "Nothing to check out."


class ReceiptNotFound(SettlementError):
    code = "RECEIPT-NOT-FOUND"
    message = "Receipt not found."
    status_code = status.HTTP_404_NOT_FOUND


class OrderNotFound(SettlementError):
    code = "ORDER-NOT-FOUND"
    message = "Order not found."
    status_code = status.HTTP_404_NOT_FOUND


class ReceiptClosed(SettlementError):
    """Checkout against a receipt that was already cancelled."""

    code = "RECEIPT-CLOSED"
    message = "Receipt is no longer open."
    status_code = status.HTTP_409_CONFLICT
