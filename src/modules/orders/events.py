"""Domain events for settlement."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderPaid(DomainEvent):
    """Raised when a pending order is confirmed as paid."""

    receipt_id: str = ""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when a pending order is cancelled and its stock restored."""

    receipt_id: str = ""
    reason: str = ""


@dataclass(frozen=True)
class ReceiptSettled(DomainEvent):
    """Raised when a receipt reaches ``paid`` or ``cancelled``."""

    payment_status: str = ""
    total_amount: int = 0
