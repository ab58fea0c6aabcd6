"""Receipt and Order repositories package."""

from modules.orders.repositories.django_repository import (
    OrderDjangoRepository,
    ReceiptDjangoRepository,
)
from modules.orders.repositories.interfaces import IOrderRepository, IReceiptRepository

__all__ = [
    "IOrderRepository",
    "IReceiptRepository",
    "OrderDjangoRepository",
    "ReceiptDjangoRepository",
]
