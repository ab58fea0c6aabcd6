"""Receipt and Order repository interfaces.

Every write method takes the caller's ``UnitOfWork``; implementations must
refuse to run outside it.  The services depend on these contracts only.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.addresses.models import DeliveryAddress
    from modules.orders.builder import OrderDraft
    from modules.orders.models import Order, Receipt
    from shared.infrastructure.uow import UnitOfWork


class IReceiptRepository(IRepository["Receipt"]):
    @abstractmethod
    def get_by_reference(self, merchant_reference: str) -> Optional[Receipt]:
        """Retrieve a receipt by its merchant reference, or ``None``."""

    @abstractmethod
    def reference_exists(self, merchant_reference: str) -> bool:
        """Return ``True`` when a receipt already uses *merchant_reference*."""

    @abstractmethod
    def create(self, uow: UnitOfWork, merchant_reference: str, total_amount: int) -> Receipt:
        """Insert a ``pending`` receipt.  Raises ``IntegrityError`` on a duplicate reference."""

    @abstractmethod
    def update_total(self, uow: UnitOfWork, receipt: Receipt, total_amount: int) -> Receipt:
        """Overwrite the stored total without touching the payment status."""

    @abstractmethod
    def lock(self, uow: UnitOfWork, id: str) -> Receipt:
        """Reload the receipt with its row locked until *uow* ends."""

    @abstractmethod
    def mark_paid(
        self,
        uow: UnitOfWork,
        receipt: Receipt,
        payment_method: str,
        payment_gateway: str,
        transaction: Dict[str, Any],
    ) -> bool:
        """Record the payment detail and move ``payment_status`` from ``pending`` to ``paid``.

        Returns ``False`` (and reloads *receipt*) when it was no longer pending.
        """

    @abstractmethod
    def mark_cancelled(self, uow: UnitOfWork, receipt: Receipt) -> bool:
        """Set ``payment_status`` to ``cancelled``; ``False`` if it already was."""


class IOrderRepository(IRepository["Order"]):
    @abstractmethod
    def list_for_receipt(self, receipt_id: str) -> List[Order]:
        """All orders of a receipt with their options loaded."""

    @abstractmethod
    def create(
        self,
        uow: UnitOfWork,
        receipt: Receipt,
        draft: OrderDraft,
        delivery_fee: int,
        address: Optional[DeliveryAddress],
        status: str,
    ) -> Order:
        """Persist an order and its ``OrderOption`` rows from *draft*."""

    @abstractmethod
    def mark_paid(self, uow: UnitOfWork, receipt: Receipt) -> int:
        """Move every ``PENDING`` order of *receipt* to ``PAID``; returns the count."""

    @abstractmethod
    def cancel(self, uow: UnitOfWork, order: Order, reason: str) -> bool:
        """Move *order* from ``PENDING`` to ``CANCELLED``.

        Returns ``False`` when the order was not pending (nothing changed).
        """

    @abstractmethod
    def for_buyer(self, buyer_id: str) -> QuerySet:
        """Queryset of the buyer's orders for listing."""

    @abstractmethod
    def find_for_buyer(self, buyer_id: str, lookup: str) -> Optional[Order]:
        """Find an order by id or order number, else the first order of a merchant reference."""
