"""Per-option stock counters.

``OptionItem.quantity`` is the only stock state; ``NULL`` means unlimited.
Reservation is a single conditional ``UPDATE ... WHERE quantity >= n``, so
two concurrent checkouts can never both take the last unit: the database
serialises the writes and the loser sees zero rows updated.

Both operations require an open ``UnitOfWork``; a reservation made in a
transaction that later rolls back is undone with it.
"""

from __future__ import annotations

import enum

import structlog
from django.db.models import F

from modules.catalog.models import OptionItem
from modules.orders.exceptions import InsufficientStock, InvalidOption
from shared.infrastructure.uow import UnitOfWork

logger = structlog.get_logger(__name__)


class Reservation(str, enum.Enum):
    COMMITTED = "committed"
    UNLIMITED = "unlimited"


class StockLedger:
    def reserve(self, uow: UnitOfWork, option_item_id: str, quantity: int) -> Reservation:
        """Take *quantity* units of an option item.

        Raises:
            InsufficientStock: fewer than *quantity* units remain.
            InvalidOption: the option item does not exist.
        """
        uow.ensure_active()
        if quantity < 1:
            raise ValueError("quantity must be positive")

        options = OptionItem.objects.using(uow.using)
        updated = options.filter(
            id=option_item_id, quantity__isnull=False, quantity__gte=quantity
        ).update(quantity=F("quantity") - quantity)
        if updated:
            logger.info(
                "stock.reserved", option_item_id=str(option_item_id), quantity=quantity
            )
            return Reservation.COMMITTED

        row = options.filter(id=option_item_id).values("name", "quantity").first()
        if row is None:
            raise InvalidOption(f"Option {option_item_id} does not exist.")
        if row["quantity"] is None:
            return Reservation.UNLIMITED

        logger.warning(
            "stock.insufficient",
            option_item_id=str(option_item_id),
            available=row["quantity"],
            requested=quantity,
        )
        raise InsufficientStock(
            option_name=row["name"], available=row["quantity"], requested=quantity
        )

    def restore(self, uow: UnitOfWork, option_item_id: str, quantity: int) -> None:
        """Give back *quantity* units.  Unlimited options are left untouched."""
        uow.ensure_active()
        if quantity < 1:
            raise ValueError("quantity must be positive")
        updated = (
            OptionItem.objects.using(uow.using)
            .filter(id=option_item_id, quantity__isnull=False)
            .update(quantity=F("quantity") + quantity)
        )
        if updated:
            logger.info(
                "stock.restored", option_item_id=str(option_item_id), quantity=quantity
            )
