"""Settlement domain constants.

Order lifecycle::

    PENDING --verify ok--> PAID
    PENDING --cancel-----> CANCELLED

``PAID`` and ``CANCELLED`` are terminal for this engine (fulfilment states
belong to other services).  A Receipt follows the same shape with
``pending`` / ``paid`` / ``cancelled``.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PAID = "PAID", "Paid"
    CANCELLED = "CANCELLED", "Cancelled"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"


class OrderTargetKind(models.TextChoices):
    ITEM = "ITEM", "Catalog item"
    REFORM = "REFORM", "Reform proposal"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.PAID, OrderStatus.CANCELLED}
