"""Django ORM implementation of the Receipt and Order repositories.

Writes go through ``uow.using`` and require an open ``UnitOfWork``.  Status
changes are conditional ``UPDATE`` statements keyed on the current status,
so a repeated or concurrent transition changes nothing the second time and
emits no second event.

Domain events are written to ``OutboxEvent`` in the same transaction.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.db.models import QuerySet
from django.utils import timezone

from modules.addresses.models import DeliveryAddress
from modules.core.models import OutboxEvent
from modules.orders.builder import OrderDraft
from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.events import OrderCancelled, OrderPaid, ReceiptSettled
from modules.orders.models import Order, OrderOption, Receipt
from modules.orders.repositories.interfaces import IOrderRepository, IReceiptRepository
from shared.domain.events import DomainEvent
from shared.infrastructure.uow import UnitOfWork

logger = structlog.get_logger(__name__)


def _record_events(uow: UnitOfWork, events: Iterable[DomainEvent], topic: str) -> int:
    count = 0
    for event in events:
        OutboxEvent.objects.using(uow.using).create(
            event_type=event.event_name,
            aggregate_id=str(event.aggregate_id),
            payload=event.to_payload(),
            topic=topic,
        )
        count += 1
    return count


class ReceiptDjangoRepository(IReceiptRepository):
    """Concrete Receipt repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Receipt]:
        try:
            return Receipt.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_reference(self, merchant_reference: str) -> Optional[Receipt]:
        return Receipt.objects.filter(merchant_reference=merchant_reference).first()

    def reference_exists(self, merchant_reference: str) -> bool:
        return Receipt.objects.filter(merchant_reference=merchant_reference).exists()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create(self, uow: UnitOfWork, merchant_reference: str, total_amount: int) -> Receipt:
        uow.ensure_active()
        receipt = Receipt(merchant_reference=merchant_reference, total_amount=total_amount)
        receipt.save(using=uow.using, force_insert=True)
        logger.info(
            "receipt.created",
            receipt_id=str(receipt.id),
            merchant_reference=merchant_reference,
            total_amount=total_amount,
        )
        return receipt

    def update_total(self, uow: UnitOfWork, receipt: Receipt, total_amount: int) -> Receipt:
        uow.ensure_active()
        if receipt.total_amount != total_amount:
            Receipt.objects.using(uow.using).filter(id=receipt.id).update(
                total_amount=total_amount, updated_at=timezone.now()
            )
            logger.info(
                "receipt.total_updated",
                receipt_id=str(receipt.id),
                old_total=receipt.total_amount,
                new_total=total_amount,
            )
            receipt.total_amount = total_amount
        return receipt

    def lock(self, uow: UnitOfWork, id: str) -> Receipt:
        uow.ensure_active()
        return Receipt.objects.using(uow.using).select_for_update().get(id=id)

    def mark_paid(
        self,
        uow: UnitOfWork,
        receipt: Receipt,
        payment_method: str,
        payment_gateway: str,
        transaction: Dict[str, Any],
    ) -> bool:
        uow.ensure_active()
        updated = (
            Receipt.objects.using(uow.using)
            .filter(id=receipt.id, payment_status=PaymentStatus.PENDING)
            .update(
                payment_status=PaymentStatus.PAID,
                payment_method=payment_method,
                payment_gateway=payment_gateway,
                transaction=transaction,
                updated_at=timezone.now(),
            )
        )
        if not updated:
            receipt.refresh_from_db(using=uow.using)
            return False
        receipt.payment_status = PaymentStatus.PAID
        receipt.payment_method = payment_method
        receipt.payment_gateway = payment_gateway
        receipt.transaction = transaction
        receipt.add_domain_event(
            ReceiptSettled(
                aggregate_id=receipt.id,
                payment_status=PaymentStatus.PAID,
                total_amount=receipt.total_amount,
            )
        )
        self._flush_events(uow, receipt)
        logger.info(
            "receipt.paid",
            receipt_id=str(receipt.id),
            merchant_reference=receipt.merchant_reference,
            payment_method=payment_method,
        )
        return True

    def mark_cancelled(self, uow: UnitOfWork, receipt: Receipt) -> bool:
        uow.ensure_active()
        updated = (
            Receipt.objects.using(uow.using)
            .filter(id=receipt.id)
            .exclude(payment_status=PaymentStatus.CANCELLED)
            .update(payment_status=PaymentStatus.CANCELLED, updated_at=timezone.now())
        )
        receipt.payment_status = PaymentStatus.CANCELLED
        if not updated:
            return False
        receipt.add_domain_event(
            ReceiptSettled(
                aggregate_id=receipt.id,
                payment_status=PaymentStatus.CANCELLED,
                total_amount=receipt.total_amount,
            )
        )
        self._flush_events(uow, receipt)
        logger.info("receipt.cancelled", receipt_id=str(receipt.id))
        return True

    @staticmethod
    def _flush_events(uow: UnitOfWork, receipt: Receipt) -> None:
        _record_events(uow, receipt.domain_events, topic="receipts")
        receipt.clear_domain_events()


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _base_queryset(self) -> QuerySet:
        return Order.objects.select_related("receipt", "address").prefetch_related(
            "options__option_item"
        )

    def get_by_id(self, id: str) -> Optional[Order]:
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list_for_receipt(self, receipt_id: str) -> List[Order]:
        return list(
            self._base_queryset().filter(receipt_id=receipt_id).order_by("created_at")
        )

    def for_buyer(self, buyer_id: str) -> QuerySet:
        return self._base_queryset().filter(buyer_id=buyer_id)

    def find_for_buyer(self, buyer_id: str, lookup: str) -> Optional[Order]:
        queryset = self.for_buyer(buyer_id)
        try:
            order = queryset.filter(id=lookup).first()
        except (ValueError, ValidationError):
            order = None
        if order is None:
            order = queryset.filter(order_number=lookup).first()
        if order is None:
            order = (
                queryset.filter(receipt__merchant_reference=lookup)
                .order_by("created_at")
                .first()
            )
        return order

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create(
        self,
        uow: UnitOfWork,
        receipt: Receipt,
        draft: OrderDraft,
        delivery_fee: int,
        address: Optional[DeliveryAddress],
        status: str,
    ) -> Order:
        uow.ensure_active()
        order = Order(
            receipt=receipt,
            buyer_id=draft.buyer_id,
            seller_id=draft.seller_id,
            target_kind=draft.target_kind,
            target_id=draft.target_id,
            title=draft.title,
            quantity=draft.quantity,
            price=draft.price,
            delivery_fee=delivery_fee,
            status=status,
            address=address,
        )
        self._insert_numbered(uow, order)
        OrderOption.objects.using(uow.using).bulk_create(
            [
                OrderOption(
                    order=order,
                    option_item=option,
                    label=option.label,
                    extra_price=option.extra_price,
                )
                for option in draft.option_items
            ]
        )
        if status == OrderStatus.PAID:
            _record_events(
                uow, [OrderPaid(aggregate_id=order.id, receipt_id=str(receipt.id))], "orders"
            )
        logger.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            receipt_id=str(receipt.id),
            status=status,
            price=order.price,
            delivery_fee=delivery_fee,
            option_count=len(draft.option_items),
        )
        return order

    @staticmethod
    def _insert_numbered(uow: UnitOfWork, order: Order) -> None:
        """Insert *order* under the next free ``YYYYMMDD-NNNNN`` number of today.

        A number taken by a concurrent insert is retried in a savepoint; after
        ``ORDER_NUMBER_MAX_ATTEMPTS`` conflicts the last four digits of the
        millisecond clock are used instead.
        """
        prefix = timezone.localdate().strftime("%Y%m%d")
        orders = Order.objects.using(uow.using)
        for attempt in range(settings.ORDER_NUMBER_MAX_ATTEMPTS):
            issued = orders.filter(order_number__startswith=f"{prefix}-").count()
            order.order_number = f"{prefix}-{issued + 1 + attempt:05d}"
            try:
                with UnitOfWork(uow.using) as savepoint:
                    order.save(using=savepoint.using, force_insert=True)
                return
            except IntegrityError:
                logger.info("order.number_conflict", order_number=order.order_number)

        order.order_number = f"{prefix}-{int(time.time() * 1000) % 10000:04d}"
        logger.warning("order.number_fallback", order_number=order.order_number)
        order.save(using=uow.using, force_insert=True)

    def mark_paid(self, uow: UnitOfWork, receipt: Receipt) -> int:
        uow.ensure_active()
        orders = Order.objects.using(uow.using)
        pending_ids = list(
            orders.select_for_update()
            .filter(receipt_id=receipt.id, status=OrderStatus.PENDING)
            .values_list("id", flat=True)
        )
        if not pending_ids:
            return 0
        updated = orders.filter(id__in=pending_ids, status=OrderStatus.PENDING).update(
            status=OrderStatus.PAID, updated_at=timezone.now()
        )
        _record_events(
            uow,
            [OrderPaid(aggregate_id=order_id, receipt_id=str(receipt.id)) for order_id in pending_ids],
            topic="orders",
        )
        logger.info("order.marked_paid", receipt_id=str(receipt.id), count=updated)
        return updated

    def cancel(self, uow: UnitOfWork, order: Order, reason: str) -> bool:
        uow.ensure_active()
        updated = (
            Order.objects.using(uow.using)
            .filter(id=order.id, status=OrderStatus.PENDING)
            .update(status=OrderStatus.CANCELLED, updated_at=timezone.now())
        )
        if not updated:
            return False
        order.status = OrderStatus.CANCELLED
        _record_events(
            uow,
            [
                OrderCancelled(
                    aggregate_id=order.id, receipt_id=str(order.receipt_id), reason=reason
                )
            ],
            topic="orders",
        )
        logger.info("order.cancelled", order_id=str(order.id), reason=reason)
        return True
