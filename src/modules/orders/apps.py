from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.orders.events import OrderCancelled, OrderPaid, ReceiptSettled
        from modules.orders.handlers import (
            order_cancelled_handler,
            order_paid_handler,
            receipt_settled_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderPaid, order_paid_handler)
        event_bus.subscribe(OrderCancelled, order_cancelled_handler)
        event_bus.subscribe(ReceiptSettled, receipt_settled_handler)
