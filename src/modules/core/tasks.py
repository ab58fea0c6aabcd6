"""Asynchronous tasks for the core module."""

import structlog
from celery import shared_task
from django.db import transaction

from modules.core.models import EventStatus, OutboxEvent
from shared.domain.events import event_from_payload
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

OUTBOX_BATCH_SIZE = 100
OUTBOX_MAX_RETRIES = 5


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int = OUTBOX_BATCH_SIZE) -> dict:
    """Drain publishable outbox rows into the in-process event bus.

    Each row is handled in its own transaction so one failing handler does
    not block the rest of the batch.
    """
    published = failed = 0
    ids = list(
        OutboxEvent.objects.publishable(OUTBOX_MAX_RETRIES).values_list("id", flat=True)[
            :batch_size
        ]
    )
    for event_id in ids:
        with transaction.atomic():
            row = OutboxEvent.objects.select_for_update().filter(id=event_id).first()
            if row is None or row.status == EventStatus.PUBLISHED:
                continue
            event_class = event_bus.resolve(row.event_type)
            if event_class is None:
                row.mark_as_failed(f"No handler registered for {row.event_type}")
                failed += 1
                logger.warning("outbox.unroutable", event_type=row.event_type)
                continue
            try:
                event_bus.publish(event_from_payload(event_class, row.payload))
            except Exception as exc:
                row.mark_as_failed(repr(exc))
                failed += 1
                logger.exception("outbox.publish_failed", outbox_id=str(row.id))
                continue
            row.mark_as_published()
            published += 1

    logger.info("outbox.batch_published", published=published, failed=failed)
    return {"published": published, "failed": failed}
