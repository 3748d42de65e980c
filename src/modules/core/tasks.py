"""Async tasks for the core module."""

import structlog
from celery import shared_task

from modules.core.models import OutboxEvent
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.debug_task")
def debug_task():
    """Diagnostic task to check that the Celery worker is up."""
    logger.info("debug_task.executed", status="ok")
    return {"status": "ok", "message": "Celery is working"}


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int = 100):
    """Hand pending outbox events to the in-process event bus.

    Events whose type is unknown or whose payload cannot be decoded are
    marked ``failed`` and skipped; the rest of the batch still goes out.
    """
    published = 0
    failed = 0
    for outbox in OutboxEvent.objects.next_batch(batch_size):
        try:
            event = DomainEvent.from_payload(outbox.event_type, outbox.payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "outbox.decode_failed",
                outbox_id=str(outbox.id),
                event_type=outbox.event_type,
                error=str(exc),
            )
            outbox.mark_as_failed(str(exc))
            failed += 1
            continue

        event_bus.publish(event)
        outbox.mark_as_published()
        published += 1

    logger.info("outbox.batch_published", published=published, failed=failed)
    return {"published": published, "failed": failed}
