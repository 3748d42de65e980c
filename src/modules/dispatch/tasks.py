"""Async tasks for driver dispatch."""

import structlog
from celery import shared_task

from modules.accounts.repositories.django_repository import DriverDjangoRepository
from modules.orders.models import Order

logger = structlog.get_logger(__name__)


@shared_task(name="dispatch.notify_drivers")
def notify_drivers(order_id: str):
    """Announce a claimable order to online drivers without an active order.

    Advisory only: push delivery is owned by the notification service, this
    task records the audience.  An order that stopped being claimable before
    the task ran is skipped.
    """
    order = Order.objects.filter(id=order_id).first()
    if order is None or not order.is_claimable:
        logger.info("dispatch.notify_skipped", order_id=order_id)
        return {"order_id": order_id, "notified": 0}

    drivers = DriverDjangoRepository().list_dispatchable(exclude_busy=True)
    logger.info(
        "dispatch.drivers_notified",
        order_id=order_id,
        status=order.status,
        driver_ids=[str(driver.id) for driver in drivers],
    )
    return {"order_id": order_id, "notified": len(drivers)}
