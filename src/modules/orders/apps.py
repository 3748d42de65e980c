from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.orders.events import (
            DriverReleased,
            OrderCancelled,
            OrderClaimed,
            OrderDelivered,
            OrderPlaced,
            OrderStatusChanged,
        )
        from modules.orders.handlers import (
            driver_released_handler,
            order_cancelled_handler,
            order_claimed_handler,
            order_delivered_handler,
            order_placed_handler,
            order_status_changed_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderPlaced, order_placed_handler)
        event_bus.subscribe(OrderStatusChanged, order_status_changed_handler)
        event_bus.subscribe(OrderClaimed, order_claimed_handler)
        event_bus.subscribe(OrderCancelled, order_cancelled_handler)
        event_bus.subscribe(OrderDelivered, order_delivered_handler)
        event_bus.subscribe(DriverReleased, driver_released_handler)
