"""Order URL configuration.

``/orders/`` plus the lifecycle actions ``transition``, ``cancel``,
``claim`` and ``release`` on ``/orders/{id}/``.
"""

from __future__ import annotations

from rest_framework.routers import SimpleRouter

from modules.orders.views import OrderViewSet

router = SimpleRouter(trailing_slash=True)
router.register("orders", OrderViewSet, basename="order")

urlpatterns = router.urls
