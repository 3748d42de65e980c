"""Earnings URL configuration."""

from __future__ import annotations

from rest_framework.routers import SimpleRouter

from modules.earnings.views import DriverEarningsViewSet

router = SimpleRouter(trailing_slash=True)
router.register("drivers", DriverEarningsViewSet, basename="driver")

urlpatterns = router.urls
