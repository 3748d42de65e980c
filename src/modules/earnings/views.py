"""Driver earnings API."""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import ViewSet

from modules.accounts.exceptions import DriverNotFound
from modules.earnings.serializers import EarningsSummarySerializer
from modules.orders.factories import build_earnings_service


class DriverEarningsViewSet(ViewSet):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_earnings_service()

    @action(detail=True, methods=["get"])
    def earnings(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/drivers/{pk}/earnings/

        Today / rolling week / month / all-time totals and the last seven
        days, one entry per day.
        """
        try:
            summary = self._service.summary_for_driver(pk)
        except DriverNotFound:
            return Response(
                {"detail": "Driver not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(EarningsSummarySerializer(summary.model_dump()).data)
