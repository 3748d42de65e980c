"""Distance and delivery fee helpers."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple

EARTH_RADIUS_KM = 6371.0
CENTS = Decimal("0.01")

Coordinates = Tuple[float, float]


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance between two ``(lat, lon)`` points in km."""
    lat1, lon1 = map(math.radians, origin)
    lat2, lon2 = map(math.radians, destination)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_fee(distance_km: Optional[Decimal], per_km_rate: Decimal) -> Decimal:
    """Fee for a distance, charging every started kilometre.

    0.3 km bills as 1 km, 4.2 km as 5 km.  No distance means no fee.
    """
    if distance_km is None or distance_km <= 0:
        return Decimal("0.00")
    kilometres = math.ceil(Decimal(distance_km))
    return (Decimal(kilometres) * per_km_rate).quantize(CENTS, rounding=ROUND_HALF_UP)


def can_deliver(distance_km: Decimal, max_distance_km: Decimal) -> bool:
    return distance_km <= max_distance_km


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
