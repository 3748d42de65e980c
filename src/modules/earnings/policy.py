"""Platform policy snapshot.

The policy values (per-km rate, commission, minimum wallet balance, maximum
delivery distance) can be changed at runtime through ``PlatformSetting``
rows.  Each operation takes one immutable snapshot at its start and passes
it down, so a change never applies halfway through a settlement.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

import structlog
from django.conf import settings
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = structlog.get_logger(__name__)

# PlatformSetting key -> Django setting holding the default.
SETTING_DEFAULTS: Dict[str, str] = {
    "per_km_rate": "DELIVERY_PER_KM_RATE",
    "commission_rate": "DRIVER_COMMISSION_RATE",
    "commission_amount": "DRIVER_COMMISSION_AMOUNT",
    "min_wallet_balance": "DRIVER_MIN_WALLET_BALANCE",
    "max_delivery_distance_km": "MAX_DELIVERY_DISTANCE_KM",
}


class PlatformPolicy(BaseModel):
    """Immutable policy values for one operation."""

    model_config = ConfigDict(frozen=True)

    per_km_rate: Decimal = Field(default=Decimal("5.00"), ge=0)
    commission_rate: Decimal = Field(default=Decimal("0.20"), ge=0, le=1)
    commission_amount: Optional[Decimal] = Field(default=None, ge=0)
    min_wallet_balance: Decimal = Decimal("0.00")
    max_delivery_distance_km: Decimal = Field(default=Decimal("15"), gt=0)

    @classmethod
    def load(cls) -> PlatformPolicy:
        """Snapshot the current policy.

        ``PlatformSetting`` rows win over Django settings.  A row whose value
        is not a decimal, or falls outside its field's bounds, is ignored
        (logged) and the default is used.
        """
        from modules.core.models import PlatformSetting

        values: Dict[str, Optional[Decimal]] = {}
        for key, setting_name in SETTING_DEFAULTS.items():
            default = getattr(settings, setting_name, None)
            values[key] = _to_decimal(default) if default not in (None, "") else None

        rows = PlatformSetting.objects.filter(key__in=SETTING_DEFAULTS.keys())
        for row in rows:
            if row.value.strip() == "":
                values[row.key] = None
                continue
            parsed = _to_decimal(row.value)
            if parsed is None:
                logger.warning(
                    "policy.invalid_setting", key=row.key, value=row.value
                )
                continue
            try:
                cls.model_validate({row.key: parsed})
            except ValidationError as exc:
                logger.warning(
                    "policy.invalid_setting",
                    key=row.key,
                    value=row.value,
                    error=exc.errors()[0]["msg"],
                )
                continue
            values[row.key] = parsed

        return cls(**{key: value for key, value in values.items() if value is not None})


def _to_decimal(value) -> Optional[Decimal]:
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
