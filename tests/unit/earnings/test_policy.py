"""Unit tests for the platform policy snapshot."""

from __future__ import annotations

import logging
from decimal import Decimal

import pytest
from pydantic import ValidationError

from modules.core.models import PlatformSetting
from modules.earnings.policy import PlatformPolicy

pytestmark = pytest.mark.unit


class TestPlatformPolicy:
    def test_defaults_from_settings(self):
        policy = PlatformPolicy.load()
        assert policy.per_km_rate == Decimal("5.00")
        assert policy.commission_rate == Decimal("0.20")
        assert policy.commission_amount is None
        assert policy.min_wallet_balance == Decimal("0.00")
        assert policy.max_delivery_distance_km == Decimal("15")

    def test_django_settings_override_defaults(self, settings):
        settings.DELIVERY_PER_KM_RATE = "7.50"
        settings.DRIVER_COMMISSION_AMOUNT = "2.00"
        policy = PlatformPolicy.load()
        assert policy.per_km_rate == Decimal("7.50")
        assert policy.commission_amount == Decimal("2.00")

    def test_platform_setting_rows_win(self, settings):
        settings.DRIVER_MIN_WALLET_BALANCE = "10.00"
        PlatformSetting.objects.create(key="min_wallet_balance", value="25.00")
        PlatformSetting.objects.create(key="commission_rate", value="0.15")

        policy = PlatformPolicy.load()

        assert policy.min_wallet_balance == Decimal("25.00")
        assert policy.commission_rate == Decimal("0.15")

    def test_rows_apply_on_next_load(self):
        first = PlatformPolicy.load()
        PlatformSetting.objects.create(key="per_km_rate", value="6")
        second = PlatformPolicy.load()
        assert first.per_km_rate == Decimal("5.00")
        assert second.per_km_rate == Decimal("6")

    def test_empty_row_clears_fixed_commission(self, settings):
        settings.DRIVER_COMMISSION_AMOUNT = "2.00"
        PlatformSetting.objects.create(key="commission_amount", value="")
        assert PlatformPolicy.load().commission_amount is None

    def test_invalid_row_is_ignored_and_logged(self, caplog):
        PlatformSetting.objects.create(key="per_km_rate", value="five")

        with caplog.at_level(logging.WARNING, logger="modules.earnings.policy"):
            policy = PlatformPolicy.load()

        assert policy.per_km_rate == Decimal("5.00")
        assert any("policy.invalid_setting" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize(
        ("key", "value", "field", "default"),
        [
            ("commission_rate", "1.5", "commission_rate", Decimal("0.20")),
            ("per_km_rate", "-1", "per_km_rate", Decimal("5.00")),
            ("max_delivery_distance_km", "0", "max_delivery_distance_km", Decimal("15")),
        ],
    )
    def test_out_of_bounds_row_falls_back_to_default(
        self, caplog, key, value, field, default
    ):
        PlatformSetting.objects.create(key=key, value=value)
        PlatformSetting.objects.create(key="min_wallet_balance", value="12.00")

        with caplog.at_level(logging.WARNING, logger="modules.earnings.policy"):
            policy = PlatformPolicy.load()

        assert getattr(policy, field) == default
        assert policy.min_wallet_balance == Decimal("12.00")
        assert any("policy.invalid_setting" in r.getMessage() for r in caplog.records)

    def test_unrelated_rows_ignored(self):
        PlatformSetting.objects.create(key="surge_multiplier", value="2")
        assert PlatformPolicy.load() == PlatformPolicy()

    def test_snapshot_is_immutable(self):
        policy = PlatformPolicy()
        with pytest.raises(ValidationError):
            policy.per_km_rate = Decimal("1")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"commission_rate": Decimal("1.5")},
            {"commission_rate": Decimal("-0.1")},
            {"per_km_rate": Decimal("-1")},
            {"max_delivery_distance_km": Decimal("0")},
        ],
    )
    def test_out_of_range_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            PlatformPolicy(**overrides)
