"""Unit tests for BaseModel, SoftDeleteModel and PlatformSetting.

Exercised through concrete order-core models: ``PlatformSetting`` for the
plain base and ``CatalogItem`` for soft delete.
"""

from __future__ import annotations

import uuid

import pytest
from django.utils import timezone
from freezegun import freeze_time

from modules.catalog.models import CatalogItem
from modules.core.models import PlatformSetting

pytestmark = pytest.mark.unit


class TestBaseModel:
    def test_id_is_uuid_version_7(self):
        obj = PlatformSetting.objects.create(key="per_km_rate", value="5")
        assert isinstance(obj.id, uuid.UUID)
        assert obj.id.version == 7

    def test_ids_are_time_ordered(self):
        a = PlatformSetting.objects.create(key="a", value="1")
        b = PlatformSetting.objects.create(key="b", value="2")
        assert str(a.id) < str(b.id)

    def test_updated_at_changes_on_save(self):
        obj = PlatformSetting.objects.create(key="k", value="1")
        original_updated = obj.updated_at
        obj.value = "2"
        obj.save()
        obj.refresh_from_db()
        assert obj.updated_at > original_updated
        assert obj.created_at <= original_updated

    def test_save_with_update_fields_includes_updated_at(self):
        obj = PlatformSetting.objects.create(key="k", value="1")
        original_updated = obj.updated_at
        obj.value = "2"
        obj.save(update_fields=["value"])
        obj.refresh_from_db()
        assert obj.value == "2"
        assert obj.updated_at > original_updated

    def test_platform_setting_str(self):
        assert str(PlatformSetting(key="per_km_rate", value="5")) == "per_km_rate=5"


class TestSoftDelete:
    def test_delete_is_soft(self, item_a):
        count, _ = item_a.delete()
        assert count == 1
        assert item_a.is_deleted
        assert CatalogItem.objects.filter(pk=item_a.pk).exists()

    def test_second_delete_is_noop(self, item_a):
        item_a.delete()
        assert item_a.delete() == (0, {})

    def test_alive_excludes_deleted(self, item_a, item_b):
        item_a.delete()
        assert list(CatalogItem.objects.alive()) == [item_b]

    def test_bulk_delete_skips_already_deleted(self, item_a, item_b):
        item_a.delete()
        count, _ = CatalogItem.objects.filter(pk__in=[item_a.pk, item_b.pk]).delete()
        assert count == 1
        item_b.refresh_from_db()
        assert item_b.is_deleted

    def test_delete_records_exact_timestamp(self, item_a):
        with freeze_time("2026-06-15 12:00:00"):
            item_a.delete()
            expected = timezone.now()
        item_a.refresh_from_db()
        assert item_a.deleted_at == expected
