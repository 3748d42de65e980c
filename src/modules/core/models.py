"""Shared model infrastructure for the order core.

- ``BaseModel``: UUIDv7 key plus ``created_at`` / ``updated_at``.
- ``SoftDeleteModel``: parties and catalog items referenced by orders are
  retired with ``deleted_at`` and never removed, so order history keeps
  its foreign keys.
- ``OutboxEvent``: domain events written in the transaction that changed
  the order, published later by ``core.publish_outbox_events``.
- ``PlatformSetting``: runtime overrides for platform policy values.
"""

from __future__ import annotations

from typing import Dict

import uuid6
from django.db import models
from django.utils import timezone


class BaseModel(models.Model):
    """Abstract base with a time-ordered UUIDv7 primary key."""

    id = models.UUIDField(primary_key=True, default=uuid6.uuid7, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        # auto_now is skipped for partial saves unless the field is listed.
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = [*update_fields, "updated_at"]
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Soft delete
# ---------------------------------------------------------------------------


class SoftDeleteQuerySet(models.QuerySet):
    def alive(self) -> SoftDeleteQuerySet:
        """Rows that have not been retired."""
        return self.filter(deleted_at__isnull=True)

    def delete(self) -> tuple[int, dict[str, int]]:
        """Retire every live row in the queryset."""
        now = timezone.now()
        count = self.alive().update(deleted_at=now, updated_at=now)
        return count, {self.model._meta.label: count}


class SoftDeleteModel(BaseModel):
    """Abstract model retired through ``deleted_at``.

    ``objects`` returns every row; callers that must skip retired rows use
    ``objects.alive()``.
    """

    deleted_at = models.DateTimeField(null=True, blank=True, default=None, db_index=True)

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        abstract = True

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def delete(self, using=None, keep_parents=False) -> tuple[int, dict[str, int]]:
        if self.is_deleted:
            return 0, {}
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at"])
        return 1, {self._meta.label: 1}


# ---------------------------------------------------------------------------
# Transactional outbox
# ---------------------------------------------------------------------------


class EventStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PUBLISHED = "published", "Published"
    FAILED = "failed", "Failed"


class OutboxQuerySet(models.QuerySet):
    def next_batch(self, size: int) -> OutboxQuerySet:
        """Oldest pending events first."""
        return self.filter(status=EventStatus.PENDING).order_by("created_at", "id")[:size]

    def backlog(self) -> Dict[str, int]:
        """Pending and failed counts, for the health probe."""
        counts = dict(
            self.filter(status__in=[EventStatus.PENDING, EventStatus.FAILED])
            .order_by()
            .values_list("status")
            .annotate(total=models.Count("id"))
        )
        return {
            "pending": counts.get(EventStatus.PENDING, 0),
            "failed": counts.get(EventStatus.FAILED, 0),
        }


class OutboxEvent(BaseModel):
    """A domain event waiting to be handed to the event bus.

    Rows are created by ``OrderDjangoRepository.save`` inside the order's
    transaction, so an event exists exactly when its state change
    committed.  A row that cannot be decoded is marked ``failed`` and left
    for inspection.
    """

    event_type = models.CharField(max_length=100)
    payload = models.JSONField()
    aggregate_id = models.CharField(max_length=255)
    topic = models.CharField(max_length=100)
    status = models.CharField(
        max_length=20,
        choices=EventStatus.choices,
        default=EventStatus.PENDING,
    )
    processed_at = models.DateTimeField(null=True, blank=True, default=None)
    error_message = models.TextField(null=True, blank=True, default=None)  # noqa: DJ01
    retry_count = models.PositiveIntegerField(default=0)

    objects = OutboxQuerySet.as_manager()

    class Meta:
        db_table = "outbox_events"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["aggregate_id"], name="outbox_aggregate_id_idx"),
            models.Index(fields=["status", "created_at"], name="outbox_status_created_idx"),
        ]

    def mark_as_published(self) -> None:
        self.status = EventStatus.PUBLISHED
        self.processed_at = timezone.now()
        self.save(update_fields=["status", "processed_at"])

    def mark_as_failed(self, error: str) -> None:
        self.status = EventStatus.FAILED
        self.error_message = error
        self.retry_count += 1
        self.save(update_fields=["status", "error_message", "retry_count"])

    def __str__(self) -> str:
        return f"{self.event_type} [{self.status}] ({self.aggregate_id})"


# ---------------------------------------------------------------------------
# Platform settings
# ---------------------------------------------------------------------------


class PlatformSetting(BaseModel):
    """Key/value override for a platform policy value.

    Values are stored as decimal strings and read into an immutable
    ``PlatformPolicy`` snapshot at the start of each operation, so a
    change here takes effect on the next request without a restart.
    """

    key = models.CharField(max_length=64, unique=True)
    value = models.CharField(max_length=64)
    description = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "platform_settings"
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.key}={self.value}"
