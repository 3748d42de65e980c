"""Celery application for the order core.

``DJANGO_SETTINGS_MODULE`` is set before the app is created so Celery reads
the Django settings (``CELERY_`` prefix).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("order_core")

app.config_from_object("django.conf:settings", namespace="CELERY")

# tasks.py of every installed module (core, dispatch)
app.autodiscover_tasks()
