"""Celery application for background notification delivery."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "rideshare_backend.settings.settings")

app = Celery("rideshare_backend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
