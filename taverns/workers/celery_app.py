"""Celery application factory.

The only scheduled job is the catalog refresh: Beat fires it on
CATALOG_REFRESH_CRON when CATALOG_REFRESH_ENABLED is set.
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.schedules import crontab

from taverns.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_CRON = "15 3 * * *"


def _parse_cron(expr: str) -> crontab:
    """Parse a 5-field cron expression into Celery crontab."""
    parts = expr.split()
    if len(parts) != 5:
        logger.warning("Invalid cron expression '%s'. Falling back to '%s'.", expr, DEFAULT_CRON)
        parts = DEFAULT_CRON.split()
    return crontab(
        minute=parts[0],
        hour=parts[1],
        day_of_month=parts[2],
        month_of_year=parts[3],
        day_of_week=parts[4],
    )


def create_celery_app() -> Celery:
    """Create and configure Celery application."""
    settings = get_settings()

    app = Celery(
        "taverns",
        broker=settings.redis_url,
        backend=settings.redis_url,
        include=["taverns.workers.tasks"],
    )

    beat_schedule: dict[str, dict] = {}
    if settings.catalog_refresh_enabled:
        beat_schedule["catalog-refresh"] = {
            "task": "taverns.workers.tasks.refresh_stale_catalog",
            "schedule": _parse_cron(settings.catalog_refresh_cron),
        }

    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        broker_connection_retry_on_startup=True,
        beat_schedule=beat_schedule,
    )

    return app


celery_app = create_celery_app()
