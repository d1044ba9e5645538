"""Tests for Celery Beat schedule wiring."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

from taverns.workers.celery_app import _parse_cron, create_celery_app


@patch("taverns.workers.celery_app.get_settings")
def test_create_celery_app_includes_catalog_refresh(mock_get_settings) -> None:
    mock_get_settings.return_value = SimpleNamespace(
        redis_url="redis://localhost:6379/0",
        catalog_refresh_enabled=True,
        catalog_refresh_cron="0 */6 * * *",
    )

    app = create_celery_app()
    beat_schedule = app.conf.beat_schedule

    assert "catalog-refresh" in beat_schedule
    assert beat_schedule["catalog-refresh"]["task"] == "taverns.workers.tasks.refresh_stale_catalog"


@patch("taverns.workers.celery_app.get_settings")
def test_create_celery_app_omits_refresh_when_disabled(mock_get_settings) -> None:
    mock_get_settings.return_value = SimpleNamespace(
        redis_url="redis://localhost:6379/0",
        catalog_refresh_enabled=False,
        catalog_refresh_cron="0 */6 * * *",
    )

    app = create_celery_app()

    assert app.conf.beat_schedule == {}


def test_parse_cron_falls_back_on_bad_expression() -> None:
    assert _parse_cron("every day") == _parse_cron("15 3 * * *")
    schedule = _parse_cron("0 */6 * * 1")
    assert schedule.hour == {0, 6, 12, 18}
    assert schedule.day_of_week == {1}
