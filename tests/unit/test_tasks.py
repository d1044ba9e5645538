"""Tests for the scheduled catalog refresh task."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from sqlalchemy.exc import OperationalError

from taverns.services.catalog.records import GameImportError
from taverns.workers.tasks import refresh_stale_catalog


def _settings():
    return SimpleNamespace(http_timeout_seconds=5.0, catalog_refresh_batch_size=25)


@patch("taverns.workers.tasks.refresh_catalog_entry", new_callable=AsyncMock)
@patch("taverns.workers.tasks.list_stale_catalog_ids", new_callable=AsyncMock)
@patch("taverns.workers.tasks.get_async_session")
@patch("taverns.workers.tasks.get_provider_registry")
@patch("taverns.workers.tasks.get_settings")
def test_refresh_counts_successes_and_failures(
    mock_settings: MagicMock,
    mock_registry: MagicMock,
    mock_get_session: MagicMock,
    mock_list: AsyncMock,
    mock_refresh: AsyncMock,
) -> None:
    """One bad item must not stop the batch."""
    mock_settings.return_value = _settings()
    mock_registry.return_value.get_llm.return_value = None
    mock_db = AsyncMock()
    mock_get_session.return_value.__aiter__.return_value = [mock_db]
    mock_list.return_value = ["13", "822", "9209", "266192"]
    mock_refresh.side_effect = [
        uuid.uuid4(),
        GameImportError("exhausted", 422),
        None,
        OperationalError("UPDATE", {}, Exception("deadlock")),
    ]

    result = refresh_stale_catalog(limit=4)

    assert result == {"refreshed": 1, "failed": 3, "requested": 4}
    assert mock_refresh.await_count == 4
    assert mock_db.rollback.await_count == 2
    mock_list.assert_awaited_once_with(mock_db, 4)


@patch("taverns.workers.tasks.refresh_catalog_entry", new_callable=AsyncMock)
@patch("taverns.workers.tasks.list_stale_catalog_ids", new_callable=AsyncMock, return_value=[])
@patch("taverns.workers.tasks.get_async_session")
@patch("taverns.workers.tasks.get_provider_registry")
@patch("taverns.workers.tasks.get_settings")
def test_refresh_uses_configured_batch_size(
    mock_settings: MagicMock,
    mock_registry: MagicMock,
    mock_get_session: MagicMock,
    mock_list: AsyncMock,
    mock_refresh: AsyncMock,
) -> None:
    mock_settings.return_value = _settings()
    mock_db = AsyncMock()
    mock_get_session.return_value.__aiter__.return_value = [mock_db]

    result = refresh_stale_catalog()

    assert result == {"refreshed": 0, "failed": 0, "requested": 25}
    mock_list.assert_awaited_once_with(mock_db, 25)
    mock_refresh.assert_not_awaited()
