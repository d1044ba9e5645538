"""Tests for the one-shot import CLI."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from scripts import import_game as cli
from taverns.services.catalog.records import GameImportError, RawGameRecord


def test_library_id_required_without_dry_run():
    with pytest.raises(SystemExit):
        cli.main(["https://boardgamegeek.com/boardgame/13"])


@patch("scripts.import_game._run", new_callable=AsyncMock, return_value=0)
def test_dry_run_needs_no_library(mock_run):
    assert cli.main(["https://boardgamegeek.com/boardgame/13", "--dry-run"]) == 0
    args = mock_run.await_args.args[0]
    assert args.dry_run is True
    assert args.library_id is None


def _session_factory():
    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=MagicMock())
    session_cm.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session_cm)


@patch("scripts.import_game.resolve_game_record", new_callable=AsyncMock)
@patch("scripts.import_game.async_session_factory", new_callable=_session_factory)
@patch("scripts.import_game.get_provider_registry")
@patch("scripts.import_game.get_settings")
def test_dry_run_prints_json(mock_settings, mock_registry, mock_factory, mock_resolve, capsys):
    mock_settings.return_value = SimpleNamespace(http_timeout_seconds=5.0)
    mock_registry.return_value.get_llm.return_value = None
    mock_resolve.return_value = RawGameRecord(external_id="13", title="CATAN", source="bgg_xml")

    assert cli.main(["https://boardgamegeek.com/boardgame/13", "--dry-run", "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["title"] == "CATAN"
    assert payload["bgg_id"] == "13"
    assert payload["difficulty"] == "3 - Medium"


@patch("scripts.import_game.resolve_game_record", new_callable=AsyncMock)
@patch("scripts.import_game.async_session_factory", new_callable=_session_factory)
@patch("scripts.import_game.get_provider_registry")
@patch("scripts.import_game.get_settings")
def test_import_error_exits_nonzero(mock_settings, mock_registry, mock_factory, mock_resolve, capsys):
    mock_settings.return_value = SimpleNamespace(http_timeout_seconds=5.0)
    mock_registry.return_value.get_llm.return_value = None
    mock_resolve.side_effect = GameImportError("We couldn't fetch details", 422)

    assert cli.main(["https://boardgamegeek.com/boardgame/13", "--dry-run"]) == 1
    assert "Import failed (422)" in capsys.readouterr().out
