"""Tests for the "game added" webhook."""

from __future__ import annotations

import json
import uuid
from types import SimpleNamespace

import httpx
import pytest

from taverns.services.notify import build_game_added_payload, notify_game_added, player_count_label

LIBRARY_ID = uuid.uuid4()
GAME = SimpleNamespace(
    title="Wingspan",
    image_url="https://cf.geekdo-images.com/box.jpg",
    min_players=1,
    max_players=5,
    play_time="45-60 Minutes",
)


def _settings(url: str = "https://hooks.example.com/game-added"):
    return SimpleNamespace(notify_webhook_url=url, http_timeout_seconds=5.0)


def test_player_count_label():
    assert player_count_label(1, 5) == "1-5 players"
    assert player_count_label(2, None) == "2+ players"
    assert player_count_label(None, None) is None


def test_payload_shape():
    payload = build_game_added_payload(LIBRARY_ID, GAME)
    assert payload == {
        "library_id": str(LIBRARY_ID),
        "event_type": "game_added",
        "data": {
            "title": "Wingspan",
            "image_url": "https://cf.geekdo-images.com/box.jpg",
            "player_count": "1-5 players",
            "play_time": "45-60 Minutes",
        },
    }


@pytest.mark.anyio
async def test_no_url_means_no_call(http_client):
    assert await notify_game_added(http_client, _settings(""), LIBRARY_ID, GAME) is False


@pytest.mark.anyio
async def test_posts_payload():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await notify_game_added(client, _settings(), LIBRARY_ID, GAME) is True

    assert seen[0].method == "POST"
    assert json.loads(seen[0].content)["data"]["title"] == "Wingspan"


@pytest.mark.anyio
async def test_failures_are_swallowed():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused")

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
        assert await notify_game_added(client, _settings(), LIBRARY_ID, GAME) is False

    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))) as client:
        assert await notify_game_added(client, _settings(), LIBRARY_ID, GAME) is False


@pytest.mark.anyio
async def test_malformed_webhook_url_is_swallowed(http_client):
    """The URL is rejected while building the request; nothing reaches the transport."""
    settings = _settings("http://[::1/hook")
    assert await notify_game_added(http_client, settings, LIBRARY_ID, GAME) is False
