"""notify.py — "Game added" webhook for newly created library games.

Fire-and-forget: no URL configured means no call, and a failed call is
logged and ignored. An import never fails because of a notification.

Called by: services/catalog/importer.py
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx
import structlog

from taverns.config import Settings

logger = structlog.get_logger()


def player_count_label(min_players: int | None, max_players: int | None) -> str | None:
    if min_players and max_players:
        return f"{min_players}-{max_players} players"
    if min_players:
        return f"{min_players}+ players"
    return None


def build_game_added_payload(library_id: uuid.UUID, game: Any) -> dict[str, Any]:
    return {
        "library_id": str(library_id),
        "event_type": "game_added",
        "data": {
            "title": game.title,
            "image_url": game.image_url,
            "player_count": player_count_label(game.min_players, game.max_players),
            "play_time": game.play_time,
        },
    }


async def notify_game_added(
    client: httpx.AsyncClient,
    settings: Settings,
    library_id: uuid.UUID,
    game: Any,
) -> bool:
    """POST the payload; returns True only on a 2xx reply."""
    if not settings.notify_webhook_url:
        return False

    payload = build_game_added_payload(library_id, game)
    try:
        resp = await client.post(
            settings.notify_webhook_url,
            json=payload,
            timeout=settings.http_timeout_seconds,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("game_added_notify_failed", title=game.title, error=str(exc))
        return False

    if resp.is_success:
        logger.info("game_added_notified", title=game.title)
        return True
    logger.warning("game_added_notify_rejected", title=game.title, status=resp.status_code)
    return False
