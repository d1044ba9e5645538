"""CLI: import one game URL into a library, or just show what would be imported.

Usage:
    python -m scripts.import_game https://boardgamegeek.com/boardgame/13/catan --library-id <uuid>
    python -m scripts.import_game https://boardgamegeek.com/boardgame/13 --dry-run --json
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import uuid
from collections.abc import Sequence

import httpx

from taverns.config import get_settings
from taverns.core.registry import get_provider_registry
from taverns.models.database import async_session_factory
from taverns.models.schemas import GameImportRequest
from taverns.services.catalog.importer import (
    apply_defaults,
    import_game,
    parse_import_url,
    resolve_game_record,
)
from taverns.services.catalog.records import GameImportError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import a single board game from a BoardGameGeek (or any product) URL.",
    )
    parser.add_argument("url", help="Game page URL.")
    parser.add_argument(
        "--library-id",
        type=uuid.UUID,
        default=None,
        help="Target library. Required unless --dry-run.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve and print the record without writing anything.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON instead of human-readable text.",
    )
    return parser


def _render_text(payload: dict) -> str:
    lines = [f"{payload.get('action', 'resolved').upper()}: {payload.get('title')}"]
    for key in ("source", "bgg_id", "difficulty", "play_time", "min_players", "max_players", "is_expansion"):
        if payload.get(key) is not None:
            lines.append(f"  {key}: {payload[key]}")
    return "\n".join(lines)


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    llm = get_provider_registry().get_llm()

    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        async with async_session_factory() as db:
            try:
                if args.dry_run:
                    target = parse_import_url(args.url)
                    record = apply_defaults(await resolve_game_record(target, db, client, llm, settings))
                    payload = dataclasses.asdict(record)
                    payload["bgg_id"] = record.external_id
                else:
                    request = GameImportRequest(url=args.url)
                    result = await import_game(request, args.library_id, db, client, llm, settings)
                    payload = {
                        "action": result.action,
                        "game_id": str(result.game.id),
                        "title": result.game.title,
                        "source": result.record.source,
                        "bgg_id": result.game.bgg_id,
                        "difficulty": result.game.difficulty,
                        "play_time": result.game.play_time,
                        "min_players": result.game.min_players,
                        "max_players": result.game.max_players,
                        "is_expansion": result.game.is_expansion,
                    }
            except GameImportError as exc:
                print(f"Import failed ({exc.status_code}): {exc.message}")
                return 1

    if args.json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        print(_render_text(payload))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.dry_run and args.library_id is None:
        parser.error("--library-id is required unless --dry-run is given")
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
