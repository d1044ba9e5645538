"""importer.py — Single-game import: URL in, library game + catalog row out.

Source chain (sequential, first usable title wins):

    0. shared catalog entry, if its description is already enriched
    1. BGG XML API (retried)
    2. BGG XML through the r.jina.ai proxy
    3. BGG game page through the proxy (Open Graph)
    4. BGG game page, direct
    5. generic page scrape + LLM extraction (any URL)

Every step logs and falls through on failure. Only total exhaustion, or a
validation problem with the URL, surfaces to the caller as a
``GameImportError``. Partial records are backfilled with fixed defaults.

Called by: api/routes/games.py, workers/tasks.py, scripts/import_game.py
Depends on: every other module in services/catalog/, services/notify.py
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taverns.config import Settings
from taverns.core.protocols import LLMProvider
from taverns.models.schemas import GameImportRequest
from taverns.models.tables import Game
from taverns.services.catalog import bgg_client, bgg_pages
from taverns.services.catalog.bgg_gallery import fetch_gallery_images
from taverns.services.catalog.catalog_store import (
    catalog_is_enriched,
    get_catalog_entry,
    get_catalog_record,
    link_game_taxonomy,
    upsert_catalog_entry,
)
from taverns.services.catalog.dedup import (
    derive_base_title,
    find_existing,
    find_parent_game,
    slugify_title,
)
from taverns.services.catalog.enrichment import (
    EnrichmentContext,
    enrich_description,
    has_enrichment_marker,
)
from taverns.services.catalog.normalize import normalize_sale_condition
from taverns.services.catalog.page_scrape import scrape_and_extract
from taverns.services.catalog.records import (
    MAX_ADDITIONAL_IMAGES,
    GameImportError,
    RawGameRecord,
    SourceError,
)
from taverns.services.notify import notify_game_added

logger = structlog.get_logger()

EXHAUSTED_MESSAGE = (
    "We couldn't fetch details for this game from BoardGameGeek or the page itself. "
    "Please try again in a few minutes, or add the game manually."
)
INVALID_URL_MESSAGE = "Please provide a valid http(s) link to a game page."
COLLECTION_URL_MESSAGE = (
    "That link points to a BoardGameGeek collection or profile, not a single game. "
    "Use Bulk Import to bring in a whole collection."
)

COLLECTION_PATH_MARKERS = ("/collection/", "/user/", "/geeklist/", "/plays/")
_BGG_ID_RE = re.compile(r"/boardgame(?:expansion|accessory)?/(\d+)", re.IGNORECASE)

MAX_DESCRIPTION_CHARS = 10000
CATALOG_FALLBACK_SOURCE = "catalog_fallback"

DEFAULT_DIFFICULTY = "3 - Medium"
DEFAULT_PLAY_TIME = "45-60 Minutes"
DEFAULT_GAME_TYPE = "Board Game"
DEFAULT_MIN_PLAYERS = 1
DEFAULT_MAX_PLAYERS = 4
DEFAULT_SUGGESTED_AGE = "10+"


# ─── URL parsing ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ImportTarget:
    url: str
    bgg_id: str | None
    canonical_url: str | None
    is_bgg: bool


def parse_import_url(url: str) -> ImportTarget:
    """Validate the submitted URL and pull out a BGG id when there is one.

    Raises:
        GameImportError: 400 for a malformed URL or a collection/profile link.
    """
    raw = (url or "").strip()
    try:
        parts = urlsplit(raw)
    except ValueError as exc:
        raise GameImportError(INVALID_URL_MESSAGE, 400) from exc
    if parts.scheme not in ("http", "https") or not parts.hostname or " " in raw:
        raise GameImportError(INVALID_URL_MESSAGE, 400)

    host = parts.hostname.lower()
    is_bgg = host == "boardgamegeek.com" or host.endswith(".boardgamegeek.com")
    if not is_bgg:
        return ImportTarget(url=raw, bgg_id=None, canonical_url=None, is_bgg=False)

    path = parts.path.lower()
    if not path.endswith("/"):
        path += "/"
    if any(marker in path for marker in COLLECTION_PATH_MARKERS):
        raise GameImportError(COLLECTION_URL_MESSAGE, 400)

    match = _BGG_ID_RE.search(parts.path)
    bgg_id = match.group(1) if match else None
    canonical = bgg_client.game_url(bgg_id) if bgg_id else None
    return ImportTarget(url=raw, bgg_id=bgg_id, canonical_url=canonical, is_bgg=True)


# ─── Source chain ──────────────────────────────────────────────────────────────


@dataclass
class SourceContext:
    target: ImportTarget
    client: httpx.AsyncClient
    settings: Settings
    llm: LLMProvider | None


Source = Callable[[SourceContext], Awaitable[RawGameRecord]]


def _require_bgg_id(ctx: SourceContext, source: str) -> str:
    if not ctx.target.bgg_id:
        raise SourceError(source, "not a BoardGameGeek game URL")
    return ctx.target.bgg_id


async def source_bgg_xml(ctx: SourceContext) -> RawGameRecord:
    bgg_id = _require_bgg_id(ctx, "bgg_xml")
    xml = await bgg_client.fetch_thing_xml(ctx.client, bgg_id, ctx.settings)
    return bgg_client.parse_thing_xml(xml, bgg_id)


async def source_bgg_xml_proxy(ctx: SourceContext) -> RawGameRecord:
    bgg_id = _require_bgg_id(ctx, "bgg_xml_proxy")
    xml = await bgg_client.fetch_thing_via_proxy(ctx.client, bgg_id, ctx.settings)
    record = bgg_client.parse_thing_xml(xml, bgg_id)
    record.source = "bgg_xml_proxy"
    return record


async def source_bgg_page_proxy(ctx: SourceContext) -> RawGameRecord:
    bgg_id = _require_bgg_id(ctx, "bgg_page_proxy")
    return await bgg_pages.fetch_page_via_proxy(ctx.client, bgg_id, ctx.settings)


async def source_bgg_page_direct(ctx: SourceContext) -> RawGameRecord:
    bgg_id = _require_bgg_id(ctx, "bgg_page_direct")
    return await bgg_pages.fetch_page_direct(ctx.client, bgg_id, ctx.settings)


async def source_page_scrape(ctx: SourceContext) -> RawGameRecord:
    url = ctx.target.canonical_url or ctx.target.url
    return await scrape_and_extract(ctx.client, url, ctx.settings, ctx.llm, bgg_id=ctx.target.bgg_id)


BGG_SOURCES: tuple[Source, ...] = (
    source_bgg_xml,
    source_bgg_xml_proxy,
    source_bgg_page_proxy,
    source_bgg_page_direct,
)
IMPORT_SOURCES: tuple[Source, ...] = (*BGG_SOURCES, source_page_scrape)


async def first_success(sources: Sequence[Source], ctx: SourceContext) -> RawGameRecord | None:
    """Run sources in order; return the first record with a title.

    Untitled records are kept and fill gaps in the winner.
    ``GameImportError`` is not caught: a source raising it ends the import.
    """
    partial: RawGameRecord | None = None
    for source in sources:
        name = source.__name__.removeprefix("source_")
        try:
            record = await source(ctx)
        except (SourceError, httpx.HTTPError) as exc:
            logger.warning("import_source_failed", source=name, url=ctx.target.url, error=str(exc))
            continue
        if record.is_usable:
            logger.info("import_source_succeeded", source=name, url=ctx.target.url, title=record.title)
            if partial is not None:
                record.merge_missing(partial)
            return record
        logger.warning("import_source_untitled", source=name, url=ctx.target.url)
        if partial is None:
            partial = record
        else:
            partial.merge_missing(record)
    return None


async def _supplement_gallery(ctx: SourceContext, record: RawGameRecord) -> None:
    bgg_id = record.external_id or ctx.target.bgg_id
    if not bgg_id or len(record.additional_image_urls) >= MAX_ADDITIONAL_IMAGES:
        return
    gallery = await fetch_gallery_images(ctx.client, bgg_id, ctx.settings, record.image_url)
    merged = list(record.additional_image_urls)
    for url in gallery:
        if url not in merged and url != record.image_url:
            merged.append(url)
    record.additional_image_urls = merged[:MAX_ADDITIONAL_IMAGES]


async def resolve_game_record(
    target: ImportTarget,
    db: AsyncSession,
    client: httpx.AsyncClient,
    llm: LLMProvider | None,
    settings: Settings,
    *,
    sources: Sequence[Source] = IMPORT_SOURCES,
) -> RawGameRecord:
    """Produce the best available record for ``target``.

    Raises:
        GameImportError: 422 when no step produced a title.
    """
    ctx = SourceContext(target=target, client=client, settings=settings, llm=llm)

    catalog_record: RawGameRecord | None = None
    if target.bgg_id:
        entry = await get_catalog_entry(db, target.bgg_id)
        if entry is not None:
            catalog_record = await get_catalog_record(db, entry)
            if catalog_is_enriched(entry) and catalog_record.is_usable:
                logger.info("catalog_short_circuit", bgg_id=target.bgg_id, title=catalog_record.title)
                return catalog_record

    record = await first_success(sources, ctx)
    if record is None:
        if catalog_record is not None and catalog_record.is_usable:
            logger.warning("import_sources_exhausted_using_catalog", bgg_id=target.bgg_id)
            # Not enriched, so it goes through enrichment like a fresh record.
            catalog_record.source = CATALOG_FALLBACK_SOURCE
            return catalog_record
        logger.error("import_sources_exhausted", url=target.url, bgg_id=target.bgg_id)
        raise GameImportError(EXHAUSTED_MESSAGE, 422)

    if catalog_record is not None:
        record.merge_missing(catalog_record)
    if target.bgg_id:
        record.external_id = record.external_id or target.bgg_id
        record.bgg_url = target.canonical_url
    await _supplement_gallery(ctx, record)
    return record


def apply_defaults(record: RawGameRecord) -> RawGameRecord:
    """Backfill the fields every library game must have."""
    record.difficulty = record.difficulty or DEFAULT_DIFFICULTY
    record.play_time = record.play_time or DEFAULT_PLAY_TIME
    record.game_type = record.game_type or DEFAULT_GAME_TYPE
    record.min_players = record.min_players or DEFAULT_MIN_PLAYERS
    record.max_players = record.max_players or max(DEFAULT_MAX_PLAYERS, record.min_players)
    record.suggested_age = record.suggested_age or DEFAULT_SUGGESTED_AGE
    return record


# ─── Import ────────────────────────────────────────────────────────────────────


@dataclass
class ImportResult:
    action: str  # "created" | "updated"
    game: Game
    record: RawGameRecord


def resolve_expansion(request: GameImportRequest, record: RawGameRecord) -> bool:
    """An explicit flag from the caller beats every heuristic."""
    if request.is_expansion is not None:
        return request.is_expansion
    return record.is_expansion


def game_values(
    record: RawGameRecord,
    request: GameImportRequest,
    *,
    is_expansion: bool,
    parent_game_id: uuid.UUID | None,
) -> dict[str, Any]:
    for_sale = request.is_for_sale is True
    return {
        "title": record.title[:500],
        "slug": slugify_title(record.title),
        "description": record.description[:MAX_DESCRIPTION_CHARS] if record.description else None,
        "image_url": record.image_url,
        "additional_images": list(record.additional_image_urls),
        "min_players": record.min_players,
        "max_players": record.max_players,
        "play_time": record.play_time,
        "difficulty": record.difficulty,
        "game_type": record.game_type,
        "suggested_age": record.suggested_age,
        "bgg_id": record.external_id,
        "bgg_url": record.bgg_url,
        "is_expansion": is_expansion,
        "parent_game_id": parent_game_id,
        "is_coming_soon": request.is_coming_soon,
        "is_for_sale": for_sale,
        "sale_price": request.sale_price if for_sale else None,
        "sale_condition": normalize_sale_condition(request.sale_condition) if for_sale else None,
        "location_room": request.location_room or None,
        "location_shelf": request.location_shelf or None,
        "location_misc": request.location_misc or None,
        "sleeved": request.sleeved,
        "upgraded_components": request.upgraded_components,
        "crowdfunded": request.crowdfunded,
        "inserts": request.inserts,
    }


async def _maybe_enrich(record: RawGameRecord, llm: LLMProvider | None, settings: Settings) -> None:
    # "catalog" only comes from the enriched-entry short circuit.
    if llm is None or record.source == "catalog" or has_enrichment_marker(record.description):
        return
    context = EnrichmentContext(
        min_players=record.min_players,
        max_players=record.max_players,
        mechanics=record.mechanics,
        difficulty=record.difficulty,
        play_time=record.play_time,
        is_expansion=record.is_expansion,
    )
    record.description = await enrich_description(
        record.title, record.description, context, llm, model=settings.llm_model_fast
    )


async def import_game(
    request: GameImportRequest,
    library_id: uuid.UUID,
    db: AsyncSession,
    client: httpx.AsyncClient,
    llm: LLMProvider | None,
    settings: Settings,
) -> ImportResult:
    """Run the full import for one URL into ``library_id``.

    Raises:
        GameImportError: Validation failure or total source exhaustion.
    """
    target = parse_import_url(request.url)
    log = logger.bind(url=target.url, bgg_id=target.bgg_id, library_id=str(library_id))

    record = await resolve_game_record(target, db, client, llm, settings)
    await _maybe_enrich(record, llm, settings)

    is_expansion = resolve_expansion(request, record)
    parent_game_id: uuid.UUID | None = None
    if is_expansion:
        if request.parent_game_id is not None:
            parent_game_id = request.parent_game_id
        else:
            base_title = record.base_game_title or derive_base_title(record.title)
            if base_title:
                parent_game_id = await find_parent_game(db, library_id, base_title)
    record.is_expansion = is_expansion

    apply_defaults(record)

    lookup = {"bgg_url": record.bgg_url, "bgg_id": record.external_id, "title": record.title}
    existing = await find_existing(db, library_id, **lookup)
    values = game_values(record, request, is_expansion=is_expansion, parent_game_id=parent_game_id)
    action = "updated"
    if existing is None:
        game = Game(library_id=library_id, **values)
        try:
            async with db.begin_nested():
                db.add(game)
                await db.flush()
            action = "created"
        except IntegrityError:
            # A concurrent import of the same game won the unique key.
            log.warning("game_insert_conflict", title=record.title)
            existing = await find_existing(db, library_id, **lookup)
            if existing is None:
                raise
    if existing is not None:
        for key, value in values.items():
            setattr(existing, key, value)
        game = existing
        await db.flush()

    publisher_id = await link_game_taxonomy(db, game.id, record)
    if publisher_id is not None:
        game.publisher_id = publisher_id

    if record.external_id:
        catalog_id = await upsert_catalog_entry(db, record, game.id)
        if catalog_id is not None:
            game.catalog_id = catalog_id

    await db.commit()
    await db.refresh(game)
    log.info("game_imported", action=action, game_id=str(game.id), title=game.title, source=record.source)

    if action == "created":
        await notify_game_added(client, settings, library_id, game)

    return ImportResult(action=action, game=game, record=record)


async def refresh_catalog_entry(
    db: AsyncSession,
    bgg_id: str,
    client: httpx.AsyncClient,
    llm: LLMProvider | None,
    settings: Settings,
) -> uuid.UUID | None:
    """Re-fetch one catalog entry through the BGG steps; no library writes.

    Returns the catalog id, or None when every BGG step failed.
    """
    target = ImportTarget(
        url=bgg_client.game_url(bgg_id),
        bgg_id=bgg_id,
        canonical_url=bgg_client.game_url(bgg_id),
        is_bgg=True,
    )
    ctx = SourceContext(target=target, client=client, settings=settings, llm=llm)

    record = await first_success(BGG_SOURCES, ctx)
    if record is None:
        logger.warning("catalog_refresh_exhausted", bgg_id=bgg_id)
        return None
    record.external_id = bgg_id
    record.bgg_url = target.canonical_url
    await _supplement_gallery(ctx, record)

    entry = await get_catalog_entry(db, bgg_id)
    if entry is None or not catalog_is_enriched(entry):
        await _maybe_enrich(record, llm, settings)

    catalog_id = await upsert_catalog_entry(db, record)
    await db.commit()
    logger.info("catalog_refreshed", bgg_id=bgg_id, source=record.source)
    return catalog_id
