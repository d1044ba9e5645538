"""bgg_pages.py — Pull a game's basics out of its BoardGameGeek HTML page.

Used when the XML API is unreachable. Only Open Graph metadata is trusted:
``og:title``, ``og:image``, ``og:description``. Expansion status comes from
an explicit page-level type marker; body text that merely mentions
"expansion" does not count.

Called by: importer.py
Depends on: bgg_client.py (URLs/headers), images.py, records.py
"""

from __future__ import annotations

import html
import re

import httpx
import structlog

from taverns.config import Settings
from taverns.services.catalog.bgg_client import (
    JINA_READER_URL,
    bgg_headers,
    game_url,
    jina_headers,
)
from taverns.services.catalog.images import is_social_card, rank_image_candidates
from taverns.services.catalog.records import RawGameRecord, SourceError

logger = structlog.get_logger()

_TITLE_SUFFIX_RE = re.compile(
    r"\s*\|\s*Board Game(?: Expansion)?\s*\|\s*BoardGameGeek\s*$", re.IGNORECASE
)
_EXPANSION_MARKER_RE = re.compile(
    r"<meta[^>]+property=[\"']og:type[\"'][^>]+content=[\"'][^\"']*boardgameexpansion"
    r"|<meta[^>]+content=[\"'][^\"']*boardgameexpansion[^\"']*[\"'][^>]+property=[\"']og:type[\"']"
    r"|\"subtype\"\s*:\s*\"boardgameexpansion\"",
    re.IGNORECASE,
)


def _meta_pattern(prop: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    # Attribute order varies between BGG templates and the proxy's re-serialisation.
    escaped = re.escape(prop)
    return (
        re.compile(
            rf"<meta[^>]+(?:property|name)=[\"']{escaped}[\"'][^>]*content=[\"']([^\"']*)[\"']",
            re.IGNORECASE,
        ),
        re.compile(
            rf"<meta[^>]+content=[\"']([^\"']*)[\"'][^>]*(?:property|name)=[\"']{escaped}[\"']",
            re.IGNORECASE,
        ),
    )


_OG_PATTERNS = {prop: _meta_pattern(prop) for prop in ("og:title", "og:image", "og:description", "og:type")}


def extract_og(page: str, prop: str) -> str | None:
    for pattern in _OG_PATTERNS[prop]:
        match = pattern.search(page)
        if match:
            value = html.unescape(match.group(1)).strip()
            if value:
                return value
    return None


def clean_page_title(title: str | None) -> str | None:
    if not title:
        return None
    cleaned = _TITLE_SUFFIX_RE.sub("", title).strip()
    return cleaned or None


def has_expansion_marker(page: str) -> bool:
    return bool(_EXPANSION_MARKER_RE.search(page))


def parse_game_page(page: str, bgg_id: str, *, source: str) -> RawGameRecord:
    """Build a record from page HTML.

    Raises:
        SourceError: No ``og:title`` on the page.
    """
    title = clean_page_title(extract_og(page, "og:title"))
    if not title:
        raise SourceError(source, "page has no og:title")

    image = extract_og(page, "og:image")
    if is_social_card(image):
        ranked = [url for url in rank_image_candidates(page) if not is_social_card(url)]
        image = ranked[0] if ranked else None

    return RawGameRecord(
        external_id=bgg_id,
        title=title,
        image_url=image,
        description=extract_og(page, "og:description"),
        is_expansion=has_expansion_marker(page),
        bgg_url=game_url(bgg_id),
        source=source,
    )


async def fetch_page_via_proxy(client: httpx.AsyncClient, bgg_id: str, settings: Settings) -> RawGameRecord:
    url = JINA_READER_URL.format(target=game_url(bgg_id))
    try:
        resp = await client.get(url, headers=jina_headers(settings), timeout=settings.http_timeout_seconds)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise SourceError("bgg_page_proxy", str(exc)) from exc

    record = parse_game_page(resp.text, bgg_id, source="bgg_page_proxy")
    logger.info("bgg_page_parsed", bgg_id=bgg_id, via="proxy", expansion=record.is_expansion)
    return record


async def fetch_page_direct(client: httpx.AsyncClient, bgg_id: str, settings: Settings) -> RawGameRecord:
    headers = bgg_headers(settings, accept="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8")
    headers["Accept-Language"] = "en-US,en;q=0.9"
    try:
        resp = await client.get(
            game_url(bgg_id),
            headers=headers,
            timeout=settings.http_timeout_seconds,
            follow_redirects=True,
        )
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise SourceError("bgg_page_direct", str(exc)) from exc

    record = parse_game_page(resp.text, bgg_id, source="bgg_page_direct")
    logger.info("bgg_page_parsed", bgg_id=bgg_id, via="direct", expansion=record.is_expansion)
    return record
