"""bgg_client.py — Fetch and parse BoardGameGeek's XML API for one game.

Two entry points feed the source chain:
- ``fetch_thing_xml``: direct request, retried on BGG's transient rejections.
- ``fetch_thing_via_proxy``: same URL through the r.jina.ai reader, which
  egresses from different IPs and so survives datacenter blocks.

Both return raw XML text; ``parse_thing_xml`` turns it into a RawGameRecord.

Called by: importer.py
Depends on: normalize.py, records.py
"""

from __future__ import annotations

import asyncio
import html
import re

import httpx
import structlog
from defusedxml import ElementTree

from taverns.config import Settings
from taverns.services.catalog.normalize import minutes_to_play_time, weight_to_difficulty
from taverns.services.catalog.records import RawGameRecord, SourceError

logger = structlog.get_logger()

BGG_THING_URL = "https://boardgamegeek.com/xmlapi2/thing?id={bgg_id}&stats=1"
BGG_GAME_URL = "https://boardgamegeek.com/boardgame/{bgg_id}"
JINA_READER_URL = "https://r.jina.ai/{target}"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

# BGG answers 200 with one of these bodies while it is queueing or throttling.
PLACEHOLDER_PHRASES = (
    "Please try again later",
    "Rate limit exceeded",
    "Your request has been accepted",
)
RETRY_STATUSES = frozenset({202, 429, 500, 502, 503, 504})
AUTH_STATUSES = frozenset({401, 403})


def thing_url(bgg_id: str) -> str:
    return BGG_THING_URL.format(bgg_id=bgg_id)


def game_url(bgg_id: str) -> str:
    return BGG_GAME_URL.format(bgg_id=bgg_id)


def bgg_headers(settings: Settings, *, accept: str = "application/xml") -> dict[str, str]:
    """Browser-like headers plus whatever BGG credentials are configured."""
    headers = {
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": accept,
        "Referer": "https://boardgamegeek.com/",
    }
    if settings.bgg_api_token:
        headers["Authorization"] = f"Bearer {settings.bgg_api_token}"
    if settings.has_bgg_cookie:
        headers["Cookie"] = settings.bgg_session_cookie.strip()
    return headers


def jina_headers(settings: Settings) -> dict[str, str]:
    headers = {"X-Return-Format": "html"}
    if settings.jina_api_key:
        headers["Authorization"] = f"Bearer {settings.jina_api_key}"
    return headers


def is_placeholder_body(body: str) -> bool:
    return any(phrase in body for phrase in PLACEHOLDER_PHRASES) or "<item" not in body


def backoff_seconds(attempt: int, cap: float) -> float:
    """Linear backoff: 1s, 2s, 3s, ... capped."""
    return min(attempt * 1.0, cap)


async def fetch_thing_xml(client: httpx.AsyncClient, bgg_id: str, settings: Settings) -> str:
    """Fetch ``/xmlapi2/thing`` with retries.

    401/403 are only worth retrying when a session cookie is configured; with
    no cookie the step fails immediately so the chain can move on.

    Raises:
        SourceError: On auth rejection without a cookie or retry exhaustion.
    """
    url = thing_url(bgg_id)
    headers = bgg_headers(settings)
    max_attempts = max(1, settings.bgg_max_attempts)
    last_reason = "no attempts made"

    for attempt in range(1, max_attempts + 1):
        try:
            resp = await client.get(url, headers=headers, timeout=settings.http_timeout_seconds)
        except httpx.HTTPError as exc:
            last_reason = f"transport error: {exc}"
        else:
            if resp.status_code in AUTH_STATUSES:
                if not settings.has_bgg_cookie:
                    logger.warning("bgg_xml_blocked", bgg_id=bgg_id, status=resp.status_code)
                    raise SourceError("bgg_xml", f"HTTP {resp.status_code} and no session cookie configured")
                last_reason = f"HTTP {resp.status_code}"
            elif resp.status_code in RETRY_STATUSES:
                last_reason = f"HTTP {resp.status_code}"
            elif resp.status_code >= 400:
                raise SourceError("bgg_xml", f"HTTP {resp.status_code}")
            elif is_placeholder_body(resp.text):
                last_reason = "placeholder body"
            else:
                logger.info("bgg_xml_fetched", bgg_id=bgg_id, attempts=attempt)
                return resp.text

        logger.info("bgg_xml_retry", bgg_id=bgg_id, attempt=attempt, reason=last_reason)
        if attempt < max_attempts:
            await asyncio.sleep(backoff_seconds(attempt, settings.bgg_backoff_cap_seconds))

    raise SourceError("bgg_xml", f"gave up after {max_attempts} attempts ({last_reason})")


async def fetch_thing_via_proxy(client: httpx.AsyncClient, bgg_id: str, settings: Settings) -> str:
    """Fetch the XML through r.jina.ai; accepted only if an ``<item`` is present."""
    url = JINA_READER_URL.format(target=thing_url(bgg_id))
    try:
        resp = await client.get(url, headers=jina_headers(settings), timeout=settings.http_timeout_seconds)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise SourceError("bgg_xml_proxy", str(exc)) from exc

    body = resp.text
    if "<item" not in body:
        raise SourceError("bgg_xml_proxy", "response has no <item> element")
    logger.info("bgg_xml_proxy_fetched", bgg_id=bgg_id, chars=len(body))
    return body


# ─── Parsing ───────────────────────────────────────────────────────────────────

_XML_START_RE = re.compile(r"<\?xml|<items\b")


def _extract_xml(body: str) -> str:
    """Drop any reader preamble in front of the XML document."""
    match = _XML_START_RE.search(body)
    return body[match.start():] if match else body


def _int_value(item, tag: str) -> int | None:
    el = item.find(tag)
    if el is None:
        return None
    try:
        value = int(el.get("value", ""))
    except ValueError:
        return None
    return value if value > 0 else None


def _float_value(el) -> float | None:
    if el is None:
        return None
    try:
        value = float(el.get("value", ""))
    except ValueError:
        return None
    return value if value > 0 else None


def decode_description(text: str | None) -> str | None:
    """BGG double-escapes entities inside <description>; unescape once more."""
    if not text:
        return None
    decoded = html.unescape(text).replace("\r\n", "\n").strip()
    return decoded or None


def parse_thing_xml(xml: str, bgg_id: str) -> RawGameRecord:
    """Parse a ``/xmlapi2/thing`` body into a RawGameRecord.

    Raises:
        SourceError: The body is not parseable XML or has no ``<item>``.
    """
    try:
        root = ElementTree.fromstring(_extract_xml(xml).encode("utf-8"))
    except ElementTree.ParseError as exc:
        raise SourceError("bgg_xml", f"unparseable XML: {exc}") from exc

    item = root if root.tag == "item" else root.find("item")
    if item is None:
        raise SourceError("bgg_xml", "no <item> element")

    title = None
    for name_el in item.findall("name"):
        if name_el.get("type") == "primary":
            title = (name_el.get("value") or "").strip() or None
            break

    image_el = item.find("image")
    image_url = (image_el.text or "").strip() if image_el is not None else ""

    mechanics: list[str] = []
    designers: list[str] = []
    artists: list[str] = []
    publisher = None
    for link in item.findall("link"):
        link_type = link.get("type")
        value = (link.get("value") or "").strip()
        if not value:
            continue
        if link_type == "boardgamemechanic":
            mechanics.append(value)
        elif link_type == "boardgamedesigner":
            designers.append(value)
        elif link_type == "boardgameartist":
            artists.append(value)
        elif link_type == "boardgamepublisher" and publisher is None:
            publisher = value

    minutes = _int_value(item, "playingtime")
    min_age = _int_value(item, "minage")

    ratings = item.find("statistics/ratings")
    weight = _float_value(ratings.find("averageweight")) if ratings is not None else None
    rating = _float_value(ratings.find("average")) if ratings is not None else None

    record = RawGameRecord(
        external_id=bgg_id,
        title=title,
        image_url=image_url or None,
        description=decode_description(item.findtext("description")),
        min_players=_int_value(item, "minplayers"),
        max_players=_int_value(item, "maxplayers"),
        suggested_age=f"{min_age}+" if min_age else None,
        play_time=minutes_to_play_time(minutes) if minutes else None,
        play_time_minutes=minutes,
        difficulty=weight_to_difficulty(weight) if weight else None,
        weight=weight,
        mechanics=mechanics,
        designers=designers,
        artists=artists,
        publisher=publisher,
        is_expansion=item.get("type") == "boardgameexpansion",
        community_rating=round(rating, 2) if rating else None,
        year_published=_int_value(item, "yearpublished"),
        bgg_url=game_url(bgg_id),
        source="bgg_xml",
    )
    return record
