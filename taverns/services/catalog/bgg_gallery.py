"""bgg_gallery.py — Supplementary images from the geekdo gallery JSON API.

Best effort: any failure yields an empty list. The main image is never
repeated in the result.

Called by: importer.py
"""

from __future__ import annotations

import re
from typing import Any

import httpx
import structlog

from taverns.config import Settings
from taverns.services.catalog.bgg_client import BROWSER_USER_AGENT
from taverns.services.catalog.records import MAX_ADDITIONAL_IMAGES

logger = structlog.get_logger()

GALLERY_URL = (
    "https://api.geekdo.com/api/images?ajax=1&gallery=all&nosession=1"
    "&objectid={bgg_id}&objecttype=thing&pageid=1&showcount=50&sort=hot"
)
CDN_PREFIX = "https://cf.geekdo-images.com"

LOW_QUALITY_RE = re.compile(r"__(geeklistimagebar|geeklistimage|square|mt|_t\b)|__square@2x", re.IGNORECASE)

# Lower wins. Box art is last: the main image already covers it.
PRIORITY_GAMEPLAY = 1
PRIORITY_COMPONENT = 2
PRIORITY_CUSTOM = 3
PRIORITY_MISC = 4
PRIORITY_OTHER = 5
PRIORITY_BOX_ART = 6


def gallery_priority(href: str, caption: str) -> int:
    href = href.lower()
    caption = caption.lower()
    if "/play" in href or "play" in caption or "gameplay" in caption:
        return PRIORITY_GAMEPLAY
    if "/component" in href or "component" in caption or "setup" in caption:
        return PRIORITY_COMPONENT
    if "/custom" in href or "custom" in caption or "painted" in caption:
        return PRIORITY_CUSTOM
    if "/miscellaneous" in href:
        return PRIORITY_MISC
    if "/boxfront" in href or "/box" in href or "box" in caption:
        return PRIORITY_BOX_ART
    return PRIORITY_OTHER


def rank_gallery_images(payload: dict[str, Any], main_image: str | None = None) -> list[str]:
    """Pick up to five gallery images, best bucket first, stable within a bucket."""
    seen: set[str] = set()
    ranked: list[tuple[int, int, str]] = []
    for index, img in enumerate(payload.get("images") or []):
        if not isinstance(img, dict):
            continue
        raw_url = img.get("imageurl_lg") or img.get("imageurl") or ""
        if not isinstance(raw_url, str) or not raw_url.startswith(CDN_PREFIX):
            continue
        url = raw_url.replace("\\/", "/")
        if url in seen:
            continue
        seen.add(url)
        if LOW_QUALITY_RE.search(url) or url == main_image:
            continue
        priority = gallery_priority(img.get("imagepagehref") or "", img.get("caption") or "")
        ranked.append((priority, index, url))

    ranked.sort()
    return [url for _, _, url in ranked[:MAX_ADDITIONAL_IMAGES]]


async def fetch_gallery_images(
    client: httpx.AsyncClient,
    bgg_id: str,
    settings: Settings,
    main_image: str | None = None,
) -> list[str]:
    headers = {
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": "application/json",
        "Referer": "https://boardgamegeek.com/",
    }
    try:
        resp = await client.get(
            GALLERY_URL.format(bgg_id=bgg_id),
            headers=headers,
            timeout=settings.http_timeout_seconds,
        )
        resp.raise_for_status()
        payload = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("bgg_gallery_failed", bgg_id=bgg_id, error=str(exc))
        return []

    if not isinstance(payload, dict):
        return []
    images = rank_gallery_images(payload, main_image)
    logger.info("bgg_gallery_fetched", bgg_id=bgg_id, count=len(images))
    return images
