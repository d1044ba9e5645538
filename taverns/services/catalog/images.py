"""images.py — URL heuristics for BGG's image CDN (cf.geekdo-images.com).

Called by: bgg_pages.py, bgg_gallery.py, page_scrape.py
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

GEEKDO_IMAGE_RE = re.compile(r"https?://cf\.geekdo-images\.com[^\s\"'<>]+")

# Open Graph crops and tiny renditions; never a usable main image.
SOCIAL_CARD_RE = re.compile(r"__opengraph|fit-in/1200x630|filters:strip_icc|__thumb|__micro", re.IGNORECASE)

# Thumbnails and avatars scattered through a rendered page.
TINY_IMAGE_RE = re.compile(r"crop100|square30|100x100|150x150|_thumb|_avatar|_micro", re.IGNORECASE)

# Stricter filter for gameplay shots picked by the extraction model.
LOW_RES_RE = re.compile(r"crop100|square30|100x100|150x150|200x200|300x300|thumb", re.IGNORECASE)

BOX_ART_RE = re.compile(r"_itemrep", re.IGNORECASE)

_CANDIDATE_PRIORITY: tuple[tuple[re.Pattern[str], int], ...] = (
    (BOX_ART_RE, 0),
    (re.compile(r"_imagepage", re.IGNORECASE), 1),
    (re.compile(r"_original", re.IGNORECASE), 2),
    (re.compile(r"/pic\d+", re.IGNORECASE), 3),
)


def is_social_card(url: str | None) -> bool:
    return not url or bool(SOCIAL_CARD_RE.search(url))


def candidate_priority(url: str) -> int:
    for pattern, priority in _CANDIDATE_PRIORITY:
        if pattern.search(url):
            return priority
    return len(_CANDIDATE_PRIORITY)


def rank_image_candidates(raw_html: str | None) -> list[str]:
    """Every CDN image in the page, deduped, tiny ones dropped, best first.

    Order: box art, full-size photo, original upload, numeric pic path, other.
    Ties keep page order.
    """
    if not raw_html:
        return []
    seen: dict[str, None] = {}
    for match in GEEKDO_IMAGE_RE.findall(raw_html):
        url = match.replace("\\/", "/").rstrip("\\")
        # Markdown image links close with ")"; geekdo filter syntax uses balanced pairs.
        while url.endswith(")") and url.count(")") > url.count("("):
            url = url[:-1]
        if not TINY_IMAGE_RE.search(url):
            seen.setdefault(url, None)
    return sorted(seen, key=candidate_priority)


def sanitize_image_url(url: str) -> str:
    """Percent-encode parentheses in the path (geekdo filter syntax breaks some clients)."""
    parts = urlsplit(url.strip())
    path = parts.path.replace("(", "%28").replace(")", "%29")
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def filter_gameplay_images(
    images: list[str] | None,
    *,
    main_image: str | None = None,
    limit: int = 5,
    allow_box_art: bool = False,
) -> list[str]:
    """Sanitize, drop low-res (and box art unless allowed), dedupe, cap."""
    result: list[str] = []
    for img in images or []:
        if not isinstance(img, str) or not img.strip():
            continue
        clean = sanitize_image_url(img)
        if LOW_RES_RE.search(clean):
            continue
        if not allow_box_art and BOX_ART_RE.search(clean):
            continue
        if clean == main_image or clean in result:
            continue
        result.append(clean)
        if len(result) >= limit:
            break
    return result
