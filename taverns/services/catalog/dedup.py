"""dedup.py — Find the library game a fresh import should update.

Match order within one library, first hit wins:
    1. canonical BGG URL
    2. BGG id
    3. slug derived from the title

Also resolves an expansion's parent game by base title.

Called by: importer.py, catalog_store.py (slugify_title)
Depends on: models/tables.py
"""

from __future__ import annotations

import re
import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taverns.models.tables import Game

logger = structlog.get_logger()

_EXPANSION_SUFFIX_RE = re.compile(
    r"\s*(?::|\s[-–]\s)\s*.*\b(expansion|promo|pack|scenario|module)\b.*$", re.IGNORECASE
)


def slugify_title(title: str) -> str:
    """Convert a game title to a URL-safe slug.

    Examples:
        "Catan: Starfarers" → "catan-starfarers"
        "7 Wonders (2nd Ed)" → "7-wonders-2nd-ed"
    """
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug


def derive_base_title(title: str | None) -> str | None:
    """Best guess at an expansion's base game: the part before the subtitle.

    "Wingspan: European Expansion" → "Wingspan"
    """
    if not title:
        return None
    stripped = _EXPANSION_SUFFIX_RE.sub("", title).strip()
    if stripped and stripped != title.strip():
        return stripped
    if ":" in title:
        head = title.split(":", 1)[0].strip()
        return head or None
    return None


async def find_existing(
    db: AsyncSession,
    library_id: uuid.UUID,
    *,
    bgg_url: str | None = None,
    bgg_id: str | None = None,
    title: str | None = None,
) -> Game | None:
    """Existing game in ``library_id`` matching the candidate, or None."""
    checks = []
    if bgg_url:
        checks.append(("bgg_url", Game.bgg_url == bgg_url))
    if bgg_id:
        checks.append(("bgg_id", Game.bgg_id == bgg_id))
    if title:
        slug = slugify_title(title)
        if slug:
            checks.append(("slug", Game.slug == slug))

    for matched_on, condition in checks:
        result = await db.execute(
            select(Game).where(Game.library_id == library_id, condition).limit(1)
        )
        game = result.scalars().first()
        if game is not None:
            logger.info("duplicate_game_found", game_id=str(game.id), matched_on=matched_on)
            return game
    return None


async def find_parent_game(
    db: AsyncSession,
    library_id: uuid.UUID,
    base_title: str,
) -> uuid.UUID | None:
    """Resolve an expansion's base game among the library's non-expansions.

    Case-insensitive exact title first; otherwise a substring match on the part
    before any ':' is accepted only when it is unambiguous.
    """
    base = base_title.strip()
    if not base:
        return None

    result = await db.execute(
        select(Game.id).where(
            Game.library_id == library_id,
            Game.is_expansion.is_(False),
            func.lower(Game.title) == base.lower(),
        ).limit(1)
    )
    exact = result.scalars().first()
    if exact is not None:
        return exact

    head = base.split(":", 1)[0].strip()
    if not head:
        return None
    result = await db.execute(
        select(Game.id).where(
            Game.library_id == library_id,
            Game.is_expansion.is_(False),
            Game.title.icontains(head, autoescape=True),
        ).limit(5)
    )
    matches = list(result.scalars().all())
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        logger.info("parent_game_ambiguous", base_title=base, candidates=len(matches))
    return None
