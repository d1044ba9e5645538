"""page_scrape.py — Last-resort import: render any page, let the LLM read it.

Works for non-BGG URLs too. The page is rendered by Firecrawl when a key is
configured, otherwise by the r.jina.ai reader. Candidate images are ranked
from the raw markup before the model sees them, and the model answers with
exactly one ``extract_game_data`` tool call constrained to the canonical
enumerations.

Called by: importer.py
Depends on: protocols.py (LLMProvider), images.py, normalize.py, records.py
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from taverns.config import Settings
from taverns.core.protocols import LLMProvider, Message
from taverns.services.catalog.bgg_client import JINA_READER_URL
from taverns.services.catalog.images import (
    filter_gameplay_images,
    rank_image_candidates,
    sanitize_image_url,
)
from taverns.services.catalog.normalize import (
    DIFFICULTY_LEVELS,
    GAME_TYPE_OPTIONS,
    PLAY_TIME_OPTIONS,
    normalize_difficulty,
    normalize_game_type,
    normalize_play_time,
)
from taverns.services.catalog.records import (
    MAX_ADDITIONAL_IMAGES,
    GameImportError,
    RawGameRecord,
    SourceError,
    SourceUnavailable,
)

logger = structlog.get_logger()

FIRECRAWL_SCRAPE_URL = "https://api.firecrawl.dev/v1/scrape"
MAX_MARKDOWN_CHARS = 18000
TOOL_NAME = "extract_game_data"

NO_TITLE_MESSAGE = "Could not find game title on the page"


@dataclass
class ScrapedPage:
    markdown: str
    raw_html: str
    via: str  # "firecrawl" | "jina"


async def _scrape_firecrawl(client: httpx.AsyncClient, url: str, settings: Settings) -> ScrapedPage:
    resp = await client.post(
        FIRECRAWL_SCRAPE_URL,
        headers={
            "Authorization": f"Bearer {settings.firecrawl_api_key}",
            "Content-Type": "application/json",
        },
        json={"url": url, "formats": ["markdown", "rawHtml"], "onlyMainContent": True},
        timeout=settings.http_timeout_seconds * 4,
    )
    resp.raise_for_status()
    payload = resp.json()
    data = (payload.get("data") or payload) if isinstance(payload, dict) else payload
    if not isinstance(data, dict):
        raise ValueError(f"unexpected Firecrawl payload: {type(data).__name__}")
    return ScrapedPage(
        markdown=data.get("markdown") or "",
        raw_html=data.get("rawHtml") or "",
        via="firecrawl",
    )


async def _scrape_jina(client: httpx.AsyncClient, url: str, settings: Settings) -> ScrapedPage:
    headers = {}
    if settings.jina_api_key:
        headers["Authorization"] = f"Bearer {settings.jina_api_key}"
    resp = await client.get(
        JINA_READER_URL.format(target=url),
        headers=headers,
        timeout=settings.http_timeout_seconds * 2,
    )
    resp.raise_for_status()
    # Reader output is markdown with image links inline; rank from that.
    return ScrapedPage(markdown=resp.text, raw_html=resp.text, via="jina")


async def scrape_page(client: httpx.AsyncClient, url: str, settings: Settings) -> ScrapedPage:
    """Render ``url`` to markdown (+ raw HTML when available).

    Raises:
        SourceError: Both renderers failed or returned nothing.
    """
    if settings.firecrawl_api_key:
        try:
            page = await _scrape_firecrawl(client, url, settings)
            if page.markdown:
                logger.info("page_scraped", url=url, via=page.via, chars=len(page.markdown))
                return page
            logger.warning("firecrawl_empty", url=url)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("firecrawl_failed", url=url, error=str(exc))

    try:
        page = await _scrape_jina(client, url, settings)
    except httpx.HTTPError as exc:
        raise SourceError("page_scrape", f"reader failed: {exc}") from exc
    if not page.markdown.strip():
        raise SourceError("page_scrape", "reader returned no content")
    logger.info("page_scraped", url=url, via=page.via, chars=len(page.markdown))
    return page


def page_matches_request(markdown: str, url: str, bgg_id: str | None) -> bool:
    """BGG serves its generic hotness page when blocking; reject that."""
    if not bgg_id:
        return True
    return bgg_id in markdown or url.lower() in markdown.lower()


# ─── AI extraction ─────────────────────────────────────────────────────────────

EXTRACTION_SYSTEM_PROMPT = f"""You are a board game data extraction expert. Extract detailed, structured game information from the provided content.

IMPORTANT RULES:

1. For enum fields, you MUST use these EXACT values:
   - difficulty: {", ".join(f'"{d}"' for d in DIFFICULTY_LEVELS)}
   - play_time: {", ".join(f'"{p}"' for p in PLAY_TIME_OPTIONS)}
   - game_type: {", ".join(f'"{t}"' for t in GAME_TYPE_OPTIONS)}

2. For the DESCRIPTION field, write a CONCISE description:
   - An engaging overview paragraph (2-3 sentences max)
   - A "## Quick Gameplay Overview" section with bullet points:
     - **Goal:** what players are trying to achieve
     - **On Your Turn:** key actions, one line each
     - **End Game:** how the game ends
     - **Winner:** the victory condition
   Aim for 150-200 words.

3. For IMAGES:
   - main_image: the FIRST image containing "_itemrep" (box art)
   - gameplay_images: up to 3 component/gameplay photos, no duplicates of the box art

4. mechanics: actual game mechanics (e.g. "Worker Placement", "Set Collection").

5. publisher: the publisher company name.

6. EXPANSION DETECTION:
   - Expansion indicators: the title contains "Expansion", "Promo", "Pack", "Scenario" or "Module";
     the page says "Expansion for X" or "Requires X"; BoardGameGeek lists it as an expansion.
   - If it is an expansion set is_expansion to true and put the base game title, exactly as written,
     in base_game_title. Example: "Wingspan: European Expansion" → base_game_title "Wingspan"."""

EXTRACTION_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": "Extract structured game data from page content",
        "parameters": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "The game title"},
                "description": {
                    "type": "string",
                    "description": "Concise markdown description with a Quick Gameplay Overview section.",
                },
                "difficulty": {"type": "string", "enum": list(DIFFICULTY_LEVELS)},
                "play_time": {"type": "string", "enum": list(PLAY_TIME_OPTIONS)},
                "game_type": {"type": "string", "enum": list(GAME_TYPE_OPTIONS)},
                "min_players": {"type": "number", "description": "Minimum player count"},
                "max_players": {"type": "number", "description": "Maximum player count"},
                "suggested_age": {"type": "string", "description": "Suggested age, e.g. '10+'"},
                "mechanics": {"type": "array", "items": {"type": "string"}},
                "publisher": {"type": "string", "description": "Publisher name"},
                "main_image": {"type": "string", "description": "Primary box art image URL"},
                "gameplay_images": {"type": "array", "items": {"type": "string"}},
                "bgg_url": {"type": "string", "description": "BoardGameGeek URL if available"},
                "is_expansion": {"type": "boolean"},
                "base_game_title": {"type": "string"},
            },
            "required": ["title"],
            "additionalProperties": False,
        },
    },
}


def _positive_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def build_record_from_extraction(
    data: dict[str, Any],
    *,
    url: str,
    bgg_id: str | None,
    candidates: list[str],
) -> RawGameRecord:
    """Turn tool-call arguments into a record; images fall back to page candidates."""
    title = _optional_str(data.get("title"))
    if not title:
        raise GameImportError(NO_TITLE_MESSAGE, 400)

    main_raw = _optional_str(data.get("main_image")) or (candidates[0] if candidates else None)
    main_image = sanitize_image_url(main_raw) if main_raw else None

    gameplay = filter_gameplay_images(data.get("gameplay_images"), main_image=main_image)
    if not gameplay:
        gameplay = filter_gameplay_images(
            candidates[1:MAX_ADDITIONAL_IMAGES + 1],
            main_image=main_image,
            allow_box_art=True,
        )

    bgg_url = _optional_str(data.get("bgg_url"))
    if not bgg_url and "boardgamegeek.com" in url:
        bgg_url = url

    return RawGameRecord(
        external_id=bgg_id,
        title=title[:500],
        image_url=main_image,
        additional_image_urls=gameplay[:MAX_ADDITIONAL_IMAGES],
        description=_optional_str(data.get("description")),
        min_players=_positive_int(data.get("min_players")),
        max_players=_positive_int(data.get("max_players")),
        suggested_age=_optional_str(data.get("suggested_age")),
        play_time=normalize_play_time(data.get("play_time")),
        difficulty=normalize_difficulty(data.get("difficulty")),
        game_type=normalize_game_type(data.get("game_type")),
        mechanics=_str_list(data.get("mechanics")),
        publisher=_optional_str(data.get("publisher")),
        is_expansion=data.get("is_expansion") is True,
        base_game_title=_optional_str(data.get("base_game_title")),
        bgg_url=bgg_url,
        source="page_scrape",
    )


async def extract_game_data(
    llm: LLMProvider,
    url: str,
    markdown: str,
    candidates: list[str],
    *,
    bgg_id: str | None = None,
) -> RawGameRecord:
    """One forced tool call against the page markdown.

    Raises:
        SourceError: No tool call, wrong tool, or unparseable arguments.
        GameImportError: The tool call has no title (400).
    """
    main_hint = candidates[0] if candidates else "No main image found"
    extra_hint = ", ".join(candidates[1:4]) or "None"
    user_prompt = (
        "Extract comprehensive board game data from this page content.\n\n"
        f"TARGET PAGE (must match): {url}\n\n"
        "AVAILABLE IMAGES (use first _itemrep for main_image, others for gameplay_images):\n"
        f"Main: {main_hint}\n"
        f"Additional: {extra_hint}\n\n"
        f"Page content:\n{markdown[:MAX_MARKDOWN_CHARS]}"
    )

    try:
        response = await llm.complete(
            [
                Message(role="system", content=EXTRACTION_SYSTEM_PROMPT),
                Message(role="user", content=user_prompt),
            ],
            tools=[EXTRACTION_TOOL],
            tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
            max_tokens=2048,
        )
    except Exception as exc:
        raise SourceError("ai_extract", f"LLM call failed: {exc}") from exc

    call = next((c for c in response.tool_calls if c.name == TOOL_NAME), None)
    if call is None or not call.arguments:
        raise SourceError("ai_extract", "model returned no extract_game_data call")
    try:
        data = json.loads(call.arguments)
    except json.JSONDecodeError as exc:
        raise SourceError("ai_extract", f"malformed tool arguments: {exc}") from exc
    if not isinstance(data, dict):
        raise SourceError("ai_extract", "tool arguments are not an object")

    record = build_record_from_extraction(data, url=url, bgg_id=bgg_id, candidates=candidates)
    logger.info("ai_extraction_complete", url=url, title=record.title, model=response.model)
    return record


async def scrape_and_extract(
    client: httpx.AsyncClient,
    url: str,
    settings: Settings,
    llm: LLMProvider | None,
    *,
    bgg_id: str | None = None,
) -> RawGameRecord:
    """Scrape ``url`` and run AI extraction over it."""
    if llm is None:
        raise SourceUnavailable("page_scrape", "no LLM provider configured")

    page = await scrape_page(client, url, settings)
    if not page_matches_request(page.markdown, url, bgg_id):
        raise SourceError("page_scrape", "scraped content does not match the requested game")

    candidates = rank_image_candidates(page.raw_html or page.markdown)
    return await extract_game_data(llm, url, page.markdown, candidates, bgg_id=bgg_id)
