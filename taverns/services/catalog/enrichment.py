"""enrichment.py — Rewrite a raw publisher description into the house format.

With no LLM configured the raw description comes back unchanged. A
degenerate model reply (empty, fenced junk, under 50 chars) also falls back
to the raw text, so enrichment can never remove content.

Called by: importer.py
Depends on: protocols.py (LLMProvider)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import structlog

from taverns.core.protocols import LLMProvider, Message

logger = structlog.get_logger()

ENRICHMENT_MARKER = "Quick Gameplay Overview"
MAX_INPUT_CHARS = 3000
MIN_OUTPUT_CHARS = 50

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?|\n?```\s*$")

SYSTEM_PROMPT = """You are a board game description editor. Rewrite the game description into this exact markdown format:

Opening paragraph: 2-3 sentences about the theme and what makes the game unique.

## Quick Gameplay Overview

- **Goal:** One sentence about how to win
- **On Your Turn:** (or **Each Round:**) 2-4 short sub-bullets for the key actions
- **End Game:** One sentence about how the game ends
- **Winner:** One sentence about scoring or victory

Optional closing sentence about edition or components.

RULES:
- 150-200 words
- Be factual, not promotional
- Use proper markdown: ## headers, **bold** labels, - bullet points
- Return ONLY the markdown. No code fences, no preamble."""


@dataclass
class EnrichmentContext:
    """Structured hints passed alongside the raw text."""

    min_players: int | None = None
    max_players: int | None = None
    mechanics: list[str] = field(default_factory=list)
    difficulty: str | None = None
    play_time: str | None = None
    is_expansion: bool = False

    def render(self) -> str:
        lines = []
        if self.min_players or self.max_players:
            lines.append(f"Players: {self.min_players or '?'}-{self.max_players or '?'}")
        if self.mechanics:
            lines.append(f"Mechanics: {', '.join(self.mechanics[:10])}")
        if self.difficulty:
            lines.append(f"Difficulty: {self.difficulty}")
        if self.play_time:
            lines.append(f"Play time: {self.play_time}")
        if self.is_expansion:
            lines.append("This is an expansion, not a standalone game.")
        return "\n".join(lines)


def has_enrichment_marker(description: str | None) -> bool:
    return bool(description) and ENRICHMENT_MARKER in description


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


async def enrich_description(
    title: str,
    raw_description: str | None,
    context: EnrichmentContext | None = None,
    llm: LLMProvider | None = None,
    model: str | None = None,
) -> str | None:
    """Return the enriched description, or ``raw_description`` on any failure."""
    if llm is None:
        return raw_description

    context = context or EnrichmentContext()
    source_text = (raw_description or "")[:MAX_INPUT_CHARS]
    user_prompt = (
        f'Game: "{title}"\n'
        f"{context.render()}\n\n"
        f"Original description:\n{source_text or '(none provided)'}"
    )

    try:
        response = await llm.complete(
            [
                Message(role="system", content=SYSTEM_PROMPT),
                Message(role="user", content=user_prompt),
            ],
            model=model,
            temperature=0.3,
            max_tokens=800,
        )
    except Exception as exc:
        logger.warning("description_enrichment_failed", title=title, error=str(exc))
        return raw_description

    enriched = strip_code_fences(response.content or "")
    if len(enriched) < MIN_OUTPUT_CHARS:
        logger.warning("description_enrichment_too_short", title=title, chars=len(enriched))
        return raw_description

    logger.info("description_enriched", title=title, model=response.model, chars=len(enriched))
    return enriched
