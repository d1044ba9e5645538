"""Tests for LLM description enrichment."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from taverns.core.protocols import LLMResponse
from taverns.services.catalog.enrichment import (
    EnrichmentContext,
    enrich_description,
    has_enrichment_marker,
    strip_code_fences,
)

ENRICHED = (
    "Catan is a game of trading and building on a resource-rich island.\n\n"
    "## Quick Gameplay Overview\n\n"
    "- **Goal:** Be first to 10 victory points\n"
)


def _llm(content: str) -> AsyncMock:
    llm = AsyncMock()
    llm.complete.return_value = LLMResponse(content=content, model="test-model")
    return llm


@pytest.mark.anyio
async def test_returns_raw_when_no_llm():
    assert await enrich_description("Catan", "raw text", llm=None) == "raw text"


@pytest.mark.anyio
async def test_returns_enriched_text():
    llm = _llm(ENRICHED)
    result = await enrich_description("Catan", "raw text", EnrichmentContext(min_players=3, max_players=4), llm)

    assert result == ENRICHED.strip()
    assert has_enrichment_marker(result)
    kwargs = llm.complete.call_args.kwargs
    assert kwargs["temperature"] == 0.3
    assert kwargs["max_tokens"] == 800
    messages = llm.complete.call_args.args[0]
    assert messages[0].role == "system"
    assert "Players: 3-4" in messages[1].content


@pytest.mark.anyio
async def test_strips_code_fences_from_reply():
    llm = _llm(f"```markdown\n{ENRICHED}\n```")
    result = await enrich_description("Catan", "raw text", llm=llm)
    assert result.startswith("Catan is a game")
    assert "```" not in result


@pytest.mark.anyio
async def test_short_reply_falls_back_to_raw():
    llm = _llm("Too short.")
    assert await enrich_description("Catan", "raw text", llm=llm) == "raw text"


@pytest.mark.anyio
async def test_llm_failure_falls_back_to_raw():
    llm = AsyncMock()
    llm.complete.side_effect = RuntimeError("upstream 500")
    assert await enrich_description("Catan", "raw text", llm=llm) == "raw text"


@pytest.mark.anyio
async def test_input_is_truncated():
    llm = _llm(ENRICHED)
    await enrich_description("Catan", "x" * 10000, llm=llm)
    user_prompt = llm.complete.call_args.args[0][1].content
    assert user_prompt.count("x") <= 3000 + 10


def test_context_render_flags_expansion():
    rendered = EnrichmentContext(mechanics=["Trading"], is_expansion=True).render()
    assert "Mechanics: Trading" in rendered
    assert "expansion" in rendered


def test_strip_code_fences_leaves_plain_text():
    assert strip_code_fences("  plain  ") == "plain"


def test_has_enrichment_marker():
    assert not has_enrichment_marker(None)
    assert not has_enrichment_marker("Just a blurb")
    assert has_enrichment_marker(ENRICHED)


@pytest.mark.anyio
async def test_model_override_is_forwarded():
    llm = _llm(ENRICHED)
    await enrich_description("Catan", "raw text", llm=llm, model="gpt-4o-mini")
    assert llm.complete.call_args.kwargs["model"] == "gpt-4o-mini"
