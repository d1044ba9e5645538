"""mock_llm.py — Offline LLM provider for local runs and tests.

Returns a house-format description for plain completions and a minimal
``extract_game_data`` tool call (title pulled from the first markdown
heading) when tools are offered. No API calls, no keys.

Called by: enrichment.py / page_scrape.py (via registry) when LLM_PROVIDER=mock
Depends on: protocols.py (LLMProvider)
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from taverns.config import Settings
from taverns.core.protocols import LLMResponse, Message, ToolCall
from taverns.core.registry import register_provider

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_TITLE_LINE_RE = re.compile(r"^Title:\s*(.+)$", re.MULTILINE)


class MockLLMProvider:
    """Fake LLM with deterministic output.

    Usage:
        Set LLM_PROVIDER=mock to activate.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        logger.info("MockLLMProvider initialized — no API calls will be made")

    async def complete(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Return a canned completion or tool call based on the last user message."""
        user_text = ""
        for msg in reversed(messages):
            if msg.role == "user":
                user_text = msg.content
                break

        logger.debug("MockLLM.complete called: tools=%s, chars=%d", bool(tools), len(user_text))

        if tools:
            match = _HEADING_RE.search(user_text) or _TITLE_LINE_RE.search(user_text)
            arguments: dict[str, Any] = {}
            if match:
                arguments["title"] = match.group(1).strip()
            name = tools[0]["function"]["name"]
            return LLMResponse(
                content="",
                model="mock-llm-v1",
                finish_reason="tool_calls",
                tool_calls=[ToolCall(name=name, arguments=json.dumps(arguments), id="mock-call")],
                raw={"mock": True},
            )

        title_match = re.search(r'"([^"]+)"', user_text)
        title = title_match.group(1) if title_match else "This game"
        content = (
            f"{title} is a tabletop game for friends and family.\n\n"
            "## Quick Gameplay Overview\n\n"
            "- **Goal:** Score the most points by the end of the game\n"
            "- **On Your Turn:** Take one action, then pass to the next player\n"
            "- **End Game:** The game ends after the final round\n"
            "- **Winner:** Highest score wins\n"
        )
        return LLMResponse(
            content=content,
            model="mock-llm-v1",
            usage={"prompt_tokens": 100, "completion_tokens": 80},
            raw={"mock": True},
        )


register_provider("llm", "mock", MockLLMProvider)
