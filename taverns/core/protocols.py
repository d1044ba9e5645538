"""Provider protocols for the language-model dependency.

The import pipeline calls a language model for two jobs: rewriting a raw
publisher description into the house format, and pulling structured game
fields out of a scraped page via a single forced tool call. Business logic
imports the protocol, never a concrete implementation; swap providers with
the LLM_PROVIDER env var.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

# ─── Data Structures ──────────────────────────────────────────────────────────


@dataclass
class Message:
    """A single message in a conversation."""

    role: str  # "system" | "user" | "assistant" | "tool"
    content: str
    name: str | None = None
    tool_call_id: str | None = None


@dataclass
class ToolCall:
    """A function call the model chose to make."""

    name: str
    arguments: str  # Raw JSON text exactly as the model produced it
    id: str = ""


@dataclass
class LLMResponse:
    """Response from an LLM completion."""

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)  # prompt_tokens, completion_tokens
    finish_reason: str = "stop"
    tool_calls: list[ToolCall] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)


# ─── Protocols ─────────────────────────────────────────────────────────────────


@runtime_checkable
class LLMProvider(Protocol):
    """Abstract interface for language model completions.

    Implementations: OpenAI chat completions, offline mock.
    """

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
        """Generate a completion, optionally forcing a tool call."""
        ...
