"""OpenAI LLM provider — chat completions with optional tool calling."""

from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI

from taverns.config import Settings
from taverns.core.protocols import LLMResponse, Message, ToolCall
from taverns.core.registry import register_provider

logger = logging.getLogger(__name__)


class OpenAILLMProvider:
    """OpenAI chat completion provider."""

    def __init__(self, settings: Settings) -> None:
        self._client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.http_timeout_seconds * 4,
        )
        self._default_model = settings.llm_model

    def _to_openai_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert protocol Messages to OpenAI format."""
        result = []
        for msg in messages:
            entry: dict[str, Any] = {"role": msg.role, "content": msg.content}
            if msg.name:
                entry["name"] = msg.name
            if msg.tool_call_id:
                entry["tool_call_id"] = msg.tool_call_id
            result.append(entry)
        return result

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
        """Generate a chat completion."""
        target_model = model or self._default_model

        params: dict[str, Any] = {
            "model": target_model,
            "messages": self._to_openai_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            params["tools"] = tools
            if tool_choice is not None:
                params["tool_choice"] = tool_choice

        response = await self._client.chat.completions.create(**params)
        choice = response.choices[0]

        tool_calls = [
            ToolCall(
                name=call.function.name,
                arguments=call.function.arguments or "",
                id=call.id,
            )
            for call in (choice.message.tool_calls or [])
            if getattr(call, "function", None) is not None
        ]

        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage={
                "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
                "completion_tokens": response.usage.completion_tokens if response.usage else 0,
            },
            finish_reason=choice.finish_reason or "stop",
            tool_calls=tool_calls,
            raw=response.model_dump(),
        )


# Self-register on import
register_provider("llm", "openai", OpenAILLMProvider)
