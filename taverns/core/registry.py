"""Provider registry — resolves the concrete LLM implementation from config.

Business logic calls ``get_provider_registry().get_llm()`` and gets back an
instance chosen by LLM_PROVIDER. ``none`` (or an unconfigured provider)
resolves to ``None``; callers treat that as "no language model available"
and skip enrichment and AI extraction.

Usage:
    from taverns.core.registry import get_provider_registry

    llm = get_provider_registry().get_llm()
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from taverns.config import get_settings
from taverns.core.protocols import LLMProvider

logger = logging.getLogger(__name__)

# ─── Provider Factory Map ──────────────────────────────────────────────────────
# Adding a new provider = one entry here + one module in providers/.

_LLM_FACTORIES: dict[str, type] = {}

DISABLED_PROVIDER = "none"


def register_provider(
    category: str,
    name: str,
    cls: type,
) -> None:
    """Register a provider implementation.

    Called by provider modules on import, or manually in tests.

    Args:
        category: Only 'llm' is supported.
        name: Provider name (e.g., 'openai', 'mock').
        cls: The provider class implementing the relevant Protocol.
    """
    registry_map = {"llm": _LLM_FACTORIES}

    target = registry_map.get(category)
    if target is None:
        raise ValueError(f"Unknown provider category: {category}")

    target[name] = cls
    logger.info("Registered %s provider: %s", category, name)


class ProviderRegistry:
    """Singleton registry that resolves and caches provider instances."""

    def __init__(self) -> None:
        self._instances: dict[str, Any] = {}
        self._ensure_providers_loaded()

    def _ensure_providers_loaded(self) -> None:
        """Import provider modules to trigger registration."""
        from taverns.core.providers import mock_llm, openai_llm  # noqa: F401

    def _resolve(
        self,
        category: str,
        factories: dict[str, type],
        provider_name: str,
    ) -> Any:
        """Resolve and cache a provider instance."""
        cache_key = f"{category}:{provider_name}"
        if cache_key in self._instances:
            return self._instances[cache_key]

        cls = factories.get(provider_name)
        if cls is None:
            available = list(factories.keys())
            raise ValueError(
                f"Unknown {category} provider: '{provider_name}'. "
                f"Available: {available}"
            )

        settings = get_settings()
        instance = cls(settings)
        self._instances[cache_key] = instance
        logger.info("Initialized %s provider: %s", category, provider_name)
        return instance

    def get_llm(self, override: str | None = None) -> LLMProvider | None:
        """Get the configured LLM provider, or None when disabled/unconfigured."""
        settings = get_settings()
        name = override or settings.llm_provider
        if name == DISABLED_PROVIDER:
            return None
        if override is None and not settings.llm_configured:
            logger.warning("LLM provider '%s' has no credentials; AI features disabled", name)
            return None
        return self._resolve("llm", _LLM_FACTORIES, name)


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    """Get the singleton provider registry."""
    return ProviderRegistry()
