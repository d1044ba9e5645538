"""environment.py — Startup validation for the import service.

Every outbound source is optional; a missing key only removes one step from
the fallback chain. Outside production that earns a warning. In production,
an unsigned deployment (no AUTH_SECRET) refuses to start.

Key requirements:
    openai     → OPENAI_API_KEY
    mock       → (none)
    none       → (none, enrichment + AI extraction disabled)

Called by: main.py ``lifespan()`` on app startup
Depends on: config.py (Settings)
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from taverns.config import Settings, get_settings

logger = logging.getLogger(__name__)

VALID_LLM_PROVIDERS = frozenset({"openai", "mock", "none"})


def _is_valid_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
        parsed.port  # raises ValueError on a non-numeric port
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def collect_optional_warnings(settings: Settings) -> list[str]:
    """Return a human-readable warning for every optional source that is off."""
    warnings: list[str] = []
    if not settings.has_bgg_cookie:
        warnings.append(
            "BGG_SESSION_COOKIE not set — 401/403 from the BGG XML API fall through without retry."
        )
    if not settings.firecrawl_api_key:
        warnings.append(
            "FIRECRAWL_API_KEY not set — generic page scrape falls back to the r.jina.ai reader."
        )
    if settings.llm_provider == "openai" and not settings.openai_api_key:
        warnings.append(
            "OPENAI_API_KEY not set — description enrichment and AI extraction are disabled."
        )
    if not settings.notify_webhook_url:
        warnings.append("NOTIFY_WEBHOOK_URL not set — 'game added' notifications are skipped.")
    elif not _is_valid_http_url(settings.notify_webhook_url):
        warnings.append(
            f"NOTIFY_WEBHOOK_URL='{settings.notify_webhook_url}' is not a valid http(s) URL — notifications will fail."
        )
    return warnings


def validate_environment(settings: Settings | None = None) -> None:
    """Validate configuration on startup.

    Raises:
        RuntimeError: Invalid LLM_PROVIDER, malformed ALLOWED_ORIGINS, or
            production without AUTH_SECRET.
    """
    settings = settings or get_settings()

    if settings.llm_provider not in VALID_LLM_PROVIDERS:
        raise RuntimeError(
            f"Invalid LLM_PROVIDER='{settings.llm_provider}'. "
            f"Must be one of: {sorted(VALID_LLM_PROVIDERS)}"
        )

    origins = settings.allowed_origins_list
    if "*" in origins:
        if settings.is_production:
            raise RuntimeError("ALLOWED_ORIGINS cannot contain '*' in production.")
        logger.warning("ALLOWED_ORIGINS contains '*'. This is unsafe outside local development.")
    invalid_origins = [o for o in origins if o != "*" and not _is_valid_http_url(o)]
    if invalid_origins:
        raise RuntimeError(f"ALLOWED_ORIGINS has invalid URL(s): {', '.join(invalid_origins)}")

    if settings.is_production:
        if not settings.auth_secret:
            logger.error("Production mode requires AUTH_SECRET")
            raise RuntimeError("Production mode requires these env vars: AUTH_SECRET")
        logger.info("Environment initialized: env=%s, llm=%s", settings.app_env, settings.llm_provider)
        return

    if not settings.auth_secret:
        logger.warning("AUTH_SECRET not set — authenticated routes will reject every token.")
    for warning in collect_optional_warnings(settings):
        logger.warning(warning)

    logger.info("Environment initialized: env=%s, llm=%s", settings.app_env, settings.llm_provider)
