"""normalize.py — Map raw source values onto the canonical enumerations.

Two schema generations are in the wild: the legacy self-hosted install wrote
its own literal enum strings, the unified schema uses the set below. Every
write path runs through these functions so only canonical values reach the
database. All functions are total: unknown input returns ``None`` (the caller
applies its default), never raises.

Called by: bgg_client.py, bgg_pages.py, page_scrape.py, importer.py, catalog_store.py
Depends on: nothing
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any

# ─── Canonical sets ────────────────────────────────────────────────────────────

DIFFICULTY_LEVELS: tuple[str, ...] = (
    "1 - Light",
    "2 - Medium Light",
    "3 - Medium",
    "4 - Medium Heavy",
    "5 - Heavy",
)

PLAY_TIME_OPTIONS: tuple[str, ...] = (
    "0-15 Minutes",
    "15-30 Minutes",
    "30-45 Minutes",
    "45-60 Minutes",
    "60+ Minutes",
    "2+ Hours",
    "3+ Hours",
)

GAME_TYPE_OPTIONS: tuple[str, ...] = (
    "Board Game",
    "Card Game",
    "Dice Game",
    "Party Game",
    "War Game",
    "Miniatures",
    "RPG",
    "Other",
)

# ─── Legacy remaps (self-hosted generation → unified) ──────────────────────────

LEGACY_PLAY_TIME = MappingProxyType({
    "Under 30 Minutes": "15-30 Minutes",
    "60-90 Minutes": "60+ Minutes",
    "90-120 Minutes": "60+ Minutes",
    "2-3 Hours": "2+ Hours",
})

LEGACY_GAME_TYPE = MappingProxyType({
    "Strategy Game": "Board Game",
    "Cooperative Game": "Board Game",
    "Miniatures Game": "Miniatures",
    "Role-Playing Game": "RPG",
    "Deck Building": "Card Game",
    "Area Control": "Other",
    "Worker Placement": "Other",
})

LEGACY_DIFFICULTY = MappingProxyType({
    "1 - Very Easy": "1 - Light",
    "2 - Easy": "2 - Medium Light",
    "4 - Hard": "4 - Medium Heavy",
    "5 - Very Hard": "5 - Heavy",
})

LEGACY_SALE_CONDITION = MappingProxyType({
    "New": "New/Sealed",
})

# ─── Reverse lookups (category → representative number) ────────────────────────

DIFFICULTY_TO_WEIGHT = MappingProxyType({
    "1 - Light": 1.25,
    "2 - Medium Light": 1.88,
    "3 - Medium": 2.63,
    "4 - Medium Heavy": 3.38,
    "5 - Heavy": 4.25,
})

PLAY_TIME_TO_MINUTES = MappingProxyType({
    "0-15 Minutes": 15,
    "15-30 Minutes": 30,
    "30-45 Minutes": 45,
    "45-60 Minutes": 60,
    "60+ Minutes": 90,
    "2+ Hours": 150,
    "3+ Hours": 240,
})

# Upper bounds; first bound the value clears wins.
_WEIGHT_LADDER: tuple[tuple[float, str], ...] = (
    (1.5, "1 - Light"),
    (2.25, "2 - Medium Light"),
    (3.0, "3 - Medium"),
    (3.75, "4 - Medium Heavy"),
)

_MINUTES_LADDER: tuple[tuple[int, str], ...] = (
    (15, "0-15 Minutes"),
    (30, "15-30 Minutes"),
    (45, "30-45 Minutes"),
    (60, "45-60 Minutes"),
    (120, "60+ Minutes"),
    (180, "2+ Hours"),
)


def _clean(raw: Any) -> str | None:
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    return value or None


def normalize_difficulty(raw: Any) -> str | None:
    value = _clean(raw)
    if value is None:
        return None
    if value in DIFFICULTY_LEVELS:
        return value
    return LEGACY_DIFFICULTY.get(value)


def normalize_play_time(raw: Any) -> str | None:
    value = _clean(raw)
    if value is None:
        return None
    if value in PLAY_TIME_OPTIONS:
        return value
    return LEGACY_PLAY_TIME.get(value)


def normalize_game_type(raw: Any) -> str | None:
    value = _clean(raw)
    if value is None:
        return None
    if value in GAME_TYPE_OPTIONS:
        return value
    return LEGACY_GAME_TYPE.get(value)


def normalize_sale_condition(raw: Any) -> str | None:
    """Rename the one legacy condition; pass everything else through."""
    value = _clean(raw)
    if value is None:
        return None
    return LEGACY_SALE_CONDITION.get(value, value)


def weight_to_difficulty(weight: float) -> str:
    """Bucket a BGG average weight (1-5) into a difficulty band.

    Boundaries belong to the heavier band: 1.5 → "2 - Medium Light".
    """
    for bound, label in _WEIGHT_LADDER:
        if weight < bound:
            return label
    return DIFFICULTY_LEVELS[-1]


def minutes_to_play_time(minutes: int) -> str:
    """Bucket a playing time in minutes into a play-time band.

    Boundaries belong to the lighter band: 60 → "45-60 Minutes".
    """
    for bound, label in _MINUTES_LADDER:
        if minutes <= bound:
            return label
    return PLAY_TIME_OPTIONS[-1]


def difficulty_to_weight(difficulty: str | None) -> float | None:
    if difficulty is None:
        return None
    return DIFFICULTY_TO_WEIGHT.get(difficulty)


def play_time_to_minutes(play_time: str | None) -> int | None:
    if play_time is None:
        return None
    return PLAY_TIME_TO_MINUTES.get(play_time)
