"""records.py — Shared types for the game import pipeline.

``RawGameRecord`` is the per-request intermediate every source produces and
every writer consumes. It is never persisted directly.

Called by: every module in services/catalog/
Depends on: nothing
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

MAX_ADDITIONAL_IMAGES = 5


class GameImportError(Exception):
    """The only failure that reaches the caller.

    Raised for validation problems (bad URL, collection URL, no title on the
    page) and total source exhaustion. Routes render it as
    ``{"success": false, "error": message}`` with ``status_code``.
    """

    def __init__(self, message: str, status_code: int = 400) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SourceError(Exception):
    """A single source step failed; the orchestrator falls through to the next one."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class SourceUnavailable(SourceError):
    """The step cannot run at all (missing id, key, or provider)."""


@dataclass
class RawGameRecord:
    external_id: str | None = None
    title: str | None = None
    image_url: str | None = None
    additional_image_urls: list[str] = field(default_factory=list)
    description: str | None = None
    min_players: int | None = None
    max_players: int | None = None
    suggested_age: str | None = None
    play_time: str | None = None
    difficulty: str | None = None
    game_type: str | None = None
    mechanics: list[str] = field(default_factory=list)
    designers: list[str] = field(default_factory=list)
    artists: list[str] = field(default_factory=list)
    publisher: str | None = None
    is_expansion: bool = False
    base_game_title: str | None = None
    community_rating: float | None = None
    year_published: int | None = None
    weight: float | None = None
    play_time_minutes: int | None = None
    bgg_url: str | None = None
    source: str = ""

    @property
    def is_usable(self) -> bool:
        """A record without a title can only fill gaps, never create a row."""
        return bool(self.title and self.title.strip())

    def merge_missing(self, other: RawGameRecord) -> RawGameRecord:
        """Fill empty fields from ``other`` without overwriting present ones.

        ``is_expansion`` is OR-ed; ``source`` keeps this record's value.
        """
        for f in fields(self):
            if f.name in ("source", "is_expansion"):
                continue
            mine: Any = getattr(self, f.name)
            theirs: Any = getattr(other, f.name)
            if _is_empty(mine) and not _is_empty(theirs):
                setattr(self, f.name, list(theirs) if isinstance(theirs, list) else theirs)
        self.is_expansion = self.is_expansion or other.is_expansion
        return self


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list)):
        return len(value) == 0
    return False
