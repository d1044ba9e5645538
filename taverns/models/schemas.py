"""Pydantic v2 schemas for API request/response bodies."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

# ─── Health ────────────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str = "healthy"
    database: str = "connected"
    version: str = "0.1.0"


# ─── Game import ───────────────────────────────────────────────────────────────


class GameImportRequest(BaseModel):
    """Body of ``POST /api/v1/games/import``.

    Only ``url`` drives the pipeline; the rest are collection fields written
    straight through onto the library game.
    """

    url: str = Field(..., min_length=1, max_length=2048)
    library_id: uuid.UUID | None = None
    is_expansion: bool | None = None
    parent_game_id: uuid.UUID | None = None

    is_coming_soon: bool = False
    is_for_sale: bool = False
    sale_price: float | None = Field(default=None, ge=0)
    sale_condition: str | None = Field(default=None, max_length=50)

    location_room: str | None = Field(default=None, max_length=200)
    location_shelf: str | None = Field(default=None, max_length=200)
    location_misc: str | None = Field(default=None, max_length=500)

    sleeved: bool = False
    upgraded_components: bool = False
    crowdfunded: bool = False
    inserts: bool = False


class GameRead(BaseModel):
    id: uuid.UUID
    library_id: uuid.UUID
    catalog_id: uuid.UUID | None = None
    title: str
    slug: str | None = None
    description: str | None = None
    image_url: str | None = None
    additional_images: list[str] = Field(default_factory=list)
    min_players: int | None = None
    max_players: int | None = None
    play_time: str | None = None
    difficulty: str | None = None
    game_type: str | None = None
    suggested_age: str | None = None
    publisher_id: uuid.UUID | None = None
    bgg_id: str | None = None
    bgg_url: str | None = None
    is_expansion: bool = False
    parent_game_id: uuid.UUID | None = None
    is_coming_soon: bool = False
    is_for_sale: bool = False
    sale_price: float | None = None
    sale_condition: str | None = None
    location_room: str | None = None
    location_shelf: str | None = None
    location_misc: str | None = None
    sleeved: bool = False
    upgraded_components: bool = False
    crowdfunded: bool = False
    inserts: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ImportedGame(GameRead):
    """Game row plus the taxonomy names that came with the import."""

    mechanics: list[str] = Field(default_factory=list)
    publisher: str | None = None


class GameImportResponse(BaseModel):
    success: Literal[True] = True
    action: Literal["created", "updated"]
    game: ImportedGame


class ImportErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str
