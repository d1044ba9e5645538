"""SQLAlchemy ORM models for the tables the import pipeline reads and writes.

The surrounding platform owns the full schema (polls, lending, forums, ...).
Only the columns this service touches are mapped here.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str | None] = mapped_column(String, unique=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="USER")  # USER, ADMIN
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    libraries: Mapped[list[Library]] = relationship(back_populates="owner")


class Library(Base):
    __tablename__ = "libraries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    owner: Mapped[User] = relationship(back_populates="libraries")


# ─── Taxonomy ──────────────────────────────────────────────────────────────────
# Global, deduplicated by exact (case-sensitive) name.


class Mechanic(Base):
    __tablename__ = "mechanics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String, unique=True, nullable=False)


class Publisher(Base):
    __tablename__ = "publishers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String, unique=True, nullable=False)


class Designer(Base):
    __tablename__ = "designers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String, unique=True, nullable=False)


class Artist(Base):
    __tablename__ = "artists"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String, unique=True, nullable=False)


# ─── Shared catalog ────────────────────────────────────────────────────────────


class GameCatalog(Base):
    """Library-independent record of a game, one row per BGG id."""

    __tablename__ = "game_catalog"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    bgg_id: Mapped[str | None] = mapped_column(String, unique=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str | None] = mapped_column(String, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    is_enriched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    image_url: Mapped[str | None] = mapped_column(String)
    additional_images: Mapped[list[str]] = mapped_column(ARRAY(String), default=list)
    min_players: Mapped[int | None] = mapped_column(Integer)
    max_players: Mapped[int | None] = mapped_column(Integer)
    play_time_minutes: Mapped[int | None] = mapped_column(Integer)
    weight: Mapped[float | None] = mapped_column(Numeric(3, 2))
    year_published: Mapped[int | None] = mapped_column(Integer)
    suggested_age: Mapped[str | None] = mapped_column(String)
    is_expansion: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    bgg_url: Mapped[str | None] = mapped_column(String)
    bgg_community_rating: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ─── Library-scoped games ──────────────────────────────────────────────────────


class Game(Base):
    __tablename__ = "games"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    library_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    catalog_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("game_catalog.id"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str | None] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(String)
    additional_images: Mapped[list[str]] = mapped_column(ARRAY(String), default=list)

    min_players: Mapped[int] = mapped_column(Integer, default=1)
    max_players: Mapped[int] = mapped_column(Integer, default=4)
    play_time: Mapped[str] = mapped_column(String, default="45-60 Minutes")
    difficulty: Mapped[str] = mapped_column(String, default="3 - Medium")
    game_type: Mapped[str] = mapped_column(String, default="Board Game")
    suggested_age: Mapped[str] = mapped_column(String, default="10+")

    bgg_id: Mapped[str | None] = mapped_column(String, index=True)
    bgg_url: Mapped[str | None] = mapped_column(String)
    publisher_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("publishers.id"), nullable=True
    )

    is_expansion: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_game_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("games.id", ondelete="SET NULL"), nullable=True
    )

    # Passthrough collection fields (owned by the CRUD side of the platform).
    is_coming_soon: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_for_sale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sale_price: Mapped[float | None] = mapped_column(Numeric)
    sale_condition: Mapped[str | None] = mapped_column(String)
    location_room: Mapped[str | None] = mapped_column(String)
    location_shelf: Mapped[str | None] = mapped_column(String)
    location_misc: Mapped[str | None] = mapped_column(String)
    sleeved: Mapped[bool] = mapped_column(Boolean, default=False)
    upgraded_components: Mapped[bool] = mapped_column(Boolean, default=False)
    crowdfunded: Mapped[bool] = mapped_column(Boolean, default=False)
    inserts: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Duplicate lookups (bgg_id, then slug) are also the race-safe keys.
    __table_args__ = (
        UniqueConstraint("library_id", "slug", name="uq_games_library_slug"),
        Index(
            "uq_games_library_bgg_id",
            "library_id",
            "bgg_id",
            unique=True,
            postgresql_where=text("bgg_id IS NOT NULL"),
        ),
    )


# ─── Join tables ───────────────────────────────────────────────────────────────
# Composite unique keys keep re-imports from duplicating links.


class GameMechanic(Base):
    __tablename__ = "game_mechanics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    game_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    mechanic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("mechanics.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (UniqueConstraint("game_id", "mechanic_id", name="uq_game_mechanic"),)


class GameDesigner(Base):
    __tablename__ = "game_designers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    game_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    designer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("designers.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (UniqueConstraint("game_id", "designer_id", name="uq_game_designer"),)


class GameArtist(Base):
    __tablename__ = "game_artists"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    game_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    artist_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("artists.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (UniqueConstraint("game_id", "artist_id", name="uq_game_artist"),)


class CatalogMechanic(Base):
    __tablename__ = "catalog_mechanics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    catalog_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("game_catalog.id", ondelete="CASCADE"), nullable=False
    )
    mechanic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("mechanics.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (UniqueConstraint("catalog_id", "mechanic_id", name="uq_catalog_mechanic"),)


class CatalogPublisher(Base):
    __tablename__ = "catalog_publishers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    catalog_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("game_catalog.id", ondelete="CASCADE"), nullable=False
    )
    publisher_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("publishers.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (UniqueConstraint("catalog_id", "publisher_id", name="uq_catalog_publisher"),)


class CatalogDesigner(Base):
    __tablename__ = "catalog_designers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    catalog_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("game_catalog.id", ondelete="CASCADE"), nullable=False
    )
    designer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("designers.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (UniqueConstraint("catalog_id", "designer_id", name="uq_catalog_designer"),)


class CatalogArtist(Base):
    __tablename__ = "catalog_artists"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    catalog_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("game_catalog.id", ondelete="CASCADE"), nullable=False
    )
    artist_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("artists.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (UniqueConstraint("catalog_id", "artist_id", name="uq_catalog_artist"),)
