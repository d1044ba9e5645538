"""catalog_store.py — Write the shared catalog and taxonomy links.

Every mutation is a single atomic statement (``INSERT ... ON CONFLICT``) so
two libraries importing the same BGG id at once cannot race each other into
duplicates. The one conditional write, "keep an enriched description over an
unenriched one", lives inside the upsert as a SQL ``CASE`` on the stored row.

Taxonomy links (mechanic, publisher, designer, artist) are best effort: each
runs in its own savepoint and a failure is logged, never raised.

Called by: importer.py, workers/tasks.py
Depends on: models/tables.py, normalize.py, enrichment.py, dedup.py
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import case, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taverns.models.tables import (
    Artist,
    CatalogArtist,
    CatalogDesigner,
    CatalogMechanic,
    CatalogPublisher,
    Designer,
    Game,
    GameArtist,
    GameCatalog,
    GameDesigner,
    GameMechanic,
    Mechanic,
    Publisher,
)
from taverns.services.catalog.dedup import slugify_title
from taverns.services.catalog.enrichment import ENRICHMENT_MARKER, has_enrichment_marker
from taverns.services.catalog.normalize import (
    difficulty_to_weight,
    minutes_to_play_time,
    play_time_to_minutes,
    weight_to_difficulty,
)
from taverns.services.catalog.records import RawGameRecord

logger = structlog.get_logger()

# (taxonomy model, catalog join model, catalog fk column, game join model or None)
_TAXONOMY = {
    "mechanics": (Mechanic, CatalogMechanic, "mechanic_id", GameMechanic),
    "designers": (Designer, CatalogDesigner, "designer_id", GameDesigner),
    "artists": (Artist, CatalogArtist, "artist_id", GameArtist),
}


def _unique(names: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for name in names:
        cleaned = name.strip() if isinstance(name, str) else ""
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


# ─── Taxonomy primitives ───────────────────────────────────────────────────────


async def find_or_create_entity(db: AsyncSession, model: Any, name: str) -> uuid.UUID | None:
    """Exact-name lookup; on a miss insert-or-ignore, then re-select."""
    result = await db.execute(select(model.id).where(model.name == name))
    entity_id = result.scalar_one_or_none()
    if entity_id is not None:
        return entity_id

    await db.execute(pg_insert(model).values(name=name).on_conflict_do_nothing(index_elements=["name"]))
    result = await db.execute(select(model.id).where(model.name == name))
    return result.scalar_one_or_none()


async def link_entity(db: AsyncSession, join_model: Any, **keys: uuid.UUID) -> None:
    """Insert a join row; an existing (a, b) pair is left untouched."""
    stmt = pg_insert(join_model).values(**keys).on_conflict_do_nothing(index_elements=list(keys))
    await db.execute(stmt)


async def _link_one(
    db: AsyncSession,
    model: Any,
    name: str,
    links: list[tuple[Any, dict[str, uuid.UUID], str]],
) -> uuid.UUID | None:
    """Resolve ``name`` and write each join row inside one savepoint."""
    try:
        async with db.begin_nested():
            entity_id = await find_or_create_entity(db, model, name)
            if entity_id is None:
                logger.warning("taxonomy_unresolved", entity=model.__tablename__, name=name)
                return None
            for join_model, owner_keys, fk in links:
                await link_entity(db, join_model, **owner_keys, **{fk: entity_id})
            return entity_id
    except SQLAlchemyError as exc:
        logger.warning("taxonomy_link_failed", entity=model.__tablename__, name=name, error=str(exc))
        return None


# ─── Library-scoped game links ─────────────────────────────────────────────────


async def link_game_taxonomy(db: AsyncSession, game_id: uuid.UUID, record: RawGameRecord) -> uuid.UUID | None:
    """Link a library game to its mechanics/designers/artists; return the publisher id."""
    for field_name, (model, _, fk, game_join) in _TAXONOMY.items():
        for name in _unique(getattr(record, field_name)):
            await _link_one(db, model, name, [(game_join, {"game_id": game_id}, fk)])

    if not record.publisher:
        return None
    try:
        async with db.begin_nested():
            publisher_id = await find_or_create_entity(db, Publisher, record.publisher.strip())
    except SQLAlchemyError as exc:
        logger.warning("taxonomy_link_failed", entity="publishers", name=record.publisher, error=str(exc))
        return None
    if publisher_id is not None:
        await db.execute(update(Game).where(Game.id == game_id).values(publisher_id=publisher_id))
    return publisher_id


# ─── Shared catalog ────────────────────────────────────────────────────────────


def catalog_values(record: RawGameRecord) -> dict[str, Any]:
    """Column values for a catalog row, including the derived numeric fields."""
    weight = record.weight or difficulty_to_weight(record.difficulty)
    minutes = record.play_time_minutes or play_time_to_minutes(record.play_time)
    return {
        "bgg_id": record.external_id,
        "title": record.title,
        "slug": slugify_title(record.title or ""),
        "description": record.description,
        "is_enriched": has_enrichment_marker(record.description),
        "image_url": record.image_url,
        "additional_images": list(record.additional_image_urls),
        "min_players": record.min_players,
        "max_players": record.max_players,
        "play_time_minutes": minutes,
        "weight": round(weight, 2) if weight else None,
        "year_published": record.year_published,
        "suggested_age": record.suggested_age,
        "is_expansion": record.is_expansion,
        "bgg_url": record.bgg_url,
        "bgg_community_rating": record.community_rating,
    }


def build_catalog_upsert(record: RawGameRecord):
    """``INSERT ... ON CONFLICT (bgg_id) DO UPDATE ... RETURNING id``."""
    values = catalog_values(record)
    stmt = pg_insert(GameCatalog).values(id=uuid.uuid4(), **values)
    incoming = stmt.excluded
    table = GameCatalog.__table__.c

    stored_is_enriched = table.is_enriched | func.coalesce(table.description, "").contains(ENRICHMENT_MARKER)
    keep = ("bgg_id", "title", "slug", "is_expansion")
    set_: dict[str, Any] = {name: incoming[name] for name in keep}
    for name in values:
        if name in keep or name in ("description", "is_enriched", "additional_images"):
            continue
        # Partial records never blank out data an earlier import gathered.
        set_[name] = func.coalesce(incoming[name], table[name])

    set_["description"] = case(
        (stored_is_enriched & ~incoming.is_enriched, table.description),
        else_=func.coalesce(incoming.description, table.description),
    )
    set_["is_enriched"] = stored_is_enriched | incoming.is_enriched
    set_["additional_images"] = case(
        (func.coalesce(func.cardinality(incoming.additional_images), 0) > 0, incoming.additional_images),
        else_=table.additional_images,
    )
    set_["updated_at"] = func.now()

    return stmt.on_conflict_do_update(index_elements=["bgg_id"], set_=set_).returning(GameCatalog.id)


async def upsert_catalog_entry(
    db: AsyncSession,
    record: RawGameRecord,
    game_id: uuid.UUID | None = None,
) -> uuid.UUID | None:
    """Upsert the shared catalog row for ``record`` and link its taxonomy.

    Returns the catalog id, or None when the record has no external id or no
    title (an unusable record never creates a catalog row).
    """
    if not record.external_id or not record.is_usable:
        return None

    result = await db.execute(build_catalog_upsert(record))
    catalog_id = result.scalar_one()

    if game_id is not None:
        await db.execute(update(Game).where(Game.id == game_id).values(catalog_id=catalog_id))

    for field_name, (model, catalog_join, fk, _) in _TAXONOMY.items():
        for name in _unique(getattr(record, field_name)):
            await _link_one(db, model, name, [(catalog_join, {"catalog_id": catalog_id}, fk)])
    if record.publisher:
        await _link_one(
            db,
            Publisher,
            record.publisher.strip(),
            [(CatalogPublisher, {"catalog_id": catalog_id}, "publisher_id")],
        )

    logger.info(
        "catalog_upserted",
        bgg_id=record.external_id,
        catalog_id=str(catalog_id),
        enriched=has_enrichment_marker(record.description),
    )
    return catalog_id


# ─── Reads ─────────────────────────────────────────────────────────────────────


async def get_catalog_entry(db: AsyncSession, bgg_id: str) -> GameCatalog | None:
    result = await db.execute(select(GameCatalog).where(GameCatalog.bgg_id == bgg_id))
    return result.scalar_one_or_none()


def catalog_is_enriched(entry: GameCatalog) -> bool:
    return bool(entry.is_enriched) or has_enrichment_marker(entry.description)


async def _catalog_names(db: AsyncSession, model: Any, join_model: Any, fk: str, catalog_id: uuid.UUID) -> list[str]:
    result = await db.execute(
        select(model.name)
        .join(join_model, getattr(join_model, fk) == model.id)
        .where(join_model.catalog_id == catalog_id)
        .order_by(model.name)
    )
    return list(result.scalars().all())


async def get_catalog_record(db: AsyncSession, entry: GameCatalog) -> RawGameRecord:
    """Rebuild a RawGameRecord from a stored catalog row and its links."""
    names = {
        field_name: await _catalog_names(db, model, catalog_join, fk, entry.id)
        for field_name, (model, catalog_join, fk, _) in _TAXONOMY.items()
    }
    publishers = await _catalog_names(db, Publisher, CatalogPublisher, "publisher_id", entry.id)
    weight = float(entry.weight) if entry.weight is not None else None

    return RawGameRecord(
        external_id=entry.bgg_id,
        title=entry.title,
        image_url=entry.image_url,
        additional_image_urls=list(entry.additional_images or []),
        description=entry.description,
        min_players=entry.min_players,
        max_players=entry.max_players,
        suggested_age=entry.suggested_age,
        play_time=minutes_to_play_time(entry.play_time_minutes) if entry.play_time_minutes else None,
        play_time_minutes=entry.play_time_minutes,
        difficulty=weight_to_difficulty(weight) if weight else None,
        weight=weight,
        mechanics=names["mechanics"],
        designers=names["designers"],
        artists=names["artists"],
        publisher=publishers[0] if publishers else None,
        is_expansion=bool(entry.is_expansion),
        community_rating=entry.bgg_community_rating,
        year_published=entry.year_published,
        bgg_url=entry.bgg_url,
        source="catalog",
    )


async def list_stale_catalog_ids(db: AsyncSession, limit: int) -> list[str]:
    """BGG ids of the least recently refreshed catalog rows."""
    result = await db.execute(
        select(GameCatalog.bgg_id)
        .where(GameCatalog.bgg_id.is_not(None))
        .order_by(GameCatalog.updated_at.asc())
        .limit(limit)
    )
    return [bgg_id for bgg_id in result.scalars().all() if bgg_id]
