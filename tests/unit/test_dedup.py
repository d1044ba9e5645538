"""Tests for duplicate detection and parent-game resolution."""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy import UniqueConstraint
from sqlalchemy.dialects import postgresql

from taverns.models.tables import Game
from taverns.services.catalog.dedup import (
    derive_base_title,
    find_existing,
    find_parent_game,
    slugify_title,
)


def _first(value) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.first.return_value = value
    return result


def _all(values: list) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


@pytest.mark.parametrize(
    ("title", "slug"),
    [
        ("Catan: Starfarers", "catan-starfarers"),
        ("7 Wonders (2nd Ed)", "7-wonders-2nd-ed"),
        ("  Ticket to Ride -- Europe  ", "ticket-to-ride-europe"),
        ("Pokémon", "pokmon"),
    ],
)
def test_slugify_title(title, slug):
    assert slugify_title(title) == slug


@pytest.mark.parametrize(
    ("title", "base"),
    [
        ("Wingspan: European Expansion", "Wingspan"),
        ("Catan - Seafarers Scenario Pack", "Catan"),
        ("Dominion: Intrigue", "Dominion"),
        ("7-Wonders", None),
        ("Wingspan", None),
        ("", None),
        (None, None),
    ],
)
def test_derive_base_title(title, base):
    assert derive_base_title(title) == base


@pytest.mark.anyio
async def test_find_existing_prefers_url_match(db_session):
    game = MagicMock(id=uuid.uuid4())
    db_session.execute.side_effect = [_first(game)]

    found = await find_existing(
        db_session,
        uuid.uuid4(),
        bgg_url="https://boardgamegeek.com/boardgame/13",
        bgg_id="13",
        title="Catan",
    )

    assert found is game
    assert db_session.execute.await_count == 1


@pytest.mark.anyio
async def test_find_existing_falls_through_to_slug(db_session):
    game = MagicMock(id=uuid.uuid4())
    db_session.execute.side_effect = [_first(None), _first(None), _first(game)]

    found = await find_existing(
        db_session,
        uuid.uuid4(),
        bgg_url="https://boardgamegeek.com/boardgame/13",
        bgg_id="13",
        title="Catan",
    )

    assert found is game
    assert db_session.execute.await_count == 3


@pytest.mark.anyio
async def test_find_existing_only_checks_what_is_known(db_session):
    db_session.execute.side_effect = [_first(None)]
    assert await find_existing(db_session, uuid.uuid4(), title="Homebrew Game") is None
    assert db_session.execute.await_count == 1


@pytest.mark.anyio
async def test_find_parent_exact_match(db_session):
    parent = uuid.uuid4()
    db_session.execute.side_effect = [_first(parent)]
    assert await find_parent_game(db_session, uuid.uuid4(), "Wingspan") == parent


@pytest.mark.anyio
async def test_find_parent_unique_fuzzy_match(db_session):
    parent = uuid.uuid4()
    db_session.execute.side_effect = [_first(None), _all([parent])]
    assert await find_parent_game(db_session, uuid.uuid4(), "Catan") == parent


@pytest.mark.anyio
async def test_find_parent_ambiguous_fuzzy_match_is_none(db_session):
    db_session.execute.side_effect = [_first(None), _all([uuid.uuid4(), uuid.uuid4()])]
    assert await find_parent_game(db_session, uuid.uuid4(), "Catan") is None


@pytest.mark.anyio
async def test_find_parent_blank_title(db_session):
    assert await find_parent_game(db_session, uuid.uuid4(), "  ") is None
    db_session.execute.assert_not_awaited()


@pytest.mark.anyio
async def test_find_parent_fuzzy_match_escapes_like_wildcards(db_session):
    db_session.execute.side_effect = [_first(None), _all([])]

    await find_parent_game(db_session, uuid.uuid4(), "100% Orange_Juice: Big Pack")

    compiled = db_session.execute.await_args_list[1].args[0].compile(dialect=postgresql.dialect())
    assert "ESCAPE '/'" in str(compiled)
    assert "100/% Orange/_Juice" in compiled.params.values()


def test_games_unique_keys_match_duplicate_lookups():
    unique = {
        c.name: [col.name for col in c.columns]
        for c in Game.__table__.constraints
        if isinstance(c, UniqueConstraint)
    }
    assert unique["uq_games_library_slug"] == ["library_id", "slug"]

    index = next(i for i in Game.__table__.indexes if i.name == "uq_games_library_bgg_id")
    assert index.unique is True
    assert [col.name for col in index.columns] == ["library_id", "bgg_id"]
