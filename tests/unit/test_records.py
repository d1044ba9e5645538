"""Tests for RawGameRecord merging and the import error types."""

from __future__ import annotations

from taverns.services.catalog.records import (
    GameImportError,
    RawGameRecord,
    SourceError,
    SourceUnavailable,
)


def test_is_usable_requires_non_blank_title():
    assert RawGameRecord(title="Catan").is_usable
    assert not RawGameRecord(title="   ").is_usable
    assert not RawGameRecord().is_usable


def test_merge_missing_fills_gaps_only():
    primary = RawGameRecord(
        title="Catan",
        description=None,
        min_players=3,
        mechanics=[],
        source="bgg_page_proxy",
    )
    fallback = RawGameRecord(
        title="Settlers of Catan",
        description="Trade and build.",
        min_players=2,
        max_players=4,
        mechanics=["Trading"],
        publisher="KOSMOS",
        source="catalog",
    )

    primary.merge_missing(fallback)

    assert primary.title == "Catan"
    assert primary.min_players == 3
    assert primary.description == "Trade and build."
    assert primary.max_players == 4
    assert primary.mechanics == ["Trading"]
    assert primary.publisher == "KOSMOS"
    assert primary.source == "bgg_page_proxy"


def test_merge_missing_copies_lists():
    primary = RawGameRecord(title="Catan")
    fallback = RawGameRecord(mechanics=["Trading"])
    primary.merge_missing(fallback)
    primary.mechanics.append("Dice Rolling")
    assert fallback.mechanics == ["Trading"]


def test_merge_missing_ors_expansion_flag():
    primary = RawGameRecord(title="Seafarers", is_expansion=False)
    primary.merge_missing(RawGameRecord(is_expansion=True))
    assert primary.is_expansion is True


def test_error_types():
    err = GameImportError("nope")
    assert err.status_code == 400
    assert str(err) == "nope"

    source_err = SourceUnavailable("page_scrape", "no LLM provider configured")
    assert isinstance(source_err, SourceError)
    assert source_err.source == "page_scrape"
    assert "no LLM provider" in str(source_err)
