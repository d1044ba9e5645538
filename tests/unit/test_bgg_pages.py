"""Tests for BGG game page parsing (Open Graph) and fetch paths."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from taverns.services.catalog.bgg_pages import (
    clean_page_title,
    extract_og,
    fetch_page_direct,
    fetch_page_via_proxy,
    has_expansion_marker,
    parse_game_page,
)
from taverns.services.catalog.records import SourceError

BOX_ART = "https://cf.geekdo-images.com/abc__itemrep/img/x.jpg/pic123.jpg"
SOCIAL = "https://cf.geekdo-images.com/abc__opengraph/img/y.jpg/pic123.jpg"

GAME_PAGE = f"""<html><head>
<meta property="og:title" content="Wingspan | Board Game | BoardGameGeek">
<meta content="Attract birds to your wildlife preserve &amp; more." property="og:description">
<meta property="og:image" content="{BOX_ART}">
<meta property="og:type" content="website">
</head><body>This game has an expansion called European Expansion.</body></html>"""

EXPANSION_PAGE = f"""<html><head>
<meta property="og:title" content="Wingspan: European Expansion | Board Game Expansion | BoardGameGeek">
<meta property="og:image" content="{SOCIAL}">
<script>var GEEK = {{"item":{{"subtype":"boardgameexpansion"}}}};</script>
</head><body><img src="{BOX_ART}"></body></html>"""


def _settings():
    return SimpleNamespace(
        bgg_api_token="",
        bgg_session_cookie="",
        has_bgg_cookie=False,
        jina_api_key="",
        http_timeout_seconds=5.0,
    )


def test_extract_og_handles_both_attribute_orders():
    assert extract_og(GAME_PAGE, "og:title") == "Wingspan | Board Game | BoardGameGeek"
    assert extract_og(GAME_PAGE, "og:description") == "Attract birds to your wildlife preserve & more."
    assert extract_og("<html></html>", "og:title") is None


def test_clean_page_title_strips_site_suffix():
    assert clean_page_title("Wingspan | Board Game | BoardGameGeek") == "Wingspan"
    assert clean_page_title("Seafarers | Board Game Expansion | BoardGameGeek") == "Seafarers"
    assert clean_page_title("Plain Title") == "Plain Title"
    assert clean_page_title(None) is None


def test_expansion_marker_requires_page_type_not_body_text():
    assert not has_expansion_marker(GAME_PAGE)
    assert has_expansion_marker(EXPANSION_PAGE)
    assert has_expansion_marker('<meta property="og:type" content="boardgameexpansion">')
    assert has_expansion_marker('<meta content="boardgameexpansion" property="og:type">')


def test_parse_game_page_base_game():
    record = parse_game_page(GAME_PAGE, "266192", source="bgg_page_proxy")

    assert record.title == "Wingspan"
    assert record.image_url == BOX_ART
    assert record.description.startswith("Attract birds")
    assert record.is_expansion is False
    assert record.bgg_url == "https://boardgamegeek.com/boardgame/266192"
    assert record.source == "bgg_page_proxy"


def test_parse_game_page_replaces_social_card_image():
    record = parse_game_page(EXPANSION_PAGE, "290837", source="bgg_page_direct")

    assert record.title == "Wingspan: European Expansion"
    assert record.is_expansion is True
    assert record.image_url == BOX_ART


def test_parse_game_page_without_title_raises():
    with pytest.raises(SourceError):
        parse_game_page("<html><body>Access denied</body></html>", "1", source="bgg_page_direct")


@pytest.mark.anyio
async def test_fetch_page_via_proxy_uses_reader_url():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=GAME_PAGE)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        record = await fetch_page_via_proxy(client, "266192", _settings())

    assert record.title == "Wingspan"
    assert str(seen[0].url) == "https://r.jina.ai/https://boardgamegeek.com/boardgame/266192"
    assert seen[0].headers["X-Return-Format"] == "html"


@pytest.mark.anyio
async def test_fetch_page_direct_follows_redirects():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/boardgame/266192":
            return httpx.Response(301, headers={"Location": "https://boardgamegeek.com/boardgame/266192/wingspan"})
        return httpx.Response(200, text=GAME_PAGE)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        record = await fetch_page_direct(client, "266192", _settings())

    assert record.title == "Wingspan"
    assert record.source == "bgg_page_direct"


@pytest.mark.anyio
async def test_fetch_page_direct_http_error_is_source_error():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(403))) as client:
        with pytest.raises(SourceError):
            await fetch_page_direct(client, "266192", _settings())
