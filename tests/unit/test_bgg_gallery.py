"""Tests for the geekdo gallery supplement."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from taverns.services.catalog.bgg_gallery import (
    PRIORITY_BOX_ART,
    PRIORITY_COMPONENT,
    PRIORITY_CUSTOM,
    PRIORITY_GAMEPLAY,
    PRIORITY_MISC,
    PRIORITY_OTHER,
    fetch_gallery_images,
    gallery_priority,
    rank_gallery_images,
)

CDN = "https://cf.geekdo-images.com"


def _img(name: str, href: str = "/image/1", caption: str = "") -> dict:
    return {"imageurl_lg": f"{CDN}/{name}/img/pic.jpg", "imagepagehref": href, "caption": caption}


def test_gallery_priority_buckets():
    assert gallery_priority("/image/1/play", "") == PRIORITY_GAMEPLAY
    assert gallery_priority("/image/1", "Mid-game gameplay") == PRIORITY_GAMEPLAY
    assert gallery_priority("/image/1/component", "") == PRIORITY_COMPONENT
    assert gallery_priority("/image/1", "Setup for 4") == PRIORITY_COMPONENT
    assert gallery_priority("/image/1", "Painted minis") == PRIORITY_CUSTOM
    assert gallery_priority("/image/1/miscellaneous", "") == PRIORITY_MISC
    assert gallery_priority("/image/1/boxfront", "") == PRIORITY_BOX_ART
    assert gallery_priority("/image/1", "") == PRIORITY_OTHER


def test_rank_orders_by_bucket_and_keeps_page_order():
    payload = {
        "images": [
            _img("box", "/image/1/boxfront"),
            _img("other1"),
            _img("play1", caption="gameplay"),
            _img("comp1", "/image/2/component"),
            _img("play2", "/image/3/play"),
            _img("other2"),
            _img("misc1", "/image/4/miscellaneous"),
        ]
    }
    ranked = rank_gallery_images(payload)

    names = [url.split("/")[3] for url in ranked]
    assert names == ["play1", "play2", "comp1", "misc1", "other1"]


def test_rank_drops_low_quality_main_image_and_foreign_hosts():
    main = f"{CDN}/main/img/pic.jpg"
    payload = {
        "images": [
            {"imageurl_lg": main},
            _img("x__square"),
            _img("x__geeklistimagebar"),
            {"imageurl_lg": "https://example.com/pic.jpg"},
            _img("keep"),
            _img("keep"),
            "not-a-dict",
        ]
    }
    assert rank_gallery_images(payload, main_image=main) == [f"{CDN}/keep/img/pic.jpg"]


def test_rank_caps_at_five():
    payload = {"images": [_img(f"p{i}", caption="play") for i in range(9)]}
    assert len(rank_gallery_images(payload)) == 5


@pytest.mark.anyio
async def test_fetch_gallery_images_success():
    payload = {"images": [_img("play1", caption="gameplay")]}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["objectid"] == "13"
        return httpx.Response(200, json=payload)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        images = await fetch_gallery_images(client, "13", SimpleNamespace(http_timeout_seconds=5.0))

    assert images == [f"{CDN}/play1/img/pic.jpg"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "response",
    [httpx.Response(500), httpx.Response(200, text="<html>not json</html>"), httpx.Response(200, json=[1, 2])],
)
async def test_fetch_gallery_images_is_best_effort(response):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: response)) as client:
        assert await fetch_gallery_images(client, "13", SimpleNamespace(http_timeout_seconds=5.0)) == []
