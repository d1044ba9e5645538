"""Tests for CDN image heuristics."""

from __future__ import annotations

from taverns.services.catalog.images import (
    candidate_priority,
    filter_gameplay_images,
    is_social_card,
    rank_image_candidates,
    sanitize_image_url,
)

CDN = "https://cf.geekdo-images.com"


def test_is_social_card():
    assert is_social_card(None)
    assert is_social_card(f"{CDN}/a__opengraph/img/b.jpg")
    assert is_social_card(f"{CDN}/a/fit-in/1200x630/filters:strip_icc()/pic1.jpg")
    assert not is_social_card(f"{CDN}/a__itemrep/img/b.jpg")


def test_candidate_priority_order():
    assert candidate_priority(f"{CDN}/a__itemrep/img/pic1.jpg") == 0
    assert candidate_priority(f"{CDN}/a__imagepage/img/pic1.jpg") == 1
    assert candidate_priority(f"{CDN}/a__original/img/x.jpg") == 2
    assert candidate_priority(f"{CDN}/a/img/pic99.jpg") == 3
    assert candidate_priority(f"{CDN}/a/img/x.jpg") == 4


def test_rank_image_candidates_dedupes_unescapes_and_sorts():
    raw = (
        f'<img src="{CDN}/a/img/x.jpg">'
        f'<img src="{CDN}/b__imagepage/img/y.jpg">'
        f'"{CDN}\\/c__itemrep\\/img\\/z.jpg"'
        f'<img src="{CDN}/a/img/x.jpg">'
        f'<img src="{CDN}/d_avatar/img/w.jpg">'
        f'<img src="{CDN}/e__original/img/v.jpg">'
        f'<img src="{CDN}/f/img/u.jpg">'
    )
    assert rank_image_candidates(raw) == [
        f"{CDN}/c__itemrep/img/z.jpg",
        f"{CDN}/b__imagepage/img/y.jpg",
        f"{CDN}/e__original/img/v.jpg",
        f"{CDN}/a/img/x.jpg",
        f"{CDN}/f/img/u.jpg",
    ]
    assert rank_image_candidates(None) == []


def test_sanitize_encodes_parentheses_in_path_only():
    url = f"{CDN}/a/fit-in/900x600/filters:no_upscale():strip_icc()/pic1.jpg"
    assert sanitize_image_url(url) == f"{CDN}/a/fit-in/900x600/filters:no_upscale%28%29:strip_icc%28%29/pic1.jpg"


def test_filter_gameplay_images():
    main = f"{CDN}/main__imagepage/img/m.jpg"
    images = [
        main,
        f"{CDN}/a__itemrep/img/box.jpg",
        f"{CDN}/b/img/300x300/thumb.jpg",
        f"{CDN}/c/img/play1.jpg",
        f"{CDN}/c/img/play1.jpg",
        "",
        None,
        f"{CDN}/d/img/play2.jpg",
    ]
    assert filter_gameplay_images(images, main_image=main) == [
        f"{CDN}/c/img/play1.jpg",
        f"{CDN}/d/img/play2.jpg",
    ]
    with_box = filter_gameplay_images(images, main_image=main, allow_box_art=True)
    assert with_box[0] == f"{CDN}/a__itemrep/img/box.jpg"


def test_filter_gameplay_images_respects_limit():
    images = [f"{CDN}/p{i}/img/x.jpg" for i in range(10)]
    assert len(filter_gameplay_images(images, limit=3)) == 3
    assert filter_gameplay_images(None) == []
