from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from deckcast.models import SlideRole
from deckcast.services.realtime_renderer import RealtimeRenderer
from deckcast.services.slide_painter import PADDING_PX, SlidePainter, parse_color, parse_gradient
from deckcast.services.timeline import compose_timeline

SIZE = (192, 108)


def make_img_bytes(color=(255, 0, 0)) -> bytes:
    img = Image.new("RGB", (80, 120), color)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def test_parse_color_variants():
    assert parse_color("#ff0000", (0, 0, 0)) == (255, 0, 0)
    assert parse_color("0f0", (0, 0, 0)) == (0, 255, 0)
    assert parse_color("nonsense", (1, 2, 3)) == (1, 2, 3)
    assert parse_color(None, (1, 2, 3)) == (1, 2, 3)


def test_parse_gradient_variants():
    assert parse_gradient("gradient:#000000,#ffffff") == ("#000000", "#ffffff", 135.0)
    assert parse_gradient("gradient:#000000,#ffffff,90") == ("#000000", "#ffffff", 90.0)
    assert parse_gradient("gradient:#000000,#ffffff,1,0") == ("#000000", "#ffffff", 0.0)
    assert parse_gradient("#123456") is None


def test_solid_background_fills_canvas(slide_factory):
    painter = SlidePainter(SIZE)
    image = painter.paint(slide_factory(title="", background="#102030"))
    assert image.size == SIZE
    assert image.getpixel((2, SIZE[1] - 2)) == (16, 32, 48)


def test_theme_gradient_runs_corner_to_corner(slide_factory):
    painter = SlidePainter(SIZE, theme="creative")
    image = painter.paint(slide_factory(title=""))
    top_left = np.array(image.getpixel((0, 0)))
    bottom_right = np.array(image.getpixel((SIZE[0] - 1, SIZE[1] - 1)))
    assert not np.array_equal(top_left, bottom_right)


def test_painting_is_deterministic(slide_factory):
    painter = SlidePainter(SIZE)
    slide = slide_factory(title="Repeatable", bullets=("one", "two"))
    assert np.array_equal(np.asarray(painter.paint(slide)), np.asarray(painter.paint(slide)))


def test_cover_slide_draws_text(slide_factory):
    painter = SlidePainter(SIZE)
    blank = np.asarray(painter.paint(slide_factory(role=SlideRole.COVER, title="", background="#000000")))
    titled = np.asarray(
        painter.paint(slide_factory(role=SlideRole.COVER, title="Hello", subtitle="World", background="#000000"))
    )
    assert (titled != blank).any()


def test_image_fetched_once_per_url(slide_factory):
    calls = []

    def fetcher(url):
        calls.append(url)
        return make_img_bytes()

    painter = SlidePainter(SIZE, image_fetcher=fetcher)
    slide = slide_factory(title="Pic", image_url="https://example.com/a.png", layout_variant="image_left")
    painter.paint(slide)
    painter.paint(slide)
    assert calls == ["https://example.com/a.png"]


@pytest.mark.parametrize("layout", ["text_left", "image_left", "image_top", "image_bottom"])
def test_image_layouts_place_the_picture(slide_factory, layout):
    painter = SlidePainter(SIZE, image_fetcher=lambda _url: make_img_bytes((255, 0, 0)))
    image = np.asarray(
        painter.paint(slide_factory(title="", image_url="https://example.com/r.png", layout_variant=layout))
    )
    red = (image[..., 0] > 200) & (image[..., 1] < 50) & (image[..., 2] < 50)
    assert red.any()


def test_failed_image_draws_neutral_panel(slide_factory):
    def broken(_url):
        raise OSError("offline")

    painter = SlidePainter(SIZE, image_fetcher=broken)
    image = painter.paint(slide_factory(title="", background="#000000", image_url="https://example.com/x.png"))
    assert (np.asarray(image) == (51, 65, 85)).all(axis=-1).any()


def test_renderer_paints_slide_for_elapsed_time(slide_factory):
    slides = [slide_factory(1, title="", background="#ff0000"), slide_factory(2, title="", background="#0000ff")]
    timeline = compose_timeline(slides, [1000.0, 1000.0])
    renderer = RealtimeRenderer(timeline, slides, SlidePainter(SIZE))

    assert tuple(renderer.frame_at(0)[5, 5]) == (255, 0, 0)
    # Transition gap keeps the first slide on screen.
    assert tuple(renderer.frame_at(2500)[5, 5]) == (255, 0, 0)
    assert tuple(renderer.frame_at(3000)[5, 5]) == (0, 0, 255)
    assert renderer.frame_at(0).shape == (SIZE[1], SIZE[0], 3)


def test_renderer_requires_matching_slides(slide_factory):
    timeline = compose_timeline([slide_factory(1)], [1.0])
    with pytest.raises(ValueError):
        RealtimeRenderer(timeline, [], SlidePainter(SIZE))


@pytest.mark.parametrize("layout", ["text_left", "image_left", "image_top", "image_bottom"])
def test_image_layouts_draw_bullets(slide_factory, layout):
    painter = SlidePainter((960, 540), image_fetcher=lambda _url: make_img_bytes((255, 0, 0)))
    base = {
        "title": "Heading",
        "background": "#000000",
        "image_url": "https://example.com/r.png",
        "layout_variant": layout,
    }
    without = np.asarray(painter.paint(slide_factory(bullets=(), **base)))
    with_bullets = np.asarray(painter.paint(slide_factory(bullets=("Alpha beta gamma", "Delta"), **base)))
    assert (with_bullets != without).any()


def test_content_bullets_are_drawn(slide_factory):
    painter = SlidePainter((960, 540))
    without = np.asarray(painter.paint(slide_factory(title="Heading", background="#000000")))
    with_bullets = np.asarray(
        painter.paint(slide_factory(title="Heading", background="#000000", bullets=("Alpha beta gamma",)))
    )
    assert (with_bullets != without).any()


@pytest.mark.parametrize("layout", [None, "image_top"])
def test_long_titles_wrap_inside_the_margin(slide_factory, layout):
    size = (960, 540)
    painter = SlidePainter(size, image_fetcher=lambda _url: make_img_bytes((0, 0, 0)))
    overrides = {"image_url": "https://example.com/k.png", "layout_variant": layout} if layout else {}
    title = " ".join(["Renewable"] * 20)
    image = np.asarray(painter.paint(slide_factory(title=title, background="#000000", **overrides)))
    margin = painter._px(PADDING_PX) // 2
    assert (image[:, size[0] - margin :] == 0).all()
