from deckcast.services.narration_text import build_narration_text


def test_joins_title_subtitle_and_bullets(slide_factory):
    slide = slide_factory(title="Solar", subtitle="Basics", bullets=("Cheap", "Clean"))
    assert build_narration_text(slide) == "Solar. Basics. Cheap. Clean"


def test_collapses_double_full_stops(slide_factory):
    slide = slide_factory(title="Intro.", bullets=("First point.", "Second"))
    assert build_narration_text(slide) == "Intro. First point. Second"


def test_skips_blank_parts(slide_factory):
    slide = slide_factory(title="   ", subtitle="  ", bullets=("", "  ", "Only bullet"))
    assert build_narration_text(slide) == "Only bullet"


def test_empty_slide_has_no_narration(slide_factory):
    slide = slide_factory(title="", subtitle="", bullets=())
    assert build_narration_text(slide) == ""


def test_text_depends_only_on_content(slide_factory):
    first = slide_factory(1, title="Same", bullets=("words",))
    second = slide_factory(7, title="Same", bullets=("words",), background="#000000")
    assert build_narration_text(first) == build_narration_text(second)
