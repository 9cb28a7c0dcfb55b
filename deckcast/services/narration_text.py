from __future__ import annotations

import re

from ..models import Slide

_DOUBLE_TERMINATOR = re.compile(r"\.\.")


def build_narration_text(slide: Slide) -> str:
    """Flatten a slide into the text spoken for it.

    Title, subtitle and every non-blank bullet are joined as sentences. Doubled
    full stops created by the join are collapsed so a bullet that already ends
    with "." is not read with a long pause. The result only depends on slide
    content, which keeps narration cache keys stable.
    """
    parts: list[str] = []
    if slide.title and slide.title.strip():
        parts.append(slide.title)
    if slide.subtitle and slide.subtitle.strip():
        parts.append(slide.subtitle)
    parts.extend(bullet for bullet in slide.bullets if bullet.strip())
    return _DOUBLE_TERMINATOR.sub(".", ". ".join(parts)).strip()


__all__ = ["build_narration_text"]
