from __future__ import annotations

import io
import logging
import math
from pathlib import Path
from typing import Callable

import numpy as np
import requests
from PIL import Image, ImageDraw, ImageFont
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..models import Slide

LOGGER = logging.getLogger(__name__)

DEFAULT_SIZE = (1920, 1080)
REFERENCE_WIDTH = 1920
PADDING_PX = 80
DEFAULT_GRADIENT_ANGLE = 135
IMAGE_PANEL_RATIO = 0.45

THEME_BACKGROUNDS = {
    "academic": ("#0f172a", "#1e293b", (30, 58, 138, 26)),
    "pitch_deck": ("#0f172a", "#1e293b", (16, 185, 129, 26)),
    "creative": ("#ea580c", "#db2777", (249, 115, 22, 26)),
    "professional": ("#1e293b", "#312e81", (99, 102, 241, 26)),
}
DEFAULT_THEME_BACKGROUND = ("#1e293b", "#0f172a", None)

THEME_ACCENTS = {
    "pitch_deck": "#10b981",
    "creative": "#f97316",
    "professional": "#6366f1",
    "academic": "#06b6d4",
}
DEFAULT_ACCENT = "#64748b"

TITLE_COLOR = "#ffffff"
SUBTITLE_COLOR = "#94a3b8"
BULLET_COLOR = "#e2e8f0"
PLACEHOLDER_COLOR = "#334155"
TITLE_SIZE = 72
SUBTITLE_SIZE = 44
BULLET_SIZE = 36

FONT_CANDIDATES = {
    True: [
        "DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "Arial Bold.ttf",
    ],
    False: [
        "DejaVuSans.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "Arial.ttf",
    ],
}


@retry(
    reraise=True,
    retry=retry_if_exception_type(requests.RequestException),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
)
def download_image(url: str) -> bytes:
    response = requests.get(url, timeout=15)
    response.raise_for_status()
    return response.content


def parse_color(value: str | None, fallback: tuple[int, int, int]) -> tuple[int, int, int]:
    if not isinstance(value, str):
        return fallback
    candidate = value.strip().lstrip("#")
    if len(candidate) == 3:
        candidate = "".join(ch * 2 for ch in candidate)
    if len(candidate) != 6:
        return fallback
    try:
        r = int(candidate[0:2], 16)
        g = int(candidate[2:4], 16)
        b = int(candidate[4:6], 16)
    except ValueError:
        return fallback
    return (r, g, b)


def parse_gradient(value: str) -> tuple[str, str, float] | None:
    """Parse ``gradient:<c1>,<c2>[,<angle>]`` or ``gradient:<c1>,<c2>,<x>,<y>``."""
    if not value.startswith("gradient:"):
        return None
    parts = value[len("gradient:") :].split(",")
    if len(parts) < 2:
        return None
    color1 = parts[0].strip() or "#000000"
    color2 = parts[1].strip() or "#ffffff"
    angle = float(DEFAULT_GRADIENT_ANGLE)
    try:
        if len(parts) >= 4:
            x = int(parts[2] or "0")
            y = int(parts[3] or "0")
            angle = float((round(math.degrees(math.atan2(-y, x))) + 360) % 360)
        elif len(parts) == 3:
            angle = float(int(parts[2] or DEFAULT_GRADIENT_ANGLE))
    except ValueError:
        angle = float(DEFAULT_GRADIENT_ANGLE)
    return color1, color2, angle


class SlidePainter:
    """Draws one slide onto a fresh RGB canvas."""

    def __init__(
        self,
        size: tuple[int, int] = DEFAULT_SIZE,
        theme: str = "professional",
        image_fetcher: Callable[[str], bytes] | None = None,
    ) -> None:
        self.size = size
        self.theme = (theme or "").strip().lower()
        self.image_fetcher = image_fetcher or download_image
        self.scale = size[0] / REFERENCE_WIDTH
        self._images: dict[str, Image.Image | None] = {}

    def paint(self, slide: Slide) -> Image.Image:
        canvas = self._paint_background(slide).convert("RGBA")
        draw = ImageDraw.Draw(canvas)
        image = None
        if slide.image_url:
            image = self._load_image(slide.image_url) or Image.new("RGB", (16, 9), PLACEHOLDER_COLOR)
        if slide.is_centered and image is None:
            self._draw_centered(draw, slide)
        elif image is not None:
            self._draw_with_image(canvas, draw, slide, image)
        else:
            self._draw_content(draw, slide)
        return canvas.convert("RGB")

    # ------------------------------------------------------------------
    # Backgrounds
    # ------------------------------------------------------------------
    def _paint_background(self, slide: Slide) -> Image.Image:
        width, height = self.size
        background = (slide.background or "").strip()
        if background:
            gradient = parse_gradient(background)
            if gradient:
                color1, color2, angle = gradient
                rad = math.radians(angle)
                start = (width / 2 - math.cos(rad) * width, height / 2 + math.sin(rad) * height)
                end = (width / 2 + math.cos(rad) * width, height / 2 - math.sin(rad) * height)
                return self._linear_gradient(parse_color(color1, (0, 0, 0)), parse_color(color2, (255, 255, 255)), start, end)
            return Image.new("RGB", self.size, parse_color(background, (30, 41, 59)))

        color_from, color_to, overlay = THEME_BACKGROUNDS.get(self.theme, DEFAULT_THEME_BACKGROUND)
        base = self._linear_gradient(
            parse_color(color_from, (30, 41, 59)),
            parse_color(color_to, (15, 23, 42)),
            (0.0, 0.0),
            (float(width), float(height)),
        )
        if overlay:
            tint = Image.new("RGBA", self.size, overlay)
            base = Image.alpha_composite(base.convert("RGBA"), tint).convert("RGB")
        return base

    def _linear_gradient(
        self,
        color1: tuple[int, int, int],
        color2: tuple[int, int, int],
        start: tuple[float, float],
        end: tuple[float, float],
    ) -> Image.Image:
        width, height = self.size
        dx, dy = end[0] - start[0], end[1] - start[1]
        length_sq = dx * dx + dy * dy or 1.0
        xs = np.arange(width, dtype=np.float32)[None, :]
        ys = np.arange(height, dtype=np.float32)[:, None]
        t = ((xs - start[0]) * dx + (ys - start[1]) * dy) / length_sq
        t = np.clip(t, 0.0, 1.0)[..., None]
        c1 = np.array(color1, dtype=np.float32)
        c2 = np.array(color2, dtype=np.float32)
        pixels = c1 * (1.0 - t) + c2 * t
        return Image.fromarray(pixels.astype(np.uint8), "RGB")

    # ------------------------------------------------------------------
    # Layouts
    # ------------------------------------------------------------------
    def _draw_centered(self, draw: ImageDraw.ImageDraw, slide: Slide) -> None:
        width, height = self.size
        max_width = width - 2 * self._px(PADDING_PX)
        title_font = self._get_font(self._px(TITLE_SIZE), bold=True)
        self._draw_lines(draw, slide.title, title_font, TITLE_COLOR, (width // 2, height // 2 - self._px(40)), max_width, "ms")
        if slide.subtitle.strip():
            subtitle_font = self._get_font(self._px(SUBTITLE_SIZE))
            self._draw_lines(draw, slide.subtitle, subtitle_font, SUBTITLE_COLOR, (width // 2, height // 2 + self._px(40)), max_width, "ms")
        bar_w, bar_h = self._px(120), max(1, self._px(4))
        top = height // 2 + self._px(80)
        draw.rectangle([(width - bar_w) // 2, top, (width + bar_w) // 2, top + bar_h], fill=self._accent())

    def _draw_with_image(self, canvas: Image.Image, draw: ImageDraw.ImageDraw, slide: Slide, image: Image.Image) -> None:
        width, height = self.size
        pad = self._px(PADDING_PX)
        layout = slide.layout_variant
        if layout in {"image_top", "image_bottom"}:
            panel = (width - 2 * pad, max(1, int((height - 3 * pad) * IMAGE_PANEL_RATIO)))
            panel_top = pad if layout == "image_top" else height - pad - panel[1]
            canvas.paste(self._cover_fit(image, panel), (pad, panel_top))
            text_top = panel_top + panel[1] + pad if layout == "image_top" else pad
            self._draw_text_block(draw, slide, pad, text_top, width - 2 * pad, 0.85)
            return

        panel = (max(1, int((width - 3 * pad) * IMAGE_PANEL_RATIO)), height - 2 * pad)
        if layout == "image_left":
            image_x = pad
            text_x = image_x + panel[0] + pad
            text_width = width - text_x - pad
        else:
            image_x = width - pad - panel[0]
            text_x = pad
            text_width = image_x - 2 * pad
        canvas.paste(self._cover_fit(image, panel), (image_x, pad))
        self._draw_text_block(draw, slide, text_x, pad + self._px(40), text_width, 0.9)

    def _draw_content(self, draw: ImageDraw.ImageDraw, slide: Slide) -> None:
        width, _ = self.size
        pad = self._px(PADDING_PX)
        self._draw_text_block(draw, slide, pad, pad, width - 2 * pad, 1.0)

    def _draw_text_block(
        self,
        draw: ImageDraw.ImageDraw,
        slide: Slide,
        x: int,
        top: int,
        max_width: int,
        scale: float,
    ) -> int:
        """Title, subtitle, accent bar and bullets stacked from ``top``; returns the next free y."""
        max_width = max(1, max_width)
        title_size = max(1, int(self._px(TITLE_SIZE) * scale))
        y = self._draw_lines(draw, slide.title, self._get_font(title_size, bold=True), TITLE_COLOR, (x, top + title_size), max_width, "ls")

        if slide.subtitle.strip():
            subtitle_size = max(1, int(self._px(SUBTITLE_SIZE) * scale))
            y += self._px(16)
            y = self._draw_lines(draw, slide.subtitle, self._get_font(subtitle_size), SUBTITLE_COLOR, (x, y + subtitle_size), max_width, "ls")

        y += self._px(20)
        draw.rectangle([x, y, x + self._px(80), y + max(1, self._px(4))], fill=self._accent())
        y += self._px(40)
        return self._draw_bullets(draw, slide.bullets, x, y, max_width, scale)

    def _draw_bullets(self, draw: ImageDraw.ImageDraw, bullets, x: int, top: int, max_width: int, scale: float) -> int:
        bullet_size = max(1, int(self._px(BULLET_SIZE) * scale))
        bullet_font = self._get_font(bullet_size)
        line_height = bullet_size + self._px(24)
        dot_radius = max(1, self._px(6))
        indent = self._px(40)
        text_width = max(1, max_width - indent)
        y = top + bullet_size
        for bullet in bullets:
            if not bullet.strip():
                continue
            cx, cy = x + self._px(12), y - bullet_size // 3
            draw.ellipse([cx - dot_radius, cy - dot_radius, cx + dot_radius, cy + dot_radius], fill=self._accent())
            for line in self._wrap_text(bullet, bullet_font, text_width):
                draw.text((x + indent, y), line, font=bullet_font, fill=BULLET_COLOR, anchor="ls")
                y += line_height
        return y

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    def _draw_lines(self, draw, text: str, font, fill: str, origin: tuple[int, int], max_width: int, anchor: str) -> int:
        x, y = origin
        line_height = int(getattr(font, "size", TITLE_SIZE) * 1.2)
        last = y
        for line in self._wrap_text(text, font, max_width):
            draw.text((x, y), line, font=font, fill=fill, anchor=anchor)
            last = y
            y += line_height
        return last

    def _wrap_text(self, text: str, font: ImageFont.FreeTypeFont, max_width: int) -> list[str]:
        words = (text or "").split()
        lines: list[str] = []
        current = ""
        for word in words:
            tentative = f"{current} {word}".strip() if current else word
            bbox = font.getbbox(tentative or " ")
            width_line = bbox[2] - bbox[0]
            if not current or width_line <= max_width:
                current = tentative
            else:
                lines.append(current)
                current = word
        if current:
            lines.append(current)
        return lines

    def _load_image(self, url: str) -> Image.Image | None:
        if url in self._images:
            return self._images[url]
        image = None
        try:
            data = self.image_fetcher(url)
            image = Image.open(io.BytesIO(data)).convert("RGB")
        except Exception as exc:
            LOGGER.warning("slide_image_unavailable", extra={"url": url, "error": str(exc)})
        self._images[url] = image
        return image

    def _cover_fit(self, image: Image.Image, box: tuple[int, int]) -> Image.Image:
        target_w, target_h = box
        target_ratio = target_w / target_h
        img_ratio = image.width / image.height
        if img_ratio > target_ratio:
            new_height = target_h
            new_width = max(target_w, int(new_height * img_ratio))
        else:
            new_width = target_w
            new_height = max(target_h, int(new_width / img_ratio))
        resized = image.resize((new_width, new_height), Image.LANCZOS)
        left = (new_width - target_w) // 2
        top = (new_height - target_h) // 2
        return resized.crop((left, top, left + target_w, top + target_h))

    def _accent(self) -> str:
        return THEME_ACCENTS.get(self.theme, DEFAULT_ACCENT)

    def _px(self, value: float) -> int:
        return max(1, int(round(value * self.scale)))

    def _get_font(self, size: int, bold: bool = False) -> ImageFont.FreeTypeFont:
        for candidate in FONT_CANDIDATES[bold]:
            try:
                return ImageFont.truetype(str(Path(candidate)), size)
            except OSError:
                continue
        return ImageFont.load_default(size=size)


__all__ = ["SlidePainter", "download_image", "parse_color", "parse_gradient", "DEFAULT_SIZE"]
