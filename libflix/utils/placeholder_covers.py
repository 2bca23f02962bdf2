"""Utilities for generating placeholder cover images when resolution fails.

The image is deterministic for a given title/author so a grid of failed covers
stays visually stable between renders.
"""

from __future__ import annotations

import zlib
from io import BytesIO
from pathlib import Path
from typing import List

from PIL import Image, ImageDraw, ImageFont

PALETTE = [
    (30, 64, 175),
    (124, 45, 18),
    (22, 101, 52),
    (161, 98, 7),
    (190, 24, 93),
    (124, 58, 237),
    (15, 118, 110),
    (220, 38, 38),
]


def _load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    candidates = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    ]
    for p in candidates:
        fp = Path(p)
        if fp.exists():
            try:
                return ImageFont.truetype(str(fp), size=size)
            except OSError:
                continue
    return ImageFont.load_default()


def placeholder_color(title: str) -> tuple[int, int, int]:
    # crc32 is stable across processes, unlike hash().
    return PALETTE[zlib.crc32((title or '').encode('utf-8')) % len(PALETTE)]


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> List[str]:
    lines: List[str] = []
    current: List[str] = []
    for word in text.split():
        test = " ".join(current + [word])
        tw = draw.textbbox((0, 0), test, font=font)[2]
        if tw > max_width and current:
            lines.append(" ".join(current))
            current = [word]
        else:
            current.append(word)
    if current:
        lines.append(" ".join(current))
    return lines


def render_placeholder(title: str, author: str = "", width: int = 400, height: int = 600) -> bytes:
    """Render a PNG placeholder with the wrapped title and the author line."""
    title = (title or "Untitled").strip() or "Untitled"
    author = (author or "").strip()
    img = Image.new("RGB", (width, height), placeholder_color(title))
    draw = ImageDraw.Draw(img)
    draw.rectangle([0, 0, width - 1, height - 1], outline=(255, 255, 255), width=2)

    max_width = int(width * 0.8)
    font_size = max(16, width // 10)
    font = _load_font(font_size)
    lines = _wrap(draw, title, font, max_width)
    # Shrink until the title fits in the upper two thirds.
    while len(lines) > 6 and font_size > 16:
        font_size -= 4
        font = _load_font(font_size)
        lines = _wrap(draw, title, font, max_width)

    y = height * 0.2
    for ln in lines:
        bbox = draw.textbbox((0, 0), ln, font=font)
        draw.text(((width - (bbox[2] - bbox[0])) / 2, y), ln, font=font, fill=(255, 255, 255))
        y += (bbox[3] - bbox[1]) + 10

    if author:
        author_font = _load_font(max(12, font_size // 2))
        bbox = draw.textbbox((0, 0), author, font=author_font)
        draw.text(((width - (bbox[2] - bbox[0])) / 2, height * 0.85), author,
                  font=author_font, fill=(230, 230, 230))

    buf = BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()
