"""
Stopwatch tray icon with a badge count, plus the pastel background colours.
Run standalone to write icon.ico / icon.png for packaging.
"""
from __future__ import annotations
import math
import random
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

# Windows 3.1 16-color palette
BLACK = (0, 0, 0, 255)
WHITE = (255, 255, 255, 255)
TEAL = (0, 128, 128, 255)
DARK_TEAL = (0, 80, 80, 255)
LIGHT_CYAN = (128, 192, 192, 255)
GRAY = (128, 128, 128, 255)
DARK_GRAY = (64, 64, 64, 255)
BADGE_RED = (220, 38, 38, 255)

DIMMED = {TEAL: (100, 110, 110, 255), DARK_TEAL: (70, 80, 80, 255),
          LIGHT_CYAN: (140, 150, 150, 255)}


def random_color() -> tuple[int, int, int]:
    return random.randrange(255), random.randrange(255), random.randrange(255)


def pastel_color(mix: Optional[tuple[int, int, int]] = None) -> tuple[int, int, int]:
    """Random colour, averaged with mix when given."""
    r, g, b = random.randrange(256), random.randrange(256), random.randrange(256)
    if mix:
        r, g, b = (r + mix[0]) // 2, (g + mix[1]) // 2, (b + mix[2]) // 2
    return r, g, b


def nice_random_color() -> str:
    """Tk colour string for a random colour softened by mixing with another."""
    r, g, b = pastel_color(random_color())
    return f"#{r:02x}{g:02x}{b:02x}"


def _bevel(draw, cx, cy, r, start, end, fill, thickness=1):
    for a_deg in range(start, end):
        a = math.radians(a_deg)
        for offset in range(thickness):
            br = r - offset
            draw.point((int(cx + br * math.cos(a)), int(cy + br * math.sin(a))), fill=fill)


def create_stopwatch(size: int = 64, fraction: float = 1 / 6, dimmed: bool = False) -> Image.Image:
    """Win 3.1 style stopwatch; the hand sits at fraction of a full turn."""
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    teal, dark_teal, light_cyan = TEAL, DARK_TEAL, LIGHT_CYAN
    if dimmed:
        teal, dark_teal, light_cyan = DIMMED[TEAL], DIMMED[DARK_TEAL], DIMMED[LIGHT_CYAN]

    s = size / 64  # designed at 64px
    w = max(1, int(s))
    cx, cy = int(32 * s), int(36 * s)
    r_outer = int(23 * s)
    r_inner = r_outer - max(4, int(5 * s))

    # Crown button
    bw, top, bottom = max(3, int(4 * s)), int(14 * s), int(20 * s)
    draw.rectangle([cx - bw + w, top + w, cx + bw + w, bottom + w], fill=DARK_GRAY)
    draw.rectangle([cx - bw, top, cx + bw, bottom], fill=teal, outline=BLACK, width=w)
    draw.line([(cx - bw + w, top + w), (cx + bw - w, top + w)], fill=light_cyan, width=w)

    # Outer ring + teal rim
    draw.ellipse([cx - r_outer, cy - r_outer, cx + r_outer, cy + r_outer], fill=BLACK)
    r_rim = r_outer - w
    draw.ellipse([cx - r_rim, cy - r_rim, cx + r_rim, cy + r_rim], fill=teal)
    _bevel(draw, cx, cy, r_rim - 1, 200, 345, light_cyan, max(1, int(2 * s)))
    _bevel(draw, cx, cy, r_rim - 1, 20, 165, dark_teal, max(1, int(2 * s)))

    # Inner face
    draw.ellipse([cx - r_inner - w, cy - r_inner - w, cx + r_inner + w, cy + r_inner + w], fill=BLACK)
    draw.ellipse([cx - r_inner, cy - r_inner, cx + r_inner, cy + r_inner], fill=WHITE)

    # Tick marks at 12, 3, 6, 9
    ti, to = r_inner - max(7, int(7 * s)), r_inner - max(2, int(2 * s))
    for deg in (0, 90, 180, 270):
        a = math.radians(deg - 90)
        draw.line([(int(cx + ti * math.cos(a)), int(cy + ti * math.sin(a))),
                   (int(cx + to * math.cos(a)), int(cy + to * math.sin(a)))],
                  fill=BLACK, width=max(2, int(2 * s)))

    # Hand
    ha = math.radians(fraction * 360 - 90)
    hl = r_inner - max(6, int(8 * s))
    hx, hy = int(cx + hl * math.cos(ha)), int(cy + hl * math.sin(ha))
    hw = max(2, int(2 * s))
    draw.line([(cx + w, cy + w), (hx + w, hy + w)], fill=GRAY, width=hw)
    draw.line([(cx, cy), (hx, hy)], fill=BLACK, width=hw)

    # Center hub
    d = max(2, int(3 * s))
    draw.ellipse([cx - d, cy - d, cx + d, cy + d], fill=teal, outline=BLACK)
    return img


def draw_badge(img: Image.Image, count: int) -> Image.Image:
    """Red badge with count in the top-right corner (nothing drawn for 0)."""
    if count <= 0:
        return img
    size = img.width
    r = size // 5
    cx, cy = size - r - 1, r + 1
    draw = ImageDraw.Draw(img)
    draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=BADGE_RED, outline=WHITE)
    text = str(count) if count < 100 else "99"
    font = ImageFont.load_default()
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    draw.text((cx - (right - left) / 2 - left, cy - (bottom - top) / 2 - top),
              text, fill=WHITE, font=font)
    return img


def render_tray_icon(badge: int = 0, total: int = 60, dimmed: bool = False,
                     size: int = 64) -> Image.Image:
    """Tray image: hand shows progress through the run, badge shows units left."""
    done = (total - badge) / total if total and badge else 0.0
    return draw_badge(create_stopwatch(size, fraction=done, dimmed=dimmed), badge)


def generate_icon() -> None:
    """Write icon.ico and icon.png."""
    sizes = [16, 32, 48, 64, 128, 256]
    images = [create_stopwatch(s) for s in sizes]
    # ICO: save largest first, append smaller (PIL requires this order)
    images[-1].save("icon.ico", format="ICO", append_images=images[:-1])
    images[-1].save("icon.png", format="PNG")


if __name__ == "__main__":
    generate_icon()
    print("Generated icon.ico and icon.png")
