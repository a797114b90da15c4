import os
import re
import sys
from io import BytesIO
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

PROJECT_ROOT = Path(__file__).resolve().parent
LOGOS_ROOT = PROJECT_ROOT / "static" / "logos"

MIN_SIDE = 16
MAX_SIDE = 1024
LOGO_SIDE = 240

BACKGROUND = (229, 231, 235)
FOREGROUND = (75, 85, 99)

# Accent tag fragments -> card background
ACCENT_COLORS = {
    "cyan": (8, 145, 178),
    "violet": (124, 58, 237),
    "purple": (147, 51, 234),
    "blue": (37, 99, 235),
    "green": (22, 163, 74),
    "red": (220, 38, 38),
    "orange": (234, 88, 12),
    "yellow": (202, 138, 4),
    "pink": (219, 39, 119),
    "gray": (75, 85, 99),
}


def clamp_side(value, default: int) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError):
        return default
    return max(MIN_SIDE, min(MAX_SIDE, v))


def get_font(size: int):
    candidates = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
        "/Library/Fonts/Arial.ttf",
        r"C:\Windows\Fonts\segoeui.ttf",
        r"C:\Windows\Fonts\arial.ttf",
    ]
    for c in candidates:
        if os.path.exists(c):
            try:
                return ImageFont.truetype(c, size)
            except OSError:
                pass
    return ImageFont.load_default()


def draw_centered(img: Image.Image, text: str, fill, font) -> None:
    d = ImageDraw.Draw(img)
    left, top, right, bottom = d.textbbox((0, 0), text, font=font)
    w, h = right - left, bottom - top
    x = (img.width - w) // 2 - left
    y = (img.height - h) // 2 - top
    d.text((x, y), text, font=font, fill=fill)


def render_placeholder(width: int = 80, height: int = 80, text: str = "") -> bytes:
    """PNG bytes for a flat placeholder with centred text."""
    width = clamp_side(width, 80)
    height = clamp_side(height, 80)
    text = (text or "").strip() or f"{width}x{height}"
    if len(text) > 24:
        text = text[:23] + "…"

    img = Image.new("RGB", (width, height), BACKGROUND)
    size = max(8, min(height // 3, int(width / max(len(text), 1) * 1.6)))
    draw_centered(img, text, FOREGROUND, get_font(size))

    buf = BytesIO()
    img.save(buf, "PNG", optimize=True)
    return buf.getvalue()


def initials(name: str) -> str:
    words = re.findall(r"[^\W_]+", name or "", flags=re.UNICODE)
    if not words:
        return "?"
    if len(words) == 1:
        return words[0][:2].upper()
    return (words[0][0] + words[1][0]).upper()


def accent_rgb(accent_class: str):
    for key, rgb in ACCENT_COLORS.items():
        if key in (accent_class or ""):
            return rgb
    return ACCENT_COLORS["gray"]


def render_logo_card(product_name: str, accent_class: str = "", side: int = LOGO_SIDE) -> Image.Image:
    img = Image.new("RGB", (side, side), accent_rgb(accent_class))
    draw_centered(img, initials(product_name), (255, 255, 255), get_font(side // 3))
    return img


def main():
    # Imported here so the renderer itself has no dependency on the data layer.
    from models import parse_document
    from store import DocumentStore

    data_dir = os.getenv("DATA_DIR", str(PROJECT_ROOT / "data"))
    store = DocumentStore(data_dir)
    products = parse_document("products.json", store.load("products.json"))
    if not products:
        print("No products found.")
        return

    LOGOS_ROOT.mkdir(parents=True, exist_ok=True)
    for p in products:
        if not p.slug:
            continue
        out_png = LOGOS_ROOT / f"{p.slug}.png"
        if out_png.exists():
            continue
        try:
            render_logo_card(p.name, p.accentColorClass).save(out_png, "PNG", optimize=True)
            print(f"  LOGO: {p.name} -> {out_png.name}")
        except OSError as e:
            print(f"  ERROR: {p.slug} ({e})", file=sys.stderr)

    print("DONE")


if __name__ == "__main__":
    main()
