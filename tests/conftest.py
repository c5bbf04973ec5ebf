# tests/conftest.py
import sys
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image, ImageFont

# Project modules live at the repository root
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from font_provider import FontAsset  # noqa: E402
from http_fetcher import FetchFailure  # noqa: E402

CSS_URL = "https://fonts.example.test/css2"
REGULAR_URL = "https://fonts.example.test/files/family-regular.ttf"
BOLD_URL = "https://fonts.example.test/files/family-bold.ttf"
ICON_URL = "https://cdn.example.test/icon.png"

SYSTEM_FONTS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/Library/Fonts/Arial.ttf",
    "C:/Windows/Fonts/arial.ttf",
]


def stylesheet(*urls):
    """Google Fonts style CSS with one @font-face per url."""
    blocks = []
    for weight, url in zip((400, 700, 900), urls):
        blocks.append(
            "@font-face {\n"
            "  font-family: 'Family';\n"
            "  font-style: normal;\n"
            f"  font-weight: {weight};\n"
            "  font-display: swap;\n"
            f"  src: url({url}) format('truetype');\n"
            "}\n"
        )
    return "".join(blocks)


def png_bytes(size=(64, 48), color=(255, 0, 0, 255)):
    output = BytesIO()
    Image.new("RGBA", size, color).save(output, format="PNG")
    return output.getvalue()


class FakeFetcher:
    """Stands in for HttpFetcher; routes are matched by URL prefix."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    async def fetch_bytes(self, url, headers=None):
        self.calls.append(url)
        for prefix, result in self.routes.items():
            if url.startswith(prefix):
                if isinstance(result, Exception):
                    raise result
                return result
        raise FetchFailure(url, "Network error: unreachable")

    async def fetch_text(self, url, headers=None):
        data = await self.fetch_bytes(url, headers=headers)
        return data.decode("utf-8")


class RecordingSurface:
    """Raster surface double: records draw calls, measures half an em per character."""

    def __init__(self, width=1200, height=628):
        self.width = width
        self.height = height
        self.ops = []
        self.size = None

    def set_font(self, asset, weight, size):
        self.size = size

    def measure_text(self, text):
        return len(text) * self.size * 0.5

    def fill_rect(self, x, y, width, height, color):
        self.ops.append(("fill_rect", x, y, width, height, color))

    def draw_image(self, image, x, y, width, height):
        self.ops.append(("draw_image", x, y, width, height))

    def draw_text(self, text, x, y, color, align="start", rtl=False):
        self.ops.append(("draw_text", text, x, y, color, align, self.size))

    def texts(self, size=None):
        return [op for op in self.ops if op[0] == "draw_text" and (size is None or op[6] == size)]


@pytest.fixture
def font_bytes():
    """Real TrueType bytes: a system font, else Pillow's embedded default font."""
    for path in SYSTEM_FONTS:
        if Path(path).exists():
            return Path(path).read_bytes()
    try:
        font = ImageFont.load_default(size=20)
    except TypeError:
        font = None
    data = getattr(font, "font_bytes", None)
    if not data:
        pytest.skip("No TrueType font available for rendering")
    return data


@pytest.fixture
def font_routes(font_bytes):
    return {
        CSS_URL: stylesheet(REGULAR_URL, BOLD_URL).encode("utf-8"),
        REGULAR_URL: font_bytes,
        BOLD_URL: font_bytes,
    }


@pytest.fixture
def dummy_fonts():
    return FontAsset(family="Roboto", regular=b"regular", bold=b"bold")


@pytest.fixture
def valid_payload():
    return {
        "titleBar": "Breaking News",
        "titleText": "City Opens New Park",
        "bgColor": "#102030",
        "iconUrl": ICON_URL,
        "fontFamily": "Roboto",
        "textDir": "LTR",
    }
