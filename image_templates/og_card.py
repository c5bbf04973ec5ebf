"""
OG share card composer.

Lays out a 1200x628 card: background fill, a square icon at the leading edge,
a wrapped bold headline beside it and a white banner bar along the bottom whose
height follows the number of wrapped banner lines. For right-to-left text the
whole layout is mirrored, not just the text alignment.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from typing import Any, Callable, List, Optional, Tuple

from PIL import Image

from config import BannerProfile, Config, banner_profile, parse_hex_color
from errors import IconLoadError, ValidationError
from font_provider import BOLD, FontAsset
from http_fetcher import FetchFailure, HttpFetcher
from text_utils import locale_upper, wrap_text

logger = logging.getLogger(__name__)

HEX_COLOR_RE = re.compile(r'^#[0-9a-fA-F]{6}$')
REQUIRED_FIELDS = ('titleBar', 'titleText', 'bgColor', 'iconUrl', 'fontFamily')


class TextDirection(str, Enum):
    LTR = 'LTR'
    RTL = 'RTL'


@dataclass(frozen=True)
class RenderRequest:
    """Validated input for one render."""
    title_bar: str
    title_text: str
    bg_color: str
    icon_url: str
    font_family: str
    text_dir: TextDirection = TextDirection.LTR
    language: Optional[str] = None

    @property
    def is_rtl(self) -> bool:
        return self.text_dir is TextDirection.RTL

    @property
    def background(self) -> Tuple[int, int, int]:
        return parse_hex_color(self.bg_color)

    @classmethod
    def from_dict(cls, payload: Any) -> 'RenderRequest':
        """Validate a decoded JSON body. Raises ValidationError, performs no I/O."""
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        missing = [name for name in REQUIRED_FIELDS if payload.get(name) is None]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        for name in REQUIRED_FIELDS:
            if not isinstance(payload[name], str):
                raise ValidationError(f"Field {name} must be a string")

        bg_color = payload['bgColor'].strip()
        if not HEX_COLOR_RE.match(bg_color):
            raise ValidationError(f"bgColor must be a #RRGGBB hex color, got {payload['bgColor']!r}")

        if not payload['fontFamily'].strip():
            raise ValidationError("fontFamily must not be empty")
        if not payload['iconUrl'].strip().lower().startswith(('http://', 'https://')):
            raise ValidationError("iconUrl must be an http(s) URL")

        raw_dir = payload.get('textDir') or TextDirection.LTR.value
        try:
            text_dir = TextDirection(str(raw_dir).upper())
        except ValueError:
            raise ValidationError(f"textDir must be LTR or RTL, got {raw_dir!r}") from None

        language = payload.get('language')
        if language is not None and not isinstance(language, str):
            raise ValidationError("Field language must be a string")

        return cls(
            title_bar=payload['titleBar'],
            title_text=payload['titleText'],
            bg_color=bg_color,
            icon_url=payload['iconUrl'].strip(),
            font_family=payload['fontFamily'].strip(),
            text_dir=text_dir,
            language=language or None,
        )


@dataclass
class LayoutPlan:
    """Absolute positions for one render. Computed once, never shared."""
    align: str
    rtl: bool
    icon_box: Tuple[int, int, int, int]
    headline_origin: Tuple[int, int]
    headline_max_width: int
    headline_lines: List[str] = field(default_factory=list)
    bar_top: int = 0
    bar_height: int = 0
    banner_origin: Tuple[int, int] = (0, 0)
    banner_line_height: int = 0
    banner_lines: List[str] = field(default_factory=list)
    profile: Optional[BannerProfile] = None


def plan_layout(request: RenderRequest,
                measure_headline: Callable[[str], float],
                measure_banner: Callable[[str], float],
                icon_size: int = Config.ICON_SIZE,
                width: int = Config.IMAGE_WIDTH,
                height: int = Config.IMAGE_HEIGHT) -> LayoutPlan:
    """Compute every box and wrapped line of the card without drawing anything."""
    pad = Config.EDGE_PADDING
    text_offset = pad + icon_size + Config.ICON_GAP
    headline_max_width = width - text_offset - pad

    # Mirror horizontal anchors for RTL
    if request.is_rtl:
        align = 'end'
        icon_x = width - pad - icon_size
        headline_x = width - text_offset
        banner_x = width - pad
    else:
        align = 'start'
        icon_x = pad
        headline_x = text_offset
        banner_x = pad

    headline_lines = wrap_text(request.title_text, headline_max_width, measure_headline)

    profile = banner_profile(request.language, request.font_family)
    banner_text = locale_upper(request.title_bar, profile.locale_tag)
    banner_lines = wrap_text(banner_text, profile.max_width, measure_banner)

    bar_height = max(len(banner_lines) * profile.line_height + Config.BANNER_PADDING, Config.BANNER_MIN_HEIGHT)
    bar_top = height - bar_height

    return LayoutPlan(
        align=align,
        rtl=request.is_rtl,
        icon_box=(icon_x, pad, icon_size, icon_size),
        headline_origin=(headline_x, Config.HEADLINE_TOP),
        headline_max_width=headline_max_width,
        headline_lines=headline_lines,
        bar_top=bar_top,
        bar_height=bar_height,
        banner_origin=(banner_x, bar_top + Config.BANNER_TEXT_INSET),
        banner_line_height=profile.line_height,
        banner_lines=banner_lines,
        profile=profile,
    )


async def load_icon(fetcher: HttpFetcher, url: str) -> Image.Image:
    """Download and decode the icon image. Raises IconLoadError."""
    try:
        data = await fetcher.fetch_bytes(url)
    except FetchFailure as e:
        raise IconLoadError(f"Icon unreachable: {e.reason}") from e

    try:
        icon = Image.open(BytesIO(data))
        icon.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise IconLoadError(f"Icon at {url} is not a decodable image: {e}") from e
    return icon


class OGCardComposer:
    """Draws the share card onto a raster surface."""

    def __init__(self, icon_size: int = Config.ICON_SIZE):
        self.width = Config.IMAGE_WIDTH
        self.height = Config.IMAGE_HEIGHT
        self.icon_size = icon_size

        self.headline_size = Config.HEADLINE_FONT_SIZE
        self.headline_line_height = Config.HEADLINE_LINE_HEIGHT
        self.headline_color = Config.HEADLINE_COLOR

        self.banner_size = Config.BANNER_FONT_SIZE
        self.banner_bg = Config.BANNER_BG_COLOR
        self.banner_ink = Config.BANNER_INK_COLOR

    def _measurer(self, surface, fonts: FontAsset, size: int) -> Callable[[str], float]:
        def measure(text: str) -> float:
            surface.set_font(fonts, BOLD, size)
            return surface.measure_text(text)
        return measure

    def compose(self, request: RenderRequest, fonts: FontAsset, icon: Image.Image, surface) -> LayoutPlan:
        """Paint the card onto surface and return the plan that was drawn."""
        surface.fill_rect(0, 0, self.width, self.height, request.background)

        plan = plan_layout(
            request,
            self._measurer(surface, fonts, self.headline_size),
            self._measurer(surface, fonts, self.banner_size),
            icon_size=self.icon_size,
            width=self.width,
            height=self.height,
        )

        icon_x, icon_y, icon_w, icon_h = plan.icon_box
        surface.draw_image(icon, icon_x, icon_y, icon_w, icon_h)

        surface.set_font(fonts, BOLD, self.headline_size)
        x, y = plan.headline_origin
        for line in plan.headline_lines:
            surface.draw_text(line, x, y, self.headline_color, align=plan.align, rtl=plan.rtl)
            y += self.headline_line_height

        surface.fill_rect(0, plan.bar_top, self.width, plan.bar_height, self.banner_bg)

        surface.set_font(fonts, BOLD, self.banner_size)
        x, y = plan.banner_origin
        for line in plan.banner_lines:
            surface.draw_text(line, x, y, self.banner_ink, align=plan.align, rtl=plan.rtl)
            y += plan.banner_line_height

        logger.debug(
            f"Card laid out: {len(plan.headline_lines)} headline lines, "
            f"{len(plan.banner_lines)} banner lines, bar {plan.bar_height}px"
        )
        return plan
