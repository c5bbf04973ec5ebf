"""
Pillow-backed raster surface and PNG encoder used by the OG card composer.
"""

from io import BytesIO
from typing import Dict, Tuple

from PIL import Image, ImageDraw, ImageFont, features

from font_provider import FontAsset

# Text anchors: left/right edge at the ascender line
_ANCHORS = {'start': 'la', 'end': 'ra'}


class PillowSurface:
    """Fixed-size RGB canvas with fill, blit, text metrics and anchored text."""

    def __init__(self, width: int, height: int, background=(0, 0, 0)):
        self.width = width
        self.height = height
        self.image = Image.new('RGB', (width, height), background)
        self.draw = ImageDraw.Draw(self.image)
        self.font = None
        self._fonts: Dict[Tuple[int, int, int], ImageFont.FreeTypeFont] = {}
        self.has_raqm = features.check_feature('raqm')

    def set_font(self, asset: FontAsset, weight: int, size: int) -> None:
        """Bind the font used by measure_text and draw_text."""
        key = (id(asset), weight, size)
        if key not in self._fonts:
            self._fonts[key] = asset.font(weight, size)
        self.font = self._fonts[key]

    def fill_rect(self, x: int, y: int, width: int, height: int, color) -> None:
        self.draw.rectangle([x, y, x + width - 1, y + height - 1], fill=color)

    def draw_image(self, image: Image.Image, x: int, y: int, width: int, height: int) -> None:
        """Scale image into the box keeping aspect ratio, centred, alpha-composited."""
        icon = image.convert('RGBA')
        scale = min(width / icon.width, height / icon.height)
        icon = icon.resize((max(1, round(icon.width * scale)), max(1, round(icon.height * scale))),
                           Image.Resampling.LANCZOS)
        offset_x = x + (width - icon.width) // 2
        offset_y = y + (height - icon.height) // 2
        self.image.paste(icon, (offset_x, offset_y), icon)

    def measure_text(self, text: str) -> float:
        if not text:
            return 0.0
        return self.draw.textlength(text, font=self.font)

    def draw_text(self, text: str, x: int, y: int, color, align: str = 'start', rtl: bool = False) -> None:
        if not text:
            return
        kwargs = {}
        if rtl and self.has_raqm:
            kwargs['direction'] = 'rtl'
        self.draw.text((x, y), text, fill=color, font=self.font, anchor=_ANCHORS[align], **kwargs)


def encode_png(surface: PillowSurface) -> bytes:
    """Encode the finished canvas as PNG bytes."""
    output = BytesIO()
    surface.image.save(output, format='PNG')
    return output.getvalue()
