"""Share card templates and the raster surface they draw on."""

from .og_card import LayoutPlan, OGCardComposer, RenderRequest, TextDirection, load_icon, plan_layout
from .surface import PillowSurface, encode_png

__all__ = [
    "LayoutPlan",
    "OGCardComposer",
    "PillowSurface",
    "RenderRequest",
    "TextDirection",
    "encode_png",
    "load_icon",
    "plan_layout",
]
