import asyncio

import pytest
from PIL import Image

from config import BANNER_PROFILES, Config
from conftest import ICON_URL, FakeFetcher, RecordingSurface, png_bytes
from errors import IconLoadError, ValidationError
from image_templates.og_card import OGCardComposer, RenderRequest, TextDirection, load_icon, plan_layout


def measure_at(size):
    return lambda text: len(text) * size * 0.5


def make_plan(payload, icon_size=180):
    request = RenderRequest.from_dict(payload)
    return plan_layout(request, measure_at(60), measure_at(30), icon_size=icon_size)


# --- request validation ---

def test_from_dict_defaults_to_ltr(valid_payload):
    del valid_payload["textDir"]
    request = RenderRequest.from_dict(valid_payload)
    assert request.text_dir is TextDirection.LTR
    assert request.language is None
    assert request.background == (0x10, 0x20, 0x30)


def test_from_dict_accepts_lowercase_direction_and_hex(valid_payload):
    valid_payload.update(textDir="rtl", bgColor="#A0b0C0")
    request = RenderRequest.from_dict(valid_payload)
    assert request.is_rtl
    assert request.background == (0xA0, 0xB0, 0xC0)


@pytest.mark.parametrize("color", ["blue", "#12345", "#1234567", "102030", "#GG0000", ""])
def test_from_dict_rejects_non_hex_color(valid_payload, color):
    valid_payload["bgColor"] = color
    with pytest.raises(ValidationError):
        RenderRequest.from_dict(valid_payload)


def test_from_dict_rejects_unknown_direction(valid_payload):
    valid_payload["textDir"] = "DIAGONAL"
    with pytest.raises(ValidationError, match="textDir"):
        RenderRequest.from_dict(valid_payload)


@pytest.mark.parametrize("name", ["titleBar", "titleText", "bgColor", "iconUrl", "fontFamily"])
def test_from_dict_requires_fields(valid_payload, name):
    del valid_payload[name]
    with pytest.raises(ValidationError, match=name):
        RenderRequest.from_dict(valid_payload)


def test_from_dict_rejects_non_string_fields(valid_payload):
    valid_payload["titleText"] = 42
    with pytest.raises(ValidationError):
        RenderRequest.from_dict(valid_payload)


def test_from_dict_rejects_non_object():
    with pytest.raises(ValidationError):
        RenderRequest.from_dict(["not", "an", "object"])


def test_from_dict_rejects_non_http_icon(valid_payload):
    valid_payload["iconUrl"] = "file:///etc/passwd"
    with pytest.raises(ValidationError):
        RenderRequest.from_dict(valid_payload)


# --- layout planning ---

def test_ltr_layout_anchors_at_leading_edge(valid_payload):
    plan = make_plan(valid_payload)

    assert plan.align == "start"
    assert plan.icon_box == (60, 60, 180, 180)
    assert plan.headline_origin == (280, 60)
    assert plan.headline_max_width == 860
    assert plan.banner_origin[0] == 60


def test_rtl_layout_is_mirrored(valid_payload):
    ltr = make_plan(valid_payload)
    valid_payload["textDir"] = "RTL"
    rtl = make_plan(valid_payload)

    assert rtl.align == "end"
    icon_x, _, icon_size, _ = ltr.icon_box
    assert rtl.icon_box[0] == Config.IMAGE_WIDTH - icon_x - icon_size
    assert rtl.icon_box[1:] == ltr.icon_box[1:]
    assert rtl.headline_origin[0] == Config.IMAGE_WIDTH - ltr.headline_origin[0]
    assert rtl.headline_origin[1] == ltr.headline_origin[1]
    assert rtl.banner_origin[0] == Config.IMAGE_WIDTH - ltr.banner_origin[0]
    assert rtl.headline_lines == ltr.headline_lines
    assert rtl.bar_height == ltr.bar_height


def test_mirroring_holds_for_small_icons(valid_payload):
    valid_payload["textDir"] = "RTL"
    plan = make_plan(valid_payload, icon_size=100)
    assert plan.icon_box == (1040, 60, 100, 100)
    assert plan.headline_origin == (1000, 60)


def test_headline_is_wrapped_to_max_width(valid_payload):
    valid_payload["titleText"] = "Council approves sweeping plan to rebuild every bridge in the old harbour district"
    plan = make_plan(valid_payload)

    assert len(plan.headline_lines) > 1
    for line in plan.headline_lines:
        assert len(line) * 30 <= plan.headline_max_width


def test_short_banner_gets_minimum_bar_height(valid_payload):
    plan = make_plan(valid_payload)

    assert plan.banner_lines == ["BREAKING NEWS"]
    assert plan.bar_height == Config.BANNER_MIN_HEIGHT
    assert plan.bar_top == Config.IMAGE_HEIGHT - Config.BANNER_MIN_HEIGHT


def test_empty_banner_still_has_minimum_bar(valid_payload):
    valid_payload["titleBar"] = ""
    plan = make_plan(valid_payload)
    assert plan.banner_lines == [""]
    assert plan.bar_height >= 140


def test_long_banner_grows_bar_with_line_count(valid_payload):
    valid_payload["titleBar"] = " ".join(["headline"] * 60)
    plan = make_plan(valid_payload)
    profile = BANNER_PROFILES["default"]

    assert len(plan.banner_lines) >= 4
    assert plan.bar_height == len(plan.banner_lines) * profile.line_height + Config.BANNER_PADDING
    assert plan.bar_height > 140
    assert plan.bar_top + plan.bar_height == Config.IMAGE_HEIGHT
    assert plan.banner_origin[1] == plan.bar_top + Config.BANNER_TEXT_INSET


def test_language_selects_profile_and_casing(valid_payload):
    valid_payload.update(titleBar="istanbul haberleri", language="tr-TR")
    plan = make_plan(valid_payload)

    assert plan.profile.locale_tag == "tr-TR"
    assert plan.banner_lines == ["İSTANBUL HABERLERİ"]


def test_language_changes_banner_sizing(valid_payload):
    valid_payload["language"] = "ja"
    plan = make_plan(valid_payload)

    assert plan.profile == BANNER_PROFILES["ja"]
    assert plan.banner_line_height == BANNER_PROFILES["ja"].line_height


def test_unknown_language_falls_back_to_default(valid_payload):
    valid_payload["language"] = "xx-YY"
    plan = make_plan(valid_payload)
    assert plan.profile == BANNER_PROFILES["default"]


# --- composition ---

def test_compose_draws_in_order(valid_payload, dummy_fonts):
    request = RenderRequest.from_dict(valid_payload)
    surface = RecordingSurface()
    icon = Image.new("RGBA", (32, 32))

    plan = OGCardComposer(icon_size=180).compose(request, dummy_fonts, icon, surface)

    kinds = [op[0] for op in surface.ops]
    assert surface.ops[0] == ("fill_rect", 0, 0, 1200, 628, (0x10, 0x20, 0x30))
    assert surface.ops[1] == ("draw_image", 60, 60, 180, 180)
    bar_index = kinds.index("fill_rect", 1)
    assert surface.ops[bar_index] == ("fill_rect", 0, plan.bar_top, 1200, plan.bar_height, Config.BANNER_BG_COLOR)

    headline = surface.texts(size=Config.HEADLINE_FONT_SIZE)
    banner = surface.texts(size=Config.BANNER_FONT_SIZE)
    assert [op[1] for op in headline] == ["City Opens New Park"]
    assert headline[0][2:6] == (280, 60, Config.HEADLINE_COLOR, "start")
    assert [op[1] for op in banner] == ["BREAKING NEWS"]
    assert banner[0][2:6] == (60, plan.bar_top + Config.BANNER_TEXT_INSET, Config.BANNER_INK_COLOR, "start")
    # Banner text is drawn on top of the bar
    assert surface.ops.index(banner[0]) > bar_index


def test_compose_rtl_mirrors_icon_and_alignment(valid_payload, dummy_fonts):
    valid_payload["textDir"] = "RTL"
    request = RenderRequest.from_dict(valid_payload)
    surface = RecordingSurface()

    OGCardComposer(icon_size=180).compose(request, dummy_fonts, Image.new("RGB", (10, 10)), surface)

    assert surface.ops[1] == ("draw_image", 960, 60, 180, 180)
    assert all(op[5] == "end" for op in surface.texts())
    assert surface.texts(size=Config.HEADLINE_FONT_SIZE)[0][2] == 920
    assert surface.texts(size=Config.BANNER_FONT_SIZE)[0][2] == 1140


def test_compose_advances_banner_lines_by_line_height(valid_payload, dummy_fonts):
    valid_payload.update(titleBar=" ".join(["word"] * 120), language="ar")
    request = RenderRequest.from_dict(valid_payload)
    surface = RecordingSurface()

    plan = OGCardComposer().compose(request, dummy_fonts, Image.new("RGB", (10, 10)), surface)

    ys = [op[3] for op in surface.texts(size=Config.BANNER_FONT_SIZE)]
    assert len(ys) == len(plan.banner_lines) > 1
    assert all(b - a == BANNER_PROFILES["ar"].line_height for a, b in zip(ys, ys[1:]))


# --- icon loading ---

def test_load_icon_decodes_png():
    fetcher = FakeFetcher({ICON_URL: png_bytes((64, 48))})
    icon = asyncio.run(load_icon(fetcher, ICON_URL))
    assert icon.size == (64, 48)


def test_load_icon_unreachable():
    with pytest.raises(IconLoadError, match="unreachable"):
        asyncio.run(load_icon(FakeFetcher(), ICON_URL))


def test_load_icon_undecodable():
    fetcher = FakeFetcher({ICON_URL: b"<html>not an image</html>"})
    with pytest.raises(IconLoadError, match="decodable"):
        asyncio.run(load_icon(fetcher, ICON_URL))
