"""
Configuration loader - reads from .env file and provides render service configuration
"""
import os
import logging
from typing import Dict, NamedTuple, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Load from environment variables
API_TOKEN = os.getenv('API_TOKEN', '')
HOST = os.getenv('HOST', '0.0.0.0')
PORT = int(os.getenv('PORT', '8743'))


# Helper function to parse RGB color from env
def parse_rgb(color_str: str, default=(0, 0, 0)) -> tuple:
    """Parse RGB color string from env (e.g., '255,0,128') to tuple (255, 0, 128)"""
    try:
        parts = color_str.split(',')
        rgb = tuple(int(p.strip()) for p in parts)
    except (AttributeError, ValueError):
        return default
    if len(rgb) != 3 or any(c < 0 or c > 255 for c in rgb):
        return default
    return rgb


def parse_hex_color(color_str: str) -> tuple:
    """Parse '#RRGGBB' (any case) to an RGB tuple. Raises ValueError otherwise."""
    value = color_str.strip().lstrip('#')
    if len(value) != 6:
        raise ValueError(f"Not a #RRGGBB color: {color_str!r}")
    return tuple(int(value[i:i + 2], 16) for i in (0, 2, 4))


class BannerProfile(NamedTuple):
    """Banner sizing for one language (or font family)."""
    max_width: int
    line_height: int
    locale_tag: str


# Banner sizing table. Keys are lower-case language tags, primary subtags or
# font family names. Wider scripts get a narrower measure and taller lines.
BANNER_PROFILES: Dict[str, BannerProfile] = {
    'default': BannerProfile(max_width=1080, line_height=40, locale_tag='en-US'),
    'en': BannerProfile(max_width=1080, line_height=40, locale_tag='en-US'),
    'de': BannerProfile(max_width=1080, line_height=40, locale_tag='de-DE'),
    'fr': BannerProfile(max_width=1080, line_height=40, locale_tag='fr-FR'),
    'es': BannerProfile(max_width=1080, line_height=40, locale_tag='es-ES'),
    'pt': BannerProfile(max_width=1080, line_height=40, locale_tag='pt-PT'),
    'pt-br': BannerProfile(max_width=1080, line_height=40, locale_tag='pt-BR'),
    'tr': BannerProfile(max_width=1080, line_height=40, locale_tag='tr-TR'),
    'az': BannerProfile(max_width=1080, line_height=40, locale_tag='az-AZ'),
    'lt': BannerProfile(max_width=1080, line_height=40, locale_tag='lt-LT'),
    'ru': BannerProfile(max_width=1040, line_height=42, locale_tag='ru-RU'),
    'el': BannerProfile(max_width=1040, line_height=42, locale_tag='el-GR'),
    'ar': BannerProfile(max_width=1000, line_height=50, locale_tag='ar'),
    'fa': BannerProfile(max_width=1000, line_height=50, locale_tag='fa-IR'),
    'he': BannerProfile(max_width=1040, line_height=44, locale_tag='he-IL'),
    'hi': BannerProfile(max_width=1000, line_height=52, locale_tag='hi-IN'),
    'th': BannerProfile(max_width=1000, line_height=52, locale_tag='th-TH'),
    'ja': BannerProfile(max_width=960, line_height=46, locale_tag='ja-JP'),
    'zh': BannerProfile(max_width=960, line_height=46, locale_tag='zh-CN'),
    'ko': BannerProfile(max_width=960, line_height=46, locale_tag='ko-KR'),
    # Families whose glyphs sit noticeably taller than Latin defaults
    'noto sans arabic': BannerProfile(max_width=1000, line_height=50, locale_tag='ar'),
    'noto sans hebrew': BannerProfile(max_width=1040, line_height=44, locale_tag='he-IL'),
    'noto sans jp': BannerProfile(max_width=960, line_height=46, locale_tag='ja-JP'),
}


def banner_profile(language: Optional[str] = None, font_family: Optional[str] = None) -> BannerProfile:
    """Look up banner sizing by language tag, then by font family, then default."""
    candidates = []
    if language:
        tag = language.strip().lower().replace('_', '-')
        candidates.append(tag)
        candidates.append(tag.split('-', 1)[0])
    if font_family:
        candidates.append(' '.join(font_family.split()).lower())

    for key in candidates:
        if key in BANNER_PROFILES:
            return BANNER_PROFILES[key]
    return BANNER_PROFILES['default']


# Render Service Configuration Class
class Config:
    """Configuration for the OG image renderer with all customizable parameters"""

    # Canvas
    IMAGE_WIDTH = 1200
    IMAGE_HEIGHT = 628

    # Font description service (Google Fonts CSS API)
    FONT_CSS_URL = os.getenv('FONT_CSS_URL', 'https://fonts.googleapis.com/css2')
    # Old desktop UA so the CSS API answers with truetype sources instead of woff2
    FONT_USER_AGENT = os.getenv('FONT_USER_AGENT', 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36')
    FONT_CACHE_TTL_SECONDS = int(os.getenv('FONT_CACHE_TTL_SECONDS', str(7 * 24 * 3600)))

    # Network
    FETCH_TIMEOUT_SECONDS = float(os.getenv('FETCH_TIMEOUT_SECONDS', '10'))
    FETCH_RETRIES = int(os.getenv('FETCH_RETRIES', '2'))
    FETCH_BACKOFF_SECONDS = float(os.getenv('FETCH_BACKOFF_SECONDS', '0.5'))

    # Layout
    ICON_SIZE = int(os.getenv('ICON_SIZE', '180'))
    EDGE_PADDING = 60
    ICON_GAP = 40

    # Headline
    HEADLINE_FONT_SIZE = 60
    HEADLINE_LINE_HEIGHT = 72
    HEADLINE_TOP = 60
    HEADLINE_COLOR = (255, 255, 255)

    # Banner
    BANNER_FONT_SIZE = 30
    BANNER_PADDING = 60
    BANNER_TEXT_INSET = 30
    BANNER_MIN_HEIGHT = 140
    BANNER_BG_COLOR = (255, 255, 255)
    BANNER_INK_COLOR = parse_rgb(os.getenv('BANNER_INK_COLOR', '20,20,25'), default=(20, 20, 25))

    # Logging
    LOG_FILE = os.getenv('LOG_FILE', 'og_image.log')
    LOG_DEBUG_FILE = os.getenv('LOG_DEBUG_FILE', 'og_image_debug.log')
    LOG_TIMEZONE = os.getenv('LOG_TIMEZONE', 'UTC')


def get_config() -> Dict:
    """Get complete configuration"""
    return {
        'api_token': API_TOKEN,
        'host': HOST,
        'port': PORT,
        'font_css_url': Config.FONT_CSS_URL,
        'font_user_agent': Config.FONT_USER_AGENT,
        'font_cache_ttl_seconds': Config.FONT_CACHE_TTL_SECONDS,
        'network': {
            'timeout_seconds': Config.FETCH_TIMEOUT_SECONDS,
            'retries': Config.FETCH_RETRIES,
            'backoff_seconds': Config.FETCH_BACKOFF_SECONDS,
        },
        'image_settings': {
            'width': Config.IMAGE_WIDTH,
            'height': Config.IMAGE_HEIGHT,
            'icon_size': Config.ICON_SIZE,
        }
    }


def validate_config(api_token: Optional[str] = None) -> bool:
    """Validate configuration"""
    token = API_TOKEN if api_token is None else api_token
    if not token:
        logger.error("API_TOKEN environment variable is not set. Refusing to start.")
        return False

    if Config.ICON_SIZE <= 0 or Config.ICON_SIZE > Config.IMAGE_HEIGHT // 2:
        logger.error(f"ICON_SIZE must be between 1 and {Config.IMAGE_HEIGHT // 2}, got {Config.ICON_SIZE}")
        return False

    return True
