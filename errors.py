"""
Error taxonomy for the OG image renderer.
Every kind carries the HTTP status it maps to at the service boundary.
"""
from typing import Dict


class OGImageError(Exception):
    """Base class for all renderer failures."""
    status_code = 500
    kind = "render_error"
    public_message = "Error generating image"

    def to_dict(self) -> Dict[str, str]:
        return {
            "error": self.public_message,
            "kind": self.kind,
            "details": str(self),
        }


class ValidationError(OGImageError):
    """Malformed or missing request fields. Raised before any I/O."""
    status_code = 400
    kind = "validation_error"
    public_message = "Invalid request"


class FontNotFoundError(OGImageError):
    """The font family name could not be resolved to font files."""
    kind = "font_not_found"


class FontFetchError(OGImageError):
    """Network or transport failure while downloading font data."""
    kind = "font_fetch_error"


class IconLoadError(OGImageError):
    """Icon URL unreachable or the payload is not a decodable image."""
    kind = "icon_load_error"


class RenderError(OGImageError):
    """Any other failure during composition or encoding."""
    kind = "render_error"
