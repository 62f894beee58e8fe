"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps file extensions to their corresponding MIME types for the
Content-Type header of static file responses.

=============================================================================
UNKNOWN TYPES ARE PASSED THROUGH
=============================================================================

Most servers fall back to application/octet-stream when they don't
recognise an extension. This one doesn't: an unknown extension yields an
EMPTY string, and the response writer emits it verbatim:

    Content-Type: \r\n

Clients of the static resolver can rely on the header reflecting exactly
what detection produced. If you want a fallback, pass `default=`.

=============================================================================
"""

from pathlib import Path
from typing import Union

# =============================================================================
# MIME TYPE DATABASE
# =============================================================================
#
# Maps file extensions (lowercase, with dot) to MIME types.
#
# =============================================================================

MIME_TYPES = {
    # -------------------------------------------------------------------------
    # TEXT TYPES
    # -------------------------------------------------------------------------
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",

    # -------------------------------------------------------------------------
    # IMAGE TYPES
    # -------------------------------------------------------------------------
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".bmp": "image/bmp",

    # -------------------------------------------------------------------------
    # FONT TYPES
    # -------------------------------------------------------------------------
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # -------------------------------------------------------------------------
    # MEDIA AND DOCUMENTS
    # -------------------------------------------------------------------------
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".pdf": "application/pdf",

    # -------------------------------------------------------------------------
    # ARCHIVES AND OTHER DATA
    # -------------------------------------------------------------------------
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
    ".wasm": "application/wasm",
    ".map": "application/json",
}

# What detection reports when it has no idea.
UNKNOWN_MIME_TYPE = ""


def get_mime_type(path: Union[str, Path], default: str = UNKNOWN_MIME_TYPE) -> str:
    """
    Get the MIME type for a file based on its extension.

    Args:
        path: File path or name with extension
        default: Value returned for unknown extensions (empty by default)

    Returns:
        The MIME type string, or `default`

    Examples:
        >>> get_mime_type("style.css")
        'text/css'

        >>> get_mime_type("/path/to/IMAGE.PNG")
        'image/png'

        >>> get_mime_type("unknown.xyz")
        ''
    """
    if isinstance(path, str):
        path = Path(path)

    extension = path.suffix.lower()  # .PNG → .png
    return MIME_TYPES.get(extension, default)
