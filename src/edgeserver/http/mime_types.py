"""
MIME type lookup for the payloads the edge server serves.

The resource store decides each payload's Content-Type once, at load time,
from the file name. Only a handful of extensions can ever show up in the
public directory, so the table is small.
"""

from pathlib import Path
from typing import Optional, Union


MIME_TYPES = {
    ".html": "text/html",
    ".htm": "text/html",
    ".png": "image/png",
}

# "I don't know what this is, treat as binary"
DEFAULT_MIME_TYPE = "application/octet-stream"


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file based on its extension.

        >>> get_mime_type("favicons/favicon-16x16.png")
        'image/png'
        >>> get_mime_type("unknown.xyz")
        'application/octet-stream'
    """
    extension = Path(path).suffix.lower()  # .PNG → .png
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def get_content_type(path: Union[str, Path], charset: str = "utf-8") -> str:
    """
    Get the full Content-Type header value for a file.

    Text types carry a charset parameter, binary types don't:

        >>> get_content_type("index.html")
        'text/html; charset=utf-8'
        >>> get_content_type("apple-touch-icon.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if mime_type.startswith("text/"):
        return f"{mime_type}; charset={charset}"
    return mime_type
