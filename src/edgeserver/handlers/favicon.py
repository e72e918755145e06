"""
=============================================================================
FAVICON SELECTOR
=============================================================================

`GET /favicon?t=<variant>` picks one of three icons. The landing page's
<link> tags ask for them like this:

    /favicon?t=apple        → apple-touch-icon.png
    /favicon?t=favicon16    → favicon-16x16.png
    /favicon?t=favicon32    → favicon-32x32.png

Parsing is deliberately loose and must stay that way, old pages in the
wild depend on it:

    1. No query, or no "t=" anywhere in it      → UNRECOGNIZED
    2. Take everything after the FIRST "t="
    3. Cut at the first "&", if any
    4. Lowercase
    5. First of "apple", "favicon16", "favicon32" CONTAINED in it wins

Because step 1 looks for "t=" anywhere, "?cat=apple" selects the Apple
icon too, and "t=xfavicon16x" selects the 16px one.

=============================================================================
"""

from enum import Enum
from typing import Optional

from ..resources import ResourceKey


class FaviconVariant(Enum):
    APPLE_TOUCH = "apple"
    SIZE_16 = "favicon16"
    SIZE_32 = "favicon32"
    UNRECOGNIZED = None

    @property
    def resource_key(self) -> Optional[ResourceKey]:
        """The payload to serve, or None for UNRECOGNIZED."""
        return _RESOURCE_KEYS.get(self)


# Checked in this order; first containment match wins
_MATCH_ORDER = (
    FaviconVariant.APPLE_TOUCH,
    FaviconVariant.SIZE_16,
    FaviconVariant.SIZE_32,
)

_RESOURCE_KEYS = {
    FaviconVariant.APPLE_TOUCH: ResourceKey.APPLE_TOUCH_ICON,
    FaviconVariant.SIZE_16: ResourceKey.FAVICON_16,
    FaviconVariant.SIZE_32: ResourceKey.FAVICON_32,
}


def select_favicon(query: Optional[str]) -> FaviconVariant:
    """
    Parse a raw query string into a FaviconVariant.

        >>> select_favicon("t=favicon16&x=1")
        <FaviconVariant.SIZE_16: 'favicon16'>
        >>> select_favicon("t=FAVICON32")
        <FaviconVariant.SIZE_32: 'favicon32'>
        >>> select_favicon(None)
        <FaviconVariant.UNRECOGNIZED: None>
    """
    if query is None or "t=" not in query:
        return FaviconVariant.UNRECOGNIZED

    value = query.split("t=", 1)[1]
    if "&" in value:
        value = value.split("&", 1)[0]
    value = value.lower()

    for variant in _MATCH_ORDER:
        if variant.value in value:
            return variant

    return FaviconVariant.UNRECOGNIZED
