"""
Request handlers: the fixed route table and the favicon selector it uses.
"""

from .favicon import FaviconVariant, select_favicon
from .site import SiteDispatcher, DEFAULT_INVITE_URL, INVITE_PATHS

__all__ = [
    "FaviconVariant",
    "select_favicon",
    "SiteDispatcher",
    "DEFAULT_INVITE_URL",
    "INVITE_PATHS",
]
