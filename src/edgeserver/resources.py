"""
=============================================================================
RESOURCE STORE
=============================================================================

The landing page and the three favicons, read from disk ONCE at startup and
never touched again.

    public/
    ├── index.html                     → ResourceKey.LANDING_PAGE
    └── favicons/
        ├── apple-touch-icon.png       → ResourceKey.APPLE_TOUCH_ICON
        ├── favicon-16x16.png          → ResourceKey.FAVICON_16
        └── favicon-32x32.png          → ResourceKey.FAVICON_32

The store is shared by every connection thread without a lock. That is
safe only because nothing can change it after from_directory() returns:
the mapping is a read-only proxy and the payloads are `bytes`.

A missing or unreadable payload is a startup failure (ResourceError).

=============================================================================
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Union

from .http.mime_types import get_content_type


logger = logging.getLogger(__name__)


class ResourceError(Exception):
    """Raised when a static payload can't be loaded at startup."""


class ResourceKey(Enum):
    """Every payload the server can serve, with its path under public_dir."""
    LANDING_PAGE = "index.html"
    APPLE_TOUCH_ICON = "favicons/apple-touch-icon.png"
    FAVICON_16 = "favicons/favicon-16x16.png"
    FAVICON_32 = "favicons/favicon-32x32.png"

    @property
    def relative_path(self) -> str:
        return self.value


@dataclass(frozen=True)
class Resource:
    """An immutable payload and the Content-Type it is served with."""
    body: bytes
    content_type: str

    def __len__(self) -> int:
        return len(self.body)


class ResourceStore:
    """
    Read-only mapping from ResourceKey to Resource.

        store = ResourceStore.from_directory("public")
        store[ResourceKey.FAVICON_16].body   # → b"\\x89PNG..."
    """

    def __init__(self, resources: Mapping[ResourceKey, Resource]):
        missing = [key.name for key in ResourceKey if key not in resources]
        if missing:
            raise ResourceError(f"Missing resources: {', '.join(missing)}")

        self._resources = MappingProxyType(dict(resources))

    @classmethod
    def from_directory(cls, root: Union[str, Path]) -> "ResourceStore":
        """
        Load every ResourceKey from `root`.

        Raises:
            ResourceError: If the directory or any payload is missing or
                           can't be read.
        """
        root = Path(root)
        if not root.is_dir():
            raise ResourceError(f"Public directory does not exist: {root}")

        resources = {}
        for key in ResourceKey:
            path = root / key.relative_path
            try:
                body = path.read_bytes()
            except OSError as e:
                raise ResourceError(f"Cannot read {key.name} from {path}: {e}") from e

            resources[key] = Resource(body=body, content_type=get_content_type(path))
            logger.debug(f"Loaded {key.name}: {path} ({len(body)} bytes)")

        logger.info(f"Loaded {len(resources)} resources from {root}")
        return cls(resources)

    @classmethod
    def from_bytes(
        cls,
        landing_page: bytes,
        apple_touch_icon: bytes,
        favicon_16: bytes,
        favicon_32: bytes,
    ) -> "ResourceStore":
        """Build a store from in-memory payloads (embedding, tests)."""
        return cls({
            ResourceKey.LANDING_PAGE: Resource(landing_page, "text/html; charset=utf-8"),
            ResourceKey.APPLE_TOUCH_ICON: Resource(apple_touch_icon, "image/png"),
            ResourceKey.FAVICON_16: Resource(favicon_16, "image/png"),
            ResourceKey.FAVICON_32: Resource(favicon_32, "image/png"),
        })

    def __getitem__(self, key: ResourceKey) -> Resource:
        return self._resources[key]

    def __contains__(self, key: object) -> bool:
        return key in self._resources

    def __len__(self) -> int:
        return len(self._resources)

    @property
    def landing_page(self) -> Resource:
        return self._resources[ResourceKey.LANDING_PAGE]
