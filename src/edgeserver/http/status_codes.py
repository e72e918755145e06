"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The edge server only ever answers with two families of status codes:

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK                - Landing page or favicon bytes     │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3xx   │ 301 Moved Permanently - Canonical redirect, invite link   │
    └────────┴───────────────────────────────────────────────────────────┘

There is no 4xx or 5xx anywhere in the server. Unknown paths get the
landing page, broken connections are simply closed.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so statuses compare equal to plain integers:

        >>> HTTPStatus.MOVED_PERMANENTLY == 301
        True
        >>> HTTPStatus.OK.phrase
        'OK'
    """

    # 2xx SUCCESS
    OK = 200

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301     # Browsers cache it, used for canonical redirects

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 301 Moved Permanently
                     ─── ─────────────────
                      │          │
                      │          └── Reason phrase
                      └───────────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
}
