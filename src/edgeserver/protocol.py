"""Which listener a connection arrived on."""

from enum import Enum


class Protocol(Enum):
    """
    The transport a request came in over.

    Fixed per connection: the PLAIN acceptor (port 80) only ever produces
    PLAIN connections, the SECURE acceptor (port 443) only SECURE ones.
    The value doubles as the URL scheme used when building redirects:

        >>> f"{Protocol.SECURE}://kingland.id/"
        'https://kingland.id/'
    """
    PLAIN = "http"
    SECURE = "https"

    @property
    def is_secure(self) -> bool:
        return self is Protocol.SECURE

    def __str__(self) -> str:
        return self.value
