"""
=============================================================================
ROUTE DISPATCHER
=============================================================================

The whole site is one fixed table, matched top to bottom:

    ┌──────────┬─────────────────────────────────┬──────────────────────────┐
    │ Method   │ Path                            │ Response                 │
    ├──────────┼─────────────────────────────────┼──────────────────────────┤
    │ GET      │ /favicon                        │ 200 + icon bytes, if the │
    │          │                                 │ t= variant is recognized │
    │          │                                 │ (else falls through)     │
    ├──────────┼─────────────────────────────────┼──────────────────────────┤
    │ GET      │ /discord /dc /invite /invites   │ 301 → invite URL         │
    ├──────────┼─────────────────────────────────┼──────────────────────────┤
    │ anything │ anything                        │ 200 + landing page       │
    └──────────┴─────────────────────────────────┴──────────────────────────┘

There is NO 404. Every unknown path, every unknown method and every
unrecognized favicon request gets the landing page. The site is a single
page, so any link to it, however mangled, should land on it.

=============================================================================
"""

import logging

from .favicon import select_favicon
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, moved_permanently
from ..http.status_codes import HTTPStatus
from ..resources import ResourceStore


logger = logging.getLogger(__name__)


DEFAULT_INVITE_URL = "https://discord.gg/PEsARGFup7"

INVITE_PATHS = frozenset({"/discord", "/dc", "/invite", "/invites"})


class SiteDispatcher:
    """
    Maps (method, path) to a response using the fixed route table.

    Instances are the final handler of the middleware pipeline:

        dispatcher = SiteDispatcher(resources)
        handler = pipeline.wrap(dispatcher)
    """

    def __init__(self, resources: ResourceStore, invite_url: str = DEFAULT_INVITE_URL):
        self.resources = resources
        self.invite_url = invite_url

        # Served on every fallback, so strip once instead of per request
        landing = resources.landing_page
        self._landing_body = landing.body.strip()
        self._landing_type = landing.content_type

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        if request.method == "GET":
            if request.path == "/favicon":
                response = self._favicon(request)
                if response is not None:
                    return response

            elif request.path in INVITE_PATHS:
                return moved_permanently(self.invite_url)

        return self._landing_page()

    __call__ = dispatch

    def _favicon(self, request: HTTPRequest):
        """Favicon bytes for a recognized t= variant, else None."""
        variant = select_favicon(request.query)
        key = variant.resource_key
        if key is None:
            logger.debug(f"Unrecognized favicon query {request.query!r}, serving landing page")
            return None

        resource = self.resources[key]
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .body(resource.body)
            .content_type(resource.content_type)
            .build())

    def _landing_page(self) -> HTTPResponse:
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .body(self._landing_body)
            .content_type(self._landing_type)
            .build())
