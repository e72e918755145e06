"""
=============================================================================
MIDDLEWARE BASE CLASSES
=============================================================================

Middleware implements the Chain of Responsibility pattern. Each middleware
gets the request and the next handler; it may answer on its own
(short-circuit) or pass the request along.

The edge server's pipeline is always the same shape:

    ┌─────────────────────────────────────────────────────────────┐
    │  AccessLogMiddleware                                        │
    │  ┌───────────────────────────────────────────────────────┐  │
    │  │  CanonicalRedirectMiddleware   ── 301 short-circuit   │  │
    │  │  ┌─────────────────────────────────────────────────┐  │  │
    │  │  │                                                 │  │  │
    │  │  │           SiteDispatcher (final handler)        │  │  │
    │  │  │                                                 │  │  │
    │  │  └─────────────────────────────────────────────────┘  │  │
    │  └───────────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────────┘

so redirects are decided before routing, and both redirects and routed
responses show up in the access log.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The signature for the next middleware or the final handler.
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class MyMiddleware(Middleware):
            def __call__(self, request, next):
                if should_answer_here(request):
                    return some_response          # Short-circuit!
                response = next(request)          # Continue the chain
                response.headers["X-Seen"] = "1"
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming HTTP request
            next: The next handler in the chain (call this to continue!)

        Returns:
            HTTP response (either from next() or short-circuited)
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware together around a final handler.

    First added = outermost:

        pipeline = MiddlewarePipeline()
        pipeline.add(AccessLogMiddleware())
        pipeline.add(CanonicalRedirectMiddleware(policy))
        handler = pipeline.wrap(dispatcher)

        handler(request)   # AccessLog → CanonicalRedirect → dispatcher
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap a handler with all middleware in the pipeline.

        Given [MW1, MW2] and handler, wrapping in REVERSE order gives
        MW1 → MW2 → handler, so the first-added middleware is outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)

        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
