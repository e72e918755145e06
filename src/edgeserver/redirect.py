"""
=============================================================================
CANONICAL REDIRECT POLICY
=============================================================================

Every request is checked against the canonical host BEFORE any route runs.
The rules are evaluated in a fixed order and the first one that matches
decides the redirect target:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       REDIRECT DECISION                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   host contains "kingland.id"? ──── no ──► {proto}://kingland.id{uri}│
    │          │                                                           │
    │         yes                                                          │
    │          ▼                                                           │
    │   host contains "www."? ─────────── no ──► {proto}://www.kingland.id │
    │          │                                         {uri}             │
    │         yes                                                          │
    │          ▼                                                           │
    │   protocol is PLAIN? ────────────── yes ─► https://{host}{uri}       │
    │          │                                                           │
    │          no                                                          │
    │          ▼                                                           │
    │   no redirect, dispatch the route                                    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Example walk for a visitor typing "kingland.id" into a browser:

    http://kingland.id/          → 301 http://www.kingland.id/     (rule 2)
    http://www.kingland.id/      → 301 https://www.kingland.id/    (rule 3)
    https://www.kingland.id/     → 200 landing page

Host checks are SUBSTRING containment, not equality, and the host keeps
whatever port the client sent. A host like "www.kingland.id.example.com"
therefore passes rules 1 and 2. That is how the deployed server has always
behaved, and it is kept as-is.

The policy is switched off with `enforce_canonical_redirect = False`
(local development, tests): decide() then always answers None.

=============================================================================
"""

import logging
from typing import Optional

from .protocol import Protocol
from .http.request import HTTPRequest
from .http.response import HTTPResponse, moved_permanently
from .middleware.base import Middleware, NextHandler


logger = logging.getLogger(__name__)


class RedirectPolicy:
    """
    Pure decision function from (host, path_and_query, protocol) to an
    optional redirect target.

        policy = RedirectPolicy("kingland.id")
        policy.decide("kingland.id", "/x?y=1", Protocol.SECURE)
        # → "https://www.kingland.id/x?y=1"
    """

    WWW_PREFIX = "www."

    def __init__(self, canonical_domain: str, enforce: bool = True):
        self.canonical_domain = canonical_domain
        self.enforce = enforce

    def decide(self, host: str, path_and_query: str, protocol: Protocol) -> Optional[str]:
        """
        Compute the redirect target for a request, or None to dispatch it.

        Args:
            host: Host header value as sent (may include a port, may be "").
            path_and_query: Request target as sent, e.g. "/favicon?t=apple".
            protocol: Listener the request arrived on.
        """
        if not self.enforce:
            return None

        if self.canonical_domain not in host:
            return f"{protocol}://{self.canonical_domain}{path_and_query}"

        if self.WWW_PREFIX not in host:
            return f"{protocol}://{self.WWW_PREFIX}{self.canonical_domain}{path_and_query}"

        if protocol is Protocol.PLAIN:
            return f"https://{host}{path_and_query}"

        return None

    def __repr__(self) -> str:
        return f"RedirectPolicy({self.canonical_domain!r}, enforce={self.enforce})"


class CanonicalRedirectMiddleware(Middleware):
    """
    Runs the RedirectPolicy in front of the route dispatcher.

    When the policy yields a target this middleware SHORT-CIRCUITS: it
    answers 301 with the target as Location and never calls next(), so
    the dispatcher doesn't run for that request.
    """

    def __init__(self, policy: RedirectPolicy):
        self.policy = policy

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        target = self.policy.decide(request.host, request.path_and_query, request.protocol)
        if target is None:
            return next(request)

        logger.debug(f"Redirecting {request.protocol}://{request.host}{request.target} → {target}")
        return moved_permanently(target)
