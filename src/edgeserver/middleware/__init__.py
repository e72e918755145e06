"""
Middleware for the edge server's request pipeline.

    AccessLogMiddleware          one access line per request
    CanonicalRedirectMiddleware  301 before routing (edgeserver.redirect)
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import AccessLogMiddleware, AccessLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "AccessLogMiddleware",
    "AccessLog",
]
