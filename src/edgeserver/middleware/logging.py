"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One log line per request on the "edgeserver.access" logger, emitted after
the response is known. Sits outermost in the pipeline so that canonical
redirects are logged exactly like routed responses.

    TEXT (default):
        203.0.113.7 - - [19/Oct/2026:12:00:00 +0000] "GET https://www.kingland.id/dc" 301 0 0.12ms

    JSON:
        {"method": "GET", "protocol": "https", "host": "www.kingland.id",
         "target": "/dc", "status_code": 301, "location": "https://discord.gg/...", ...}

Route the access log somewhere else without touching code:

    logging.getLogger("edgeserver.access").addHandler(file_handler)

=============================================================================
"""

import time
import json
import logging
from datetime import datetime, timezone
from typing import Optional
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import MONTH_NAMES, HTTPResponse


logger = logging.getLogger("edgeserver.access")


def format_log_timestamp(dt: datetime) -> str:
    """
    Common Log Format timestamp, always UTC: 19/Oct/2026:12:00:00 +0000
    """
    return (
        f"{dt.day:02d}/{MONTH_NAMES[dt.month - 1]}/{dt.year}:"
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} +0000"
    )


@dataclass
class AccessLog:
    """Structured log entry for one request/response pair."""

    method: str
    protocol: str
    host: str
    target: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    location: Optional[str]
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        """Apache-style line, with the full URL the client asked for."""
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.protocol}://{self.host}{self.target}" '
            f'{self.status_code} {self.content_length} {self.duration_ms:.2f}ms'
        )


class AccessLogMiddleware(Middleware):
    """
    Request logging middleware.

    Args:
        log_format: "text" (human readable) or "json" (log aggregators).
        log_level: Level the access lines are emitted at.
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        self.log_format = log_format
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.target} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        if not logger.isEnabledFor(self.log_level):
            return response

        entry = AccessLog(
            method=request.method,
            protocol=str(request.protocol),
            host=request.host,
            target=request.target,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            location=response.location,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            timestamp=format_log_timestamp(datetime.now(timezone.utc)),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
