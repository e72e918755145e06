"""
Unit tests for the middleware chain and the access log.
"""

import json
from datetime import datetime, timedelta, timezone
import logging

import pytest

from edgeserver.http import HTTPRequest, HTTPResponse, moved_permanently
from edgeserver.middleware import AccessLog, AccessLogMiddleware, Middleware, MiddlewarePipeline
from edgeserver.middleware.logging import format_log_timestamp
from edgeserver.protocol import Protocol


def make_request(**kwargs) -> HTTPRequest:
    defaults = dict(
        method="GET",
        path="/dc",
        headers={"host": "www.kingland.id", "user-agent": "pytest"},
        client_address=("203.0.113.7", 50000),
        protocol=Protocol.SECURE,
    )
    defaults.update(kwargs)
    return HTTPRequest(**defaults)


class Recorder(Middleware):
    def __init__(self, label, calls):
        self.label = label
        self.calls = calls

    def __call__(self, request, next):
        self.calls.append(f"{self.label}:before")
        response = next(request)
        self.calls.append(f"{self.label}:after")
        return response


class ShortCircuit(Middleware):
    def __call__(self, request, next):
        return moved_permanently("https://elsewhere.example/")


class TestMiddlewarePipeline:

    def test_first_added_is_outermost(self):
        calls = []
        pipeline = MiddlewarePipeline()
        pipeline.add(Recorder("outer", calls)).add(Recorder("inner", calls))

        def handler(request):
            calls.append("handler")
            return HTTPResponse(body=b"done")

        response = pipeline.wrap(handler)(make_request())

        assert response.body == b"done"
        assert calls == ["outer:before", "inner:before", "handler", "inner:after", "outer:after"]

    def test_short_circuit_skips_handler(self):
        pipeline = MiddlewarePipeline().add(ShortCircuit())

        def handler(request):
            raise AssertionError("handler must not run")

        response = pipeline.wrap(handler)(make_request())
        assert response.status == 301

    def test_empty_pipeline_is_handler(self):
        handler = lambda request: HTTPResponse(body=b"x")
        assert MiddlewarePipeline().wrap(handler) is handler

    def test_len_and_iter(self):
        pipeline = MiddlewarePipeline().add(ShortCircuit())
        assert len(pipeline) == 1
        assert [m.name for m in pipeline] == ["ShortCircuit"]


class TestAccessLogMiddleware:

    def test_text_line(self, caplog):
        caplog.set_level(logging.INFO, logger="edgeserver.access")
        middleware = AccessLogMiddleware()

        middleware(make_request(), lambda r: moved_permanently("https://discord.gg/PEsARGFup7"))

        records = [r for r in caplog.records if r.name == "edgeserver.access"]
        assert len(records) == 1
        line = records[0].getMessage()
        assert line.startswith("203.0.113.7 - - [")
        assert '"GET https://www.kingland.id/dc" 301 0' in line

    def test_json_line(self, caplog):
        caplog.set_level(logging.INFO, logger="edgeserver.access")
        middleware = AccessLogMiddleware(log_format="json")

        middleware(make_request(path="/", protocol=Protocol.PLAIN), lambda r: HTTPResponse(body=b"hello"))

        records = [r for r in caplog.records if r.name == "edgeserver.access"]
        entry = json.loads(records[0].getMessage())
        assert entry["method"] == "GET"
        assert entry["protocol"] == "http"
        assert entry["host"] == "www.kingland.id"
        assert entry["target"] == "/"
        assert entry["status_code"] == 200
        assert entry["content_length"] == 5
        assert entry["location"] is None
        assert entry["user_agent"] == "pytest"

    def test_response_passed_through(self):
        response = HTTPResponse(body=b"unchanged")
        assert AccessLogMiddleware()(make_request(), lambda r: response) is response

    def test_exception_logged_and_reraised(self, caplog):
        caplog.set_level(logging.INFO, logger="edgeserver.access")

        def broken(request):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            AccessLogMiddleware()(make_request(), broken)

        assert any("RuntimeError: boom" in r.getMessage() for r in caplog.records)


class TestAccessLog:

    def test_to_dict_rounds_duration(self):
        entry = AccessLog(
            method="GET", protocol="https", host="www.kingland.id", target="/",
            client_ip="127.0.0.1", user_agent="-", status_code=200,
            content_length=10, location=None, duration_ms=1.23456,
            timestamp="19/Oct/2026:12:00:00 +0000",
        )
        assert entry.to_dict()["duration_ms"] == 1.23

    def test_to_text_missing_ip(self):
        entry = AccessLog(
            method="HEAD", protocol="http", host="", target="/",
            client_ip="", user_agent="-", status_code=301,
            content_length=0, location="http://kingland.id/", duration_ms=0.5,
            timestamp="19/Oct/2026:12:00:00 +0000",
        )
        assert entry.to_text().startswith("- - - [19/Oct/2026:12:00:00 +0000]")


class TestLogTimestamp:

    def test_common_log_format(self):
        dt = datetime(2026, 10, 19, 7, 5, 3, tzinfo=timezone.utc)
        assert format_log_timestamp(dt) == "19/Oct/2026:07:05:03 +0000"

    def test_month_names_are_fixed(self):
        start = datetime(2026, 1, 15, tzinfo=timezone.utc)
        months = [format_log_timestamp(start + timedelta(days=31 * i)).split("/")[1] for i in range(12)]
        assert months == ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    def test_access_line_is_utc(self, caplog):
        caplog.set_level(logging.INFO, logger="edgeserver.access")
        AccessLogMiddleware()(make_request(), lambda r: HTTPResponse(body=b"x"))

        line = [r for r in caplog.records if r.name == "edgeserver.access"][0].getMessage()
        assert " +0000] " in line
