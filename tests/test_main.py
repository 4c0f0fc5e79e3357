"""Tests for application assembly and logging setup."""

import json
import logging

import pytest
from httpx import ASGITransport, AsyncClient

from feedrelay.config import Settings
from feedrelay.logging import JsonFormatter, payload_snippet, setup_logging
from main import create_app


@pytest.mark.asyncio
async def test_security_headers_applied():
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"


def test_routes_registered():
    paths = {route.path for route in create_app().routes}

    assert {"/healthz", "/readyz", "/proxy", "/api/feeds/acquire", "/api/cors/test"} <= paths


def test_json_formatter():
    record = logging.LogRecord(
        "feedrelay.test", logging.WARNING, __file__, 1, "hello %s", ("x",), None
    )

    payload = json.loads(JsonFormatter().format(record))

    assert payload == {"level": "WARNING", "msg": "hello x", "logger": "feedrelay.test"}


def test_setup_logging_uses_json_in_prod():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging(Settings(_env_file=None, env="prod", log_level="debug"))

        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_payload_snippet_truncates_and_flattens():
    snippet = payload_snippet("line one\nline two " + "x" * 500, length=20)

    assert snippet == "line one line two xx..."
    assert payload_snippet({"a": 1}) == "{'a': 1}"
