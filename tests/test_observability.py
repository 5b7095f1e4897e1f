from __future__ import annotations

import json
import logging

import pytest
from fastapi.responses import Response
from starlette.requests import Request

from trello_sync import config
from trello_sync.api import routes
from trello_sync.app import request_logging_middleware
from trello_sync.core.logging import configure_logging, reset_logging_for_tests
from trello_sync.metrics import metrics_snapshot, record_sync_run


class _FakeDatabase:
    def __init__(self, ok: bool = True):
        self._ok = ok

    def ping(self) -> bool:
        return self._ok


def _request(path: str, headers=None) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": path,
        "headers": headers or [],
        "query_string": b"",
        "client": ("127.0.0.1", 50000),
        "scheme": "http",
        "server": ("testserver", 80),
    }
    return Request(scope)


@pytest.mark.asyncio
async def test_health_check_returns_observability_fields(monkeypatch):
    record_sync_run()
    monkeypatch.setattr(routes, "get_database", lambda: _FakeDatabase())

    health = await routes.health_check()
    assert health.status == "ok"
    assert health.db_connected is True
    assert health.sync_runs == 1
    assert health.errors_last_hour == 0


@pytest.mark.asyncio
async def test_health_check_degraded_without_database(monkeypatch):
    monkeypatch.setattr(routes, "get_database", lambda: _FakeDatabase(ok=False))
    health = await routes.health_check()
    assert health.status == "degraded"
    assert health.db_connected is False


@pytest.mark.asyncio
async def test_request_logging_middleware_logs_structured_payload(caplog):
    request = _request("/addDeliverablesToTrello")

    async def _ok(_request: Request) -> Response:
        return Response(status_code=200)

    with caplog.at_level("INFO"):
        response = await request_logging_middleware(request, _ok)

    assert response.headers.get("X-Request-ID")
    line = next(msg for msg in caplog.messages if msg.startswith("request_log "))
    payload = json.loads(line.split(" ", 1)[1])
    assert payload["path"] == "/addDeliverablesToTrello"
    assert payload["method"] == "POST"
    assert payload["status"] == 200
    assert payload["request_id"] == response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_logging_middleware_keeps_caller_request_id():
    request = _request("/api/health", headers=[(b"x-request-id", b"abc123")])

    async def _ok(_request: Request) -> Response:
        return Response(status_code=200)

    response = await request_logging_middleware(request, _ok)
    assert response.headers["X-Request-ID"] == "abc123"


@pytest.mark.asyncio
async def test_request_logging_middleware_counts_server_errors():
    request = _request("/addDeliverablesToTrello")

    async def _unavailable(_request: Request) -> Response:
        return Response(status_code=503)

    await request_logging_middleware(request, _unavailable)
    assert metrics_snapshot()["errors_last_hour"] == 1


def test_configure_logging_quiets_noisy_libraries():
    reset_logging_for_tests()
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    configure_logging(level="INFO")

    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING


def test_configure_logging_reads_level_from_config(monkeypatch):
    reset_logging_for_tests()
    root = logging.getLogger()
    previous = root.level
    monkeypatch.setattr(config, "LOG_LEVEL", "WARNING")
    monkeypatch.setattr(config, "QUIET_LOGGERS", ["trello_sync.tests.noisy"])
    logging.getLogger("trello_sync.tests.noisy").setLevel(logging.DEBUG)
    try:
        configure_logging()

        assert root.level == logging.WARNING
        assert logging.getLogger("trello_sync.tests.noisy").level == logging.WARNING
    finally:
        root.setLevel(previous)
        reset_logging_for_tests()


def test_configure_logging_unknown_level_falls_back_to_info():
    reset_logging_for_tests()
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging(level="chatty", quiet=[])
        assert root.level == logging.INFO
    finally:
        root.setLevel(previous)
        reset_logging_for_tests()


def test_configure_logging_runs_once():
    reset_logging_for_tests()
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging(level="ERROR", quiet=[])
        configure_logging(level="DEBUG", quiet=[])
        assert root.level == logging.ERROR
    finally:
        root.setLevel(previous)
        reset_logging_for_tests()
