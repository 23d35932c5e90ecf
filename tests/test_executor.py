from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from apiprobe.builder import build_request_spec
from apiprobe.executor import (
    CANCELLED_MESSAGE,
    RequestExecutor,
    execute_request,
    flatten_headers,
    is_json_content_type,
    normalize_body,
)
from apiprobe.models import JsonBody, TextBody
from multidict import CIMultiDict

SLOW_SECONDS = 1.0


async def _json(request: web.Request) -> web.Response:
    return web.json_response({"ok": True, "page": request.query.get("page")}, headers={"X-Trace": "t-1"})


async def _text(request: web.Request) -> web.Response:
    return web.Response(text="hello")


async def _echo(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "method": request.method,
            "body": await request.text(),
            "content_type": request.headers.get("Content-Type"),
            "api_key": request.headers.get("X-API-Key"),
        }
    )


async def _missing(request: web.Request) -> web.Response:
    return web.json_response({"error": "nope"}, status=404)


async def _boom(request: web.Request) -> web.Response:
    return web.Response(status=500, text="kaput")


async def _bad_json(request: web.Request) -> web.Response:
    return web.Response(text="{not json", content_type="application/json")


async def _slow(request: web.Request) -> web.Response:
    await asyncio.sleep(SLOW_SECONDS)
    return web.Response(text="late")


@pytest_asyncio.fixture
async def probe_server() -> AsyncIterator[TestServer]:
    app = web.Application()
    app.router.add_get("/json", _json)
    app.router.add_get("/text", _text)
    app.router.add_route("*", "/echo", _echo)
    app.router.add_get("/missing", _missing)
    app.router.add_get("/boom", _boom)
    app.router.add_get("/bad-json", _bad_json)
    app.router.add_get("/slow", _slow)
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


def _base(server: TestServer) -> str:
    return str(server.make_url("/"))


class _FailingResponse:
    def __init__(self, exc: BaseException) -> None:
        self._exc = exc

    async def __aenter__(self) -> Any:
        raise self._exc

    async def __aexit__(self, *args: Any) -> None:
        return None


class _FailingSession:
    closed = False

    def __init__(self, exc: BaseException) -> None:
        self._exc = exc
        self.calls: list[tuple[str, str]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FailingResponse:
        self.calls.append((method, url))
        return _FailingResponse(self._exc)


@pytest.mark.asyncio
async def test_json_response_is_parsed(probe_server: TestServer) -> None:
    spec = build_request_spec(_base(probe_server), "/json", "GET", query_params=[("page", "2")])

    async with RequestExecutor() as executor:
        outcome = await executor.execute(spec)

    assert outcome.status == 200
    assert outcome.status_text == "OK"
    assert outcome.response_body == JsonBody(value={"ok": True, "page": "2"})
    assert outcome.response_headers["X-Trace"] == "t-1"
    assert outcome.error_message is None
    assert outcome.elapsed_ms >= 0
    assert outcome.ok


@pytest.mark.asyncio
async def test_text_response_is_kept_as_text(probe_server: TestServer) -> None:
    outcome = await execute_request(build_request_spec(_base(probe_server), "text", "GET"))

    assert outcome.status == 200
    assert outcome.response_body == TextBody(value="hello")


@pytest.mark.asyncio
async def test_http_client_error_keeps_status_and_body(probe_server: TestServer) -> None:
    outcome = await execute_request(build_request_spec(_base(probe_server), "/missing", "GET"))

    assert outcome.status == 404
    assert not outcome.is_transport_failure
    assert outcome.response_body == JsonBody(value={"error": "nope"})
    assert outcome.error_message == "HTTP Error: 404 Not Found"


@pytest.mark.asyncio
async def test_http_server_error_keeps_text_body(probe_server: TestServer) -> None:
    outcome = await execute_request(build_request_spec(_base(probe_server), "/boom", "GET"))

    assert outcome.status == 500
    assert outcome.response_body == TextBody(value="kaput")
    assert outcome.error_message == "HTTP Error: 500 Internal Server Error"


@pytest.mark.asyncio
async def test_declared_json_that_does_not_parse_falls_back_to_text(
    probe_server: TestServer,
) -> None:
    outcome = await execute_request(build_request_spec(_base(probe_server), "/bad-json", "GET"))

    assert outcome.status == 200
    assert outcome.response_body == TextBody(value="{not json")


@pytest.mark.asyncio
async def test_json_request_body_is_sent_as_json(probe_server: TestServer) -> None:
    spec = build_request_spec(
        _base(probe_server),
        "/echo",
        "POST",
        headers=[("X-API-Key", "abc123")],
        raw_body='{ "sku": "A1" }',
    )

    outcome = await execute_request(spec)

    assert isinstance(outcome.response_body, JsonBody)
    echoed = outcome.response_body.value
    assert echoed["method"] == "POST"
    assert echoed["body"] == '{"sku":"A1"}'
    assert echoed["content_type"] == "application/json"
    assert echoed["api_key"] == "abc123"


@pytest.mark.asyncio
async def test_raw_text_body_is_sent_without_implicit_content_type(
    probe_server: TestServer,
) -> None:
    spec = build_request_spec(_base(probe_server), "/echo", "PUT", raw_body="not json")

    outcome = await execute_request(spec)

    assert isinstance(outcome.response_body, JsonBody)
    assert outcome.response_body.value["body"] == "not json"
    assert outcome.response_body.value["content_type"] is None


@pytest.mark.asyncio
async def test_timeout_becomes_transport_failure(probe_server: TestServer) -> None:
    spec = build_request_spec(_base(probe_server), "/slow", "GET")

    async with RequestExecutor(timeout=0.2) as executor:
        outcome = await executor.execute(spec)

    assert outcome.status == 0
    assert outcome.is_transport_failure
    assert outcome.error_message == "Request timed out after 0.2s"
    assert outcome.response_body is None
    assert outcome.response_headers == {}
    assert outcome.elapsed_ms >= 150


@pytest.mark.asyncio
async def test_cancel_event_becomes_transport_failure(probe_server: TestServer) -> None:
    spec = build_request_spec(_base(probe_server), "/slow", "GET")
    cancel = asyncio.Event()
    asyncio.get_running_loop().call_later(0.1, cancel.set)

    async with RequestExecutor() as executor:
        outcome = await executor.execute(spec, cancel=cancel)

    assert outcome.status == 0
    assert outcome.error_message == CANCELLED_MESSAGE
    assert outcome.response_body is None


@pytest.mark.asyncio
async def test_unset_cancel_event_does_not_interfere(probe_server: TestServer) -> None:
    spec = build_request_spec(_base(probe_server), "/text", "GET")

    async with RequestExecutor() as executor:
        outcome = await executor.execute(spec, cancel=asyncio.Event())

    assert outcome.status == 200


@pytest.mark.asyncio
async def test_connection_failure_is_captured_not_raised() -> None:
    session = _FailingSession(aiohttp.ClientConnectionError("Connection refused"))
    executor = RequestExecutor(session=session)  # type: ignore[arg-type]
    spec = build_request_spec("https://unreachable.example.test", "/users", "GET")

    outcome = await executor.execute(spec)
    await executor.close()

    assert session.calls == [("GET", "https://unreachable.example.test/users")]
    assert outcome.status == 0
    assert outcome.status_text == ""
    assert outcome.error_message == "Connection refused"
    assert outcome.response_body is None


@pytest.mark.asyncio
async def test_failure_without_message_uses_exception_name() -> None:
    executor = RequestExecutor(session=_FailingSession(aiohttp.ServerDisconnectedError()))  # type: ignore[arg-type]
    outcome = await executor.execute(build_request_spec("https://x.example.test", "", "GET"))

    assert outcome.status == 0
    assert outcome.error_message


@pytest.mark.parametrize(
    ("content_type", "expected"),
    [
        ("application/json", True),
        ("application/json; charset=utf-8", True),
        ("application/problem+json", True),
        ("text/html", False),
        (None, False),
    ],
)
def test_is_json_content_type(content_type: str | None, expected: bool) -> None:
    assert is_json_content_type(content_type) is expected


def test_normalize_body_only_parses_declared_json() -> None:
    assert normalize_body("text/plain", '{"a": 1}') == TextBody(value='{"a": 1}')
    assert normalize_body("application/json", '{"a": 1}') == JsonBody(value={"a": 1})


def test_flatten_headers_joins_repeated_values() -> None:
    headers = CIMultiDict([("Set-Cookie", "a=1"), ("Set-Cookie", "b=2"), ("X-One", "1")])
    assert flatten_headers(headers) == {"Set-Cookie": "a=1, b=2", "X-One": "1"}
