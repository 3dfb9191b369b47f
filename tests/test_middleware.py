"""Integration tests running the middleware inside a FastAPI application."""

import logging

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from cors_headers.config import MappingPolicyStore
from cors_headers.middleware import CorsHeadersMiddleware
from cors_headers.policy import AnyOrigin, CorsPolicy

from .conftest import ALLOWED_ORIGIN, make_app

CORS_HEADERS = (
    "access-control-allow-origin",
    "access-control-allow-credentials",
    "access-control-max-age",
    "x-content-type-options",
    "x-frame-options",
    "x-xss-protection",
)
PREFLIGHT_HEADERS = (
    "access-control-expose-headers",
    "access-control-allow-headers",
    "access-control-allow-methods",
)


def test_requests_without_origin_are_untouched(client):
    resp = client.get("/items")

    assert resp.status_code == 200
    assert resp.json() == {"items": []}
    for header in CORS_HEADERS + PREFLIGHT_HEADERS:
        assert header not in resp.headers


def test_empty_origin_counts_as_absent(client):
    resp = client.get("/items", headers={"Origin": ""})

    assert "access-control-allow-origin" not in resp.headers


def test_allowed_origin_on_simple_request(client):
    resp = client.get("/items", headers={"Origin": ALLOWED_ORIGIN})

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == ALLOWED_ORIGIN
    assert resp.headers["access-control-allow-credentials"] == "true"
    assert resp.headers["access-control-max-age"] == "600"
    assert resp.headers["x-frame-options"] == "ALLOW"
    assert resp.headers["x-xss-protection"] == "1 ;mode=block"
    assert resp.headers["x-content-type-options"] == ""
    for header in PREFLIGHT_HEADERS:
        assert header not in resp.headers


def test_unlisted_origin_gets_empty_allow_origin(client):
    resp = client.get("/items", headers={"Origin": "http://evil.example"})

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == ""


def test_preflight_includes_preflight_headers(client):
    resp = client.options(
        "/items",
        headers={
            "Origin": ALLOWED_ORIGIN,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization",
        },
    )

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert resp.headers["access-control-allow-headers"] == "Authorization, Content-Type"
    assert resp.headers["access-control-expose-headers"] == "X-Request-ID"


def test_preflight_echoes_requested_headers():
    app = make_app(
        CorsPolicy.from_mapping({"Cors": {"AllowOrigin": True, "AllowHeaders": True}})
    )
    client = TestClient(app)

    resp = client.options(
        "/items",
        headers={"Origin": "http://a.com", "Access-Control-Request-Headers": "X-Foo,X-Bar"},
    )

    assert resp.headers["access-control-allow-headers"] == "X-Foo,X-Bar"
    assert resp.headers["access-control-allow-origin"] == "http://a.com"


def test_multi_valued_origin_is_reflected_line_by_line():
    client = TestClient(make_app(CorsPolicy(allow_origin=AnyOrigin())))

    resp = client.get(
        "/items", headers=[("Origin", "http://a.com"), ("Origin", "http://b.com")]
    )

    assert resp.headers.get_list("access-control-allow-origin") == [
        "http://a.com",
        "http://b.com",
    ]


def test_handler_headers_are_replaced_not_duplicated(client):
    resp = client.get("/cached", headers={"Origin": ALLOWED_ORIGIN})

    assert resp.headers.get_list("x-frame-options") == ["ALLOW"]


def test_error_responses_are_decorated(client):
    resp = client.get("/missing", headers={"Origin": ALLOWED_ORIGIN})

    assert resp.status_code == 404
    assert resp.headers["access-control-allow-origin"] == ALLOWED_ORIGIN


def test_handler_exceptions_propagate(client):
    with pytest.raises(RuntimeError, match="explode"):
        client.get("/boom", headers={"Origin": ALLOWED_ORIGIN})


def test_policy_from_store():
    store = MappingPolicyStore({"Cors": {"AllowOrigin": "http://only.example"}})
    client = TestClient(make_app(store=store))

    resp = client.get("/items", headers={"Origin": "http://a.example"})

    assert resp.headers["access-control-allow-origin"] == "http://only.example"


def test_policy_from_environment(monkeypatch):
    monkeypatch.setenv("CORS_ALLOW_ORIGIN", "*")
    monkeypatch.setenv("CORS_FRAME_OPTIONS", "SAMEORIGIN")

    middleware = CorsHeadersMiddleware(app=make_app(CorsPolicy()))

    assert middleware.policy.allow_origin == AnyOrigin()
    assert middleware.policy.frame_options == "SAMEORIGIN"


def test_rejected_origin_is_logged(client, caplog):
    caplog.set_level(logging.DEBUG, logger="cors_headers.middleware")

    client.get("/items", headers={"Origin": "http://evil.example", "X-Request-ID": "req-9"})

    record = next(r for r in caplog.records if r.name == "cors_headers.middleware")
    assert record.levelno == logging.INFO
    assert record.event_action == "cors_origin_rejected"
    assert record.cors_origin == ["http://evil.example"]
    assert record.url_path == "/items"


def test_applied_headers_are_logged_at_debug(client, caplog):
    caplog.set_level(logging.DEBUG, logger="cors_headers.middleware")

    client.options("/items", headers={"Origin": ALLOWED_ORIGIN})

    record = next(r for r in caplog.records if r.name == "cors_headers.middleware")
    assert record.levelno == logging.DEBUG
    assert record.event_action == "cors_headers_applied"
    assert record.cors_preflight is True
    assert record.cors_header_count == 9


def _request(method: str = "GET", origin: str | None = ALLOWED_ORIGIN) -> Request:
    headers = [(b"origin", origin.encode("latin-1"))] if origin is not None else []
    return Request(
        {
            "type": "http",
            "method": method,
            "scheme": "http",
            "server": ("testserver", 80),
            "path": "/items",
            "root_path": "",
            "query_string": b"",
            "headers": headers,
        }
    )


async def _noop_app(scope, receive, send):  # pragma: no cover - never invoked
    raise AssertionError("dispatch should not reach the wrapped app")


async def test_dispatch_decorates_handler_response(allow_list_policy):
    middleware = CorsHeadersMiddleware(_noop_app, policy=allow_list_policy)
    original = PlainTextResponse("ok")

    async def call_next(request):
        return original

    response = await middleware.dispatch(_request("OPTIONS"), call_next)

    assert response is not original
    assert response.headers["access-control-allow-origin"] == ALLOWED_ORIGIN
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert "access-control-allow-origin" not in original.headers


async def test_dispatch_returns_handler_response_without_origin(allow_list_policy):
    middleware = CorsHeadersMiddleware(_noop_app, policy=allow_list_policy)
    original = PlainTextResponse("ok")

    async def call_next(request):
        return original

    assert await middleware.dispatch(_request(origin=None), call_next) is original


async def test_dispatch_propagates_handler_errors(allow_list_policy, caplog):
    caplog.set_level(logging.DEBUG, logger="cors_headers.middleware")
    middleware = CorsHeadersMiddleware(_noop_app, policy=allow_list_policy)

    async def call_next(request):
        raise RuntimeError("handler failed")

    with pytest.raises(RuntimeError, match="handler failed"):
        await middleware.dispatch(_request(), call_next)

    assert not [r for r in caplog.records if r.name == "cors_headers.middleware"]
