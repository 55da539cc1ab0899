"""Tests for the Starlette server: middleware, app factory, entry point.

Covers:
- Query and mutation routes served over HTTP with the real executor
- Invalid JSON bodies, unknown routes and fall-through to the wrapped app
- Context factories (sync and async) reaching the executor
- Webhook start/stop over HTTP with pushes delivered to a mock hook
- Entry point helpers: schema loading and argument parsing
"""

from __future__ import annotations

import json
import time

import httpx
import pytest
from graphql import ExecutionResult
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from gqlrest import BridgeConfig, create_rest_router
from gqlrest_server import RestBridgeMiddleware, create_app
from gqlrest_server.__main__ import build_parser, load_schema
from helpers import ScriptedExecutor, make_schema


def make_client(**kwargs) -> TestClient:
    config_kwargs = {k: kwargs.pop(k) for k in ("execute", "subscribe") if k in kwargs}
    config = BridgeConfig(base_path="/api", schema=make_schema(), **config_kwargs)
    return TestClient(create_app(config, **kwargs))


# ================================================================== #
# Routes over HTTP
# ================================================================== #


class TestRoutes:
    def test_single_object_by_path_id(self):
        with make_client() as client:
            response = client.get("/api/user/42")
        assert response.status_code == 200
        assert response.json() == {"id": "42", "name": "Grace", "posts": [], "friends": []}

    def test_missing_object_is_null(self):
        with make_client() as client:
            response = client.get("/api/user/7")
        assert response.status_code == 200
        assert response.json() is None

    def test_list_with_query_argument(self):
        with make_client() as client:
            response = client.get("/api/users?limit=1")
        assert response.status_code == 200
        assert [u["id"] for u in response.json()] == ["1"]

    def test_mutation_reads_json_body(self):
        with make_client() as client:
            response = client.post("/api/add-post", json={"input": {"title": "Hi"}})
        assert response.status_code == 200
        assert response.json() == {"id": "p1", "title": "Hi", "author": {"id": "1"}}

    def test_execution_error_is_500_with_graphql_error(self):
        with make_client() as client:
            response = client.get("/api/search")
        assert response.status_code == 500
        assert "term" in response.json()["message"]

    def test_trailing_slash_and_case(self):
        with make_client() as client:
            assert client.get("/api/USER/42/").json()["name"] == "Grace"


class TestRequestErrors:
    def test_invalid_json_is_400(self):
        with make_client() as client:
            response = client.post(
                "/api/add-post",
                content=b"{not json",
                headers={"content-type": "application/json"},
            )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}

    def test_unknown_route_is_json_404(self):
        with make_client() as client:
            response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_outside_base_path_is_404(self):
        with make_client() as client:
            assert client.get("/users").status_code == 404

    def test_wrong_method_falls_through(self):
        with make_client() as client:
            assert client.post("/api/users").status_code == 404


class TestMiddleware:
    def _app(self) -> Starlette:
        async def health(request: Request) -> PlainTextResponse:
            return PlainTextResponse("ok")

        router = create_rest_router(BridgeConfig(base_path="/api", schema=make_schema()))
        return Starlette(
            routes=[Route("/health", health), Route("/api/health", health)],
            middleware=[Middleware(RestBridgeMiddleware, router=router)],
        )

    def test_other_paths_reach_wrapped_app(self):
        with TestClient(self._app()) as client:
            assert client.get("/health").text == "ok"

    def test_unmatched_bridge_path_reaches_wrapped_app(self):
        with TestClient(self._app()) as client:
            assert client.get("/api/health").text == "ok"

    def test_bridge_routes_served(self):
        with TestClient(self._app()) as client:
            assert client.get("/api/user/1").json()["name"] == "Ada"

    def test_cors_preflight(self):
        with make_client() as client:
            response = client.options(
                "/api/users",
                headers={
                    "origin": "http://example.com",
                    "access-control-request-method": "GET",
                },
            )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


class TestContext:
    def test_default_context_carries_request(self):
        executor = ScriptedExecutor([ExecutionResult(data={"me": None})])
        with make_client(execute=executor) as client:
            client.get("/api/me")
        assert isinstance(executor.calls[0]["context_value"]["request"], Request)

    def test_sync_context_factory(self):
        executor = ScriptedExecutor([ExecutionResult(data={"me": None})])

        def context(request: Request) -> dict:
            return {"user": request.headers["x-user"]}

        with make_client(execute=executor, context=context) as client:
            client.get("/api/me", headers={"x-user": "ada"})
        assert executor.calls[0]["context_value"] == {"user": "ada"}

    def test_async_context_factory(self):
        executor = ScriptedExecutor([ExecutionResult(data={"me": None})])

        async def context(request: Request) -> dict:
            return {"path": request.url.path}

        with make_client(execute=executor, context=context) as client:
            client.get("/api/me")
        assert executor.calls[0]["context_value"] == {"path": "/api/me"}

    def test_plain_context_value(self):
        executor = ScriptedExecutor([ExecutionResult(data={"me": None})])
        with make_client(execute=executor, context={"tenant": "t1"}) as client:
            client.get("/api/me")
        assert executor.calls[0]["context_value"] == {"tenant": "t1"}


# ================================================================== #
# Webhooks over HTTP
# ================================================================== #


class TestWebhooks:
    def test_start_pushes_every_result_then_forgets_id(self):
        received: list[dict] = []

        def hook(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(200)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(hook))
        with make_client(http_client=http_client) as client:
            response = client.post(
                "/api/webhook",
                json={
                    "subscription": "commentAdded",
                    "url": "http://hook.test/",
                    "variables": {"postId": "p1"},
                },
            )
            assert response.status_code == 200
            id = response.json()["id"]

            deadline = time.monotonic() + 2.0
            while len(received) < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert [r["data"]["commentAdded"]["id"] for r in received] == ["c0", "c1", "c2"]
            assert received[0]["data"]["commentAdded"]["postId"] == "p1"

            deadline = time.monotonic() + 2.0
            router = client.app.state.router
            while id in router.subscriptions.active_ids and time.monotonic() < deadline:
                time.sleep(0.01)
            stopped = client.delete(f"/api/webhook/{id}")
        assert stopped.status_code == 500
        assert stopped.json() == {"message": f"Subscription with ID '{id}' does not exist"}

    def test_start_with_invalid_body(self):
        with make_client() as client:
            response = client.post("/api/webhook", json={"subscription": "commentAdded"})
        assert response.status_code == 500
        body = response.json()
        assert body["message"] == "Invalid request body"
        assert body["details"][0]["loc"] == ["url"]

    def test_unknown_subscription(self):
        with make_client() as client:
            response = client.post(
                "/api/webhook", json={"subscription": "nope", "url": "http://hook.test/"}
            )
        assert response.status_code == 500
        assert response.json() == {"message": "Subscription 'nope' is not available"}


# ================================================================== #
# Entry point
# ================================================================== #


class TestEntryPoint:
    def test_load_schema_from_factory(self):
        schema = load_schema("helpers:make_schema")
        assert schema.query_type is not None
        assert "user" in schema.query_type.fields

    def test_load_schema_requires_attribute(self):
        with pytest.raises(ValueError, match="module:attribute"):
            load_schema("helpers")

    def test_load_schema_rejects_non_schema(self):
        with pytest.raises(TypeError, match="not a GraphQLSchema"):
            load_schema("helpers:SDL")

    def test_parser_defaults(self):
        args = build_parser().parse_args(["app:schema"])
        assert args.target == "app:schema"
        assert args.port == 4000
        assert args.base_path == "/api"
        assert args.depth_limit == 1
        assert args.openapi is None

    def test_parser_overrides(self):
        args = build_parser().parse_args(
            ["app:schema", "--port", "8080", "--base-path", "/rest", "--openapi", "api.yaml"]
        )
        assert (args.port, args.base_path, args.openapi) == (8080, "/rest", "api.yaml")
