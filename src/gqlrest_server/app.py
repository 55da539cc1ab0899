"""Starlette middleware and app factory around ``gqlrest.Router``."""

from __future__ import annotations

import inspect
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import anyio.to_thread
import httpx
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from gqlrest.config import BridgeConfig
from gqlrest.errors import format_error
from gqlrest.models import RouterResponse, RouterResult
from gqlrest.router import Router, create_rest_router

_BODYLESS_METHODS = {"GET", "HEAD", "DELETE", "OPTIONS"}


class InvalidBody(ValueError):
    """Request body is not valid JSON."""


# ------------------------------------------------------------------ #
# Request / response translation
# ------------------------------------------------------------------ #


def request_url(request: Request) -> str:
    """Path plus query string, as the router expects it."""
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


async def read_body(request: Request) -> Any:
    if request.method.upper() in _BODYLESS_METHODS:
        return None
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise InvalidBody(str(e)) from e


async def build_context(context: Any, request: Request) -> Any:
    """Resolve the context value handed to the executor.

    ``context`` may be a plain value, a coroutine function or a sync
    callable (run in a worker thread).  Without one, the executor gets
    ``{"request": request}``.
    """
    if context is None:
        return {"request": request}
    if inspect.iscoroutinefunction(context):
        return await context(request)
    if callable(context):
        result = await anyio.to_thread.run_sync(context, request)
        if inspect.isawaitable(result):
            return await result
        return result
    return context


def to_response(response: RouterResponse) -> Response:
    if isinstance(response, RouterResult):
        return JSONResponse(response.body, status_code=response.status)
    return JSONResponse(format_error(response.error), status_code=response.status)


# ------------------------------------------------------------------ #
# Middleware
# ------------------------------------------------------------------ #


class RestBridgeMiddleware(BaseHTTPMiddleware):
    """Serve bridge routes; pass every other request to the wrapped app."""

    def __init__(self, app: ASGIApp, router: Router, context: Any = None) -> None:
        super().__init__(app)
        self.router = router
        self.context = context

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        url = request_url(request)
        if not url.startswith(self.router.bridge.base_path):
            return await call_next(request)

        try:
            body = await read_body(request)
        except InvalidBody:
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

        context_value = await build_context(self.context, request)
        response = await self.router.dispatch(request.method, url, body, context_value)
        if response is None:
            return await call_next(request)
        return to_response(response)


# ------------------------------------------------------------------ #
# App factory
# ------------------------------------------------------------------ #


async def _not_found(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail or "Not Found"}, status_code=exc.status_code)


def create_app(
    config: BridgeConfig,
    *,
    context: Any = None,
    http_client: httpx.AsyncClient | None = None,
    cors: bool = True,
) -> Starlette:
    """Create a Starlette app serving only the bridge's routes.

    The compiled router is available as ``app.state.router``; its
    subscriptions are stopped when the app shuts down.
    """
    router = create_rest_router(config, http_client=http_client)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await router.aclose()

    middleware = []
    if cors:
        middleware.append(
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["*"],
                allow_headers=["*"],
            )
        )
    middleware.append(Middleware(RestBridgeMiddleware, router=router, context=context))

    app = Starlette(
        routes=[],
        middleware=middleware,
        exception_handlers={404: _not_found},
        lifespan=lifespan,
    )
    app.state.router = router
    return app
