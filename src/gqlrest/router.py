"""Route compilation and request dispatch.

At construction the router compiles one route per query and mutation
root field plus the three fixed webhook routes, in that order.  Each
request is then matched by uppercased method and base-path-relative
path against that table::

    GET    /{field}         query returning a list or taking no id
    GET    /{field}/:id     query returning one object and taking an id
    POST   /{field}         mutation (verb overridable per field)
    POST   /webhook         start a subscription
    POST   /webhook/:id     update a subscription (issues a new id)
    DELETE /webhook/:id     stop a subscription

``dispatch`` returns ``None`` for anything outside the base path or
without a matching route so the caller can fall through.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
from graphql import ExecutionResult, GraphQLError, print_ast
from pydantic import ValidationError

from gqlrest.coercion import coerce_variables
from gqlrest.config import Bridge, BridgeConfig, create_bridge, resolve_awaitable
from gqlrest.errors import CoercionError, GqlRestError
from gqlrest.extract import is_single_object
from gqlrest.models import (
    RouteInfo,
    RouterError,
    RouterResponse,
    RouterResult,
    StartSubscriptionEvent,
    UpdateSubscriptionEvent,
)
from gqlrest.naming import get_path
from gqlrest.operations import OperationHandle, OperationKind, get_operation_info
from gqlrest.subscriptions import SubscriptionManager

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------ #
# Route table
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class RouteRequest:
    """What a route handler sees of an incoming request."""

    url: str
    body: Any
    params: Mapping[str, str]
    query: Mapping[str, str]
    context_value: Any = None


Handler = Callable[[RouteRequest], Awaitable[RouterResponse]]


def compile_path(path: str) -> re.Pattern[str]:
    """Regex for a path pattern; ``:name`` segments become named groups.

    Matching is case-insensitive and tolerates one trailing slash.
    """
    segments = []
    for segment in path.strip("/").split("/"):
        if segment.startswith(":"):
            segments.append(f"(?P<{segment[1:]}>[^/]+?)")
        else:
            segments.append(re.escape(segment))
    return re.compile("^/" + "/".join(segments) + "/?$", re.IGNORECASE)


@dataclass(frozen=True)
class Route:
    """One ``(method, path)`` entry of the route table."""

    method: str
    path: str
    handler: Handler
    field_name: str = ""
    operation: OperationHandle | None = None
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", compile_path(self.path))

    def match(self, method: str, path: str) -> dict[str, str] | None:
        if method != self.method:
            return None
        found = self.pattern.match(path)
        if found is None:
            return None
        return found.groupdict()


class RouteTable:
    """Ordered routes keyed by ``(method, path)``.

    Registering the same key twice replaces the earlier handler; the
    route keeps its original position.
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], Route] = {}

    def add(self, route: Route) -> None:
        self._routes[(route.method, route.path)] = route

    def find(self, method: str, path: str) -> tuple[Route, dict[str, str]] | None:
        for route in self._routes.values():
            params = route.match(method, path)
            if params is not None:
                return route, params
        return None

    def get(self, method: str, path: str) -> Route | None:
        return self._routes.get((method.upper(), path))

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes.values())

    def __len__(self) -> int:
        return len(self._routes)


# ------------------------------------------------------------------ #
# Router
# ------------------------------------------------------------------ #


def default_error_handler(errors: Sequence[GraphQLError]) -> RouterError:
    return RouterError(status=500, error=errors[0])


class Router:
    """Compiled route table plus the dispatcher over it.

    Usage::

        router = create_router(create_bridge(BridgeConfig(base_path="/api", schema=schema)))
        response = await router.dispatch("GET", "/api/user/42", None, context)
        if response is None:
            ...  # not ours, fall through
    """

    def __init__(self, bridge: Bridge, *, http_client: httpx.AsyncClient | None = None) -> None:
        logger.debug("[Router] Creating router")
        self.bridge = bridge
        self.table = RouteTable()
        self.subscriptions = SubscriptionManager(bridge, http_client=http_client)
        self._compile()

    @property
    def routes(self) -> list[Route]:
        return list(self.table)

    async def __call__(
        self, method: str, url: str, body: Any = None, context_value: Any = None
    ) -> RouterResponse | None:
        return await self.dispatch(method, url, body, context_value)

    async def dispatch(
        self, method: str, url: str, body: Any = None, context_value: Any = None
    ) -> RouterResponse | None:
        """Route one request; ``None`` means "not handled"."""
        if not url.startswith(self.bridge.base_path):
            return None

        path, _, query_string = url[len(self.bridge.base_path) :].partition("?")
        found = self.table.find(method.upper(), path)
        if found is None:
            return None

        route, params = found
        request = RouteRequest(
            url=url,
            body=body,
            params=params,
            query=httpx.QueryParams(query_string),
            context_value=context_value,
        )
        return await route.handler(request)

    async def aclose(self) -> None:
        await self.subscriptions.aclose()

    # ------------------------------------------------------------------ #
    # Compilation
    # ------------------------------------------------------------------ #

    def _compile(self) -> None:
        schema = self.bridge.schema
        if schema.query_type is not None:
            for field_name in schema.query_type.fields:
                if self.bridge.is_ignored(schema.query_type.name, field_name):
                    continue
                self._register(self._create_query_route(field_name))
        if schema.mutation_type is not None:
            for field_name in schema.mutation_type.fields:
                if self.bridge.is_ignored(schema.mutation_type.name, field_name):
                    continue
                self._register(self._create_mutation_route(field_name))

        self.table.add(Route("POST", "/webhook", self._start_subscription))
        self.table.add(Route("POST", "/webhook/:id", self._update_subscription))
        self.table.add(Route("DELETE", "/webhook/:id", self._stop_subscription))

    def _register(self, route: Route) -> None:
        self.table.add(route)
        if self.bridge.on_route is not None and route.operation is not None:
            self.bridge.on_route(
                RouteInfo(
                    document=route.operation.document,
                    path=route.path,
                    method=route.method,
                    field_name=route.field_name,
                    kind=route.operation.operation.operation.value,
                )
            )

    def _compile_operation(self, kind: OperationKind, field_name: str) -> OperationHandle:
        document = self.bridge.compile_operation(
            schema=self.bridge.schema,
            kind=kind,
            field=field_name,
            models=self.bridge.models,
            ignore=self.bridge.ignore,
            depth_limit=self.bridge.depth_limit,
        )
        return get_operation_info(document)

    def _create_query_route(self, field_name: str) -> Route:
        logger.debug("[Router] Creating %s query", field_name)
        query_type = self.bridge.schema.query_type
        assert query_type is not None
        operation = self._compile_operation("query", field_name)

        field_def = query_type.fields[field_name]
        has_id_argument = "id" in field_def.args
        path = get_path(field_name, is_single_object(field_def.type) and has_id_argument)
        method = self.bridge.produce_method(query_type.name, field_name, "GET")

        logger.debug("[Router] %s query available at %s %s", field_name, method, path)
        return Route(
            method=method,
            path=path,
            handler=self._use_handler(operation, field_name),
            field_name=field_name,
            operation=operation,
        )

    def _create_mutation_route(self, field_name: str) -> Route:
        logger.debug("[Router] Creating %s mutation", field_name)
        mutation_type = self.bridge.schema.mutation_type
        assert mutation_type is not None
        operation = self._compile_operation("mutation", field_name)

        path = get_path(field_name)
        method = self.bridge.produce_method(mutation_type.name, field_name, "POST")

        logger.debug("[Router] %s mutation available at %s %s", field_name, method, path)
        return Route(
            method=method,
            path=path,
            handler=self._use_handler(operation, field_name),
            field_name=field_name,
            operation=operation,
        )

    # ------------------------------------------------------------------ #
    # Handlers
    # ------------------------------------------------------------------ #

    def _use_handler(self, operation: OperationHandle, field_name: str) -> Handler:
        bridge = self.bridge
        source = print_ast(operation.document)

        async def handler(request: RouteRequest) -> RouterResponse:
            try:
                variable_values = coerce_variables(
                    operation.variables,
                    bridge.schema,
                    params=request.params,
                    query=request.query,
                    body=request.body,
                )
            except CoercionError as e:
                return self._handle_errors([GraphQLError(str(e), original_error=e)])

            result: ExecutionResult = await resolve_awaitable(
                bridge.execute(
                    schema=bridge.schema,
                    source=source,
                    variable_values=variable_values,
                    context_value=request.context_value,
                    operation_name=operation.operation_name,
                )
            )
            if result.errors:
                return self._handle_errors(result.errors)
            return RouterResult(status=200, body=(result.data or {}).get(field_name))

        return handler

    def _handle_errors(self, errors: Sequence[GraphQLError]) -> RouterError:
        error_handler = self.bridge.error_handler or default_error_handler
        return error_handler(errors)

    async def _start_subscription(self, request: RouteRequest) -> RouterResponse:
        try:
            event = StartSubscriptionEvent.model_validate(request.body or {})
            result = await self.subscriptions.start(event, request.context_value)
        except (GqlRestError, ValidationError, GraphQLError) as e:
            logger.warning("[Subscription] Start failed: %s", e)
            return RouterError(status=500, status_message="Subscription failed", error=e)
        return RouterResult(status=200, status_message="OK", body=_result_body(result))

    async def _update_subscription(self, request: RouteRequest) -> RouterResponse:
        body = request.body if isinstance(request.body, Mapping) else {}
        try:
            event = UpdateSubscriptionEvent(
                id=request.params["id"], variables=body.get("variables")
            )
            result = await self.subscriptions.update(event, request.context_value)
        except (GqlRestError, ValidationError, GraphQLError) as e:
            logger.warning("[Subscription] Update failed: %s", e)
            return RouterError(
                status=500, status_message="Subscription failed to update", error=e
            )
        return RouterResult(status=200, status_message="OK", body=_result_body(result))

    async def _stop_subscription(self, request: RouteRequest) -> RouterResponse:
        try:
            result = await self.subscriptions.stop(request.params["id"])
        except GqlRestError as e:
            logger.warning("[Subscription] Stop failed: %s", e)
            return RouterError(status=500, status_message="Subscription failed to stop", error=e)
        return RouterResult(status=200, status_message="OK", body=result)


def _result_body(result: Any) -> Any:
    if isinstance(result, ExecutionResult):
        return result.formatted
    return result


def create_router(bridge: Bridge, *, http_client: httpx.AsyncClient | None = None) -> Router:
    return Router(bridge, http_client=http_client)


def create_rest_router(
    config: BridgeConfig, *, http_client: httpx.AsyncClient | None = None
) -> Router:
    """Resolve ``config`` and compile its router in one step."""
    return create_router(create_bridge(config), http_client=http_client)
