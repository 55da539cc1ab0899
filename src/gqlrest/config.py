"""Bridge configuration and its resolved, read-only form.

``BridgeConfig`` is what callers fill in; ``create_bridge`` applies the
defaults (graphql-core execution, the built-in operation compiler),
detects models once and returns the ``Bridge`` the router and the
subscription manager share.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeVar

from graphql import ExecutionResult, GraphQLError, GraphQLSchema, graphql, subscribe

from gqlrest.extract import extract_models
from gqlrest.models import RouteInfo, RouterError
from gqlrest.operations import OperationCompiler, build_operation_for_field

logger = logging.getLogger(__name__)

T = TypeVar("T")

ExecuteFn = Callable[..., ExecutionResult | Awaitable[ExecutionResult]]
SubscribeFn = Callable[
    ...,
    AsyncIterator[ExecutionResult]
    | ExecutionResult
    | Awaitable[AsyncIterator[ExecutionResult] | ExecutionResult],
]
ErrorHandler = Callable[[Sequence[GraphQLError]], RouterError]
OnRoute = Callable[[RouteInfo], Any]


@dataclass
class BridgeConfig:
    """User-facing configuration.

    Attributes:
        base_path: Prefix every route is mounted under, e.g. ``/api``.
        schema: The schema to expose.
        execute: Executor override, called with ``schema``, ``source``,
            ``variable_values``, ``context_value`` and ``operation_name``.
        subscribe: Streaming executor override, called with ``schema``,
            ``document``, ``variable_values``, ``context_value`` and
            ``operation_name``.
        ignore: ``"Type"`` or ``"Type.field"`` entries treated as
            non-models; root entries (``"Query.field"``) also get no route.
        on_route: Called once per compiled route.
        depth_limit: How many times a type may repeat along one selection path.
        error_handler: Turns executor errors into an error envelope.
        method: Verb overrides keyed by ``"TypeName.fieldName"``.
        compile_operation: Operation compiler override.
        webhook_timeout: Seconds allowed for each webhook push.
    """

    base_path: str
    schema: GraphQLSchema
    execute: ExecuteFn | None = None
    subscribe: SubscribeFn | None = None
    ignore: Sequence[str] = field(default_factory=list)
    on_route: OnRoute | None = None
    depth_limit: int | None = None
    error_handler: ErrorHandler | None = None
    method: Mapping[str, str] = field(default_factory=dict)
    compile_operation: OperationCompiler | None = None
    webhook_timeout: float = 10.0


@dataclass(frozen=True)
class Bridge:
    """Resolved configuration shared by the router and subscription manager."""

    base_path: str
    schema: GraphQLSchema
    models: tuple[str, ...]
    ignore: tuple[str, ...]
    depth_limit: int
    method: Mapping[str, str]
    execute: ExecuteFn
    subscribe: SubscribeFn
    compile_operation: OperationCompiler
    on_route: OnRoute | None = None
    error_handler: ErrorHandler | None = None
    webhook_timeout: float = 10.0

    def produce_method(self, type_name: str, field_name: str, default: str) -> str:
        """HTTP verb for ``type_name.field_name``, honouring overrides."""
        return self.method.get(f"{type_name}.{field_name}", default).upper()

    def is_ignored(self, type_name: str, field_name: str) -> bool:
        return f"{type_name}.{field_name}" in self.ignore


def create_bridge(config: BridgeConfig) -> Bridge:
    """Resolve defaults and detect models for ``config``."""
    logger.debug("[Bridge] Created")
    ignore = tuple(config.ignore or ())
    models = tuple(extract_models(config.schema, ignore))
    depth_limit = 1 if config.depth_limit is None else config.depth_limit
    logger.debug("[Bridge] models: %s", ", ".join(models))
    logger.debug("[Bridge] ignore: %s", ", ".join(ignore))

    return Bridge(
        base_path=config.base_path.rstrip("/"),
        schema=config.schema,
        models=models,
        ignore=ignore,
        depth_limit=depth_limit,
        method=MappingProxyType(dict(config.method or {})),
        execute=config.execute or graphql,
        subscribe=config.subscribe or subscribe,
        compile_operation=config.compile_operation or build_operation_for_field,
        on_route=config.on_route,
        error_handler=config.error_handler,
        webhook_timeout=config.webhook_timeout,
    )


async def resolve_awaitable(value: T | Awaitable[T]) -> T:
    """Await collaborator results that may or may not be awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value  # type: ignore[return-value]
