"""gqlrest -- serve a GraphQL schema as a REST API.

Every query and mutation root field becomes one route (``GET`` for
queries, ``POST`` for mutations, both overridable), path/query/body
parameters are coerced into typed variables, and subscriptions are
delivered by POSTing each result to a caller-registered webhook.

The core is framework-neutral: ``Router.dispatch`` takes a method, URL,
body and context value and returns a response envelope or ``None``.
``gqlrest_server`` binds it to Starlette.
"""

from gqlrest.config import Bridge, BridgeConfig, create_bridge
from gqlrest.errors import CoercionError, GqlRestError, NotFoundError, format_error
from gqlrest.extract import extract_models
from gqlrest.log import configure_logging
from gqlrest.models import (
    RouteInfo,
    RouterError,
    RouterResponse,
    RouterResult,
    StartSubscriptionEvent,
    UpdateSubscriptionEvent,
)
from gqlrest.openapi import OpenAPI
from gqlrest.operations import build_operation_for_field
from gqlrest.router import Route, Router, create_rest_router, create_router
from gqlrest.subscriptions import PushError, SubscriptionManager

__all__ = [
    "Bridge",
    "BridgeConfig",
    "CoercionError",
    "GqlRestError",
    "NotFoundError",
    "OpenAPI",
    "PushError",
    "Route",
    "RouteInfo",
    "Router",
    "RouterError",
    "RouterResponse",
    "RouterResult",
    "StartSubscriptionEvent",
    "SubscriptionManager",
    "UpdateSubscriptionEvent",
    "build_operation_for_field",
    "configure_logging",
    "create_bridge",
    "create_rest_router",
    "create_router",
    "extract_models",
    "format_error",
]
