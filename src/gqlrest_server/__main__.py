"""Entry point for serving a schema over REST.

Usage:
    uv run python -m gqlrest_server myapp.schema:schema
    uv run python -m gqlrest_server myapp.schema:schema --port 8080 --base-path /rest
    uv run python -m gqlrest_server myapp.schema:build_schema --openapi openapi.yaml
"""

from __future__ import annotations

import argparse
import importlib
import sys

import uvicorn
from graphql import GraphQLSchema

from gqlrest.config import BridgeConfig
from gqlrest.log import configure_logging
from gqlrest.openapi import OpenAPI
from gqlrest_server.app import create_app


def load_schema(target: str) -> GraphQLSchema:
    """Import ``module:attribute`` and return the schema it names.

    The attribute may be a ``GraphQLSchema`` or a zero-argument callable
    returning one.
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got {target!r}")
    obj = getattr(importlib.import_module(module_name), attribute)
    if callable(obj) and not isinstance(obj, GraphQLSchema):
        obj = obj()
    if not isinstance(obj, GraphQLSchema):
        raise TypeError(f"{target} is not a GraphQLSchema")
    return obj


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve a GraphQL schema as a REST API")
    parser.add_argument("target", help="Schema to serve, as module:attribute")
    parser.add_argument("--host", default="127.0.0.1", help="Bind host")
    parser.add_argument("--port", type=int, default=4000, help="Bind port")
    parser.add_argument("--base-path", default="/api", help="Route prefix")
    parser.add_argument(
        "--depth-limit",
        type=int,
        default=1,
        help="How often a type may repeat along one selection path",
    )
    parser.add_argument("--openapi", default=None, help="Write an OpenAPI document (.json/.yaml)")
    parser.add_argument("--log-level", default=None, help="error, warn, info or debug")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        schema = load_schema(args.target)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        print(f"Error: cannot load schema: {e}", file=sys.stderr)
        sys.exit(1)

    openapi = None
    if args.openapi:
        openapi = OpenAPI(
            schema=schema,
            info={"title": "gqlrest API", "version": "1.0.0"},
            servers=[{"url": f"http://{args.host}:{args.port}"}],
        )

    config = BridgeConfig(
        base_path=args.base_path,
        schema=schema,
        depth_limit=args.depth_limit,
        on_route=(
            (lambda info: openapi.add_route(info, base_path=args.base_path)) if openapi else None
        ),
    )
    app = create_app(config)

    if openapi is not None:
        openapi.save(args.openapi)
        print(f"OpenAPI document written to {args.openapi}")

    routes = app.state.router.routes
    print(f"gqlrest server starting on http://{args.host}:{args.port}")
    print()
    print("Endpoints:")
    for route in routes:
        print(f"  {route.method:<6} http://{args.host}:{args.port}{args.base_path}{route.path}")
    print()

    log_level = {"warn": "warning"}.get(args.log_level or "info", args.log_level or "info")
    uvicorn.run(app, host=args.host, port=args.port, log_level=log_level)


if __name__ == "__main__":
    main()
