"""gqlrest HTTP server -- Starlette binding for the REST bridge.

Two ways to serve a schema:
- ``RestBridgeMiddleware`` -- add to an existing Starlette/ASGI app;
  requests the bridge does not handle fall through to the app
- ``create_app`` -- standalone app whose only routes are the bridge's

Fixed subscription endpoints (relative to the base path):
- POST /webhook -- start a subscription
- POST /webhook/{id} -- update a subscription (returns a new id)
- DELETE /webhook/{id} -- stop a subscription
"""

from gqlrest_server.app import RestBridgeMiddleware, create_app

__all__ = ["RestBridgeMiddleware", "create_app"]
