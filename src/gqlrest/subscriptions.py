"""Webhook-delivered subscriptions.

Each started subscription gets a fresh id, a live result stream from
the subscribe collaborator and one background push loop that POSTs
every result to the caller's URL, in stream order.  The client table
and the push loops are 1:1: an entry exists exactly while its loop is
running and has neither been exhausted nor stopped.

Lifecycle per id::

    [absent] --start--> [active] --stop / stream ends--> [absent]
    [active] --update--> stop(id) + start(same name, same url) -> new id
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx
from graphql import DocumentNode, ExecutionResult

from gqlrest.abort import AbortSignal
from gqlrest.coercion import coerce_variables
from gqlrest.config import Bridge, resolve_awaitable
from gqlrest.errors import GqlRestError, NotFoundError
from gqlrest.models import StartSubscriptionEvent, UpdateSubscriptionEvent
from gqlrest.operations import OperationHandle, get_operation_info

logger = logging.getLogger(__name__)


class PushError(GqlRestError):
    """A webhook POST failed. Logged by the push loop, never raised to callers."""


@dataclass(frozen=True)
class SubscriptionOperation:
    """Compiled subscription document, cached per field name."""

    operation_name: str | None
    document: DocumentNode
    handle: OperationHandle


@dataclass(eq=False)
class SubscriptionClient:
    """An active subscription and the task pushing its results."""

    id: str
    name: str
    url: str
    stream: AsyncIterator[Any]
    abort: AbortSignal
    task: asyncio.Task[None] | None = None
    waiting: bool = False
    pushing: bool = False
    pushed: int = 0


class SubscriptionManager:
    """Starts, stops and updates webhook subscriptions for one bridge.

    Usage::

        manager = SubscriptionManager(bridge)
        started = await manager.start(
            StartSubscriptionEvent(subscription="commentAdded", url="https://hook"),
            context_value,
        )
        await manager.stop(started["id"])
        await manager.aclose()  # at shutdown
    """

    def __init__(self, bridge: Bridge, *, http_client: httpx.AsyncClient | None = None) -> None:
        self.bridge = bridge
        self._operations: dict[str, SubscriptionOperation] = {}
        self._clients: dict[str, SubscriptionClient] = {}
        self._http = http_client
        self._owns_http = http_client is None
        self._build_operations()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def operations(self) -> dict[str, SubscriptionOperation]:
        return dict(self._operations)

    @property
    def active_ids(self) -> list[str]:
        return list(self._clients)

    def get_client(self, id: str) -> SubscriptionClient | None:
        return self._clients.get(id)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(
        self, event: StartSubscriptionEvent, context_value: Any = None
    ) -> dict[str, str] | ExecutionResult:
        """Start pushing ``event.subscription`` results to ``event.url``.

        Returns ``{"id": ...}`` as soon as the stream is live, or the
        subscribe collaborator's immediate result when it did not
        produce a stream (e.g. validation errors).

        Raises:
            NotFoundError: unknown subscription field.
            CoercionError: a variable could not be coerced.
        """
        id = str(uuid.uuid4())
        name = event.subscription
        if name not in self._operations:
            raise NotFoundError(f"Subscription '{name}' is not available")

        logger.info("[Subscription] Start %s %s", id, event.model_dump())
        result = await self._execute(
            id=id,
            name=name,
            url=event.url,
            variables=event.variables or {},
            context_value=context_value,
        )
        if result is not None:
            return result
        return {"id": id}

    async def stop(self, id: str) -> dict[str, str]:
        """Terminate subscription ``id`` and forget it.

        Raises:
            NotFoundError: ``id`` is not active.
        """
        logger.info("[Subscription] Stop %s", id)
        client = self._clients.pop(id, None)
        if client is None:
            raise NotFoundError(f"Subscription with ID '{id}' does not exist")
        client.abort.set()
        return {"id": id}

    async def update(
        self, event: UpdateSubscriptionEvent, context_value: Any = None
    ) -> dict[str, str] | ExecutionResult:
        """Restart subscription ``event.id`` with new variables.

        The restarted subscription gets a new id; the old one stops
        existing.  Callers must use the id from the response.
        """
        logger.info("[Subscription] Update %s %s", event.id, event.model_dump())
        client = self._clients.get(event.id)
        if client is None:
            raise NotFoundError(f"Subscription with ID '{event.id}' does not exist")

        await self.stop(event.id)
        return await self.start(
            StartSubscriptionEvent(
                subscription=client.name,
                url=client.url,
                variables=event.variables,
            ),
            context_value,
        )

    async def aclose(self) -> None:
        """Stop every subscription, wait for the loops and release the HTTP client.

        Loops still busy after ``webhook_timeout`` seconds are cancelled.
        """
        clients = list(self._clients.values())
        for client in clients:
            await self.stop(client.id)
        tasks = [client.task for client in clients if client.task is not None]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self.bridge.webhook_timeout)
            for task in pending:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    # ------------------------------------------------------------------ #
    # Execution and pushing
    # ------------------------------------------------------------------ #

    async def _execute(
        self,
        *,
        id: str,
        name: str,
        url: str,
        variables: dict[str, Any],
        context_value: Any,
    ) -> ExecutionResult | None:
        operation = self._operations[name]
        variable_values = coerce_variables(
            operation.handle.variables, self.bridge.schema, body=variables
        )
        execution = await resolve_awaitable(
            self.bridge.subscribe(
                schema=self.bridge.schema,
                document=operation.document,
                operation_name=operation.operation_name,
                variable_values=variable_values,
                context_value=context_value,
            )
        )
        if not isinstance(execution, AsyncIterator):
            return execution

        client = SubscriptionClient(
            id=id, name=name, url=url, stream=execution, abort=AbortSignal(id)
        )
        self._clients[id] = client
        client.task = asyncio.create_task(self._push_loop(client), name=f"subscription-{id}")
        client.abort.on_abort(lambda: self._interrupt(client))
        return None

    @staticmethod
    def _interrupt(client: SubscriptionClient) -> None:
        # Only a loop parked on the stream is cancelled; otherwise it
        # sees the signal at the top of its next iteration
        if client.task is not None and client.waiting:
            client.task.cancel()

    async def _push_loop(self, client: SubscriptionClient) -> None:
        try:
            while not client.abort.is_set:
                client.waiting = True
                try:
                    result = await anext(client.stream)
                except StopAsyncIteration:
                    break
                finally:
                    client.waiting = False
                if client.abort.is_set:
                    break
                client.pushing = True
                try:
                    await self._send_data(client, result)
                except PushError:
                    logger.warning(
                        "[Subscription] Push to %s failed for %s",
                        client.url,
                        client.id,
                        exc_info=True,
                    )
                finally:
                    client.pushing = False
        except asyncio.CancelledError:
            if not client.abort.is_set:
                raise
        except Exception:  # noqa: BLE001
            logger.exception("Subscription #%s stream failed", client.id)
        finally:
            if self._clients.get(client.id) is client:
                del self._clients[client.id]
            await self._close_stream(client)

    async def _send_data(self, client: SubscriptionClient, result: Any) -> None:
        logger.info("[Subscription] Trigger %s", client.id)
        payload = result.formatted if isinstance(result, ExecutionResult) else result
        try:
            response = await self._http_client().post(client.url, json=payload)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError) as e:
            raise PushError(f"Webhook {client.url} rejected push: {e}") from e
        client.pushed += 1

    async def _close_stream(self, client: SubscriptionClient) -> None:
        aclose = getattr(client.stream, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception:  # noqa: BLE001
            logger.debug("Closing stream for %s failed", client.id, exc_info=True)

    def _http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.bridge.webhook_timeout)
        return self._http

    def _build_operations(self) -> None:
        subscription = self.bridge.schema.subscription_type
        if subscription is None:
            return
        for field_name in subscription.fields:
            if self.bridge.is_ignored(subscription.name, field_name):
                continue
            document = self.bridge.compile_operation(
                schema=self.bridge.schema,
                kind="subscription",
                field=field_name,
                models=self.bridge.models,
                ignore=self.bridge.ignore,
                depth_limit=self.bridge.depth_limit,
            )
            handle = get_operation_info(document)
            self._operations[field_name] = SubscriptionOperation(
                operation_name=handle.operation_name,
                document=document,
                handle=handle,
            )
