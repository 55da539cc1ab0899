"""Shared test fixtures: example schema, scripted collaborators, stream helpers.

``ScriptedExecutor`` and ``ScriptedSubscribe`` stand in for the
executor collaborators: they record every call and return scripted
results, so router and manager tests need no real resolvers.
``ResultStream`` is a hand-driven subscription stream.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any

from graphql import ExecutionResult, GraphQLError, GraphQLSchema, build_schema

SDL = """
type User {
  id: ID!
  name: String!
  posts: [Post!]!
  friends: [User!]!
}

type Post {
  id: ID!
  title: String!
  author: User!
}

type Comment {
  id: ID!
  text: String!
  postId: ID
}

input PostInput {
  title: String!
  tags: [String!]
}

enum Role {
  ADMIN
  MEMBER
}

type Query {
  users(limit: Int): [User!]!
  user(id: ID!): User
  posts: [Post!]!
  post(id: ID!): Post
  me: User
  search(term: String!, flags: [Int!], exact: Boolean, role: Role): [User!]!
}

type Mutation {
  addPost(input: PostInput!): Post!
  deleteUser(id: ID!): Boolean
}

type Subscription {
  commentAdded(postId: ID): Comment!
}
"""

USERS = {
    "1": {"id": "1", "name": "Ada", "posts": [], "friends": []},
    "42": {"id": "42", "name": "Grace", "posts": [], "friends": []},
}


def make_schema() -> GraphQLSchema:
    """Example schema with in-memory resolvers attached."""
    schema = build_schema(SDL)
    query = schema.query_type
    mutation = schema.mutation_type
    subscription = schema.subscription_type
    assert query is not None and mutation is not None and subscription is not None

    query.fields["users"].resolve = lambda _root, _info, limit=None: list(USERS.values())[
        :limit
    ]
    query.fields["user"].resolve = lambda _root, _info, id: USERS.get(id)
    query.fields["posts"].resolve = lambda _root, _info: []
    query.fields["search"].resolve = lambda _root, _info, **kwargs: [
        u for u in USERS.values() if kwargs["term"] in u["name"]
    ]

    def add_post(_root: Any, _info: Any, input: dict[str, Any]) -> dict[str, Any]:
        return {"id": "p1", "title": input["title"], "author": USERS["1"]}

    mutation.fields["addPost"].resolve = add_post
    mutation.fields["deleteUser"].resolve = lambda _root, _info, id: id in USERS

    async def comment_added(_root: Any, _info: Any, postId: str | None = None):  # noqa: N803
        for n in range(3):
            yield {"id": f"c{n}", "text": f"comment {n}", "postId": postId}

    subscription.fields["commentAdded"].subscribe = comment_added
    subscription.fields["commentAdded"].resolve = lambda payload, _info, **_kwargs: payload
    return schema


# ------------------------------------------------------------------ #
# Scripted collaborators
# ------------------------------------------------------------------ #


class ScriptedExecutor:
    """Programmable executor: records calls, pops scripted results.

    Results may be ``ExecutionResult`` objects or exceptions to raise.
    When the script runs out, returns ``ExecutionResult(data={})``.
    """

    def __init__(self, results: Sequence[ExecutionResult | Exception] | None = None) -> None:
        self._results: list[ExecutionResult | Exception] = list(results or [])
        self.calls: list[dict[str, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def __call__(self, **kwargs: Any) -> ExecutionResult:
        self.calls.append(kwargs)
        if not self._results:
            return ExecutionResult(data={})
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class ScriptedSubscribe:
    """Programmable subscribe collaborator.

    Each call pops the next scripted value: a stream, an immediate
    ``ExecutionResult``, or a zero-argument factory producing either.
    """

    def __init__(self, results: Sequence[Any] | None = None) -> None:
        self._results: list[Any] = list(results or [])
        self.calls: list[dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if not self._results:
            raise RuntimeError(f"ScriptedSubscribe exhausted after {len(self.calls)} calls")
        result = self._results.pop(0)
        if callable(result) and not isinstance(result, ResultStream):
            return result()
        return result


# ------------------------------------------------------------------ #
# Streams
# ------------------------------------------------------------------ #

_END = object()


class _Failure:
    def __init__(self, error: BaseException) -> None:
        self.error = error


class ResultStream:
    """Hand-driven async result stream.

    ``emit`` queues a result, ``end`` finishes the stream, ``fail``
    makes the next read raise.  ``aclose`` is recorded.
    """

    def __init__(self, items: Sequence[Any] = ()) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self.closed = False
        for item in items:
            self.emit(item)

    def emit(self, item: Any) -> None:
        self._queue.put_nowait(item)

    def end(self) -> None:
        self._queue.put_nowait(_END)

    def fail(self, error: BaseException) -> None:
        self._queue.put_nowait(_Failure(error))

    def __aiter__(self) -> AsyncIterator[Any]:
        return self

    async def __anext__(self) -> Any:
        if self.closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            raise item.error
        return item

    async def aclose(self) -> None:
        self.closed = True


def comment(n: int) -> ExecutionResult:
    return ExecutionResult(data={"commentAdded": {"id": f"c{n}", "text": f"comment {n}"}})


def error_result(message: str = "boom") -> ExecutionResult:
    return ExecutionResult(data=None, errors=[GraphQLError(message)])


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""

    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)
