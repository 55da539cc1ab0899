#!/usr/bin/env python3
"""Example: Serving a small blog schema over REST.

Builds an in-memory schema, exposes it under /api and writes an
OpenAPI document describing the generated routes.

Usage:
  uv run python examples/blog_api.py
  uv run python examples/blog_api.py --port 8080 --openapi blog.yaml

Then try:
  curl http://127.0.0.1:4000/api/posts
  curl http://127.0.0.1:4000/api/post/1
  curl -X POST http://127.0.0.1:4000/api/add-post \
    -H 'content-type: application/json' -d '{"title": "Hello"}'
  curl -X POST http://127.0.0.1:4000/api/webhook \
    -H 'content-type: application/json' \
    -d '{"subscription": "postAdded", "url": "http://127.0.0.1:9000/hook"}'
"""

import argparse
import asyncio

import uvicorn
from graphql import GraphQLSchema, build_schema

from gqlrest import BridgeConfig, OpenAPI, configure_logging
from gqlrest_server import create_app

SDL = """
type Post {
  id: ID!
  title: String!
}

type Query {
  posts: [Post!]!
  post(id: ID!): Post
}

type Mutation {
  addPost(title: String!): Post!
}

type Subscription {
  postAdded: Post!
}
"""


def build_blog_schema() -> GraphQLSchema:
    schema = build_schema(SDL)
    posts: dict[str, dict] = {"1": {"id": "1", "title": "First post"}}
    listeners: list[asyncio.Queue] = []

    def add_post(_root, _info, title: str) -> dict:
        post = {"id": str(len(posts) + 1), "title": title}
        posts[post["id"]] = post
        for queue in listeners:
            queue.put_nowait(post)
        return post

    async def post_added(_root, _info):
        queue: asyncio.Queue = asyncio.Queue()
        listeners.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            listeners.remove(queue)

    schema.query_type.fields["posts"].resolve = lambda _root, _info: list(posts.values())
    schema.query_type.fields["post"].resolve = lambda _root, _info, id: posts.get(id)
    schema.mutation_type.fields["addPost"].resolve = add_post
    schema.subscription_type.fields["postAdded"].subscribe = post_added
    schema.subscription_type.fields["postAdded"].resolve = lambda post, _info: post
    return schema


def main() -> None:
    parser = argparse.ArgumentParser(description="Blog schema served over REST")
    parser.add_argument("--port", type=int, default=4000)
    parser.add_argument("--openapi", default="blog-openapi.json")
    args = parser.parse_args()

    configure_logging("debug")
    schema = build_blog_schema()
    openapi = OpenAPI(schema=schema, info={"title": "Blog API", "version": "1.0.0"})

    app = create_app(
        BridgeConfig(
            base_path="/api",
            schema=schema,
            on_route=lambda info: openapi.add_route(info, base_path="/api"),
        )
    )
    openapi.save(args.openapi)
    print(f"OpenAPI document written to {args.openapi}")

    uvicorn.run(app, host="127.0.0.1", port=args.port)


if __name__ == "__main__":
    main()
