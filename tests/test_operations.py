"""Tests for the default operation compiler."""

from __future__ import annotations

import pytest
from graphql import build_schema, print_ast
from helpers import make_schema

from gqlrest.coercion import ListOf, Named, NonNull
from gqlrest.operations import build_operation_for_field, get_operation_info


def compact(document) -> str:
    return " ".join(print_ast(document).split())


class TestBuildOperation:
    def test_single_field_with_id_variable(self):
        doc = build_operation_for_field(
            schema=make_schema(), kind="query", field="user", models=["User", "Post"]
        )
        text = compact(doc)
        assert text.startswith("query userQuery($id: ID!) { user(id: $id) {")
        # The root object is expanded, nested models collapse to their id
        assert "name" in text
        assert "posts { id }" in text
        assert "friends { id }" in text

    def test_operation_name_uses_kind(self):
        schema = make_schema()
        mutation = build_operation_for_field(schema=schema, kind="mutation", field="addPost")
        subscription = build_operation_for_field(
            schema=schema, kind="subscription", field="commentAdded"
        )
        assert get_operation_info(mutation).operation_name == "addPostMutation"
        assert get_operation_info(subscription).operation_name == "commentAddedSubscription"

    def test_scalar_root_field_has_no_selection(self):
        doc = build_operation_for_field(schema=make_schema(), kind="mutation", field="deleteUser")
        assert compact(doc) == (
            "mutation deleteUserMutation($id: ID!) { deleteUser(id: $id) }"
        )

    def test_no_arguments_no_variable_block(self):
        doc = build_operation_for_field(schema=make_schema(), kind="query", field="posts")
        assert compact(doc).startswith("query postsQuery { posts {")

    def test_ignored_field_is_expanded(self):
        doc = build_operation_for_field(
            schema=make_schema(),
            kind="query",
            field="post",
            models=["User", "Post"],
            ignore=["Post.author"],
        )
        text = compact(doc)
        assert "author { id name" in text

    def test_depth_limit_cuts_self_reference(self):
        schema = build_schema("""
            type Node { name: String children: [Node] }
            type Query { root: Node }
        """)
        shallow = compact(
            build_operation_for_field(schema=schema, kind="query", field="root", depth_limit=1)
        )
        deep = compact(
            build_operation_for_field(schema=schema, kind="query", field="root", depth_limit=2)
        )
        assert shallow == "query rootQuery { root { name children { name } } }"
        assert deep == "query rootQuery { root { name children { name children { name } } } }"

    def test_nested_fields_with_required_arguments_skipped(self):
        schema = build_schema("""
            type User { id: ID! avatar(size: Int!): String bio: String }
            type Query { me: User }
        """)
        text = compact(build_operation_for_field(schema=schema, kind="query", field="me"))
        assert "avatar" not in text
        assert "bio" in text

    def test_union_gets_inline_fragments(self):
        schema = build_schema("""
            type Cat { meow: String }
            type Dog { bark: String }
            union Pet = Cat | Dog
            type Query { pets: [Pet] }
        """)
        text = compact(build_operation_for_field(schema=schema, kind="query", field="pets"))
        assert "__typename" in text
        assert "... on Cat { meow }" in text
        assert "... on Dog { bark }" in text

    def test_unknown_field(self):
        with pytest.raises(ValueError, match="does not exist"):
            build_operation_for_field(schema=make_schema(), kind="query", field="nope")


class TestOperationInfo:
    def test_variables_keep_declared_types(self):
        doc = build_operation_for_field(schema=make_schema(), kind="query", field="search")
        info = get_operation_info(doc)
        by_name = {v.name: v for v in info.variables}
        assert by_name["term"].type == NonNull(Named("String"))
        assert by_name["term"].required is True
        assert by_name["flags"].type == ListOf(NonNull(Named("Int")))
        assert by_name["flags"].required is False
        assert by_name["role"].type == Named("Role")
