"""Detect which object types are addressable REST resources ("models").

A type is a model when the query root has both a list field named after
its plural (no required arguments) and a single-item field named after
the type taking exactly one ``id`` argument.
"""

from __future__ import annotations

from collections.abc import Iterable

from graphql import (
    GraphQLList,
    GraphQLNamedType,
    GraphQLNonNull,
    GraphQLOutputType,
    GraphQLSchema,
    get_named_type,
    is_list_type,
    is_non_null_type,
    is_object_type,
)

from gqlrest.naming import is_name_equal


def has_id(named_type: GraphQLNamedType | None) -> bool:
    return is_object_type(named_type) and "id" in named_type.fields  # type: ignore[union-attr]


def is_single_object(type_: GraphQLOutputType) -> bool:
    """``T`` or ``T!`` where ``T`` is an object type."""
    if is_non_null_type(type_):
        type_ = type_.of_type  # type: ignore[union-attr]
    return is_object_type(type_)


def is_list_of(type_: GraphQLOutputType, expected: GraphQLNamedType) -> bool:
    """``[T]``, ``[T!]``, ``[T]!`` or ``[T!]!`` for the expected ``T``."""
    if isinstance(type_, GraphQLNonNull):
        type_ = type_.of_type
    if not isinstance(type_, GraphQLList):
        return False
    item = type_.of_type
    if isinstance(item, GraphQLNonNull):
        item = item.of_type
    return getattr(item, "name", None) == expected.name


def extract_models(schema: GraphQLSchema, ignore: Iterable[str] = ()) -> list[str]:
    """Return the names of object types recognised as models.

    Types listed in ``ignore`` never qualify.  A later root field for the
    same type overrides the flag an earlier one set, matching the order
    of the query type's fields.
    """
    query = schema.query_type
    if query is None:
        return []
    ignored = set(ignore)

    flags: dict[str, dict[str, bool]] = {}
    for field_name, field in query.fields.items():
        named_type = get_named_type(field.type)
        if not has_id(named_type):
            continue
        entry = flags.setdefault(named_type.name, {"list": False, "single": False})

        if is_list_type(field.type) or (
            is_non_null_type(field.type) and is_list_type(field.type.of_type)  # type: ignore[union-attr]
        ):
            if is_list_of(field.type, named_type):
                same_name = is_name_equal(field_name, named_type.name + "s")
                all_optional = not any(is_non_null_type(arg.type) for arg in field.args.values())
                entry["list"] = same_name and all_optional
        elif is_single_object(field.type):
            same_name = is_name_equal(field_name, named_type.name)
            only_id = list(field.args) == ["id"]
            entry["single"] = same_name and only_id

    return [
        name
        for name, entry in flags.items()
        if entry["list"] and entry["single"] and name not in ignored
    ]
