"""Type-directed coercion of raw request values into operation variables.

Variable types are taken from the operation's variable definitions and
converted once into a small tagged variant::

    TypeRef = NonNull(of_type) | ListOf(of_type) | Named(name)

Raw values come from the path, the query string or the JSON body (first
source holding the name wins) and are converted by matching over that
variant.  A variable no source provides is left out of the call so the
executor applies its own default or "missing variable" error.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from graphql import (
    GraphQLError,
    GraphQLSchema,
    ListTypeNode,
    NonNullTypeNode,
    TypeNode,
    is_input_object_type,
    is_scalar_type,
)

from gqlrest.errors import CoercionError

if TYPE_CHECKING:
    from gqlrest.operations import VariableSpec


@dataclass(frozen=True)
class Named:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ListOf:
    of_type: TypeRef

    def __str__(self) -> str:
        return f"[{self.of_type}]"


@dataclass(frozen=True)
class NonNull:
    of_type: TypeRef

    def __str__(self) -> str:
        return f"{self.of_type}!"


TypeRef = Named | ListOf | NonNull


def type_ref_from_node(node: TypeNode) -> TypeRef:
    """Convert a graphql-core type AST node into a ``TypeRef``."""
    if isinstance(node, NonNullTypeNode):
        return NonNull(type_ref_from_node(node.type))
    if isinstance(node, ListTypeNode):
        return ListOf(type_ref_from_node(node.type))
    return Named(node.name.value)  # type: ignore[attr-defined]


# ------------------------------------------------------------------ #
# Parameter lookup
# ------------------------------------------------------------------ #


def pick_param(
    name: str,
    *,
    params: Mapping[str, Any] | None = None,
    query: Mapping[str, Any] | None = None,
    body: Any = None,
) -> Any:
    """Raw value for ``name``: path params, then query string, then body."""
    if params and name in params:
        return params[name]
    if query is not None and name in query:
        return query.get(name)
    if isinstance(body, Mapping) and name in body:
        return body[name]
    return None


# ------------------------------------------------------------------ #
# Coercion
# ------------------------------------------------------------------ #


def coerce_variable(value: Any, type_ref: TypeRef, schema: GraphQLSchema) -> Any:
    """Coerce one raw value; ``None`` means "omit the variable"."""
    if value is None:
        return None
    return resolve_value(value, type_ref, schema)


def resolve_value(value: Any, type_ref: TypeRef, schema: GraphQLSchema) -> Any:
    """Recursively convert ``value`` to the shape ``type_ref`` expects.

    Raises:
        CoercionError: malformed JSON for an input object, a
            non-sequence for a list type, or a scalar the scalar
            itself refuses.
    """
    match type_ref:
        case NonNull(of_type=inner):
            if value is None:
                return None
            return resolve_value(value, inner, schema)
        case ListOf(of_type=inner):
            if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
                raise CoercionError(f"Expected a list for type {type_ref}, got {value!r}")
            return [resolve_value(item, inner, schema) for item in value]
        case Named(name=name):
            return _resolve_named(value, name, schema)
    raise TypeError(f"Unknown type reference: {type_ref!r}")


def _resolve_named(value: Any, name: str, schema: GraphQLSchema) -> Any:
    named_type = schema.get_type(name)

    if is_scalar_type(named_type):
        if name == "Boolean":
            # Only the exact string "true" is truthy
            value = value == "true"
        try:
            return named_type.serialize(value)  # type: ignore[union-attr]
        except (GraphQLError, TypeError, ValueError) as e:
            raise CoercionError(f"Invalid value {value!r} for scalar {name}: {e}") from e

    if is_input_object_type(named_type):
        if isinstance(value, Mapping):
            return value
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError) as e:
            raise CoercionError(f"Invalid JSON for input type {name}: {e}") from e

    # Enums and anything else are validated by the executor
    return value


def coerce_variables(
    variables: Iterable[VariableSpec],
    schema: GraphQLSchema,
    *,
    params: Mapping[str, Any] | None = None,
    query: Mapping[str, Any] | None = None,
    body: Any = None,
) -> dict[str, Any]:
    """Build the ``variable_values`` mapping for an operation call."""
    values: dict[str, Any] = {}
    for variable in variables:
        raw = pick_param(variable.name, params=params, query=query, body=body)
        try:
            value = coerce_variable(raw, variable.type, schema)
        except CoercionError as e:
            e.variable = variable.name
            raise
        if value is not None:
            values[variable.name] = value
    return values
