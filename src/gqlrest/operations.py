"""Default operation compiler: build an executable document for a root field.

Given a root field, emits an operation that declares one variable per
field argument and selects the field's full output shape, with model
references collapsed to ``{ id }`` and self-referential types cut off
after ``depth_limit`` repetitions.  The document is generated as text
and parsed with graphql-core.

Example for ``user(id: ID!): User`` on the query root::

    query userQuery($id: ID!) { user(id: $id) { id name posts { id } } }
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass
from typing import Literal, Protocol

from graphql import (
    DocumentNode,
    GraphQLNamedType,
    GraphQLObjectType,
    GraphQLOutputType,
    GraphQLSchema,
    NonNullTypeNode,
    OperationDefinitionNode,
    get_named_type,
    get_operation_ast,
    is_abstract_type,
    is_leaf_type,
    is_object_type,
    is_required_argument,
    parse,
)

from gqlrest.coercion import TypeRef, type_ref_from_node

logger = logging.getLogger(__name__)

OperationKind = Literal["query", "mutation", "subscription"]


class OperationCompiler(Protocol):
    """Signature of the ``compile_operation`` collaborator."""

    def __call__(
        self,
        *,
        schema: GraphQLSchema,
        kind: OperationKind,
        field: str,
        models: Collection[str],
        ignore: Collection[str],
        depth_limit: int,
    ) -> DocumentNode: ...


@dataclass(frozen=True)
class VariableSpec:
    """A declared operation variable."""

    name: str
    type: TypeRef
    required: bool


@dataclass(frozen=True)
class OperationHandle:
    """A compiled operation document plus its declared variables."""

    document: DocumentNode
    operation: OperationDefinitionNode
    operation_name: str | None
    variables: tuple[VariableSpec, ...]


def get_operation_info(document: DocumentNode) -> OperationHandle:
    """Wrap a single-operation document into an ``OperationHandle``."""
    op = get_operation_ast(document)
    if op is None:
        raise ValueError("Document must contain exactly one operation")
    variables = tuple(
        VariableSpec(
            name=definition.variable.name.value,
            type=type_ref_from_node(definition.type),
            required=isinstance(definition.type, NonNullTypeNode),
        )
        for definition in op.variable_definitions or ()
    )
    return OperationHandle(
        document=document,
        operation=op,
        operation_name=op.name.value if op.name else None,
        variables=variables,
    )


def root_type(schema: GraphQLSchema, kind: OperationKind) -> GraphQLObjectType | None:
    if kind == "query":
        return schema.query_type
    if kind == "mutation":
        return schema.mutation_type
    return schema.subscription_type


def build_operation_for_field(
    *,
    schema: GraphQLSchema,
    kind: OperationKind,
    field: str,
    models: Collection[str] = (),
    ignore: Collection[str] = (),
    depth_limit: int = 1,
) -> DocumentNode:
    """Build a one-field operation document for ``kind.field``."""
    root = root_type(schema, kind)
    if root is None or field not in root.fields:
        raise ValueError(f"{kind.title()} field '{field}' does not exist")
    gql_field = root.fields[field]

    var_defs = ", ".join(f"${name}: {arg.type}" for name, arg in gql_field.args.items())
    arguments = ", ".join(f"{name}: ${name}" for name in gql_field.args)
    selection = _SelectionBuilder(schema, models, ignore, depth_limit).build(
        gql_field.type, (), root.name, field, is_root=True
    )

    text = (
        f"{kind} {field}{kind.capitalize()}"
        f"{f'({var_defs})' if var_defs else ''}"
        f" {{ {field}{f'({arguments})' if arguments else ''} {selection or ''} }}"
    )
    logger.debug("[Operation] %s", text)
    return parse(text)


class _SelectionBuilder:
    def __init__(
        self,
        schema: GraphQLSchema,
        models: Collection[str],
        ignore: Collection[str],
        depth_limit: int,
    ) -> None:
        self.schema = schema
        self.models = set(models)
        self.ignore = set(ignore)
        self.depth_limit = depth_limit

    def build(
        self,
        type_: GraphQLOutputType | GraphQLNamedType,
        ancestors: tuple[str, ...],
        parent: str,
        field_name: str,
        *,
        is_root: bool = False,
    ) -> str | None:
        """Selection set text for a field of ``type_``.

        Returns ``""`` for leaves and ``None`` when the field must be
        left out of its parent's selection.
        """
        named = get_named_type(type_)
        if is_leaf_type(named):
            return ""
        if ancestors.count(named.name) > self.depth_limit:
            return None

        path = (*ancestors, named.name)
        if is_object_type(named):
            if not is_root and self._is_model_reference(named, parent, field_name):
                return "{ id }"
            parts: list[str] = []
            for name, child in named.fields.items():  # type: ignore[union-attr]
                if any(is_required_argument(arg) for arg in child.args.values()):
                    continue
                sub = self.build(child.type, path, named.name, name)
                if sub is None:
                    continue
                parts.append(f"{name} {sub}" if sub else name)
            if not parts:
                return "{ __typename }" if is_root else None
            return "{ " + " ".join(parts) + " }"

        if is_abstract_type(named):
            fragments = []
            for possible in self.schema.get_possible_types(named):  # type: ignore[arg-type]
                sub = self.build(possible, path, parent, field_name, is_root=is_root)
                if sub:
                    fragments.append(f"... on {possible.name} {sub}")
            return "{ " + " ".join(["__typename", *fragments]) + " }"

        return None

    def _is_model_reference(self, type_: GraphQLNamedType, parent: str, field_name: str) -> bool:
        return (
            type_.name in self.models
            and type_.name not in self.ignore
            and f"{parent}.{field_name}" not in self.ignore
        )
