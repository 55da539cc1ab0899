"""OpenAPI 3.0 document built from compiled routes.

Feed it from ``on_route``::

    openapi = OpenAPI(schema=schema, info={"title": "Example API", "version": "1.0.0"})
    config = BridgeConfig(
        base_path="/api",
        schema=schema,
        on_route=lambda info: openapi.add_route(info, base_path="/api"),
    )
    router = create_rest_router(config)
    openapi.save("openapi.yaml")
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import yaml
from graphql import (
    GraphQLField,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLType,
    OperationDefinitionNode,
    is_enum_type,
    is_input_object_type,
    is_introspection_type,
    is_list_type,
    is_non_null_type,
    is_object_type,
    is_scalar_type,
)

from gqlrest.coercion import ListOf, Named, NonNull, TypeRef
from gqlrest.models import RouteInfo
from gqlrest.operations import get_operation_info, root_type

_PRIMITIVES: dict[str, dict[str, str]] = {
    "Int": {"type": "integer", "format": "int32"},
    "Float": {"type": "number", "format": "float"},
    "String": {"type": "string"},
    "Boolean": {"type": "boolean"},
    "ID": {"type": "string"},
}

_PATH_PARAM = re.compile(r":([a-z0-9_]+)", re.IGNORECASE)
_BODY_METHODS = {"POST", "PUT", "PATCH"}


def map_to_primitive(type_name: str) -> dict[str, str] | None:
    primitive = _PRIMITIVES.get(type_name)
    return dict(primitive) if primitive else None


def map_to_ref(type_name: str) -> str:
    return f"#/components/schemas/{type_name}"


# ------------------------------------------------------------------ #
# Component schemas
# ------------------------------------------------------------------ #


def build_schema_object(type_: GraphQLObjectType | GraphQLInputObjectType) -> dict[str, Any]:
    required: list[str] = []
    properties: dict[str, Any] = {}
    fields: dict[str, GraphQLField | GraphQLInputField] = dict(type_.fields)
    for field_name, field in fields.items():
        if is_non_null_type(field.type):
            required.append(field_name)
        properties[field_name] = resolve_field_type(field.type)
        if field.description:
            properties[field_name]["description"] = field.description

    schema_object: dict[str, Any] = {"type": "object"}
    if required:
        schema_object["required"] = required
    schema_object["properties"] = properties
    if type_.description:
        schema_object["description"] = type_.description
    return schema_object


def resolve_field_type(type_: GraphQLType) -> dict[str, Any]:
    if is_non_null_type(type_):
        return resolve_field_type(type_.of_type)  # type: ignore[attr-defined]
    if is_list_type(type_):
        return {"type": "array", "items": resolve_field_type(type_.of_type)}  # type: ignore[attr-defined]
    if is_object_type(type_):
        return {"$ref": map_to_ref(type_.name)}  # type: ignore[attr-defined]
    if is_scalar_type(type_):
        return map_to_primitive(type_.name) or {"type": "object"}  # type: ignore[attr-defined]
    if is_enum_type(type_):
        return {"type": "string", "enum": list(type_.values)}  # type: ignore[attr-defined]
    return {"type": "object"}


# ------------------------------------------------------------------ #
# Parameters
# ------------------------------------------------------------------ #


def resolve_param_schema(type_ref: TypeRef) -> dict[str, Any]:
    match type_ref:
        case NonNull(of_type=inner):
            return resolve_param_schema(inner)
        case ListOf(of_type=inner):
            return {"type": "array", "items": resolve_param_schema(inner)}
        case Named(name=name):
            return map_to_primitive(name) or {"$ref": map_to_ref(name)}
    raise TypeError(f"Unknown type reference: {type_ref!r}")


class OpenAPI:
    """Accumulates one path item per compiled route."""

    def __init__(
        self,
        schema: GraphQLSchema,
        info: dict[str, Any],
        *,
        servers: list[dict[str, Any]] | None = None,
        components: dict[str, Any] | None = None,
        security: list[dict[str, Any]] | None = None,
        tags: list[dict[str, Any]] | None = None,
    ) -> None:
        self.schema = schema
        self._document: dict[str, Any] = {
            "openapi": "3.0.0",
            "info": info,
            "paths": {},
            "components": {"schemas": {}},
        }
        if servers:
            self._document["servers"] = servers
        if tags:
            self._document["tags"] = tags

        schemas = self._document["components"]["schemas"]
        for type_name, type_ in schema.type_map.items():
            if is_introspection_type(type_):
                continue
            if is_object_type(type_) or is_input_object_type(type_):
                schemas[type_name] = build_schema_object(type_)  # type: ignore[arg-type]
            elif is_enum_type(type_):
                schemas[type_name] = resolve_field_type(type_)
        if components:
            self._document["components"] = {**components, **self._document["components"]}
        if security:
            self._document["security"] = security

    def add_route(self, info: RouteInfo, base_path: str = "") -> None:
        path = base_path + _PATH_PARAM.sub(r"{\1}", info.path)
        method = info.method.upper()
        self._document["paths"].setdefault(path, {})[method.lower()] = self._build_operation(
            path, info, use_request_body=method in _BODY_METHODS
        )

    def get(self) -> dict[str, Any]:
        return self._document

    def save(self, filepath: str | Path) -> None:
        """Write the document as JSON or YAML, chosen by file extension."""
        path = Path(filepath)
        suffix = path.suffix.lower()
        if suffix == ".json":
            text = json.dumps(self._document, indent=2)
        elif suffix in (".yaml", ".yml"):
            text = yaml.safe_dump(self._document, sort_keys=False)
        else:
            raise ValueError("Only JSON and YAML files are supported")
        path.write_text(text, encoding="utf-8")

    # ------------------------------------------------------------------ #

    def _build_operation(
        self, url: str, info: RouteInfo, *, use_request_body: bool
    ) -> dict[str, Any]:
        handle = get_operation_info(info.document)
        operation: dict[str, Any] = {"operationId": handle.operation_name}

        if use_request_body:
            properties = {v.name: resolve_param_schema(v.type) for v in handle.variables}
            required = [v.name for v in handle.variables if v.required]
            body_schema: dict[str, Any] = {"type": "object", "properties": properties}
            if required:
                body_schema["required"] = required
            operation["requestBody"] = {"content": {"application/json": {"schema": body_schema}}}
        else:
            parameters = []
            for v in handle.variables:
                in_path = f"{{{v.name}}}" in url
                parameters.append(
                    {
                        "in": "path" if in_path else "query",
                        "name": v.name,
                        # path parameters are always required in OpenAPI 3.0
                        "required": in_path or v.required,
                        "schema": resolve_param_schema(v.type),
                    }
                )
            operation["parameters"] = parameters

        field = self._root_field(handle.operation)
        operation["responses"] = {
            "200": {
                "description": (field.description or "") if field else "",
                "content": {
                    "application/json": {
                        "schema": resolve_field_type(field.type) if field else {"type": "object"}
                    }
                },
            }
        }
        return operation

    def _root_field(self, operation: OperationDefinitionNode) -> GraphQLField | None:
        root = root_type(self.schema, operation.operation.value)  # type: ignore[arg-type]
        if root is None:
            return None
        selection = operation.selection_set.selections[0]
        return root.fields.get(selection.name.value)  # type: ignore[attr-defined]
