"""Error taxonomy for the REST bridge.

Everything raised by the bridge derives from ``GqlRestError`` so that
the webhook handlers can translate failures into error envelopes
without catching unrelated exceptions.
"""

from __future__ import annotations

from typing import Any

from graphql import GraphQLError
from pydantic import ValidationError


class GqlRestError(Exception):
    """Base class for all bridge errors."""


class NotFoundError(GqlRestError, LookupError):
    """Unknown subscription field name or subscription id."""


class CoercionError(GqlRestError, ValueError):
    """A raw parameter could not be converted to its declared variable type.

    Raised for malformed JSON in input-object variables, non-sequence
    values for list types and scalar values the scalar itself rejects.
    """

    def __init__(self, message: str, *, variable: str | None = None) -> None:
        super().__init__(message)
        self.variable = variable


def format_error(error: Any) -> Any:
    """Render an error attached to an envelope as JSON-serializable data."""
    if isinstance(error, GraphQLError):
        return error.formatted
    if isinstance(error, ValidationError):
        return {"message": "Invalid request body", "details": error.errors(include_url=False)}
    if isinstance(error, BaseException):
        return {"message": str(error)}
    return error
