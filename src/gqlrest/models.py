"""Response envelopes, route records and webhook request models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Literal

from graphql import DocumentNode
from pydantic import BaseModel, Field

from gqlrest.errors import format_error

# ------------------------------------------------------------------ #
# Response envelopes
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class RouterResult:
    """Successful dispatch: ``body`` is the executed field's value."""

    status: int
    body: Any = None
    status_message: str | None = None

    type: ClassVar[Literal["result"]] = "result"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "status": self.status, "body": self.body}
        if self.status_message:
            out["statusMessage"] = self.status_message
        return out


@dataclass(frozen=True)
class RouterError:
    """Failed dispatch: ``error`` is the original error object."""

    status: int
    error: Any = None
    status_message: str | None = None

    type: ClassVar[Literal["error"]] = "error"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.type,
            "status": self.status,
            "error": format_error(self.error),
        }
        if self.status_message:
            out["statusMessage"] = self.status_message
        return out


RouterResponse = RouterResult | RouterError


@dataclass(frozen=True)
class RouteInfo:
    """What ``on_route`` receives for every compiled route."""

    document: DocumentNode
    path: str
    method: str
    field_name: str = ""
    kind: str = "query"


# ------------------------------------------------------------------ #
# Webhook request models
# ------------------------------------------------------------------ #


class StartSubscriptionEvent(BaseModel):
    """POST /webhook request body."""

    subscription: str = Field(..., description="Subscription root field name")
    variables: dict[str, Any] | None = Field(None, description="Raw variable values")
    url: str = Field(..., description="Webhook receiving pushed results")


class UpdateSubscriptionEvent(BaseModel):
    """POST /webhook/{id} request body plus the id from the path."""

    id: str
    variables: dict[str, Any] | None = None
