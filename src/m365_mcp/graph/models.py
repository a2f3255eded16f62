"""Result types for Microsoft Graph calls.

Every call returns exactly one of GraphSuccess or GraphFailure, so tools
can render upstream problems without exception handling.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class GraphError(BaseModel):
    """A failed Graph call.

    Attributes:
        status: HTTP status code, or 0 for network/transport errors.
        message: Human-readable, actionable description.
    """

    status: int = Field(..., description="HTTP status (0 for network errors)")
    message: str = Field(..., description="Human-readable error message")


class GraphSuccess(BaseModel):
    """A successful Graph call carrying the parsed payload."""

    ok: Literal[True] = True
    data: Any = Field(default=None, description="Parsed JSON payload or raw text")


class GraphFailure(BaseModel):
    """A failed Graph call carrying the classified error."""

    ok: Literal[False] = False
    error: GraphError

    @classmethod
    def of(cls, status: int, message: str) -> "GraphFailure":
        return cls(error=GraphError(status=status, message=message))


GraphResult = GraphSuccess | GraphFailure
