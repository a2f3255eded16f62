"""Microsoft Graph access for m365-mcp tools."""

from m365_mcp.graph.client import (
    BETA_RETRY_STATUSES,
    GRAPH_BETA_BASE,
    GRAPH_V1_BASE,
    GraphClient,
    error_message_for_status,
)
from m365_mcp.graph.models import GraphError, GraphFailure, GraphResult, GraphSuccess

__all__ = [
    "GraphClient",
    "GraphResult",
    "GraphSuccess",
    "GraphFailure",
    "GraphError",
    "GRAPH_V1_BASE",
    "GRAPH_BETA_BASE",
    "BETA_RETRY_STATUSES",
    "error_message_for_status",
]
