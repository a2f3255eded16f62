"""Authenticated Microsoft Graph HTTP client.

Translates HTTP failures into GraphFailure results instead of raising,
and implements the beta-surface retry used by the Teams transcript
endpoints, which are unevenly available on v1.0.
"""

import logging
from collections.abc import Collection

import httpx

from m365_mcp.graph.models import GraphFailure, GraphResult, GraphSuccess

logger = logging.getLogger(__name__)

GRAPH_V1_BASE = "https://graph.microsoft.com/v1.0"
GRAPH_BETA_BASE = "https://graph.microsoft.com/beta"

# Statuses that trigger one retry against the beta surface
BETA_RETRY_STATUSES = (400, 403)


def error_message_for_status(status: int, body: str) -> str:
    """Map an HTTP error status to an actionable message.

    Args:
        status: HTTP status code.
        body: Raw response body, embedded for unrecognized statuses.

    Returns:
        Human-readable error message.
    """
    if status == 401:
        return "Graph token expired. Use ms_auth_status to reconnect."
    if status == 403:
        return "Insufficient permissions. Check granted scopes with ms_auth_status."
    if status == 404:
        return "Resource not found. Your account may not have an Exchange Online license."
    return f"Graph API error ({status}): {body}"


class GraphClient:
    """Thin async wrapper around the Microsoft Graph REST API.

    Attributes:
        timezone: IANA timezone sent in the Prefer header.
    """

    def __init__(self, timezone: str, http_client: httpx.AsyncClient | None = None) -> None:
        """Initialize the Graph client.

        Args:
            timezone: IANA timezone for outlook.timezone preferences.
            http_client: Shared client. Created lazily if not provided.
        """
        self.timezone = timezone
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create shared HTTP client with connection pooling."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                http2=True,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                timeout=httpx.Timeout(30.0, connect=10.0),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @staticmethod
    def base_url(beta: bool = False) -> str:
        return GRAPH_BETA_BASE if beta else GRAPH_V1_BASE

    async def _get(self, url: str, headers: dict[str, str]) -> httpx.Response | GraphFailure:
        client = await self._get_http_client()
        try:
            return await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Graph request to %s failed: %s", url.split("?", 1)[0], e)
            return GraphFailure.of(0, f"Network error: {e}")

    async def fetch(
        self,
        path: str,
        token: str,
        *,
        beta: bool = False,
        timezone: bool = True,
    ) -> GraphResult:
        """GET a Graph path and parse the JSON response.

        Args:
            path: API-relative path including query string, e.g. "/me".
            token: Bearer access token.
            beta: Use the beta surface instead of v1.0.
            timezone: Send the outlook.timezone Prefer header.

        Returns:
            GraphSuccess with the parsed JSON, or GraphFailure.
        """
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if timezone:
            headers["Prefer"] = f'outlook.timezone="{self.timezone}"'

        response = await self._get(f"{self.base_url(beta)}{path}", headers)
        if isinstance(response, GraphFailure):
            return response

        if not response.is_success:
            return GraphFailure.of(
                response.status_code,
                error_message_for_status(response.status_code, response.text),
            )

        try:
            return GraphSuccess(data=response.json())
        except ValueError as e:
            return GraphFailure.of(response.status_code, f"Invalid JSON in Graph response: {e}")

    async def fetch_text(self, path: str, token: str, *, beta: bool = False) -> GraphResult:
        """GET a Graph path returning raw text (e.g. WebVTT transcript content)."""
        headers = {"Authorization": f"Bearer {token}"}

        response = await self._get(f"{self.base_url(beta)}{path}", headers)
        if isinstance(response, GraphFailure):
            return response

        if not response.is_success:
            return GraphFailure.of(
                response.status_code,
                error_message_for_status(response.status_code, response.text),
            )

        return GraphSuccess(data=response.text)

    async def fetch_with_fallback(
        self,
        path: str,
        token: str,
        *,
        text: bool = False,
        retry_statuses: Collection[int] = BETA_RETRY_STATUSES,
    ) -> GraphResult:
        """GET from v1.0, retrying once on beta for selected failure statuses.

        Args:
            path: API-relative path including query string.
            token: Bearer access token.
            text: Return raw text instead of parsed JSON.
            retry_statuses: Statuses that trigger the beta retry. Any other
                failure is returned as-is.

        Returns:
            The v1.0 result, or the beta result when a retry happened.
        """
        if text:
            result = await self.fetch_text(path, token)
        else:
            result = await self.fetch(path, token)

        if result.ok or result.error.status not in retry_statuses:
            return result

        logger.info("Graph v1.0 returned %s, retrying on beta", result.error.status)
        if text:
            return await self.fetch_text(path, token, beta=True)
        return await self.fetch(path, token, beta=True)
