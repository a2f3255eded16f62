"""OAuth manager for Microsoft 365 (Entra ID) authentication.

This module implements the delegated authorization-code flow with PKCE
against the Microsoft identity platform v2.0 endpoints, plus silent
refresh and the per-call token lifecycle:

- No stored credential: run the interactive browser flow.
- Stored credential outside the 2-minute expiry buffer: use it as-is.
- Stored credential inside the buffer: refresh silently, falling back to
  the interactive flow if refresh fails.

The browser redirect is received by a short-lived local HTTP listener
bound either to the configured redirect URL or to an OS-assigned port.
"""

import asyncio
import base64
import hashlib
import html
import logging
import secrets
import sys
import time
import webbrowser
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from urllib.parse import parse_qs, quote, urlencode, urlparse

import httpx

from m365_mcp.auth.models import CredentialRecord, TokenStatus
from m365_mcp.auth.token_storage import CredentialStore
from m365_mcp.config import AuthConfig

logger = logging.getLogger(__name__)

# Delegated Graph permissions requested at sign-in
GRAPH_SCOPES = [
    "offline_access",
    "User.Read",
    "Calendars.Read",
    "Mail.Read",
    "Chat.Read",
    "Files.Read",
    "OnlineMeetings.Read",
    "OnlineMeetingTranscript.Read.All",
]

AUTHORITY_HOST = "https://login.microsoftonline.com"

# OAuth callback defaults
DEFAULT_CALLBACK_HOST = "127.0.0.1"
DEFAULT_CALLBACK_PATH = "/callback"
DEFAULT_AUTH_TIMEOUT_SECONDS = 300  # 5 minutes

SUCCESS_PAGE = (
    b"<html><body><h1>Authentication Successful!</h1>"
    b"<p>You can close this window and return to your assistant.</p>"
    b"</body></html>"
)


class AuthorizationError(RuntimeError):
    """Raised when the interactive authorization flow fails."""


def compute_code_challenge(verifier: str) -> str:
    """Derive the S256 PKCE code challenge for a verifier.

    Args:
        verifier: PKCE code verifier.

    Returns:
        base64url(SHA-256(verifier)) without padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass
class PendingAuthorization:
    """State for one interactive authorization attempt. Never persisted."""

    state: str
    code_verifier: str
    code_challenge: str
    redirect_uri: str

    @classmethod
    def create(cls, redirect_uri: str) -> "PendingAuthorization":
        verifier = secrets.token_urlsafe(64)
        return cls(
            state=secrets.token_urlsafe(32),
            code_verifier=verifier,
            code_challenge=compute_code_challenge(verifier),
            redirect_uri=redirect_uri,
        )


class CallbackServer(HTTPServer):
    """Single-use HTTP listener for the OAuth redirect.

    Exactly one of auth_code or error is set once a meaningful callback
    has been handled.
    """

    def __init__(self, address: tuple[str, int], callback_path: str) -> None:
        super().__init__(address, OAuthCallbackHandler)
        self.callback_path = callback_path
        self.expected_state: str | None = None
        self.auth_code: str | None = None
        self.error: str | None = None

    @property
    def port(self) -> int:
        return self.server_address[1]

    @property
    def finished(self) -> bool:
        return self.auth_code is not None or self.error is not None


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """HTTP handler for the OAuth redirect."""

    server: CallbackServer
    # Don't let a stalled client block the listener
    timeout = 10

    def log_message(self, format: str, *args) -> None:
        """Suppress HTTP server logs."""
        pass

    def _respond(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _fail(self, message: str) -> None:
        body = (
            "<html><body><h1>Authentication Failed</h1>"
            f"<p>{html.escape(message)}</p>"
            "<p>Please close this window and try again.</p></body></html>"
        ).encode("utf-8")
        self._respond(400, body)
        self.server.error = message

    def do_GET(self) -> None:
        """Handle GET request from OAuth redirect."""
        request_parsed = urlparse(self.path)

        # Only handle the callback path (browsers also ask for /favicon.ico)
        if request_parsed.path != self.server.callback_path:
            self._respond(404, b"Not Found")
            return

        params = {key: values[0] for key, values in parse_qs(request_parsed.query).items()}

        if "error" in params:
            detail = params.get("error_description") or params["error"]
            self._fail(f"Authentication failed: {detail}")
            return

        # State is checked before the code is looked at (CSRF)
        if params.get("state") != self.server.expected_state:
            self._fail("State mismatch in OAuth callback")
            return

        code = params.get("code")
        if not code:
            self._fail("No authorization code in callback")
            return

        self._respond(200, SUCCESS_PAGE)
        self.server.auth_code = code


def _describe_timeout(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds:g} seconds"


class OAuthManager:
    """OAuth authentication manager for Microsoft 365.

    Handles the interactive authorization flow, token exchange,
    storage, silent refresh, and per-call token selection.

    Attributes:
        config: OAuth application settings.
        storage: Credential store for persisting the token.
        callback_timeout: Seconds to wait for the browser redirect.

    Example:
        ```python
        manager = OAuthManager(load_auth_config())

        # Returns a usable token, signing in or refreshing as needed
        access_token = await manager.get_access_token()
        ```
    """

    def __init__(
        self,
        config: AuthConfig,
        storage: CredentialStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        callback_timeout: float = DEFAULT_AUTH_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize OAuth manager.

        Args:
            config: OAuth application settings.
            storage: Credential store. Creates default if not provided.
            http_client: Client for token endpoint calls. A short-lived
                client is created per call if not provided.
            callback_timeout: Seconds to wait for the OAuth redirect.
        """
        self.config = config
        self.storage = storage or CredentialStore()
        self.callback_timeout = callback_timeout
        self._http_client = http_client

    @property
    def token_path(self) -> Path:
        """Get the credential storage path."""
        return self.storage.token_path

    @property
    def authorize_endpoint(self) -> str:
        return f"{AUTHORITY_HOST}/{self.config.tenant_id}/oauth2/v2.0/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{AUTHORITY_HOST}/{self.config.tenant_id}/oauth2/v2.0/token"

    def has_valid_tokens(self) -> bool:
        """Check if a non-expired credential is stored."""
        return self.storage.get_status() == TokenStatus.VALID

    def get_status(self) -> tuple[TokenStatus, CredentialRecord | None]:
        """Get the status of the stored credential.

        Returns:
            Tuple of (TokenStatus, CredentialRecord or None).
        """
        status = self.storage.get_status()
        record = self.storage.load() if status != TokenStatus.MISSING else None
        return (status, record)

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    async def get_access_token(self) -> str:
        """Return a usable access token, refreshing or signing in as needed.

        Returns:
            Access token string.

        Raises:
            AuthorizationError: If interactive sign-in is required and fails.
        """
        record = self.storage.load()

        if record is None:
            logger.info("No stored credential, starting interactive sign-in")
            return (await self.authenticate()).access_token

        if not record.is_expired():
            return record.access_token

        logger.info("Access token expired or expiring soon, attempting refresh...")
        refreshed = await self.refresh_access_token(record.refresh_token)
        if refreshed is not None:
            return refreshed.access_token

        logger.info("Token refresh failed, starting interactive sign-in")
        return (await self.authenticate()).access_token

    async def refresh_access_token(self, refresh_token: str) -> CredentialRecord | None:
        """Exchange a refresh token for a new credential.

        Never raises. On any failure the stored credential is deleted so
        the next call goes through interactive sign-in.

        Args:
            refresh_token: Refresh token from the stored credential.

        Returns:
            The new CredentialRecord, or None if refresh failed.
        """
        data = {
            "grant_type": "refresh_token",
            "client_id": self.config.client_id,
            "refresh_token": refresh_token,
            "scope": " ".join(GRAPH_SCOPES),
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret

        try:
            response = await self._post_token_request(data)
        except httpx.HTTPError as e:
            logger.warning("Token refresh network error: %s", e)
            self.storage.delete()
            return None

        if not response.is_success:
            logger.warning("Token refresh failed (%s): %s", response.status_code, response.text)
            self.storage.delete()
            return None

        try:
            record = CredentialRecord.from_token_response(
                response.json(),
                fallback_scopes=" ".join(GRAPH_SCOPES),
                fallback_refresh_token=refresh_token,
            )
        except (ValueError, KeyError) as e:
            logger.warning("Token refresh returned an unusable response: %s", e)
            self.storage.delete()
            return None

        self.storage.save(record)
        logger.info("Access token refreshed")
        return record

    # ------------------------------------------------------------------
    # Interactive authorization
    # ------------------------------------------------------------------

    async def authenticate(self) -> CredentialRecord:
        """Perform the complete interactive OAuth2 authorization flow.

        Opens the browser, waits for the redirect on a local listener,
        exchanges the code for tokens, and stores the result.

        Returns:
            The newly stored CredentialRecord.

        Raises:
            AuthorizationError: If the user denies access, the callback is
                invalid, the wait times out, or the token exchange fails.
        """
        server, redirect_uri = self._bind_callback_server()
        try:
            session = PendingAuthorization.create(redirect_uri)
            server.expected_state = session.state

            auth_url = self.build_authorization_url(session)
            self._open_browser(auth_url)

            # Blocking listener runs in executor
            loop = asyncio.get_running_loop()
            code = await loop.run_in_executor(None, self._wait_for_callback, server)
        finally:
            server.server_close()

        record = await self._exchange_code(code, session)
        self.storage.save(record)
        logger.info("Signed in to Microsoft 365, token stored at %s", self.token_path)
        return record

    def _bind_callback_server(self) -> tuple[CallbackServer, str]:
        """Bind the local callback listener.

        Returns:
            Tuple of (bound server, redirect URI to send to the authorize endpoint).
        """
        if self.config.redirect_url:
            parsed = urlparse(self.config.redirect_url)
            host = parsed.hostname or DEFAULT_CALLBACK_HOST
            port = parsed.port or (443 if parsed.scheme == "https" else 80)
            callback_path = parsed.path or DEFAULT_CALLBACK_PATH
            server = CallbackServer((host, port), callback_path)
            return server, self.config.redirect_url

        # Ephemeral port assigned by the OS
        server = CallbackServer((DEFAULT_CALLBACK_HOST, 0), DEFAULT_CALLBACK_PATH)
        return server, f"http://localhost:{server.port}{DEFAULT_CALLBACK_PATH}"

    def build_authorization_url(self, session: PendingAuthorization) -> str:
        """Build the authorize endpoint URL for a pending session."""
        params = {
            "client_id": self.config.client_id,
            "response_type": "code",
            "redirect_uri": session.redirect_uri,
            "scope": " ".join(GRAPH_SCOPES),
            "state": session.state,
            "code_challenge": session.code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.authorize_endpoint}?{urlencode(params, quote_via=quote)}"

    def _open_browser(self, url: str) -> None:
        """Open the authorization URL, printing it if no browser is available."""
        try:
            opened = webbrowser.open(url)
        except Exception as e:  # webbrowser may raise anything from its backends
            logger.warning("Could not launch browser: %s", e)
            opened = False

        if not opened:
            # stdout belongs to the MCP transport
            print(f"Open this URL to sign in to Microsoft 365:\n{url}", file=sys.stderr)

    def _wait_for_callback(self, server: CallbackServer) -> str:
        """Serve requests until a meaningful callback arrives (blocking).

        Args:
            server: Bound callback listener.

        Returns:
            The authorization code.

        Raises:
            AuthorizationError: On an error callback or timeout.
        """
        deadline = time.monotonic() + self.callback_timeout

        while not server.finished:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AuthorizationError(
                    f"Authentication timed out after {_describe_timeout(self.callback_timeout)}."
                )
            server.timeout = remaining
            server.handle_request()

        if server.error:
            raise AuthorizationError(server.error)

        if not server.auth_code:
            raise AuthorizationError("No authorization code in callback")
        return server.auth_code

    async def _exchange_code(self, code: str, session: PendingAuthorization) -> CredentialRecord:
        """Exchange an authorization code for tokens."""
        data = {
            "grant_type": "authorization_code",
            "client_id": self.config.client_id,
            "code": code,
            "redirect_uri": session.redirect_uri,
            "code_verifier": session.code_verifier,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret

        try:
            response = await self._post_token_request(data)
        except httpx.HTTPError as e:
            raise AuthorizationError(f"Token exchange failed: {e}") from e

        if not response.is_success:
            raise AuthorizationError(
                f"Token exchange failed ({response.status_code}): {response.text}"
            )

        try:
            return CredentialRecord.from_token_response(
                response.json(), fallback_scopes=" ".join(GRAPH_SCOPES)
            )
        except (ValueError, KeyError) as e:
            raise AuthorizationError(f"Token exchange returned an invalid response: {e}") from e

    def _token_request_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        # SPA-registered clients require an Origin matching the redirect URL
        if self.config.redirect_url:
            parsed = urlparse(self.config.redirect_url)
            headers["Origin"] = f"{parsed.scheme}://{parsed.netloc}"
        return headers

    async def _post_token_request(self, data: dict[str, str]) -> httpx.Response:
        """POST a form-encoded body to the token endpoint."""
        headers = self._token_request_headers()
        if self._http_client is not None:
            return await self._http_client.post(self.token_endpoint, data=data, headers=headers)

        async with httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0)) as client:
            return await client.post(self.token_endpoint, data=data, headers=headers)
