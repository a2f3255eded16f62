"""Shared pytest fixtures for m365-mcp tests.

This module provides reusable fixtures for testing OAuth authentication,
credential storage, and Microsoft Graph mocks.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from m365_mcp.auth.models import CredentialRecord
from m365_mcp.config import AuthConfig

# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def auth_config() -> AuthConfig:
    """Create a public-client configuration with a dynamic redirect port."""
    return AuthConfig(client_id="test-client-id", tenant_id="test-tenant", timezone="UTC")


@pytest.fixture
def confidential_config() -> AuthConfig:
    """Create a configuration with a client secret and fixed redirect URL."""
    return AuthConfig(
        client_id="test-client-id",
        client_secret="test-client-secret",  # pragma: allowlist secret
        tenant_id="test-tenant",
        redirect_url="http://localhost:8765/callback",
        timezone="UTC",
    )


@pytest.fixture
def isolated_config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at a temporary directory."""
    config_home = tmp_path / "xdg"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    return config_home


# =============================================================================
# Credential Fixtures
# =============================================================================


@pytest.fixture
def valid_record() -> CredentialRecord:
    """Create a valid, non-expired credential."""
    return CredentialRecord(
        access_token="test_access_token_abc123",
        refresh_token="test_refresh_token_xyz789",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        scopes="User.Read Calendars.Read",
    )


@pytest.fixture
def expired_record() -> CredentialRecord:
    """Create an expired credential."""
    return CredentialRecord(
        access_token="expired_access_token",
        refresh_token="test_refresh_token",
        expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
        scopes="User.Read",
    )


# =============================================================================
# Credential Storage Fixtures
# =============================================================================


@pytest.fixture
def temp_token_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for credential storage tests."""
    token_dir = tmp_path / "m365-mcp"
    token_dir.mkdir(parents=True, mode=0o700)
    return token_dir


@pytest.fixture
def temp_token_path(temp_token_dir: Path) -> Path:
    """Get the path for a temporary tokens.json file."""
    return temp_token_dir / "tokens.json"


@pytest.fixture
def credential_store(temp_token_path: Path):
    """Create a CredentialStore with temporary storage."""
    from m365_mcp.auth.token_storage import CredentialStore

    return CredentialStore(token_path=temp_token_path)


# =============================================================================
# HTTP Mocks
# =============================================================================


class RecordingTransport:
    """Route requests to a handler and remember them for assertions."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def mock_http():
    """Factory for httpx clients backed by a recording MockTransport."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
    ) -> tuple[httpx.AsyncClient, RecordingTransport]:
        recorder = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        return client, recorder

    return factory


@pytest.fixture
def graph_factory(mock_http):
    """Factory for GraphClient instances backed by a recording transport."""
    from m365_mcp.graph import GraphClient

    def factory(handler: Callable[[httpx.Request], httpx.Response], tz: str = "UTC"):
        client, recorder = mock_http(handler)
        return GraphClient(tz, http_client=client), recorder

    return factory


# =============================================================================
# OAuth Manager Fixtures
# =============================================================================


@pytest.fixture
def oauth_manager(auth_config: AuthConfig, credential_store):
    """Create an OAuthManager with temporary storage."""
    from m365_mcp.auth.oauth_manager import OAuthManager

    return OAuthManager(auth_config, storage=credential_store)
