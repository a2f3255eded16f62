"""Command-line interface for m365-mcp."""

import asyncio
import sys

import click

from m365_mcp.__version__ import __version__
from m365_mcp.config import (
    ENV_CLIENT_ID,
    ENV_TENANT_ID,
    AuthConfig,
    ConfigurationError,
    load_auth_config,
    resolve_timezone,
)


def _load_config_or_exit() -> AuthConfig:
    try:
        return load_auth_config()
    except ConfigurationError as e:
        click.echo(f"❌ Error: {e}", err=True)
        click.echo("", err=True)
        click.echo("Set environment variables:", err=True)
        click.echo(f"  export {ENV_CLIENT_ID}='your-client-id'", err=True)
        click.echo(f"  export {ENV_TENANT_ID}='your-tenant-id'", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Microsoft 365 MCP Server - Connect MCP clients to Microsoft Graph.

    This tool provides read-only access to:
    - Outlook (calendar, mail)
    - Teams (chats, meeting transcripts)
    - OneDrive (files)
    """
    pass


@main.command()
def setup() -> None:
    """Sign in to Microsoft 365.

    This will:
    1. Open browser for the Microsoft sign-in and consent page
    2. Store tokens at ~/.config/m365-mcp/tokens.json

    Requires MS365_MCP_CLIENT_ID and MS365_MCP_TENANT_ID.
    """
    from m365_mcp.auth import OAuthManager

    manager = OAuthManager(_load_config_or_exit())

    # Check if already authenticated
    if manager.has_valid_tokens():
        click.echo("✓ Already authenticated!")
        click.echo(f"Token stored at: {manager.token_path}")
        click.echo("")

        if not click.confirm("Re-authenticate?"):
            return

    click.echo("Starting OAuth authentication flow...")
    click.echo("Browser will open for Microsoft sign-in...")
    click.echo("")

    try:
        asyncio.run(manager.authenticate())
        click.echo("✓ Authentication successful!")
        click.echo(f"Token stored at: {manager.token_path}")
        click.echo("")
        click.echo("Run 'm365-mcp doctor' to verify setup.")
    except Exception as e:
        click.echo(f"❌ Authentication failed: {e}")
        sys.exit(1)


@main.command()
def mcp() -> None:
    """Start the MCP server on stdio.

    Sign-in happens on the first tool call if no token is stored yet.
    This command is typically invoked by an MCP client.
    """
    from m365_mcp.server import M365Server

    config = _load_config_or_exit()

    try:
        click.echo("Starting Microsoft 365 MCP server...", err=True)
        server = M365Server(config=config)
        asyncio.run(server.run())
    except KeyboardInterrupt:
        click.echo("\nServer stopped.", err=True)
    except Exception as e:
        click.echo(f"❌ Server error: {e}", err=True)
        sys.exit(1)


@main.command()
def doctor() -> None:
    """Check configuration and authentication status."""
    from m365_mcp.auth import OAuthManager, TokenStatus

    click.echo("Microsoft 365 MCP Status:")
    click.echo("")

    config = _load_config_or_exit()

    click.echo("Configuration:")
    click.echo(f"  Tenant: {config.tenant_id}")
    click.echo(f"  Client secret: {'set' if config.client_secret else 'not set (public client)'}")
    click.echo(f"  Redirect URL: {config.redirect_url or 'default (dynamic port)'}")
    click.echo(f"  Timezone: {resolve_timezone(config)}")
    click.echo("")

    manager = OAuthManager(config)
    status, record = manager.get_status()

    click.echo("Authentication:")
    click.echo(f"  Token file: {manager.token_path}")

    if status == TokenStatus.MISSING:
        click.echo("  ❌ Not authenticated")
        click.echo("")
        click.echo("Run 'm365-mcp setup' to authenticate.")
        sys.exit(1)
    elif status == TokenStatus.INVALID:
        click.echo("  ❌ Token file corrupted")
        click.echo("")
        click.echo("Run 'm365-mcp setup' to re-authenticate.")
        sys.exit(1)
    elif status == TokenStatus.EXPIRED:
        click.echo("  ⚠️  Token expired (can be refreshed)")
    elif status == TokenStatus.VALID:
        click.echo("  ✓ Authenticated")
        if record:
            click.echo(f"  Token expires: {record.expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")
            click.echo(f"  Scopes: {len(record.scopes.split())} granted")

    click.echo("")
    click.echo("✓ Ready to use!")


@main.command()
def logout() -> None:
    """Delete the stored Microsoft 365 token."""
    from m365_mcp.auth import CredentialStore

    storage = CredentialStore()
    if not storage.token_path.exists():
        click.echo("No stored token.")
        return

    storage.delete()
    click.echo(f"✓ Removed {storage.token_path}")


if __name__ == "__main__":
    main()
