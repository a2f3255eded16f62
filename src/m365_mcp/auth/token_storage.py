"""JSON file storage for the Microsoft 365 OAuth credential.

Storage Location: $XDG_CONFIG_HOME/m365-mcp/tokens.json
    (falls back to ~/.config/m365-mcp/tokens.json)

A single credential record is stored per user. The file is written
atomically and restricted to the owning user (mode 600).
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from m365_mcp.auth.models import CredentialRecord, TokenStatus

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = "m365-mcp"
TOKEN_FILENAME = "tokens.json"


def get_config_dir() -> Path:
    """Get the m365-mcp configuration directory, creating it if needed.

    Respects XDG_CONFIG_HOME, falling back to ~/.config.

    Returns:
        Path to the m365-mcp configuration directory.
    """
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    config_dir = Path(base) / CONFIG_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
    return config_dir


def get_token_path() -> Path:
    """Get the default credential file path."""
    return get_config_dir() / TOKEN_FILENAME


class CredentialStore:
    """Load, save, and delete the single stored credential record.

    Attributes:
        token_path: Path to the tokens.json file.

    Example:
        ```python
        store = CredentialStore()
        record = store.load()
        if record is None or record.is_expired():
            ...
        ```
    """

    def __init__(self, token_path: Path | None = None) -> None:
        """Initialize the credential store.

        Args:
            token_path: Custom path for tokens.json. Defaults to the XDG
                configuration directory.
        """
        self.token_path = token_path or get_token_path()
        self._ensure_config_dir()

    def _ensure_config_dir(self) -> None:
        """Create the configuration directory with owner-only permissions."""
        config_dir = self.token_path.parent
        if not config_dir.exists():
            config_dir.mkdir(parents=True, mode=0o700)

    def load(self) -> CredentialRecord | None:
        """Read the stored credential.

        Returns:
            CredentialRecord, or None if the file is missing or malformed.
        """
        try:
            with open(self.token_path, encoding="utf-8") as f:
                data = json.load(f)
            return CredentialRecord.model_validate(data)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring unreadable credential file %s: %s", self.token_path, e)
            return None

    def save(self, record: CredentialRecord) -> None:
        """Write the credential, replacing any previous record.

        The record is written to a temporary file in the same directory and
        moved into place, so readers never see a partial record.

        Args:
            record: Credential to persist.
        """
        self._ensure_config_dir()

        fd, tmp_name = tempfile.mkstemp(
            dir=self.token_path.parent, prefix=".tokens-", suffix=".tmp"
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(record.model_dump_json(indent=2))
            # Owner read/write only (600)
            tmp_path.chmod(0o600)
            os.replace(tmp_path, self.token_path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def delete(self) -> None:
        """Remove the stored credential. Does nothing if none exists."""
        self.token_path.unlink(missing_ok=True)

    def get_status(self) -> TokenStatus:
        """Classify the stored credential.

        Returns:
            TokenStatus for the current file contents.
        """
        if not self.token_path.exists():
            return TokenStatus.MISSING

        record = self.load()
        if record is None:
            return TokenStatus.INVALID

        if record.is_expired():
            return TokenStatus.EXPIRED

        return TokenStatus.VALID
