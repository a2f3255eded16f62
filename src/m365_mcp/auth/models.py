"""Data models for stored OAuth credentials.

The on-disk format is a flat JSON object:

    {
      "access_token": "...",
      "refresh_token": "...",
      "expires_at": "2025-06-15T10:00:00+00:00",
      "scopes": "User.Read Calendars.Read ..."
    }
"""

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

# Tokens are treated as expired this long before their real expiry
EXPIRY_BUFFER_SECONDS = 120


class TokenStatus(str, Enum):
    """Status of the stored credential."""

    VALID = "valid"
    EXPIRED = "expired"
    MISSING = "missing"
    INVALID = "invalid"


class CredentialRecord(BaseModel):
    """OAuth credential for the signed-in Microsoft 365 user.

    Attributes:
        access_token: Bearer token for Graph API calls.
        refresh_token: Token used to obtain a new access token silently.
        expires_at: Absolute expiry time (UTC).
        scopes: Space-delimited list of granted permissions.
    """

    access_token: str = Field(..., description="Bearer access token")
    refresh_token: str = Field(..., description="Refresh token")
    expires_at: datetime = Field(..., description="Absolute expiry (UTC)")
    scopes: str = Field(default="", description="Space-delimited granted scopes")

    @field_validator("expires_at")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_token_response(
        cls,
        payload: dict,
        fallback_scopes: str = "",
        fallback_refresh_token: str | None = None,
    ) -> "CredentialRecord":
        """Build a record from an OAuth token endpoint response.

        Args:
            payload: Parsed JSON body with access_token, expires_in, etc.
            fallback_scopes: Used when the response carries no "scope".
            fallback_refresh_token: Used when the response carries no refresh_token.

        Returns:
            CredentialRecord with expiry computed from expires_in.

        Raises:
            ValueError: If the payload is not an object or expires_in is not numeric.
            KeyError: If access_token is missing.
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Token response is not an object: {type(payload).__name__}")
        try:
            expires_in = int(payload.get("expires_in", 3600))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid expires_in: {payload.get('expires_in')!r}") from e
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or fallback_refresh_token or "",
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            scopes=payload.get("scope") or fallback_scopes,
        )

    def is_expired(self, buffer_seconds: int = EXPIRY_BUFFER_SECONDS) -> bool:
        """Check whether the access token is expired or about to expire.

        Args:
            buffer_seconds: Safety margin before the real expiry.

        Returns:
            True if expires_at is earlier than now + buffer_seconds.
        """
        return self.expires_at < datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds)
