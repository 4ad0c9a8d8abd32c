"""
Google OAuth Credential Service.

Exchanges a stored refresh token for a short-lived access token.

Environment Variables:
    GOOGLE_CLIENT_ID: OAuth client id
    GOOGLE_CLIENT_SECRET: OAuth client secret
"""

import logging
import os
from collections.abc import Callable
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
API_TIMEOUT_SECONDS = 30

# Stored refresh tokens may be encrypted; decryption is supplied by the caller
TokenDecryptor = Callable[[str], str]


class CredentialError(Exception):
    """Raised when an access token cannot be obtained."""
    pass


def _passthrough(token: str) -> str:
    return token


class GoogleCredentialService:
    """Refreshes Google access tokens for stored credentials."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        decryptor: Optional[TokenDecryptor] = None,
        timeout: float = API_TIMEOUT_SECONDS,
    ):
        """
        Initialize the credential service.

        Args:
            client_id: OAuth client id (defaults to GOOGLE_CLIENT_ID env var)
            client_secret: OAuth client secret (defaults to GOOGLE_CLIENT_SECRET env var)
            decryptor: Turns a stored refresh token into a usable one (default: unchanged)
            timeout: Request timeout in seconds
        """
        self.client_id = client_id or os.getenv("GOOGLE_CLIENT_ID")
        self.client_secret = client_secret or os.getenv("GOOGLE_CLIENT_SECRET")
        self.decryptor = decryptor or _passthrough
        self.timeout = timeout

        if not self.client_id or not self.client_secret:
            raise ValueError(
                "GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set in environment or passed as parameters"
            )

    def refresh_access_token(self, refresh_token: str) -> str:
        """
        Exchange a refresh token for an access token.

        Args:
            refresh_token: Refresh token, usable as-is

        Returns:
            Access token string

        Raises:
            CredentialError: If Google rejects the token or cannot be reached
        """
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        try:
            response = requests.post(TOKEN_URL, data=data, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise CredentialError(f"Token refresh request failed: {e}") from e

        if response.status_code >= 400:
            raise CredentialError(
                f"Token refresh rejected ({response.status_code}): {response.text[:200]}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise CredentialError("Token endpoint returned invalid JSON") from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise CredentialError("Token endpoint response has no access_token")

        return access_token

    def access_token_for(self, credential: dict[str, Any]) -> str:
        """
        Obtain an access token for a stored credential row.

        Args:
            credential: Row from the credentials table, with `google_refresh_token`

        Raises:
            CredentialError: If the row has no refresh token, it cannot be
                decrypted, or the refresh fails
        """
        stored = credential.get("google_refresh_token")
        if not stored:
            raise CredentialError("Stored credential has no refresh token")

        try:
            refresh_token = self.decryptor(stored)
        except Exception as e:
            raise CredentialError(f"Failed to decrypt refresh token: {e}") from e

        return self.refresh_access_token(refresh_token)
