"""
Authentication module — app-only (certificate or client secret) and
resource-owner password auth against the Microsoft Identity Platform via MSAL.
"""

from __future__ import annotations

import base64
import logging
from typing import Optional

from cryptography.hazmat.primitives.serialization import pkcs12, Encoding, PrivateFormat, NoEncryption
from cryptography.hazmat.primitives.hashes import SHA1
import msal

from ..config import AuthConfig, AUTH_MODES, GRAPH_SCOPES, REQUIRED_PERMISSIONS
from ..errors import AuthenticationFailure

logger = logging.getLogger("m365_license_probe.auth")


def load_certificate(cert_path: str, password: str) -> dict[str, str]:
    """
    Load a base64-encoded PFX and return the MSAL client credential
    (thumbprint + PEM private key).
    """
    try:
        with open(cert_path, "r", encoding="utf-8") as f:
            cert_base64 = f.read().strip()
    except FileNotFoundError:
        raise AuthenticationFailure(f"Certificate file not found: {cert_path}")
    except OSError as e:
        raise AuthenticationFailure(f"Cannot read certificate file {cert_path}: {e}")

    try:
        cert_bytes = base64.b64decode(cert_base64)
        password_bytes = password.encode("utf-8") if password else None
        private_key, certificate, _ = pkcs12.load_key_and_certificates(
            cert_bytes, password_bytes
        )
    except ValueError as e:
        raise AuthenticationFailure(f"Failed to load certificate: {e}")

    if private_key is None or certificate is None:
        raise AuthenticationFailure("Certificate file holds no private key / certificate pair")

    private_key_pem = private_key.private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
    ).decode("utf-8")
    thumbprint = certificate.fingerprint(SHA1()).hex()
    logger.info(f"Certificate loaded. Thumbprint: {thumbprint}")

    return {"thumbprint": thumbprint, "private_key": private_key_pem}


class Authenticator:
    """
    Handles MSAL-based token acquisition for Microsoft Graph.
    Supports:
      - Certificate-based app-only authentication
      - Client-secret app-only authentication
      - Username / password (resource owner) authentication
    """

    def __init__(self, config: AuthConfig):
        self.config = config
        self._access_token: Optional[str] = None

    async def acquire_token(self) -> str:
        """Acquire an access token based on the configured auth mode."""
        if self.config.mode not in AUTH_MODES:
            raise AuthenticationFailure(f"Unknown auth mode: {self.config.mode}")
        if not self.config.tenant_id or not self.config.client_id:
            raise AuthenticationFailure("No tenant credentials configured (tenant id and client id required)")

        try:
            if self.config.mode == "certificate":
                result = self._acquire_certificate_token()
            elif self.config.mode == "secret":
                result = self._acquire_secret_token()
            else:
                result = self._acquire_password_token()
        except AuthenticationFailure:
            raise
        except Exception as e:
            raise AuthenticationFailure(f"{type(e).__name__}: {e}") from e

        if "access_token" in result:
            self._access_token = result["access_token"]
            logger.info(f"{self.config.mode} authentication successful.")
            return self._access_token
        error = result.get("error_description", result.get("error", "Unknown"))
        raise AuthenticationFailure(f"{self.config.mode} auth failed: {error}")

    def _acquire_certificate_token(self) -> dict:
        """Acquire token using certificate-based client credentials."""
        logger.info("Authenticating with certificate-based app credentials...")
        credential = load_certificate(
            self.config.certificate_path, self.config.certificate_password
        )
        app = msal.ConfidentialClientApplication(
            client_id=self.config.client_id,
            authority=self.config.authority,
            client_credential=credential,
        )
        return app.acquire_token_for_client(scopes=GRAPH_SCOPES)

    def _acquire_secret_token(self) -> dict:
        """Acquire token using a client secret."""
        if not self.config.client_secret:
            raise AuthenticationFailure("Client secret not provided.")
        logger.info("Authenticating with client secret...")
        app = msal.ConfidentialClientApplication(
            client_id=self.config.client_id,
            authority=self.config.authority,
            client_credential=self.config.client_secret,
        )
        return app.acquire_token_for_client(scopes=GRAPH_SCOPES)

    def _acquire_password_token(self) -> dict:
        """Acquire token for a user account (no interactive prompt)."""
        if not self.config.username or not self.config.password:
            raise AuthenticationFailure("Username and password are required for password auth.")
        logger.info(f"Authenticating as {self.config.username}...")
        app = msal.PublicClientApplication(
            client_id=self.config.client_id,
            authority=self.config.authority,
        )
        return app.acquire_token_by_username_password(
            self.config.username, self.config.password, scopes=GRAPH_SCOPES,
        )

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @staticmethod
    def list_required_permissions() -> dict[str, str]:
        """Return the map of required Graph API permissions."""
        return REQUIRED_PERMISSIONS
