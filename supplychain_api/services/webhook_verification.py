"""
Webhook signature verification.

Each provider signs the raw request body with HMAC-SHA256 using a shared secret:

  - shopify: base64 digest in X-Shopify-Hmac-SHA256
  - sap:     hex digest in X-SAP-Signature
  - powerbi: hex digest in X-PowerBI-Signature
  - iot:     hex digest in X-IoT-Signature

Comparisons are constant-time. A missing secret rejects every delivery for that
provider.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from typing import Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

PROVIDER_HEADERS: Dict[str, str] = {
    "shopify": "X-Shopify-Hmac-SHA256",
    "sap": "X-SAP-Signature",
    "powerbi": "X-PowerBI-Signature",
    "iot": "X-IoT-Signature",
}


def _digest(secret: str, body: bytes) -> bytes:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()


# PUBLIC_INTERFACE
def verify_base64_hmac(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """True when signature is the base64 HMAC-SHA256 of body (Shopify scheme)."""
    if not secret or not signature:
        return False
    expected = base64.b64encode(_digest(secret, body)).decode("ascii")
    return hmac.compare_digest(expected, signature.strip())


# PUBLIC_INTERFACE
def verify_hex_hmac(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """True when signature is the hex HMAC-SHA256 of body."""
    if not secret or not signature:
        return False
    expected = _digest(secret, body).hex()
    return hmac.compare_digest(expected, signature.strip().lower())


_SCHEMES: Dict[str, Callable[[str, bytes, Optional[str]], bool]] = {
    "shopify": verify_base64_hmac,
    "sap": verify_hex_hmac,
    "powerbi": verify_hex_hmac,
    "iot": verify_hex_hmac,
}


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


class WebhookVerifier:
    """
    Verifies inbound webhook signatures against per-provider secrets.

    secrets maps provider name to its shared secret (see AppSettings.webhook_secrets).
    """

    def __init__(self, secrets: Mapping[str, str]) -> None:
        self._secrets = dict(secrets)

    # PUBLIC_INTERFACE
    def verify(self, provider: str, body: bytes, headers: Mapping[str, str]) -> bool:
        """
        Check the signature header of a delivery.

        Parameters:
            provider: shopify | sap | powerbi | iot
            body: raw request body, exactly as received
            headers: request headers (case-insensitive lookup)
        Returns:
            True only for a correctly signed body. Unknown provider, missing header
            or missing secret give False.
        """
        scheme = _SCHEMES.get(provider)
        if scheme is None:
            logger.warning("Unknown webhook provider: %s", provider)
            return False

        secret = self._secrets.get(provider) or ""
        if not secret:
            logger.warning("Webhook secret for %s is not configured; rejecting delivery", provider)
            return False

        signature = _header(headers, PROVIDER_HEADERS[provider])
        if not signature:
            logger.info("Missing %s header on %s webhook", PROVIDER_HEADERS[provider], provider)
            return False

        valid = scheme(secret, body, signature)
        if not valid:
            logger.warning("Invalid %s webhook signature", provider)
        return valid
