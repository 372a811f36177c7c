"""
Webhook signature verification.

Salla signs every webhook body with HMAC-SHA256 using the app's webhook secret
and sends the lowercase hex digest in ``X-Salla-Signature``. The declared
method arrives in ``X-Salla-Security-Strategy``; only ``Signature`` is
supported.
"""

from __future__ import annotations

import hmac
import logging
import re
from hashlib import sha256
from typing import Optional

from salla_relay.core.config import PLACEHOLDER_WEBHOOK_SECRET
from salla_relay.core.errors import InvalidSignatureError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-salla-signature"
STRATEGY_HEADER = "x-salla-security-strategy"
SUPPORTED_STRATEGY = "signature"

_HEX_DIGEST = re.compile(r"[0-9a-fA-F]{64}")


def sign(raw_body: bytes, secret: bytes) -> str:
    """Return the hex signature Salla would send for ``raw_body``."""
    return hmac.new(secret, raw_body, sha256).hexdigest()


def verify(raw_body: bytes, signature_header: Optional[str], secret: bytes) -> bool:
    """Check ``signature_header`` against the HMAC of ``raw_body``.

    Never raises: a missing header or anything other than 64 hex digits
    (surrounding whitespace aside) is reported as a mismatch.
    """
    if not signature_header or not isinstance(signature_header, str):
        return False
    candidate = signature_header.strip()
    if not _HEX_DIGEST.fullmatch(candidate):
        return False
    provided = bytes.fromhex(candidate)
    expected = hmac.new(secret, raw_body, sha256).digest()
    return hmac.compare_digest(provided, expected)


class WebhookSignatureVerifier:
    """Apply the configured verification policy to inbound deliveries."""

    def __init__(self, secret: Optional[str], *, allow_unsigned: bool = True) -> None:
        cleaned = (secret or "").strip()
        if cleaned == PLACEHOLDER_WEBHOOK_SECRET:
            cleaned = ""
        self._secret = cleaned.encode("utf-8")
        self._allow_unsigned = allow_unsigned

    @property
    def is_configured(self) -> bool:
        return bool(self._secret)

    def check(
        self,
        raw_body: bytes,
        *,
        signature: Optional[str],
        strategy: Optional[str] = None,
    ) -> None:
        """Raise ``InvalidSignatureError`` unless the delivery may be trusted."""
        if not self._secret:
            if self._allow_unsigned:
                logger.debug("Webhook secret not configured; skipping verification")
                return
            raise InvalidSignatureError("Webhook secret is not configured")

        if strategy and strategy.strip().lower() != SUPPORTED_STRATEGY:
            raise InvalidSignatureError(f"Unsupported security strategy {strategy!r}")
        if not signature:
            raise InvalidSignatureError("Missing signature header")
        if not verify(raw_body, signature, self._secret):
            raise InvalidSignatureError("Signature mismatch")


__all__ = [
    "SIGNATURE_HEADER",
    "STRATEGY_HEADER",
    "WebhookSignatureVerifier",
    "sign",
    "verify",
]
