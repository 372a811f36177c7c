"""
Read paths used by the spreadsheet client.

Metadata is public to any caller and never includes the token. The raw token
requires a shared caller secret that is independent from the webhook signing
secret, and the secret is checked before the store is consulted.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from salla_relay.core.errors import (
    MalformedPayloadError,
    TokenNotFoundError,
    UnauthorizedError,
)
from salla_relay.models.token import TokenRecord
from salla_relay.schemas.token import RawToken, TokenMetadata
from salla_relay.services.installations import InstallationRegistry
from salla_relay.services.token_store import TokenStore

logger = logging.getLogger(__name__)

REINSTALL_HINT = "Merchant needs to install/reinstall the app"
AWAITING_AUTHORIZATION_HINT = (
    "App is installed but the store authorization has not been received yet; "
    "reconnect the store"
)


def to_metadata(record: TokenRecord, *, is_valid: bool) -> TokenMetadata:
    return TokenMetadata(
        merchant_id=record.merchant_id,
        expires_at=record.expires_at,
        scope=record.scope,
        token_type=record.token_type,
        issued_at=record.issued_at,
        is_valid=is_valid,
    )


class TokenQueryService:
    """Serve token metadata and, to authenticated callers, the raw token."""

    def __init__(
        self,
        token_store: TokenStore,
        installations: InstallationRegistry,
        *,
        caller_secret: Optional[str],
    ) -> None:
        self._tokens = token_store
        self._installations = installations
        self._caller_secret = caller_secret or ""

    async def get_token_metadata(self, merchant_id: str) -> TokenMetadata:
        record = await self._fetch_valid(merchant_id)
        return to_metadata(record, is_valid=record.is_valid(self._tokens.now()))

    async def get_raw_token(self, merchant_id: str, caller_secret: Optional[str]) -> RawToken:
        if not self._caller_matches(caller_secret):
            logger.warning("Rejected raw token request with an invalid client secret")
            raise UnauthorizedError("Invalid client secret")

        record = await self._fetch_valid(merchant_id)
        logger.info("Token provided to spreadsheet client for merchant %s", record.merchant_id)
        return RawToken(
            access_token=record.access_token,
            expires_at=record.expires_at,
            scope=record.scope,
        )

    def _caller_matches(self, caller_secret: Optional[str]) -> bool:
        if not self._caller_secret or not caller_secret:
            return False
        return hmac.compare_digest(
            caller_secret.encode("utf-8"), self._caller_secret.encode("utf-8")
        )

    async def _fetch_valid(self, merchant_id: str) -> TokenRecord:
        try:
            record = await self._tokens.fetch(merchant_id)
        except MalformedPayloadError as exc:
            raise TokenNotFoundError(REINSTALL_HINT) from exc
        if record is not None:
            return record
        installation = await self._installations.get(merchant_id)
        if installation is not None:
            raise TokenNotFoundError(AWAITING_AUTHORIZATION_HINT)
        raise TokenNotFoundError(REINSTALL_HINT)


__all__ = [
    "AWAITING_AUTHORIZATION_HINT",
    "REINSTALL_HINT",
    "TokenQueryService",
    "to_metadata",
]
