"""
Durable per-merchant storage of Salla access tokens.

The store is the only component that touches token records in the backing
persistence. Writes for one merchant are serialized with a per-merchant lock;
different merchants never contend. Backend I/O runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from pydantic import ValidationError

from salla_relay.core.errors import CorruptRecordError, MalformedPayloadError
from salla_relay.models.token import (
    TOKEN_SORT_KEY,
    TokenRecord,
    merchant_partition_key,
    validate_merchant_id,
)
from salla_relay.schemas.webhook import TokenGrant
from salla_relay.services.token_cipher import TokenCipher, has_sealed_fields
from salla_relay.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


class RecordBackend(Protocol):
    """Persistence operations shared by ``SQLiteStore`` and ``JSONFileStore``."""

    def put_item(self, item: Dict[str, Any]) -> None: ...

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]: ...

    def delete_item(self, *, partition_key: str, sort_key: str) -> bool: ...

    def scan_sort_key(self, *, sort_key: str) -> List[Dict[str, Any]]: ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def checked_merchant_id(merchant_id: str) -> str:
    """Validate a merchant id, raising ``MalformedPayloadError`` when unusable."""
    try:
        return validate_merchant_id(merchant_id)
    except ValueError as exc:
        raise MalformedPayloadError(str(exc)) from exc


class TokenStore:
    """Create, read, and delete merchant token records."""

    def __init__(
        self,
        backend: RecordBackend,
        *,
        cipher: Optional[TokenCipher] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._backend = backend
        self._cipher = cipher
        self._clock = clock
        self._locks = KeyedLock()

    def now(self) -> datetime:
        return self._clock()

    async def upsert(self, merchant_id: str, grant: TokenGrant) -> TokenRecord:
        """Replace the merchant's grant and return the stored record."""
        merchant_id = checked_merchant_id(merchant_id)
        try:
            expires_at = datetime.fromtimestamp(grant.expires, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise MalformedPayloadError("Grant expiry is not a usable timestamp") from exc

        async with self._locks.hold(merchant_id):
            now = self._clock()
            issued_at = grant.issued_at
            if issued_at is None:
                existing = await self._load_or_none(merchant_id)
                if existing is not None and existing.access_token == grant.access_token:
                    issued_at = existing.issued_at
                else:
                    issued_at = now
            try:
                record = TokenRecord(
                    merchant_id=merchant_id,
                    access_token=grant.access_token,
                    refresh_token=grant.refresh_token,
                    scope=grant.scope,
                    token_type=grant.token_type,
                    issued_at=issued_at,
                    expires_at=expires_at,
                    updated_at=now,
                )
            except ValidationError as exc:
                raise MalformedPayloadError(
                    "Grant expiry must be later than its issue time"
                ) from exc

            item = self._encode(record)
            await asyncio.to_thread(self._backend.put_item, item)

        logger.info(
            "Token stored for merchant %s (scope=%s, expires_at=%s)",
            merchant_id,
            record.scope,
            record.expires_at.isoformat(),
        )
        return record

    async def load(self, merchant_id: str) -> Optional[TokenRecord]:
        """Read the stored record regardless of expiry.

        Raises ``CorruptRecordError`` when the stored data cannot be decoded.
        """
        merchant_id = checked_merchant_id(merchant_id)
        item = await asyncio.to_thread(
            self._backend.get_item,
            partition_key=merchant_partition_key(merchant_id),
            sort_key=TOKEN_SORT_KEY,
        )
        if item is None:
            return None
        return self._decode(item)

    async def fetch(self, merchant_id: str) -> Optional[TokenRecord]:
        """Return the merchant's record only while it is still valid."""
        try:
            record = await self.load(merchant_id)
        except CorruptRecordError as exc:
            logger.error("Unreadable token record for merchant %s: %s", merchant_id, exc)
            return None
        if record is None:
            return None
        if not record.is_valid(self._clock()):
            logger.warning("Token expired for merchant %s", merchant_id)
            return None
        return record

    async def delete(self, merchant_id: str) -> bool:
        """Remove the merchant's record. Deleting a missing record is not an error."""
        merchant_id = checked_merchant_id(merchant_id)
        async with self._locks.hold(merchant_id):
            deleted = await asyncio.to_thread(
                self._backend.delete_item,
                partition_key=merchant_partition_key(merchant_id),
                sort_key=TOKEN_SORT_KEY,
            )
        if deleted:
            logger.info("Tokens cleaned up for merchant %s", merchant_id)
        return deleted

    async def list_records(self) -> List[TokenRecord]:
        """Every decodable record, expired ones included, newest grant first."""
        items = await asyncio.to_thread(self._backend.scan_sort_key, sort_key=TOKEN_SORT_KEY)
        records: List[TokenRecord] = []
        for item in items:
            try:
                records.append(self._decode(item))
            except CorruptRecordError as exc:
                logger.error("Skipping unreadable token record %s: %s", item.get("pk"), exc)
        records.sort(key=lambda record: record.issued_at, reverse=True)
        return records

    async def _load_or_none(self, merchant_id: str) -> Optional[TokenRecord]:
        try:
            return await self.load(merchant_id)
        except CorruptRecordError as exc:
            logger.warning("Overwriting unreadable token record for merchant %s: %s", merchant_id, exc)
            return None

    def _encode(self, record: TokenRecord) -> Dict[str, Any]:
        item = record.model_dump(mode="json")
        item["pk"] = merchant_partition_key(record.merchant_id)
        item["sk"] = TOKEN_SORT_KEY
        if self._cipher is not None:
            item = self._cipher.seal(item)
        return item

    def _decode(self, item: Dict[str, Any]) -> TokenRecord:
        if "error" in item and "merchant_id" not in item:
            raise CorruptRecordError(item["error"])
        if self._cipher is not None:
            item = self._cipher.unseal(item)
        elif has_sealed_fields(item):
            raise CorruptRecordError("Record is encrypted but no encryption secret is configured")
        try:
            return TokenRecord.model_validate(item)
        except ValidationError as exc:
            raise CorruptRecordError(f"Record for {item.get('pk')} failed validation") from exc


__all__ = ["RecordBackend", "TokenStore", "checked_merchant_id", "utcnow"]
