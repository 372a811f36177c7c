"""Installation metadata recorded from app lifecycle events."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from salla_relay.core.errors import CorruptRecordError
from salla_relay.models.token import (
    INSTALLATION_SORT_KEY,
    InstallationRecord,
    merchant_partition_key,
)
from salla_relay.services.token_store import RecordBackend, checked_merchant_id, utcnow
from salla_relay.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


class InstallationRegistry:
    """Track which merchants have the app installed. Never touches tokens."""

    def __init__(
        self,
        backend: RecordBackend,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._backend = backend
        self._clock = clock
        self._locks = KeyedLock()

    async def record(
        self, merchant_id: str, *, event: str, data: Dict[str, Any]
    ) -> InstallationRecord:
        merchant_id = checked_merchant_id(merchant_id)
        async with self._locks.hold(merchant_id):
            existing = await self.get(merchant_id)
            now = self._clock()
            scopes = data.get("app_scopes")
            if not isinstance(scopes, list):
                scopes = existing.scopes if existing else []
            record = InstallationRecord(
                merchant_id=merchant_id,
                app_name=data.get("app_name") or (existing.app_name if existing else None),
                store_type=data.get("store_type") or (existing.store_type if existing else None),
                scopes=[str(scope) for scope in scopes],
                installed_at=existing.installed_at if existing else now,
                updated_at=now,
                last_event=event,
            )
            item = record.model_dump(mode="json")
            item["pk"] = merchant_partition_key(merchant_id)
            item["sk"] = INSTALLATION_SORT_KEY
            await asyncio.to_thread(self._backend.put_item, item)
        return record

    async def get(self, merchant_id: str) -> Optional[InstallationRecord]:
        merchant_id = checked_merchant_id(merchant_id)
        try:
            item = await asyncio.to_thread(
                self._backend.get_item,
                partition_key=merchant_partition_key(merchant_id),
                sort_key=INSTALLATION_SORT_KEY,
            )
            if item is None:
                return None
            return InstallationRecord.model_validate(item)
        except (CorruptRecordError, ValidationError) as exc:
            logger.error("Unreadable installation record for merchant %s: %s", merchant_id, exc)
            return None

    async def clear(self, merchant_id: str) -> bool:
        merchant_id = checked_merchant_id(merchant_id)
        async with self._locks.hold(merchant_id):
            return await asyncio.to_thread(
                self._backend.delete_item,
                partition_key=merchant_partition_key(merchant_id),
                sort_key=INSTALLATION_SORT_KEY,
            )


__all__ = ["InstallationRegistry"]
