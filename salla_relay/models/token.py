"""
Domain models for merchant token persistence.
"""

import re
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

TOKEN_SORT_KEY = "token#salla"
INSTALLATION_SORT_KEY = "installation#salla"

_MERCHANT_ID_PATTERN = re.compile(r"[A-Za-z0-9_.-]{1,64}")


def validate_merchant_id(merchant_id: str) -> str:
    """Return ``merchant_id`` unchanged or raise ``ValueError`` when unusable as a key."""
    if not isinstance(merchant_id, str) or not _MERCHANT_ID_PATTERN.fullmatch(merchant_id):
        raise ValueError("merchant id must be 1-64 characters of [A-Za-z0-9_.-]")
    if merchant_id in {".", ".."}:
        raise ValueError("merchant id must not be a relative path segment")
    return merchant_id


def merchant_partition_key(merchant_id: str) -> str:
    """Partition key shared by every record belonging to one merchant."""
    return f"merchant#{merchant_id}"


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TokenRecord(BaseModel):
    """One merchant's OAuth grant as held by the token store."""

    merchant_id: str = Field(..., description="Opaque Salla merchant identifier.")
    access_token: str = Field(..., repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)
    scope: str = ""
    token_type: str = "bearer"
    issued_at: datetime
    expires_at: datetime
    updated_at: datetime

    @field_validator("issued_at", "expires_at", "updated_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return _ensure_utc(value)

    @model_validator(mode="after")
    def _check_expiry_after_issue(self) -> "TokenRecord":
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be later than issued_at")
        return self

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class InstallationRecord(BaseModel):
    """Installation metadata reported by app lifecycle events."""

    merchant_id: str
    app_name: Optional[str] = None
    store_type: Optional[str] = None
    scopes: List[str] = Field(default_factory=list)
    installed_at: datetime
    updated_at: datetime
    last_event: str

    @field_validator("installed_at", "updated_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return _ensure_utc(value)


__all__ = [
    "INSTALLATION_SORT_KEY",
    "InstallationRecord",
    "TOKEN_SORT_KEY",
    "TokenRecord",
    "merchant_partition_key",
    "validate_merchant_id",
]
