"""Schemas for inbound Salla webhook deliveries."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, field_validator

from salla_relay.models.token import validate_merchant_id


class EventType(str, Enum):
    """Closed set of webhook events the dispatcher understands."""

    AUTHORIZE = "app.store.authorize"
    INSTALLED = "app.installed"
    UPDATED = "app.updated"
    UNINSTALLED = "app.uninstalled"
    UNKNOWN = "unknown"

    @classmethod
    def from_event_name(cls, name: str) -> "EventType":
        try:
            event_type = cls(name)
        except ValueError:
            return cls.UNKNOWN
        return event_type


class WebhookEnvelope(BaseModel):
    """One webhook call as delivered by Salla."""

    event: str = Field(..., min_length=1)
    merchant: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[Union[str, int, float]] = None

    @field_validator("merchant", mode="before")
    @classmethod
    def _coerce_merchant(cls, value: Any) -> Any:
        # Salla sends merchant ids as JSON numbers.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("merchant")
    @classmethod
    def _check_merchant(cls, value: str) -> str:
        return validate_merchant_id(value)

    @field_validator("data", mode="before")
    @classmethod
    def _default_data(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def event_type(self) -> EventType:
        return EventType.from_event_name(self.event)


class TokenGrant(BaseModel):
    """Credentials carried by an ``app.store.authorize`` event."""

    access_token: str = Field(..., min_length=1, repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)
    expires: int = Field(..., description="Expiry as epoch seconds.")
    scope: str = ""
    token_type: str = "bearer"
    issued_at: Optional[datetime] = None

    @field_validator("scope", mode="before")
    @classmethod
    def _join_scope(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return " ".join(str(item) for item in value)
        return value

    @field_validator("token_type", mode="before")
    @classmethod
    def _default_token_type(cls, value: Any) -> Any:
        return value or "bearer"


class WebhookAck(BaseModel):
    """Acknowledgement returned for every accepted delivery."""

    success: bool = True
    event: str
    merchant: str
    processed_at: datetime


__all__ = ["EventType", "TokenGrant", "WebhookAck", "WebhookEnvelope"]
