"""Public schema exports."""

from .token import ErrorResponse, RawToken, RawTokenRequest, TokenMetadata
from .webhook import EventType, TokenGrant, WebhookAck, WebhookEnvelope

__all__ = [
    "ErrorResponse",
    "EventType",
    "RawToken",
    "RawTokenRequest",
    "TokenGrant",
    "TokenMetadata",
    "WebhookAck",
    "WebhookEnvelope",
]
