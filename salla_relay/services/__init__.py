"""Service layer exports."""

from .dispatcher import EventDispatcher, WebhookOutcome
from .installations import InstallationRegistry
from .signature import WebhookSignatureVerifier
from .store_data import StoreDataService
from .token_cipher import TokenCipher
from .token_query import TokenQueryService
from .token_store import TokenStore

__all__ = [
    "EventDispatcher",
    "InstallationRegistry",
    "StoreDataService",
    "TokenCipher",
    "TokenQueryService",
    "TokenStore",
    "WebhookOutcome",
    "WebhookSignatureVerifier",
]
