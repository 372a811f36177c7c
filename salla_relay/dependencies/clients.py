"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Each factory builds its object once per process; tests replace them through
``app.dependency_overrides``.
"""

import logging
from functools import lru_cache
from typing import Optional

from salla_relay.clients import JSONFileStore, SallaApiClient, SQLiteStore
from salla_relay.core.config import get_settings
from salla_relay.core.logging import RecentEventsHandler
from salla_relay.services import (
    EventDispatcher,
    InstallationRegistry,
    StoreDataService,
    TokenCipher,
    TokenQueryService,
    TokenStore,
    WebhookSignatureVerifier,
)
from salla_relay.services.token_store import RecordBackend

logger = logging.getLogger(__name__)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_recent_events() -> RecentEventsHandler:
    """Provide the bounded buffer behind the development log endpoint."""
    return RecentEventsHandler(capacity=_settings().dev_log_capacity)


@lru_cache()
def get_record_backend() -> RecordBackend:
    """Provide the configured persistence backend."""
    storage = _settings().storage
    if storage.backend == "file":
        backend = JSONFileStore(storage.token_dir)
    else:
        backend = SQLiteStore(storage.db_path)
    logger.info("Using %s record backend at %s", storage.backend, backend.location)
    return backend


@lru_cache()
def get_token_cipher() -> Optional[TokenCipher]:
    """Provide token encryption when a secret is configured."""
    secret = _settings().security.token_encryption_secret
    if not secret:
        return None
    return TokenCipher(secret=secret)


@lru_cache()
def get_token_store() -> TokenStore:
    """Provide the shared merchant token store."""
    return TokenStore(get_record_backend(), cipher=get_token_cipher())


@lru_cache()
def get_installation_registry() -> InstallationRegistry:
    """Provide installation metadata tracking."""
    return InstallationRegistry(get_record_backend())


@lru_cache()
def get_signature_verifier() -> WebhookSignatureVerifier:
    """Provide the webhook signature policy."""
    salla = _settings().salla
    return WebhookSignatureVerifier(
        salla.webhook_secret, allow_unsigned=salla.allow_unsigned_webhooks
    )


@lru_cache()
def get_event_dispatcher() -> EventDispatcher:
    """Provide the webhook event dispatcher."""
    return EventDispatcher(
        get_signature_verifier(),
        get_token_store(),
        get_installation_registry(),
    )


@lru_cache()
def get_token_query_service() -> TokenQueryService:
    """Provide token read paths for the spreadsheet client."""
    return TokenQueryService(
        get_token_store(),
        get_installation_registry(),
        caller_secret=_settings().salla.client_secret,
    )


@lru_cache()
def get_salla_api_client() -> SallaApiClient:
    """Provide the Salla Admin API client."""
    return SallaApiClient(_settings().salla)


@lru_cache()
def get_store_data_service() -> StoreDataService:
    """Provide live store data for the spreadsheet client."""
    return StoreDataService(
        get_token_store(),
        get_salla_api_client(),
        live_data_enabled=_settings().salla.live_data_enabled,
    )


__all__ = [
    "get_event_dispatcher",
    "get_installation_registry",
    "get_recent_events",
    "get_record_backend",
    "get_salla_api_client",
    "get_signature_verifier",
    "get_store_data_service",
    "get_token_cipher",
    "get_token_query_service",
    "get_token_store",
]
