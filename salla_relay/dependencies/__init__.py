"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_event_dispatcher,
    get_installation_registry,
    get_recent_events,
    get_record_backend,
    get_salla_api_client,
    get_signature_verifier,
    get_store_data_service,
    get_token_cipher,
    get_token_query_service,
    get_token_store,
)
from .config import get_app_settings

__all__ = [
    "get_app_settings",
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
