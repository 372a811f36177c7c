"""
FastAPI routes for the Salla webhook receiver and token relay.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from salla_relay.core.errors import RelayError, StorageError
from salla_relay.dependencies import (
    get_app_settings,
    get_event_dispatcher,
    get_recent_events,
    get_signature_verifier,
    get_store_data_service,
    get_token_query_service,
    get_token_store,
)
from salla_relay.schemas import ErrorResponse, RawTokenRequest
from salla_relay.services.signature import SIGNATURE_HEADER, STRATEGY_HEADER
from salla_relay.services.token_query import to_metadata

router = APIRouter()
logger = logging.getLogger(__name__)


def _error_response(exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=int(exc.status_code), content=exc.as_body())


def _storage_failure(action: str) -> JSONResponse:
    body = ErrorResponse(error=f"Failed to {action}", message="Try again later")
    return JSONResponse(status_code=HTTPStatus.INTERNAL_SERVER_ERROR, content=body.model_dump())


def _caller_secret(payload: RawTokenRequest, request: Request) -> Optional[str]:
    """Pick the caller secret from the body, ``X-Client-Secret`` or a bearer header."""
    if payload.client_secret:
        return payload.client_secret
    header_secret = request.headers.get("x-client-secret")
    if header_secret:
        return header_secret
    scheme, _, value = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Simple health endpoint for monitoring."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
    }


@router.post("/salla/webhook")
async def receive_salla_webhook(
    request: Request,
    dispatcher: Annotated[Any, Depends(get_event_dispatcher)],
) -> JSONResponse:
    """Accept a Salla webhook delivery; the body is verified as raw bytes."""
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    logger.info(
        "Salla webhook received (strategy=%s, signature=%s)",
        request.headers.get(STRATEGY_HEADER),
        "present" if signature else "missing",
    )
    outcome = await dispatcher.process(
        raw_body,
        signature=signature,
        strategy=request.headers.get(STRATEGY_HEADER),
    )
    return JSONResponse(status_code=int(outcome.status_code), content=outcome.body)


@router.get("/token/{merchant_id}")
async def get_token_metadata(
    merchant_id: str,
    query_service: Annotated[Any, Depends(get_token_query_service)],
) -> Any:
    """Return non-secret metadata about the merchant's token."""
    try:
        metadata = await query_service.get_token_metadata(merchant_id)
    except StorageError as exc:
        logger.error("Token retrieval failed for merchant %s: %s", merchant_id, exc)
        return _storage_failure("retrieve token")
    except RelayError as exc:
        return _error_response(exc)
    return metadata.model_dump(mode="json")


@router.post("/excel/token")
async def get_raw_token(
    payload: RawTokenRequest,
    request: Request,
    query_service: Annotated[Any, Depends(get_token_query_service)],
) -> Any:
    """Return the bearer token to a caller holding the client secret."""
    try:
        token = await query_service.get_raw_token(
            payload.merchant_id, _caller_secret(payload, request)
        )
    except StorageError as exc:
        logger.error("Raw token retrieval failed: %s", exc)
        return _storage_failure("retrieve token")
    except RelayError as exc:
        return _error_response(exc)
    return token.model_dump(mode="json")


@router.get("/excel/data")
async def get_store_data(
    data_service: Annotated[Any, Depends(get_store_data_service)],
    merchant_id: str = Query(..., description="Merchant whose store data to fetch."),
) -> Any:
    """Return live orders, products and customers flattened for the spreadsheet."""
    try:
        return await data_service.build_workbook(merchant_id)
    except StorageError as exc:
        logger.error("Store data request failed for merchant %s: %s", merchant_id, exc)
        return _storage_failure("fetch store data")
    except RelayError as exc:
        return _error_response(exc)


@router.get("/dev/status")
async def dev_status(
    request: Request,
    settings: Annotated[Any, Depends(get_app_settings)],
    verifier: Annotated[Any, Depends(get_signature_verifier)],
) -> dict:
    """Report configuration flags useful while wiring up the app."""
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return {
        "server": "Salla Easy Mode Webhook Relay",
        "status": "running",
        "environment": settings.environment,
        "app_id": settings.salla.app_id,
        "webhook_secret_configured": verifier.is_configured,
        "storage_backend": settings.storage.backend,
        "uptime_seconds": round(time.monotonic() - started_at, 3),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/dev/logs")
async def dev_logs(
    recent_events: Annotated[Any, Depends(get_recent_events)],
    limit: int = Query(50, ge=1, le=500),
) -> dict:
    """Return the most recent log entries kept in memory."""
    return {
        "logs": recent_events.snapshot(limit),
        "total_entries": recent_events.total,
    }


@router.get("/dev/tokens")
async def dev_tokens(
    settings: Annotated[Any, Depends(get_app_settings)],
    token_store: Annotated[Any, Depends(get_token_store)],
) -> Any:
    """List metadata for every stored token. Unavailable in production."""
    if settings.is_production:
        return JSONResponse(status_code=HTTPStatus.NOT_FOUND, content={"error": "Not found"})
    try:
        records = await token_store.list_records()
    except StorageError as exc:
        logger.error("Listing tokens failed: %s", exc)
        return _storage_failure("list tokens")
    now = token_store.now()
    tokens = [
        to_metadata(record, is_valid=record.is_valid(now)).model_dump(mode="json")
        for record in records
    ]
    return {"tokens": tokens, "total": len(tokens)}


__all__ = ["router"]
