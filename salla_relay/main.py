"""
FastAPI application entrypoint for the Salla webhook relay.
"""

from __future__ import annotations

import time
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from salla_relay.api.routes import router as api_router
from salla_relay.core.config import get_settings
from salla_relay.core.errors import MalformedPayloadError
from salla_relay.core.logging import configure_logging
from salla_relay.dependencies import get_recent_events


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = sorted(
        {".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()}
    )
    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST,
        content={
            "error": MalformedPayloadError.error,
            "message": "Invalid or missing fields: " + ", ".join(fields),
        },
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level, recent_events=get_recent_events())

    app = FastAPI(
        title="Salla Easy Mode Webhook Relay",
        version=settings.version,
        description="Receives Salla app webhooks and relays merchant tokens.",
    )
    app.state.started_at = time.monotonic()
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
