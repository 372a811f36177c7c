"""
Webhook event dispatcher.

Verifies the delivery, parses the envelope and routes it by event type to the
token store or the installation registry. Every outcome, including failures,
is turned into a status code and JSON body here so nothing escapes to the
server.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from http import HTTPStatus
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError
from typing_extensions import assert_never

from salla_relay.core.errors import (
    InvalidSignatureError,
    MalformedPayloadError,
    StorageError,
)
from salla_relay.schemas.webhook import EventType, TokenGrant, WebhookAck, WebhookEnvelope
from salla_relay.services.installations import InstallationRegistry
from salla_relay.services.signature import WebhookSignatureVerifier
from salla_relay.services.token_store import TokenStore, utcnow

logger = logging.getLogger(__name__)


@dataclass
class WebhookOutcome:
    """HTTP-ready result of processing one delivery."""

    status_code: int
    body: Dict[str, Any]


def _describe_errors(exc: ValidationError) -> str:
    fields = sorted({".".join(str(part) for part in error["loc"]) or "body" for error in exc.errors()})
    return "Invalid or missing fields: " + ", ".join(fields)


class EventDispatcher:
    """Route verified Salla webhook deliveries to their handlers."""

    def __init__(
        self,
        verifier: WebhookSignatureVerifier,
        token_store: TokenStore,
        installations: InstallationRegistry,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._verifier = verifier
        self._tokens = token_store
        self._installations = installations
        self._clock = clock

    async def process(
        self,
        raw_body: bytes,
        *,
        signature: Optional[str],
        strategy: Optional[str] = None,
    ) -> WebhookOutcome:
        """Verify, parse and dispatch one delivery."""
        try:
            self._verifier.check(raw_body, signature=signature, strategy=strategy)
        except InvalidSignatureError as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            return WebhookOutcome(HTTPStatus.UNAUTHORIZED, {"error": exc.error})

        try:
            envelope = self.parse(raw_body)
        except MalformedPayloadError as exc:
            return WebhookOutcome(HTTPStatus.BAD_REQUEST, exc.as_body())

        logger.info(
            "Processing webhook event %s for merchant %s (created_at=%s)",
            envelope.event,
            envelope.merchant,
            envelope.created_at,
        )
        try:
            await self.dispatch(envelope)
        except MalformedPayloadError as exc:
            logger.warning(
                "Malformed %s payload for merchant %s: %s",
                envelope.event,
                envelope.merchant,
                exc,
            )
            return WebhookOutcome(HTTPStatus.BAD_REQUEST, exc.as_body())
        except StorageError as exc:
            logger.error("Storage failure while processing %s: %s", envelope.event, exc)
            return WebhookOutcome(
                HTTPStatus.INTERNAL_SERVER_ERROR, {"error": "Webhook processing failed"}
            )
        except Exception:  # pylint: disable=broad-except
            logger.exception("Webhook processing error for event %s", envelope.event)
            return WebhookOutcome(
                HTTPStatus.INTERNAL_SERVER_ERROR, {"error": "Webhook processing failed"}
            )

        ack = WebhookAck(
            event=envelope.event,
            merchant=envelope.merchant,
            processed_at=self._clock(),
        )
        return WebhookOutcome(HTTPStatus.OK, ack.model_dump(mode="json"))

    def parse(self, raw_body: bytes) -> WebhookEnvelope:
        try:
            payload = json.loads(raw_body)
        except ValueError as exc:
            logger.warning("Webhook body is not valid JSON")
            raise MalformedPayloadError("Request body is not valid JSON") from exc
        if not isinstance(payload, dict):
            logger.warning("Webhook body is not a JSON object")
            raise MalformedPayloadError("Request body must be a JSON object")
        try:
            return WebhookEnvelope.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "Malformed webhook envelope for event %s: %s",
                payload.get("event"),
                _describe_errors(exc),
            )
            raise MalformedPayloadError(_describe_errors(exc)) from exc

    async def dispatch(self, envelope: WebhookEnvelope) -> None:
        event_type = envelope.event_type
        match event_type:
            case EventType.AUTHORIZE:
                await self._handle_authorize(envelope)
            case EventType.INSTALLED:
                await self._installations.record(
                    envelope.merchant, event=envelope.event, data=envelope.data
                )
                logger.info(
                    "App installed for merchant %s (store_type=%s)",
                    envelope.merchant,
                    envelope.data.get("store_type"),
                )
            case EventType.UPDATED:
                await self._installations.record(
                    envelope.merchant, event=envelope.event, data=envelope.data
                )
                logger.info(
                    "App updated for merchant %s; awaiting a fresh authorization",
                    envelope.merchant,
                )
            case EventType.UNINSTALLED:
                await self._tokens.delete(envelope.merchant)
                await self._installations.clear(envelope.merchant)
                logger.warning("App uninstalled for merchant %s", envelope.merchant)
            case EventType.UNKNOWN:
                logger.warning("Unhandled event type: %s", envelope.event)
            case _:
                assert_never(event_type)

    async def _handle_authorize(self, envelope: WebhookEnvelope) -> None:
        try:
            grant = TokenGrant.model_validate(envelope.data)
        except ValidationError as exc:
            raise MalformedPayloadError(_describe_errors(exc)) from exc

        record = await self._tokens.upsert(envelope.merchant, grant)
        remaining = record.expires_at - self._clock()
        logger.info(
            "Store authorization completed for merchant %s (scope=%s, expires_in_days=%d)",
            envelope.merchant,
            record.scope,
            round(remaining.total_seconds() / 86400),
        )


__all__ = ["EventDispatcher", "WebhookOutcome"]
