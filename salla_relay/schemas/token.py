"""Schemas served to the spreadsheet client."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TokenMetadata(BaseModel):
    """Non-secret view of a stored grant."""

    merchant_id: str
    expires_at: datetime
    scope: str
    token_type: str
    issued_at: datetime
    is_valid: bool


class RawTokenRequest(BaseModel):
    """Body of a privileged token request from the spreadsheet add-in."""

    model_config = ConfigDict(populate_by_name=True)

    merchant_id: str = Field(..., alias="merchantId", min_length=1)
    client_secret: Optional[str] = Field(None, alias="clientSecret", repr=False)

    @field_validator("merchant_id", mode="before")
    @classmethod
    def _coerce_merchant_id(cls, value: Any) -> Any:
        # The add-in echoes back the numeric id Salla delivered.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class RawToken(BaseModel):
    """Bearer credential handed to an authenticated caller."""

    access_token: str = Field(..., repr=False)
    expires_at: datetime
    scope: str


class ErrorResponse(BaseModel):
    """Shared body for every failure response."""

    error: str
    message: Optional[str] = None


__all__ = ["ErrorResponse", "RawToken", "RawTokenRequest", "TokenMetadata"]
