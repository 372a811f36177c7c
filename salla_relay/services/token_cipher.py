"""Symmetric encryption of the secret fields of stored token records."""

from __future__ import annotations

import base64
import hashlib
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken

from salla_relay.core.errors import CorruptRecordError

SECRET_FIELDS = ("access_token", "refresh_token")


class TokenCipher:
    """Seal token fields with a Fernet key derived from a configured secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except (InvalidToken, AttributeError) as exc:
            raise CorruptRecordError("Stored token could not be decrypted") from exc
        return plaintext.decode("utf-8")

    def seal(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``item`` with secret fields replaced by ``<field>_encrypted``."""
        sealed = dict(item)
        for field in SECRET_FIELDS:
            value = sealed.pop(field, None)
            if value is not None:
                sealed[f"{field}_encrypted"] = self.encrypt(value)
        return sealed

    def unseal(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Inverse of ``seal``; plaintext fields written before encryption pass through."""
        unsealed = dict(item)
        for field in SECRET_FIELDS:
            ciphertext = unsealed.pop(f"{field}_encrypted", None)
            if ciphertext is not None:
                unsealed[field] = self.decrypt(ciphertext)
        return unsealed


def has_sealed_fields(item: Dict[str, Any]) -> bool:
    return any(f"{field}_encrypted" in item for field in SECRET_FIELDS)


__all__ = ["SECRET_FIELDS", "TokenCipher", "has_sealed_fields"]
