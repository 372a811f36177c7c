try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import hashlib
import hmac

import pytest

from salla_relay.core.config import PLACEHOLDER_WEBHOOK_SECRET
from salla_relay.core.errors import InvalidSignatureError
from salla_relay.services.signature import WebhookSignatureVerifier, sign, verify

SECRET = b"partners-portal-secret"
PAYLOADS = [
    b"",
    b"{}",
    b'{"event":"app.store.authorize","merchant":693104445}',
    "{\"data\":{\"name\":\"متجر\"}}".encode("utf-8"),
    bytes(range(256)),
]


@pytest.mark.parametrize("payload", PAYLOADS)
def test_signed_payload_verifies(payload: bytes) -> None:
    assert verify(payload, sign(payload, SECRET), SECRET)


def test_sign_matches_reference_hmac() -> None:
    payload = b'{"event":"app.installed"}'
    expected = hmac.new(SECRET, payload, hashlib.sha256).hexdigest()
    assert sign(payload, SECRET) == expected
    assert expected == expected.lower()


@pytest.mark.parametrize("payload", [p for p in PAYLOADS if p])
def test_flipping_any_bit_breaks_signature(payload: bytes) -> None:
    signature = sign(payload, SECRET)
    for index in range(len(payload)):
        for bit in range(8):
            tampered = bytearray(payload)
            tampered[index] ^= 1 << bit
            assert not verify(bytes(tampered), signature, SECRET)


def test_wrong_secret_fails() -> None:
    payload = b'{"event":"app.updated"}'
    assert not verify(payload, sign(payload, SECRET), b"other-secret")


@pytest.mark.parametrize(
    "header",
    [None, "", "not-hex", "abc", "zz" * 32, "00" * 31, "00" * 33],
)
def test_malformed_headers_are_rejected_without_raising(header) -> None:
    assert verify(b"{}", header, SECRET) is False


def test_header_whitespace_and_case_are_tolerated() -> None:
    payload = b'{"event":"app.uninstalled"}'
    signature = sign(payload, SECRET)
    assert verify(payload, f"  {signature.upper()}\n", SECRET)


def test_verifier_skips_when_secret_is_placeholder() -> None:
    verifier = WebhookSignatureVerifier(PLACEHOLDER_WEBHOOK_SECRET)
    assert not verifier.is_configured
    verifier.check(b"{}", signature=None)


def test_verifier_rejects_everything_when_unsigned_disallowed() -> None:
    verifier = WebhookSignatureVerifier("", allow_unsigned=False)
    with pytest.raises(InvalidSignatureError):
        verifier.check(b"{}", signature=None)


def test_verifier_requires_signature_when_configured() -> None:
    verifier = WebhookSignatureVerifier(SECRET.decode())
    assert verifier.is_configured
    with pytest.raises(InvalidSignatureError):
        verifier.check(b"{}", signature=None)
    with pytest.raises(InvalidSignatureError):
        verifier.check(b"{}", signature=sign(b"{ }", SECRET))
    verifier.check(b"{}", signature=sign(b"{}", SECRET), strategy="Signature")


def test_verifier_rejects_unsupported_strategy() -> None:
    verifier = WebhookSignatureVerifier(SECRET.decode())
    with pytest.raises(InvalidSignatureError):
        verifier.check(b"{}", signature=sign(b"{}", SECRET), strategy="Token")


def test_header_with_inner_whitespace_is_rejected() -> None:
    payload = b'{"event":"app.uninstalled"}'
    signature = sign(payload, SECRET)
    spaced = " ".join(signature[i : i + 2] for i in range(0, len(signature), 2))

    assert verify(payload, spaced, SECRET) is False
    assert verify(payload, signature[:32] + "\t" + signature[32:], SECRET) is False
