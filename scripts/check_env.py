"""Validate the relay's environment configuration before starting it.

Three commands are available:

``check``
    Load ``AppSettings`` from the given ``.env`` file and report the security
    posture: whether webhooks are signed, whether raw tokens can be served and
    whether stored tokens are encrypted. Fails when a production environment
    would accept unsigned webhooks.
``record``
    Run ``check`` and store a SHA256 baseline of the ``.env`` file.
``verify``
    Run ``check`` and compare the ``.env`` file against the recorded baseline.

Example usages::

    python -m scripts.check_env check --env-file /srv/salla-relay/.env
    python -m scripts.check_env record --env-file /srv/salla-relay/.env \
        --hash-file /srv/salla-relay/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from salla_relay.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_POLICY_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _load_settings(env_file: Path) -> AppSettings:
    _load_env_file(str(env_file))
    return AppSettings(_env_file=str(env_file))  # type: ignore[call-arg]


def describe_posture(settings: AppSettings) -> list[tuple[str, bool]]:
    """Return (description, ok) pairs summarizing the security-relevant flags."""
    salla = settings.salla
    signed = salla.webhook_secret_configured
    return [
        ("webhook signing secret configured", signed),
        (
            "unsigned webhooks rejected",
            signed or not salla.allow_unsigned_webhooks,
        ),
        ("client secret configured for raw token reads", bool(salla.client_secret)),
        (
            "stored tokens encrypted",
            bool(settings.security.token_encryption_secret),
        ),
    ]


def policy_violations(settings: AppSettings) -> list[str]:
    """Settings combinations that must not reach production."""
    if not settings.is_production:
        return []
    salla = settings.salla
    problems: list[str] = []
    if not salla.webhook_secret_configured and salla.allow_unsigned_webhooks:
        problems.append(
            "SALLA_WEBHOOK_SECRET is unset and SALLA_ALLOW_UNSIGNED_WEBHOOKS is true"
        )
    return problems


def _report(settings: AppSettings) -> int:
    print(f"Environment: {settings.environment} (storage: {settings.storage.backend})")
    for description, ok in describe_posture(settings):
        print(f"  [{'ok' if ok else '--'}] {description}")
    problems = policy_violations(settings)
    for problem in problems:
        print(f"Policy violation: {problem}", file=sys.stderr)
    return EXIT_POLICY_ERROR if problems else EXIT_OK


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"Checksum baseline {hash_file} is missing; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        f"Environment checksum mismatch (expected {expected}, got {actual}).",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate relay settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("check", "Validate settings and report the security posture."),
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare against the checksum baseline."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env).",
        )
        if name != "check":
            subparser.add_argument("--hash-file", required=True, type=Path)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed:\n" f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    status = _report(settings)
    if status != EXIT_OK:
        return status

    handlers: dict[str, Callable[[], int]] = {
        "check": lambda: EXIT_OK,
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
