"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone

import pytest

from salla_relay.clients import JSONFileStore, SQLiteStore


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current += timedelta(**delta)


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 6, 9, 22, 3, 28, tzinfo=timezone.utc))


@pytest.fixture(params=["sqlite", "file"])
def backend(request, tmp_path):
    """Each record backend, rooted in a fresh temporary directory."""
    if request.param == "sqlite":
        return SQLiteStore(str(tmp_path / "store" / "tokens.db"))
    return JSONFileStore(str(tmp_path / "tokens"))


@pytest.fixture
def sqlite_backend(tmp_path) -> SQLiteStore:
    return SQLiteStore(str(tmp_path / "tokens.db"))
