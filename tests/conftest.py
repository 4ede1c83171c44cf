"""Pytest configuration providing shared fixtures."""

from __future__ import annotations

import gzip
import threading
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from deal_sync.config import (
    ConfigLocator,
    ConfigRepository,
    LiveApiConfig,
    OutputConfig,
    RateLimitConfig,
    SyncConfig,
)
from deal_sync.engine import Record
from deal_sync.errors import TransportError
from deal_sync.sinks import BaseUpdateSink

API_BASE = "https://deals.example.test"


class FakeClock:
    """Manually driven monotonic clock; ``sleep`` advances it instantly."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: list[float] = []
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self.now

    def sleep(self, seconds: float) -> None:
        with self._lock:
            self.sleeps.append(seconds)
            self.now += seconds


class RecordingSink(BaseUpdateSink):
    """In-memory sink; titles listed in ``fail`` raise, ``statuses`` override codes."""

    def __init__(
        self,
        fail: Iterable[str] = (),
        statuses: dict[str, int] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.fail = set(fail)
        self.statuses = statuses or {}
        self.delay = delay
        self.sent: list[Record] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False
        self._lock = threading.Lock()

    def send(self, record: Record) -> int:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                threading.Event().wait(self.delay)
            if record.title in self.fail:
                raise TransportError(f"connection reset for {record.title}")
            with self._lock:
                self.sent.append(record)
            return self.statuses.get(record.title, 201)
        finally:
            with self._lock:
                self.in_flight -= 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sink() -> Callable[..., RecordingSink]:
    def _builder(**kwargs: Any) -> RecordingSink:
        return RecordingSink(**kwargs)

    return _builder


@pytest.fixture
def make_records() -> Callable[..., dict[str, Record]]:
    def _builder(count: int, prefix: str = "Deal") -> dict[str, Record]:
        records = [Record(title=f"{prefix} {i:03d}", value=float(i)) for i in range(count)]
        return {record.title: record for record in records}

    return _builder


@pytest.fixture
def gzip_csv() -> Callable[[str], bytes]:
    def _builder(text: str) -> bytes:
        return gzip.compress(text.encode("utf-8"))

    return _builder


@pytest.fixture
def sync_config(tmp_path: Path) -> SyncConfig:
    return SyncConfig(
        api=LiveApiConfig(base_url=API_BASE, page_limit=2),
        rate_limit=RateLimitConfig(requests_per_window=5, window_duration=0.05),
        output=OutputConfig(outputs_dir=tmp_path / "outputs"),
    )


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("DEAL_SYNC_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository
