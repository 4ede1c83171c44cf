from __future__ import annotations

import json

import pytest
import structlog

from deal_sync.config import Credentials
from deal_sync.engine import Record
from deal_sync.errors import LoadError
from deal_sync.orchestrator import SyncOrchestrator
from deal_sync.ui import ProgressReporter


class StubLoader:
    def __init__(self, records=None, error: Exception | None = None) -> None:
        self.records = list(records or [])
        self.error = error
        self.calls = 0
        self.closed = False

    def load(self) -> list[Record]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)

    def close(self) -> None:
        self.closed = True


BULK = [
    Record("Alpha", 200.0, "EUR", "open"),
    Record("Beta", 40.0, "USD", "won"),
]
LIVE = [
    Record("Alpha", 100.0),
    Record("Gamma", 7.0, "EUR", "lost"),
]


def _orchestrator(sync_config, bulk, live, sink=None) -> SyncOrchestrator:
    factory = None
    if sink is not None:
        factory = lambda dry_run, run_tag: sink  # noqa: E731
    return SyncOrchestrator(
        sync_config,
        Credentials(_env_file=None, PIPED_TOKEN="token"),
        bulk_loader=bulk,
        live_loader=live,
        sink_factory=factory,
        logger=structlog.get_logger("deal_sync.tests"),
    )


def test_run_pushes_reconciled_set(sync_config, recording_sink) -> None:
    sink = recording_sink()
    orchestrator = _orchestrator(sync_config, StubLoader(BULK), StubLoader(LIVE), sink)

    report = orchestrator.run()

    assert report.plan.added == ["Beta"]
    assert report.plan.updated == ["Alpha"]
    assert report.plan.unchanged == ["Gamma"]
    sent = {record.title: record for record in sink.sent}
    assert sent["Alpha"] == Record("Alpha", 200.0, "EUR", "open")
    assert set(sent) == {"Alpha", "Beta", "Gamma"}
    assert report.summary.total == 3
    assert report.summary.all_succeeded
    assert sink.closed


def test_failures_are_reported_not_raised(sync_config, recording_sink) -> None:
    sink = recording_sink(fail=["Beta"])
    orchestrator = _orchestrator(sync_config, StubLoader(BULK), StubLoader(LIVE), sink)

    report = orchestrator.run()

    assert report.summary.succeeded == 2
    assert [failure.title for failure in report.summary.failures] == ["Beta"]


def test_load_error_stops_before_dispatch(sync_config, recording_sink) -> None:
    sink = recording_sink()
    live = StubLoader(LIVE)
    bulk = StubLoader(error=LoadError("bulk", "Unable to download item"))
    orchestrator = _orchestrator(sync_config, bulk, live, sink)

    with pytest.raises(LoadError, match="Unable to download item"):
        orchestrator.run()

    assert live.calls == 0
    assert sink.sent == []


def test_live_load_error_propagates(sync_config, recording_sink) -> None:
    sink = recording_sink()
    live = StubLoader(error=LoadError("live", "HTTP 401"))
    orchestrator = _orchestrator(sync_config, StubLoader(BULK), live, sink)

    with pytest.raises(LoadError):
        orchestrator.plan()
    assert sink.sent == []


def test_empty_snapshots_skip_dispatch(sync_config, recording_sink) -> None:
    sink = recording_sink()
    orchestrator = _orchestrator(sync_config, StubLoader(), StubLoader(), sink)

    report = orchestrator.run()

    assert report.plan.total == 0
    assert report.outcomes == []
    assert report.summary.total == 0


def test_dry_run_writes_payloads(sync_config) -> None:
    orchestrator = _orchestrator(sync_config, StubLoader(BULK), StubLoader(LIVE))

    report = orchestrator.run(dry_run=True)

    files = list(sync_config.output.outputs_dir.glob("deals-*.jsonl"))
    assert len(files) == 1
    lines = [json.loads(line) for line in files[0].read_text(encoding="utf-8").splitlines()]
    assert sorted(item["title"] for item in lines) == ["Alpha", "Beta", "Gamma"]
    assert report.dry_run is True
    assert report.summary.succeeded == 3


def test_progress_receives_every_outcome(sync_config, recording_sink) -> None:
    progress = ProgressReporter(enabled=False)
    orchestrator = _orchestrator(sync_config, StubLoader(BULK), StubLoader(LIVE), recording_sink(fail=["Gamma"]))

    orchestrator.run(progress=progress)

    assert progress.summary() == {"success": 2, "failed": 1}


def test_close_releases_live_loader(sync_config) -> None:
    live = StubLoader()
    orchestrator = _orchestrator(sync_config, StubLoader(), live)
    orchestrator.close()
    assert live.closed
