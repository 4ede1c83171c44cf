"""Run orchestrator wiring together loading, reconciliation, dispatch and reporting."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

import structlog

from .config import Credentials, SyncConfig
from .engine import (
    DispatchOutcome,
    Dispatcher,
    ReconcilePlan,
    Record,
    Summary,
    build_plan,
    status_breakdown,
    summarize,
)
from .logging_conf import release_run_log, run_logger
from .sinks import BaseUpdateSink, FileUpdateSink, HttpUpdateSink
from .sources import BulkLoader, LiveLoader
from .ui import ProgressReporter

SinkFactory = Callable[[bool, str], BaseUpdateSink]


@dataclass(slots=True)
class RunReport:
    """Everything a single sync run produced."""

    run_id: str
    plan: ReconcilePlan
    outcomes: list[DispatchOutcome] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)
    dry_run: bool = False


class SyncOrchestrator:
    """Central coordinator for one reconcile-and-push run.

    Load errors from either snapshot propagate before anything is reconciled.
    Dispatch failures are isolated per record and only show up in the summary.
    """

    def __init__(
        self,
        config: SyncConfig,
        credentials: Credentials,
        bulk_loader: BulkLoader | None = None,
        live_loader: LiveLoader | None = None,
        sink_factory: SinkFactory | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self.run_id = uuid.uuid4().hex[:12]
        self.logger = logger or run_logger(self.run_id)
        self._bulk_loader = bulk_loader
        self._live_loader = live_loader
        self._sink_factory = sink_factory or self._default_sink

    @property
    def bulk_loader(self) -> BulkLoader:
        if self._bulk_loader is None:
            self._bulk_loader = BulkLoader(self.config.bulk, self.credentials, logger=self.logger)
        return self._bulk_loader

    @property
    def live_loader(self) -> LiveLoader:
        if self._live_loader is None:
            self._live_loader = LiveLoader(
                self.config.api, self.credentials.require_api_token(), logger=self.logger
            )
        return self._live_loader

    # ------------------------------------------------------------------
    def load(self) -> tuple[list[Record], list[Record]]:
        bulk = self.bulk_loader.load()
        live = self.live_loader.load()
        return bulk, live

    def plan(self) -> ReconcilePlan:
        bulk, live = self.load()
        plan = build_plan(bulk, live)
        self.logger.info(
            "reconciled",
            total=plan.total,
            added=len(plan.added),
            updated=len(plan.updated),
            unchanged=len(plan.unchanged),
        )
        return plan

    def run(self, dry_run: bool = False, progress: ProgressReporter | None = None) -> RunReport:
        plan = self.plan()
        report = RunReport(run_id=self.run_id, plan=plan, dry_run=dry_run)
        if not plan.records:
            self.logger.info("nothing_to_dispatch")
            return report

        run_tag = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        sink = self._sink_factory(dry_run, run_tag)
        dispatcher = Dispatcher(sink, self.config.rate_limit, logger=self.logger)
        if progress is not None:
            progress.start(plan.total)
        try:
            report.outcomes = dispatcher.dispatch(
                plan.records, on_outcome=progress.on_outcome if progress is not None else None
            )
        finally:
            if progress is not None:
                progress.close()
            sink.close()
        report.summary = summarize(report.outcomes)
        self.logger.info(
            "run_finished",
            dry_run=dry_run,
            total=report.summary.total,
            succeeded=report.summary.succeeded,
            failed=report.summary.failed,
            statuses=status_breakdown(report.outcomes),
        )
        return report

    def close(self) -> None:
        if self._live_loader is not None:
            self._live_loader.close()
        release_run_log(self.run_id)

    def _default_sink(self, dry_run: bool, run_tag: str) -> BaseUpdateSink:
        if dry_run:
            return FileUpdateSink(self.config.output.outputs_dir, run_tag=run_tag)
        return HttpUpdateSink(
            self.config.api, self.credentials.require_api_token(), logger=self.logger
        )


__all__ = ["RunReport", "SyncOrchestrator"]
