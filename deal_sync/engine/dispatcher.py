"""Rate-limited, bounded-concurrency dispatch of reconciled deals."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, wait
from threading import BoundedSemaphore, Lock
from typing import TYPE_CHECKING, Callable, Mapping

import structlog

from ..errors import TransportError
from .rate_limiter import WindowRateLimiter
from .records import DispatchOutcome, Record

if TYPE_CHECKING:
    from ..config import RateLimitConfig
    from ..sinks import BaseUpdateSink

OutcomeCallback = Callable[[DispatchOutcome], None]


class OutcomeCollector:
    """Thread-safe many-producer / single-consumer outcome store."""

    def __init__(self, on_outcome: OutcomeCallback | None = None) -> None:
        self._outcomes: list[DispatchOutcome] = []
        self._lock = Lock()
        self._on_outcome = on_outcome

    def add(self, outcome: DispatchOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)
            if self._on_outcome is not None:
                self._on_outcome(outcome)

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)

    def snapshot(self) -> list[DispatchOutcome]:
        with self._lock:
            return list(self._outcomes)


class Dispatcher:
    """Send every record to a sink under a request-start quota.

    The calling thread walks the records in title order, takes a grant from
    the shared :class:`WindowRateLimiter` for each one and hands the record to
    the thread pool, which starts the request immediately. Waiting for the
    window to open is therefore the only thing that delays a request; requests
    still in flight from earlier windows never hold back the next batch.

    ``rate.max_workers``, when set, caps the number of requests in flight. The
    calling thread then waits for a free slot before taking a grant, so grant
    times stay equal to actual start times. A failing request is recorded and
    never affects the others. :meth:`dispatch` returns once every request
    finished.
    """

    def __init__(
        self,
        sink: "BaseUpdateSink",
        rate: "RateLimitConfig",
        logger: structlog.BoundLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.sink = sink
        self.rate = rate
        self.logger = logger or structlog.get_logger("deal_sync.dispatcher")
        self.limiter = WindowRateLimiter(
            rate.requests_per_window, rate.window_duration, clock=clock, sleep=sleep
        )

    def dispatch(
        self,
        records: Mapping[str, Record],
        on_outcome: OutcomeCallback | None = None,
    ) -> list[DispatchOutcome]:
        collector = OutcomeCollector(on_outcome)
        if not records:
            return []
        ordered = [records[title] for title in sorted(records)]
        cap = self.rate.max_workers
        slots = BoundedSemaphore(cap) if cap is not None else None
        self.logger.info(
            "dispatch_started",
            total=len(ordered),
            requests_per_window=self.rate.requests_per_window,
            window_duration=self.rate.window_duration,
            max_in_flight=cap,
        )
        # pool grows only to the number of requests in flight
        with ThreadPoolExecutor(
            max_workers=cap or len(ordered), thread_name_prefix="deal-sync"
        ) as executor:
            futures = []
            for record in ordered:
                if slots is not None:
                    slots.acquire()
                started_at = self.limiter.acquire()
                futures.append(
                    executor.submit(self._send_one, record, started_at, collector, slots)
                )
            # 屏障：全部请求完成后才返回，避免进程在请求未结束时退出
            wait(futures)
        outcomes = collector.snapshot()
        self.logger.info(
            "dispatch_finished",
            total=len(outcomes),
            failed=sum(1 for outcome in outcomes if not outcome.ok),
        )
        return outcomes

    def _send_one(
        self,
        record: Record,
        started_at: float,
        collector: OutcomeCollector,
        slots: BoundedSemaphore | None,
    ) -> None:
        try:
            outcome = self._deliver(record, started_at)
            collector.add(outcome)
        finally:
            if slots is not None:
                slots.release()

    def _deliver(self, record: Record, started_at: float) -> DispatchOutcome:
        try:
            status = self.sink.send(record)
        except TransportError as exc:
            self.logger.warning("dispatch_failed", title=record.title, error=str(exc))
            return DispatchOutcome(record.title, 0, error=str(exc), started_at=started_at)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("dispatch_error", title=record.title, error=str(exc), exc_info=True)
            return DispatchOutcome(
                record.title, 0, error=f"{type(exc).__name__}: {exc}", started_at=started_at
            )
        outcome = DispatchOutcome(record.title, status, started_at=started_at)
        if outcome.ok:
            self.logger.info("deal_dispatched", title=record.title, status=status)
        else:
            self.logger.warning("deal_rejected", title=record.title, status=status)
        return outcome


def dispatch(
    records: Mapping[str, Record],
    sink: "BaseUpdateSink",
    rate: "RateLimitConfig",
    on_outcome: OutcomeCallback | None = None,
) -> list[DispatchOutcome]:
    """Dispatch ``records`` to ``sink`` and return one outcome per record."""

    return Dispatcher(sink, rate).dispatch(records, on_outcome=on_outcome)


__all__ = ["Dispatcher", "OutcomeCollector", "dispatch"]
