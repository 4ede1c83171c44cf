from __future__ import annotations

import pytest

from deal_sync.config import RateLimitConfig
from deal_sync.engine import Dispatcher, DispatchOutcome, OutcomeCollector, Record, dispatch
from deal_sync.sinks import BaseUpdateSink


def _max_starts_in_window(starts: list[float], window: float) -> int:
    ordered = sorted(starts)
    return max(
        (sum(1 for t in ordered[i:] if t < begin + window) for i, begin in enumerate(ordered)),
        default=0,
    )


def test_every_record_is_sent_once(recording_sink, make_records) -> None:
    records = make_records(12)
    sink = recording_sink()
    outcomes = dispatch(records, sink, RateLimitConfig(requests_per_window=50, window_duration=0.01))

    assert sorted(o.title for o in outcomes) == sorted(records)
    assert sorted(r.title for r in sink.sent) == sorted(records)
    assert all(o.http_status == 201 and o.ok for o in outcomes)


def test_single_transport_failure_is_isolated(recording_sink, make_records) -> None:
    records = make_records(10)
    broken = "Deal 004"
    sink = recording_sink(fail=[broken])

    outcomes = dispatch(records, sink, RateLimitConfig(requests_per_window=50, window_duration=0.01))

    failed = [o for o in outcomes if not o.ok]
    assert len(outcomes) == 10
    assert [o.title for o in failed] == [broken]
    assert failed[0].http_status == 0
    assert "connection reset" in failed[0].error
    assert sum(1 for o in outcomes if o.ok) == 9


def test_error_status_is_recorded_not_raised(recording_sink, make_records) -> None:
    records = make_records(3)
    sink = recording_sink(statuses={"Deal 001": 500})
    outcomes = {o.title: o for o in dispatch(records, sink, RateLimitConfig(window_duration=0.01))}
    assert outcomes["Deal 001"].ok is False
    assert outcomes["Deal 001"].reason == "HTTP 500"
    assert outcomes["Deal 000"].ok and outcomes["Deal 002"].ok


def test_unexpected_sink_exception_becomes_failed_outcome(recording_sink, make_records) -> None:
    class ExplodingSink(BaseUpdateSink):
        def send(self, record: Record) -> int:
            if record.title == "Deal 000":
                raise KeyError("boom")
            return 200

        def close(self) -> None:
            return

    outcomes = dispatch(make_records(3), ExplodingSink(), RateLimitConfig(window_duration=0.01))
    failed = [o for o in outcomes if not o.ok]
    assert [o.title for o in failed] == ["Deal 000"]
    assert failed[0].error.startswith("KeyError")


def test_request_starts_respect_quota(recording_sink, make_records, fake_clock) -> None:
    rate = RateLimitConfig(requests_per_window=4, window_duration=2.0)
    dispatcher = Dispatcher(recording_sink(), rate, clock=fake_clock, sleep=fake_clock.sleep)

    outcomes = dispatcher.dispatch(make_records(18))

    starts = [o.started_at for o in outcomes]
    assert len(starts) == 18
    assert _max_starts_in_window(starts, 2.0) <= 4
    # 18 starts at 4 per window need five windows
    assert max(starts) - min(starts) == pytest.approx(8.0)


def test_real_clock_window_pause(recording_sink, make_records) -> None:
    rate = RateLimitConfig(requests_per_window=3, window_duration=0.1)
    outcomes = Dispatcher(recording_sink(), rate).dispatch(make_records(7))
    starts = sorted(o.started_at for o in outcomes)
    assert starts[3] - starts[0] >= 0.1 - 1e-3
    assert starts[6] - starts[3] >= 0.1 - 1e-3


def test_concurrency_is_bounded_by_workers(recording_sink, make_records) -> None:
    sink = recording_sink(delay=0.02)
    rate = RateLimitConfig(requests_per_window=100, window_duration=0.01, max_workers=3)
    outcomes = dispatch(make_records(12), sink, rate)
    assert len(outcomes) == 12
    assert 1 <= sink.max_in_flight <= 3


def test_dispatch_waits_for_in_flight_requests(recording_sink, make_records) -> None:
    sink = recording_sink(delay=0.05)
    outcomes = dispatch(make_records(6), sink, RateLimitConfig(requests_per_window=6, window_duration=0.01))
    assert len(outcomes) == 6
    assert sink.in_flight == 0


def test_on_outcome_callback_sees_every_result(recording_sink, make_records) -> None:
    seen: list[DispatchOutcome] = []
    dispatch(make_records(5), recording_sink(fail=["Deal 002"]), RateLimitConfig(window_duration=0.01), on_outcome=seen.append)
    assert sorted(o.title for o in seen) == [f"Deal {i:03d}" for i in range(5)]


def test_empty_input_dispatches_nothing(recording_sink) -> None:
    sink = recording_sink()
    assert dispatch({}, sink, RateLimitConfig()) == []
    assert sink.sent == []


def test_outcome_collector_snapshot_is_a_copy() -> None:
    collector = OutcomeCollector()
    collector.add(DispatchOutcome("A", 200))
    snapshot = collector.snapshot()
    collector.add(DispatchOutcome("B", 200))
    assert len(snapshot) == 1
    assert len(collector) == 2


def test_slow_requests_do_not_delay_next_window(recording_sink, make_records) -> None:
    sink = recording_sink(delay=0.4)
    rate = RateLimitConfig(requests_per_window=3, window_duration=0.1)

    outcomes = Dispatcher(sink, rate).dispatch(make_records(6))

    starts = sorted(o.started_at for o in outcomes)
    assert starts[3] - starts[0] == pytest.approx(0.1, abs=0.08)
    assert sink.max_in_flight == 6
    assert all(o.ok for o in outcomes)


def test_capped_pool_keeps_grant_times_equal_to_starts(recording_sink, make_records) -> None:
    sink = recording_sink(delay=0.1)
    rate = RateLimitConfig(requests_per_window=4, window_duration=0.01, max_workers=2)

    outcomes = Dispatcher(sink, rate).dispatch(make_records(6))

    starts = sorted(o.started_at for o in outcomes)
    assert sink.max_in_flight <= 2
    # the third request has to wait for one of the first two to finish
    assert starts[2] - starts[0] >= 0.1 - 1e-2
