"""Engine components: reconcile → dispatch → summarize."""

from .records import DispatchOutcome, Failure, Record, Summary
from .reconciler import ReconcilePlan, build_plan, reconcile
from .rate_limiter import WindowRateLimiter
from .dispatcher import Dispatcher, OutcomeCollector, dispatch
from .reporter import status_breakdown, summarize

__all__ = [
    "DispatchOutcome",
    "Dispatcher",
    "Failure",
    "OutcomeCollector",
    "ReconcilePlan",
    "Record",
    "Summary",
    "WindowRateLimiter",
    "build_plan",
    "dispatch",
    "reconcile",
    "status_breakdown",
    "summarize",
]
