"""Value objects passed between loaders, reconciler, dispatcher and reporter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Record:
    """Canonical in-memory shape of a deal; ``title`` is the join key.

    ``value`` is ``None`` only for a live deal the API returned without one;
    such a deal is pushed back without a ``value`` field.
    """

    title: str
    value: float | None
    currency: str | None = None
    status: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON body for the upsert call, leaving out unset fields."""

        payload: dict[str, Any] = {"title": self.title}
        if self.value is not None:
            payload["value"] = self.value
        if self.currency is not None:
            payload["currency"] = self.currency
        if self.status is not None:
            payload["status"] = self.status
        return payload


@dataclass(slots=True)
class DispatchOutcome:
    """Result of one update request."""

    title: str
    http_status: int
    error: str | None = None
    started_at: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and 0 < self.http_status < 400

    @property
    def reason(self) -> str | None:
        if self.error is not None:
            return self.error
        if not self.ok:
            return f"HTTP {self.http_status}"
        return None


@dataclass(slots=True)
class Failure:
    title: str
    reason: str


@dataclass(slots=True)
class Summary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: list[Failure] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0


__all__ = ["DispatchOutcome", "Failure", "Record", "Summary"]
