"""Update sink Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..engine.records import Record


class BaseUpdateSink(ABC):
    """Uniform "upsert a deal" contract the dispatcher sends records to."""

    @abstractmethod
    def send(self, record: Record) -> int:
        """Deliver a single record and return the HTTP status code.

        Raises :class:`~deal_sync.errors.TransportError` when no response was
        received. Must be safe to call from several threads at once.
        """

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "BaseUpdateSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["BaseUpdateSink"]
