"""Error taxonomy shared by loaders, sinks and the CLI."""

from __future__ import annotations


class DealSyncError(Exception):
    """Base class for all deal-sync failures."""


class LoadError(DealSyncError):
    """A snapshot could not be loaded; fatal to the whole run."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"[{source}] {message}")
        self.source = source


class TransportError(DealSyncError):
    """A single update request failed before a response was received."""


__all__ = ["DealSyncError", "LoadError", "TransportError"]
