"""Dry-run sink writing would-be update payloads to a JSON Lines file."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock

from ..engine.records import Record
from .base import BaseUpdateSink

DRY_RUN_STATUS = 200


class FileUpdateSink(BaseUpdateSink):
    """Append every payload to ``deals-<run_tag>.jsonl`` instead of calling the API."""

    def __init__(self, output_dir: Path, run_tag: str | None = None) -> None:
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_tag = run_tag or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        self.path = self.output_dir / f"deals-{self.run_tag}.jsonl"
        self._file = self.path.open("a", encoding="utf-8")
        self._lock = Lock()

    def send(self, record: Record) -> int:
        line = json.dumps(record.to_payload(), ensure_ascii=False)
        with self._lock:
            self._file.write(line + "\n")
        return DRY_RUN_STATUS

    def flush(self) -> None:
        with self._lock:
            self._file.flush()

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()


__all__ = ["DRY_RUN_STATUS", "FileUpdateSink"]
