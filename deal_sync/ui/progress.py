"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from ..engine.records import DispatchOutcome


@dataclass
class ProgressState:
    total: int
    success: int = 0
    failed: int = 0
    current_title: str | None = None


class RateColumn(ProgressColumn):
    """Requests per second, rendered as ``X.X req/s``."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.1f} req/s", style="progress.percentage")


class ProgressReporter:
    """Render dispatch progress and maintain counters for CLI feedback."""

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._lock = Lock()
        self.state: ProgressState | None = None

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
        if not self._console.is_terminal:
            # 非交互环境回退为静默模式，避免重复打印
            self._console = None
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]deals", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            RateColumn(),
            TextColumn("[green]✓{task.fields[success]:>4}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>4}", justify="right"),
            TextColumn("[dim]{task.fields[current]}", justify="left"),
            refresh_per_second=12,
            expand=True,
            transient=True,
            console=self._console,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            "dispatch", total=total, success=0, failed=0, current="等待中…"
        )

    def advance(self, success: bool = False, failed: bool = False, current_title: str | None = None) -> None:
        if not self.state:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        with self._lock:
            if current_title:
                self.state.current_title = current_title
            if success:
                self.state.success += 1
            if failed:
                self.state.failed += 1
            if self._progress is not None and self._task_id is not None:
                display = self.state.current_title or ""
                if len(display) > 40:
                    display = display[:37] + "..."
                self._progress.update(
                    self._task_id,
                    advance=1,
                    success=self.state.success,
                    failed=self.state.failed,
                    current=display,
                )

    def on_outcome(self, outcome: DispatchOutcome) -> None:
        """Adapter usable as the dispatcher's ``on_outcome`` callback."""

        self.advance(success=outcome.ok, failed=not outcome.ok, current_title=outcome.title)

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress.__exit__(None, None, None)
            self._progress = None
        self._task_id = None

    def summary(self) -> dict[str, int]:
        if not self.state:
            return {"success": 0, "failed": 0}
        return {"success": self.state.success, "failed": self.state.failed}


__all__ = ["ProgressReporter", "ProgressState", "RateColumn"]
