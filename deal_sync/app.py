"""Typer CLI entrypoint for deal-sync."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, Credentials, SyncConfig
from .engine import ReconcilePlan, Summary
from .errors import LoadError
from .logging_conf import available_logs, configure_logging, tail_log
from .orchestrator import RunReport, SyncOrchestrator
from .ui import ProgressReporter

app = typer.Typer(
    help="deal-sync：对账 S3 批量快照与在线 API，并回写合并结果",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(name="config", help="配置管理命令", no_args_is_help=True, rich_markup_mode=None)
log_app = typer.Typer(name="log", help="日志查看命令", no_args_is_help=True, rich_markup_mode=None)

console = Console()

EXIT_LOAD_ERROR = 1
EXIT_DISPATCH_FAILED = 2
MAX_LISTED_TITLES = 20


@dataclass
class AppState:
    repository: ConfigRepository
    config: SyncConfig
    credentials: Credentials
    orchestrator: SyncOrchestrator


def build_state(verbose: bool, config_path: Path | None = None) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository(path=config_path)
    config = repository.load()
    credentials = repository.load_credentials()
    orchestrator = SyncOrchestrator(config, credentials)
    return AppState(
        repository=repository,
        config=config,
        credentials=credentials,
        orchestrator=orchestrator,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _render_plan_table(plan: ReconcilePlan) -> Table:
    table = Table(title=f"对账结果 · 共 {plan.total} 条", box=box.SIMPLE_HEAD)
    table.add_column("类别", style="cyan", no_wrap=True)
    table.add_column("数量", justify="right", style="green")
    table.add_column("示例", style="dim", overflow="fold")
    for label, titles in (("新增", plan.added), ("更新", plan.updated), ("未变", plan.unchanged)):
        sample = ", ".join(titles[:5]) + (" …" if len(titles) > 5 else "")
        table.add_row(label, str(len(titles)), sample or "-")
    return table


def _render_summary_table(summary: Summary, dry_run: bool) -> Table:
    title = "运行结果（演练）" if dry_run else "运行结果"
    table = Table(title=title, box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("指标", style="cyan")
    table.add_column("数量", justify="right")
    table.add_row("总数", str(summary.total))
    table.add_row("成功", f"[green]{summary.succeeded}[/green]")
    table.add_row("失败", f"[red]{summary.failed}[/red]" if summary.failed else "0")
    return table


def _render_failures_table(summary: Summary) -> Table:
    table = Table(title="失败明细", box=box.SIMPLE_HEAD)
    table.add_column("标题", style="cyan", overflow="fold")
    table.add_column("原因", style="red", overflow="fold")
    for failure in summary.failures[:MAX_LISTED_TITLES]:
        table.add_row(failure.title, failure.reason)
    if len(summary.failures) > MAX_LISTED_TITLES:
        table.add_row("…", f"其余 {len(summary.failures) - MAX_LISTED_TITLES} 条见日志")
    return table


def _abort_on_load_error(exc: Exception) -> None:
    console.print(f"加载快照失败：{exc}", style="red")
    raise typer.Exit(code=EXIT_LOAD_ERROR)


app.add_typer(config_app, name="config", help="查看或初始化配置文件")
app.add_typer(log_app, name="log", help="查看日志文件")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="开启调试日志", is_flag=True),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="配置文件路径（默认 data/deal_sync.yaml）。"
    ),
) -> None:
    try:
        ctx.obj = build_state(verbose, config_path)
    except (ValidationError, ValueError) as exc:
        console.print(f"配置无效：{exc}", style="red")
        raise typer.Exit(code=EXIT_LOAD_ERROR)


@app.command("run", help="加载两份快照、对账并回写到 API。")
def run(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="只写入本地 JSONL，不调用 API。", is_flag=True),
    strict: bool = typer.Option(False, "--strict", help="存在失败请求时以退出码 2 结束。", is_flag=True),
    no_progress: bool = typer.Option(False, "--no-progress", help="关闭进度条。", is_flag=True),
) -> None:
    state = _get_state(ctx)
    progress = None
    if not no_progress and _progress_default_enabled():
        progress = ProgressReporter(enabled=True, console=console)
    try:
        report: RunReport = state.orchestrator.run(dry_run=dry_run, progress=progress)
    except (LoadError, ValueError) as exc:
        _abort_on_load_error(exc)
    finally:
        state.orchestrator.close()

    console.print(_render_plan_table(report.plan))
    console.print(_render_summary_table(report.summary, dry_run))
    if report.summary.failures:
        console.print(_render_failures_table(report.summary))
    if strict and report.summary.failed:
        raise typer.Exit(code=EXIT_DISPATCH_FAILED)


@app.command("plan", help="只对账并展示差异，不发送任何请求。")
def plan(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        result = state.orchestrator.plan()
    except (LoadError, ValueError) as exc:
        _abort_on_load_error(exc)
    finally:
        state.orchestrator.close()
    console.print(_render_plan_table(result))


@config_app.command("show", help="打印当前生效的配置。")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(f"配置文件：{state.repository.path}", style="dim")
    console.print(
        yaml.safe_dump(state.config.model_dump(mode="json"), allow_unicode=True, sort_keys=False)
    )
    token_state = "已设置" if state.credentials.api_token else "未设置"
    console.print(f"PIPED_TOKEN：{token_state}", style="dim")


@config_app.command("init", help="写入默认配置文件。")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="覆盖已存在的配置文件。", is_flag=True),
) -> None:
    state = _get_state(ctx)
    path = state.repository.path
    if path.exists() and not force:
        console.print(f"配置文件已存在：{path}（使用 --force 覆盖）", style="yellow")
        raise typer.Exit(code=0)
    state.repository.save(SyncConfig())
    console.print(f"已写入默认配置：{path}", style="green")


@log_app.command("list", help="列出可用的日志文件。")
def log_list() -> None:
    logs = list(available_logs())
    if not logs:
        console.print("暂无日志文件。", style="yellow")
        raise typer.Exit(code=0)
    for path in logs:
        console.print(path.name)


@log_app.command("show", help="查看指定日志的最近内容。")
def log_show(
    name: str = typer.Argument("deal_sync", help="日志名称（不含 .log）。"),
    lines: int = typer.Option(50, "--lines", "-n", help="显示的行数。"),
) -> None:
    matches = [path for path in available_logs() if path.stem == name]
    if not matches:
        console.print(f"未找到日志 `{name}`。", style="red")
        raise typer.Exit(code=1)
    for line in tail_log(matches[0], lines):
        console.print(line.rstrip("\n"), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
