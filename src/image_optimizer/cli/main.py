"""命令行入口。"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Sequence

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from image_optimizer.core.config import CompressStage, ConvertStage, OperationSpec, ResizeStage
from image_optimizer.core.exceptions import ImageOptimizerError
from image_optimizer.core.models import BatchReport
from image_optimizer.core.paths import is_directory
from image_optimizer.core.presets import PRESETS, build_preset
from image_optimizer.core.progress import ProgressUpdate
from image_optimizer.core.report import format_bytes
from image_optimizer.processing.pipeline import BatchCoordinator
from image_optimizer.utils.logging import setup_logging

app = typer.Typer(help="批量图片格式转换、缩放与压缩工具。", no_args_is_help=True)
console = Console()

LOGGER = logging.getLogger(__name__)

CONVERT_FORMATS = ("webp", "avif", "jpeg", "jpg", "png")
COMPRESS_FORMATS = ("webp", "avif", "jpeg", "png")
FIT_CHOICES = ("cover", "contain", "fill", "inside", "outside")


def _check_choice(value: str, choices: Sequence[str], name: str) -> str:
    lowered = value.lower()
    if lowered not in choices:
        raise typer.BadParameter(f"{name} 必须是 {', '.join(choices)} 之一")
    return lowered


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("处理图片", total=update.total)
        progress.update(task_id, total=update.total, completed=update.completed)
        if update.success is False and update.message:
            progress.log(f"[red]✗ {update.current.name if update.current else ''}: {update.message}")

    return callback


def _new_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console,
    )


def _print_stats(report: BatchReport) -> None:
    item = report.items[0]
    outcome = item.outcome
    if outcome is None:
        return
    final_format = outcome.output_path.suffix.lstrip(".").upper() or "-"
    reduction = outcome.reduction_percent

    console.print("\n[bold]📊 优化统计[/bold]")
    console.print(f"最终格式: [bold]{final_format}[/bold]")
    console.print(f"原始大小: [yellow]{format_bytes(outcome.original_size)}[/yellow]")
    console.print(f"优化后大小: [green]{format_bytes(outcome.final_size)}[/green]")
    if reduction > 0:
        console.print(f"缩减: [bold green]-{reduction:.1f}%[/bold green]")
    else:
        console.print("缩减: [bold red]0%[/bold red]")
    console.print(f"节省空间: [bold green]{format_bytes(max(outcome.saved_bytes, 0))}[/bold green]")


def _print_summary(report: BatchReport) -> None:
    table = Table(title="处理结果")
    table.add_column("输入")
    table.add_column("输出")
    table.add_column("状态")
    table.add_column("缩减", justify="right")

    for item in report.items:
        if item.success and item.outcome is not None:
            status = "[green]✓[/green]"
            reduction = f"{item.outcome.reduction_percent:.1f}%"
        else:
            status = f"[red]✗ {item.error or ''}[/red]"
            reduction = "-"
        output = item.output_path.name if item.output_path else "-"
        table.add_row(item.input_path.name, output, status, reduction)

    console.print(table)
    console.print(
        f"共 {report.total} 张，成功 {report.succeeded} 张，失败 {report.failed} 张；"
        f"总缩减 {report.total_reduction_percent:.1f}%，节省 {format_bytes(max(report.saved_bytes, 0))}"
    )


def _run(input_path: Path, output_path: Path, spec: OperationSpec) -> None:
    """执行处理并根据结果决定退出码。"""

    input_path = input_path.expanduser()
    output_path = output_path.expanduser()
    LOGGER.debug("CLI 参数解析完成: %s -> %s", input_path, output_path)

    try:
        if is_directory(input_path):
            with _new_progress() as progress:
                coordinator = BatchCoordinator(progress_callback=_build_progress_callback(progress))
                report = coordinator.process(input_path, output_path, spec)
        else:
            report = BatchCoordinator().process(input_path, output_path, spec)
    except (ImageOptimizerError, OSError) as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(code=1) from exc

    if report.total == 1 and not is_directory(input_path):
        console.print(f"[green]✓ 处理完成: {report.items[0].output_path}[/green]")
        _print_stats(report)
        return

    _print_summary(report)
    if report.succeeded == 0:
        raise typer.Exit(code=1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", help="输出调试日志")) -> None:
    """批量图片格式转换、缩放与压缩工具。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)


@app.command("convert")
def convert_cli(
    input_path: Path = typer.Argument(..., help="输入图片文件或目录"),
    output_path: Path = typer.Argument(..., help="输出文件或目录"),
    fmt: str = typer.Option("webp", "--format", "-f", help="输出格式 webp/avif/jpeg/jpg/png"),
    quality: int = typer.Option(80, "--quality", "-q", help="质量 1~100"),
) -> None:
    """将图片转换为其他格式。"""

    fmt = _check_choice(fmt, CONVERT_FORMATS, "--format")
    _run(input_path, output_path, OperationSpec(convert=ConvertStage(format=fmt, quality=quality)))


@app.command("resize")
def resize_cli(
    input_path: Path = typer.Argument(..., help="输入图片文件或目录"),
    output_path: Path = typer.Argument(..., help="输出文件或目录"),
    width: int = typer.Option(..., "--width", "-w", help="目标宽度（像素）"),
    height: int = typer.Option(..., "--height", "-h", help="目标高度（像素）"),
    fit: str = typer.Option("cover", "--fit", help="适配模式 cover/contain/fill/inside/outside"),
) -> None:
    """调整图片尺寸。"""

    fit = _check_choice(fit, FIT_CHOICES, "--fit")
    _run(input_path, output_path, OperationSpec(resize=ResizeStage(width=width, height=height, fit=fit)))


@app.command("compress")
def compress_cli(
    input_path: Path = typer.Argument(..., help="输入图片文件或目录"),
    output_path: Path = typer.Argument(..., help="输出文件或目录"),
    quality: int = typer.Option(80, "--quality", "-q", help="质量 1~100"),
    fmt: str = typer.Option("webp", "--format", "-f", help="输出格式 webp/avif/jpeg/png"),
) -> None:
    """压缩图片以用于 Web。"""

    fmt = _check_choice(fmt, COMPRESS_FORMATS, "--format")
    _run(input_path, output_path, OperationSpec(compress=CompressStage(quality=quality, format=fmt)))


@app.command("optimize")
def optimize_cli(
    input_path: Path = typer.Argument(..., help="输入图片文件或目录"),
    output_path: Path = typer.Argument(..., help="输出文件或目录"),
    preset: str = typer.Option("web", "--preset", "-p", help="预设 web/mobile/thumbnail/social/avif"),
    width: Optional[int] = typer.Option(None, "--width", "-w", help="最大宽度"),
    height: Optional[int] = typer.Option(None, "--height", "-h", help="最大高度"),
) -> None:
    """一次完成转换、缩放与压缩。"""

    preset = _check_choice(preset, tuple(name for name in PRESETS if name != "default"), "--preset")
    overrides = OperationSpec()
    if width is not None or height is not None:
        if width is None or height is None:
            raise typer.BadParameter("--width 与 --height 需要同时指定")
        overrides.resize = ResizeStage(width=width, height=height, fit="inside")

    _run(input_path, output_path, build_preset(preset, overrides))


@app.command("batch")
def batch_cli(
    config: Path = typer.Argument(..., help="JSON 批处理配置文件"),
) -> None:
    """按配置文件批量处理多张图片。"""

    try:
        with config.expanduser().open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]✗ 无法读取配置文件 {config}: {exc}[/red]")
        raise typer.Exit(code=1) from exc

    try:
        with _new_progress() as progress:
            coordinator = BatchCoordinator(progress_callback=_build_progress_callback(progress))
            report = coordinator.run_batch(raw)
    except (ImageOptimizerError, OSError) as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(code=1) from exc

    _print_summary(report)
    if report.succeeded == 0:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
