"""批处理流水线：扫描目录、逐个执行处理链并汇总结果。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from image_optimizer.core.config import BatchEntry, OperationSpec, parse_batch_config
from image_optimizer.core.exceptions import ImageOptimizerError, NoImagesFoundError, PathResolutionError
from image_optimizer.core.models import BatchItem, BatchReport
from image_optimizer.core.paths import PathResolutionCase, classify, ensure_directory, is_directory, resolve_for_spec
from image_optimizer.core.progress import ProgressUpdate
from image_optimizer.core.report import format_bytes, write_csv_report
from image_optimizer.core.scanner import collect_images
from image_optimizer.core.validation import validate_file
from image_optimizer.processing.sequencer import OperationSequencer

LOGGER = logging.getLogger(__name__)


ProgressCallback = Optional[Callable[[ProgressUpdate], None]]


class BatchCoordinator:
    """驱动目录与批量配置的处理，单个条目失败不会中止整个批次。"""

    def __init__(
        self,
        sequencer: Optional[OperationSequencer] = None,
        progress_callback: ProgressCallback = None,
        report_filename: Optional[str] = None,
    ) -> None:
        self.sequencer = sequencer if sequencer is not None else OperationSequencer()
        self.progress_callback = progress_callback
        self.report_filename = report_filename

    def process(self, input_path: Path, output_path: Path, spec: OperationSpec) -> BatchReport:
        """处理文件或目录；单文件的失败直接抛出。

        校验在创建任何目录之前完成。
        """

        if is_directory(input_path):
            return self.run_directory(input_path, output_path, spec)

        validate_file(input_path).raise_for_error()
        spec.validate()
        destination = resolve_for_spec(input_path, output_path, spec)
        outcome = self.sequencer.run(input_path, destination, spec)
        report = BatchReport()
        report.add(BatchItem(input_path=input_path, success=True, output_path=destination, outcome=outcome))
        return report

    def run_directory(self, input_dir: Path, output_dir: Path, spec: OperationSpec) -> BatchReport:
        """处理目录下的所有图片（不递归），汇总每个条目的结果。"""

        spec.validate()
        LOGGER.info("开始扫描目录 %s", input_dir)
        images = collect_images(input_dir)
        if not images:
            raise NoImagesFoundError(f"目录中没有找到有效图片: {input_dir}")

        if classify(input_dir, output_dir) is PathResolutionCase.DIR_TO_FILE:
            raise PathResolutionError(f"输入为目录时输出也必须是目录: {output_dir}")

        total = len(images)
        LOGGER.info("发现 %d 个候选图片文件", total)
        ensure_directory(output_dir)

        report = BatchReport()
        claimed: set[Path] = set()
        for index, image in enumerate(images, start=1):
            LOGGER.info("[%d/%d] %s (%s)", index, total, image.display_name, format_bytes(image.size_bytes))
            item = self._process_item(image.path, output_dir, spec, claimed)
            report.add(item)
            self._emit_progress(index, total, item)

        _log_summary(report)
        if self.report_filename:
            self._write_report(report, output_dir)
        return report

    def run_batch(self, config: Union[Mapping[str, Any], Sequence[BatchEntry]]) -> BatchReport:
        """按配置逐条处理，条目级失败记录到报告中而不是抛出。"""

        if isinstance(config, Sequence) and all(isinstance(entry, BatchEntry) for entry in config):
            entries = list(config)
        else:
            entries = parse_batch_config(config)
        total = len(entries)
        LOGGER.info("开始批处理 %d 个条目", total)

        report = BatchReport()
        for index, entry in enumerate(entries, start=1):
            LOGGER.info("处理 %d/%d: %s", index, total, entry.input)
            try:
                report.extend(self.process(entry.input, entry.output, entry.spec()))
            except (ImageOptimizerError, OSError) as exc:
                LOGGER.error("✗ %s: %s", entry.input, exc)
                report.add(BatchItem(input_path=entry.input, success=False, output_path=entry.output, error=str(exc)))
            self._emit_progress(index, total, report.items[-1])

        _log_summary(report)
        return report

    def _process_item(self, image_path: Path, output_dir: Path, spec: OperationSpec, claimed: set[Path]) -> BatchItem:
        destination: Optional[Path] = None
        try:
            destination = resolve_for_spec(image_path, output_dir, spec)
            if destination in claimed:
                raise PathResolutionError(f"输出文件与本批次中的其他图片冲突: {destination.name}")
            outcome = self.sequencer.run(image_path, destination, spec)
        except (ImageOptimizerError, OSError) as exc:
            LOGGER.error("✗ %s: %s", image_path.name, exc)
            return BatchItem(input_path=image_path, success=False, output_path=destination, error=str(exc))

        claimed.add(destination)
        LOGGER.info("✓ %s -> %s", image_path.name, destination.name)
        return BatchItem(input_path=image_path, success=True, output_path=destination, outcome=outcome)

    def _emit_progress(self, completed: int, total: int, item: BatchItem) -> None:
        if not self.progress_callback:
            return
        self.progress_callback(
            ProgressUpdate(
                total=total,
                completed=completed,
                current=item.input_path,
                success=item.success,
                message=item.error,
            )
        )

    def _write_report(self, report: BatchReport, output_dir: Path) -> None:
        try:
            write_csv_report(report, output_dir, self.report_filename)
        except OSError as exc:
            LOGGER.error("写入报告失败：%s", exc)


def _log_summary(report: BatchReport) -> None:
    LOGGER.info(
        "批处理完成：共 %d 个，成功 %d 个，失败 %d 个，总缩减 %.1f%%",
        report.total,
        report.succeeded,
        report.failed,
        report.total_reduction_percent,
    )
    if report.failed and report.succeeded:
        LOGGER.warning("%d 个图片未能处理", report.failed)
    elif report.failed:
        LOGGER.error("没有任何图片处理成功")
