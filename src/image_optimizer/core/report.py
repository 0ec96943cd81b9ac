"""报告生成与体积格式化工具。"""

from __future__ import annotations

import csv
from pathlib import Path

from image_optimizer.core.models import BatchReport

HEADER = ["input_path", "output_path", "status", "original_size", "final_size", "reduction_percent", "message"]

_UNITS = ("Bytes", "KB", "MB", "GB")


def format_bytes(size: int) -> str:
    """以 1024 为底格式化字节数，保留两位小数。"""

    if size <= 0:
        return "0 Bytes"
    index = 0
    while size >= 1024 ** (index + 1) and index < len(_UNITS) - 1:
        index += 1
    value = round(size / 1024**index, 2)
    return f"{value:g} {_UNITS[index]}"


def write_csv_report(report: BatchReport, output_dir: Path, filename: str) -> Path:
    """将批处理结果写入 CSV 报告。"""

    report_path = output_dir / filename
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for item in report.items:
            outcome = item.outcome
            writer.writerow(
                [
                    str(item.input_path),
                    str(item.output_path) if item.output_path else "",
                    "success" if item.success else "failed",
                    outcome.original_size if outcome else "",
                    outcome.final_size if outcome else "",
                    f"{outcome.reduction_percent:.1f}" if outcome else "",
                    item.error or "",
                ]
            )
    return report_path
