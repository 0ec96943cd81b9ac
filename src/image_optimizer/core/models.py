"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def compute_reduction_percent(original_size: int, final_size: int) -> float:
    """计算体积缩减百分比，保留一位小数；原始大小为 0 时返回 0。"""

    if original_size <= 0:
        return 0.0
    return round((original_size - final_size) / original_size * 100, 1)


@dataclass(frozen=True, slots=True)
class ImageDescriptor:
    """目录扫描阶段得到的图片信息。"""

    path: Path
    display_name: str
    size_bytes: int


@dataclass(slots=True)
class CodecResult:
    """编解码器单次写入后的元数据。"""

    format: str
    width: int
    height: int
    size_bytes: int


@dataclass(slots=True)
class OperationOutcome:
    """单个文件完整处理链的结果。"""

    success: bool
    input_path: Path
    output_path: Path
    original_size: int
    final_size: int
    reduction_percent: float
    stage_results: dict[str, CodecResult] = field(default_factory=dict)

    @property
    def saved_bytes(self) -> int:
        return self.original_size - self.final_size


@dataclass(slots=True)
class BatchItem:
    """批处理中单个条目的记录（用于报告/日志）。"""

    input_path: Path
    success: bool
    output_path: Optional[Path] = None
    outcome: Optional[OperationOutcome] = None
    error: Optional[str] = None


@dataclass(slots=True)
class BatchReport:
    """批处理的有序结果与汇总统计。"""

    items: list[BatchItem] = field(default_factory=list)

    def add(self, item: BatchItem) -> None:
        self.items.append(item)

    def extend(self, other: "BatchReport") -> None:
        self.items.extend(other.items)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.success)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def total_original_bytes(self) -> int:
        """成功条目的原始体积之和。"""

        return sum(item.outcome.original_size for item in self._successful_outcomes())

    @property
    def total_final_bytes(self) -> int:
        """成功条目的最终体积之和。"""

        return sum(item.outcome.final_size for item in self._successful_outcomes())

    @property
    def saved_bytes(self) -> int:
        return self.total_original_bytes - self.total_final_bytes

    @property
    def total_reduction_percent(self) -> float:
        return compute_reduction_percent(self.total_original_bytes, self.total_final_bytes)

    @property
    def all_succeeded(self) -> bool:
        return bool(self.items) and self.failed == 0

    def _successful_outcomes(self) -> list[BatchItem]:
        return [item for item in self.items if item.success and item.outcome is not None]
