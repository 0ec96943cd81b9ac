"""进度更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(slots=True)
class ProgressUpdate:
    """目录/批处理过程中每完成一个条目发出的进度信息。"""

    total: int
    completed: int
    current: Optional[Path] = None
    success: Optional[bool] = None
    message: Optional[str] = None
