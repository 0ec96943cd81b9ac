"""目录扫描与筛选逻辑。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from image_optimizer.core.exceptions import PathResolutionError
from image_optimizer.core.models import ImageDescriptor
from image_optimizer.core.validation import is_supported_extension

LOGGER = logging.getLogger(__name__)


def _iter_candidate_files(directory: Path) -> Iterator[tuple[Path, int]]:
    """遍历目录下一层的普通文件，无法读取的条目记录警告后跳过。"""

    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        raise PathResolutionError(f"无法读取目录 {directory}: {exc}") from exc

    for candidate in entries:
        try:
            stat = candidate.stat()
            if not candidate.is_file():
                continue
        except OSError as exc:
            LOGGER.warning("无法读取 %s: %s", candidate.name, exc)
            continue
        yield candidate, stat.st_size


def collect_images(directory: Path) -> list[ImageDescriptor]:
    """扫描目录（不递归），返回扩展名受支持的图片列表，按文件名排序。"""

    if not directory.exists():
        raise PathResolutionError(f"目录不存在: {directory}")
    if not directory.is_dir():
        raise PathResolutionError(f"路径不是目录: {directory}")

    collected: list[ImageDescriptor] = []
    for candidate, size in _iter_candidate_files(directory):
        if not is_supported_extension(candidate):
            continue
        collected.append(ImageDescriptor(path=candidate, display_name=candidate.name, size_bytes=size))

    collected.sort(key=lambda x: x.display_name.lower())
    return collected
