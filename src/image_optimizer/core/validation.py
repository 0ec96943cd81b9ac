"""输入文件与处理参数的前置校验。

所有函数均为纯函数，只返回 ``ValidationResult``，不会抛出异常也不会修改文件系统。
调用方需要在调用处理流程之前检查结果。
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from image_optimizer.core.exceptions import ValidationError

SUPPORTED_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".png",
    ".webp",
    ".avif",
    ".tiff",
    ".gif",
    ".svg",
    ".bmp",
}

MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MiB
MAX_DIMENSION = 10000
MIN_QUALITY = 1
MAX_QUALITY = 100


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """校验结果：成功标记与失败原因。"""

    is_valid: bool
    error: Optional[str] = None

    def raise_for_error(self) -> None:
        """校验失败时抛出 ValidationError。"""

        if not self.is_valid:
            raise ValidationError(self.error or "校验失败")


_OK = ValidationResult(is_valid=True)


def _fail(reason: str) -> ValidationResult:
    return ValidationResult(is_valid=False, error=reason)


def is_supported_extension(path: Union[str, os.PathLike]) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def validate_file(path: Union[str, os.PathLike]) -> ValidationResult:
    """检查文件存在、非空、不超过 100 MiB 且扩展名受支持。"""

    file_path = Path(path)
    if not file_path.exists():
        return _fail(f"文件不存在: {file_path}")

    try:
        size = file_path.stat().st_size
    except OSError as exc:
        return _fail(f"无法访问文件: {exc}")

    if size == 0:
        return _fail(f"文件为空: {file_path}")
    if size > MAX_FILE_SIZE:
        return _fail(f"文件过大 ({round(size / 1024 / 1024)}MB)，上限为 100MB")

    extension = file_path.suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        supported = ", ".join(sorted(SUPPORTED_EXTENSIONS))
        return _fail(f"不支持的格式: {extension or '(无扩展名)'}，支持的格式: {supported}")

    return _OK


def validate_dimensions(width: int, height: int) -> ValidationResult:
    """宽高必须大于 0 且不超过 10000 像素。"""

    if width <= 0 or height <= 0:
        return _fail(f"尺寸必须大于 0: {width}x{height}")
    if width > MAX_DIMENSION or height > MAX_DIMENSION:
        return _fail(f"尺寸不能超过 {MAX_DIMENSION}px: {width}x{height}")
    return _OK


def validate_quality(quality: int) -> ValidationResult:
    """质量必须为 1~100 之间的整数。"""

    if isinstance(quality, bool) or not isinstance(quality, int):
        return _fail(f"质量必须为整数: {quality!r}")
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        return _fail(f"质量必须在 {MIN_QUALITY} 到 {MAX_QUALITY} 之间: {quality}")
    return _OK
