"""输出路径决策：根据输入/输出的文件或目录属性计算最终输出文件路径。"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from image_optimizer.core.config import OperationSpec
from image_optimizer.core.exceptions import PathResolutionError
from image_optimizer.core.validation import SUPPORTED_EXTENSIONS

LOGGER = logging.getLogger(__name__)


class PathResolutionCase(Enum):
    """输入/输出路径组合。"""

    DIR_TO_DIR = "dir->dir"
    DIR_TO_FILE = "dir->file"
    FILE_TO_DIR = "file->dir"
    FILE_TO_FILE = "file->file"


def is_directory(path: Path) -> bool:
    try:
        return path.is_dir()
    except OSError:
        return False


def output_is_directory(path: Path) -> bool:
    """已存在的路径按实际类型判断；不存在时扩展名为图片格式则视为文件，否则视为待创建目录。"""

    if path.exists():
        return path.is_dir()
    return path.suffix.lower() not in SUPPORTED_EXTENSIONS


def classify(input_path: Path, output_path: Path) -> PathResolutionCase:
    input_dir = is_directory(input_path)
    output_dir = output_is_directory(output_path)

    if input_dir and output_dir:
        return PathResolutionCase.DIR_TO_DIR
    if input_dir:
        return PathResolutionCase.DIR_TO_FILE
    if output_dir:
        return PathResolutionCase.FILE_TO_DIR
    return PathResolutionCase.FILE_TO_FILE


def ensure_directory(path: Path) -> None:
    """递归创建目录；目录已存在时不做任何事。"""

    if path.is_dir():
        return
    path.mkdir(parents=True, exist_ok=True)
    LOGGER.info("已创建目录: %s", path)


def operation_suffix(operation: str, width: Optional[int] = None, height: Optional[int] = None) -> str:
    if operation == "convert":
        return "_converted"
    if operation == "resize":
        return f"_{width}x{height}"
    if operation == "compress":
        return "_compressed"
    return "_processed"


def add_suffix(filename: str, suffix: str, new_format: Optional[str] = None) -> str:
    """在文件名主体后追加后缀，指定 new_format 时替换扩展名。"""

    name = Path(filename)
    stem = name.stem if name.suffix else name.name
    if new_format:
        return f"{stem}{suffix}.{new_format.lstrip('.')}"
    return f"{stem}{suffix}{name.suffix.lower()}"


def resolve_output_path(
    input_path: Path,
    output_path: Path,
    operation: str,
    *,
    width: Optional[int] = None,
    height: Optional[int] = None,
    target_format: Optional[str] = None,
) -> Path:
    """计算最终输出文件路径。

    - 目录 -> 目录：确保输出目录存在，文件名为 ``输入名 + 后缀 + 扩展名``；
    - 目录 -> 文件：不允许，抛出 PathResolutionError；
    - 文件 -> 目录：同目录 -> 目录；
    - 文件 -> 文件：原样返回输出路径。

    可能创建输出目录（含缺失的上级目录），重复调用结果一致。
    """

    case = classify(input_path, output_path)

    if case is PathResolutionCase.DIR_TO_FILE:
        raise PathResolutionError(f"输入为目录时输出也必须是目录: {output_path}")

    if case is PathResolutionCase.FILE_TO_FILE:
        return output_path

    ensure_directory(output_path)
    suffix = operation_suffix(operation, width, height)
    return output_path / add_suffix(input_path.name, suffix, target_format)


def resolve_for_spec(input_path: Path, output_path: Path, spec: OperationSpec) -> Path:
    """根据 OperationSpec 推导操作类型与参数后计算输出路径。"""

    width = spec.resize.width if spec.resize is not None else None
    height = spec.resize.height if spec.resize is not None else None
    return resolve_output_path(
        input_path,
        output_path,
        spec.operation_kind(),
        width=width,
        height=height,
        target_format=spec.target_format(),
    )
