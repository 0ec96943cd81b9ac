"""单张图片的处理链：convert -> resize -> compress，通过临时文件串联各阶段。"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Any, Optional

from image_optimizer.core.config import CompressStage, ConvertStage, OperationSpec, ResizeStage
from image_optimizer.core.models import CodecResult, OperationOutcome, compute_reduction_percent
from image_optimizer.core.validation import validate_file
from image_optimizer.processing.codec import ImageCodecGateway, PillowCodecGateway

LOGGER = logging.getLogger(__name__)


def temp_path_for(output_path: Path, tag: str) -> Path:
    """阶段中间结果的临时文件路径：``<输出路径>.temp.<tag>``。"""

    return output_path.with_name(f"{output_path.name}.temp.{tag}")


def _stage_tag(name: str, stage: Any) -> str:
    if isinstance(stage, ConvertStage):
        return stage.format
    if isinstance(stage, ResizeStage):
        return "resized"
    return name


class OperationSequencer:
    """按固定顺序执行各阶段，并保证临时文件在调用结束时被清理。"""

    def __init__(self, gateway: Optional[ImageCodecGateway] = None) -> None:
        self.gateway = gateway if gateway is not None else PillowCodecGateway()

    def run(self, input_path: Path, output_path: Path, spec: OperationSpec) -> OperationOutcome:
        """处理单个文件，任一阶段失败立即中止并抛出该阶段的异常。"""

        validate_file(input_path).raise_for_error()
        spec.validate()

        original_size = input_path.stat().st_size
        LOGGER.info("开始处理 %s (%d 字节)", input_path.name, original_size)

        stages = spec.stages()
        current_path = input_path
        temp_files: list[Path] = []
        stage_results: dict[str, CodecResult] = {}

        try:
            for index, (name, stage) in enumerate(stages):
                is_last = index == len(stages) - 1
                if is_last:
                    target = output_path
                else:
                    target = temp_path_for(output_path, _stage_tag(name, stage))
                    temp_files.append(target)

                LOGGER.debug("阶段 %s: %s -> %s", name, current_path, target)
                stage_results[name] = self._apply_stage(stage, current_path, target)
                current_path = target

            if not stages:
                _copy_file(current_path, output_path)
        finally:
            _cleanup(temp_files)

        final_size = output_path.stat().st_size
        reduction = compute_reduction_percent(original_size, final_size)
        LOGGER.info(
            "处理完成 %s -> %s (%d -> %d 字节, %.1f%%)",
            input_path.name,
            output_path.name,
            original_size,
            final_size,
            reduction,
        )

        return OperationOutcome(
            success=True,
            input_path=input_path,
            output_path=output_path,
            original_size=original_size,
            final_size=final_size,
            reduction_percent=reduction,
            stage_results=stage_results,
        )

    def _apply_stage(self, stage: Any, source: Path, target: Path) -> CodecResult:
        if isinstance(stage, ConvertStage):
            return self.gateway.convert(source, target, stage.format, stage.codec_options())
        if isinstance(stage, ResizeStage):
            return self.gateway.resize(source, target, stage.width, stage.height, stage.codec_options())
        if isinstance(stage, CompressStage):
            return self.gateway.compress(source, target, stage.codec_options())
        raise TypeError(f"未知的阶段类型: {type(stage).__name__}")


def _copy_file(source: Path, destination: Path) -> None:
    """没有任何阶段时，原样复制字节。"""

    if destination.exists() and os.path.samefile(source, destination):
        return
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, destination)


def _cleanup(paths: list[Path]) -> None:
    """删除临时文件；删除失败只记录日志，不影响处理结果。"""

    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.warning("无法删除临时文件 %s: %s", path, exc)
