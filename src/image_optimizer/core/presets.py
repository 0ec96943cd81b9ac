"""预设优化方案。"""

from __future__ import annotations

from typing import Callable, Optional

from image_optimizer.core.config import CompressStage, ConvertStage, OperationSpec, ResizeStage
from image_optimizer.core.exceptions import InvalidConfigurationError


def _web() -> OperationSpec:
    return OperationSpec(
        convert=ConvertStage(format="webp", quality=80, effort=6),
        compress=CompressStage(quality=80, format="webp"),
    )


def _avif() -> OperationSpec:
    return OperationSpec(convert=ConvertStage(format="avif", quality=70, effort=5))


def _mobile() -> OperationSpec:
    return OperationSpec(
        resize=ResizeStage(width=800, height=800, fit="inside"),
        convert=ConvertStage(format="webp", quality=75),
    )


def _thumbnail() -> OperationSpec:
    return OperationSpec(
        resize=ResizeStage(width=300, height=300, fit="cover"),
        convert=ConvertStage(format="webp", quality=70),
    )


def _social() -> OperationSpec:
    return OperationSpec(
        resize=ResizeStage(width=1200, height=630, fit="cover"),
        convert=ConvertStage(format="jpg", quality=85, options={"progressive": True}),
    )


PRESETS: dict[str, Callable[[], OperationSpec]] = {
    "web": _web,
    "avif": _avif,
    "mobile": _mobile,
    "thumbnail": _thumbnail,
    "social": _social,
    "default": OperationSpec,
}


def build_preset(name: str, overrides: Optional[OperationSpec] = None) -> OperationSpec:
    """返回预设方案，overrides 中的阶段整体覆盖预设中的同名阶段。"""

    factory = PRESETS.get(name)
    if factory is None:
        raise InvalidConfigurationError(f"未知的预设: {name}")
    spec = factory()
    if overrides is not None:
        spec = spec.merged(overrides)
    return spec
