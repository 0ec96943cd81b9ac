"""处理任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from image_optimizer.core.exceptions import InvalidConfigurationError
from image_optimizer.core.validation import validate_dimensions, validate_quality

FIT_MODES = ("cover", "contain", "fill", "inside", "outside")
METADATA_POLICIES = ("none", "all", "exif", "icc")
OUTPUT_FORMATS = ("webp", "avif", "jpeg", "jpg", "png", "tiff", "gif", "bmp")

STAGE_ORDER = ("convert", "resize", "compress")


def _normalize_format(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    fmt = str(value).lower().lstrip(".")
    if fmt not in OUTPUT_FORMATS:
        raise InvalidConfigurationError(f"不支持的输出格式: {value}")
    return fmt


@dataclass(slots=True)
class ConvertStage:
    """格式转换阶段。"""

    format: str = "webp"
    quality: Optional[int] = None
    effort: Optional[int] = None
    options: dict[str, Any] = field(default_factory=dict)

    def codec_options(self) -> dict[str, Any]:
        merged = dict(self.options)
        if self.quality is not None:
            merged["quality"] = self.quality
        if self.effort is not None:
            merged["effort"] = self.effort
        return merged


@dataclass(slots=True)
class ResizeStage:
    """尺寸调整阶段。"""

    width: int
    height: int
    fit: str = "cover"  # cover | contain | fill | inside | outside
    without_enlargement: bool = True
    background: str = "#FFFFFF"
    format: Optional[str] = None
    options: dict[str, Any] = field(default_factory=dict)

    def codec_options(self) -> dict[str, Any]:
        merged = dict(self.options)
        merged.update(
            fit=self.fit,
            without_enlargement=self.without_enlargement,
            background=self.background,
        )
        if self.format:
            merged["format"] = self.format
        return merged


@dataclass(slots=True)
class CompressStage:
    """压缩阶段。"""

    quality: int = 80
    format: Optional[str] = None
    metadata: str = "none"  # none | all | exif | icc
    palette: bool = False
    sharpen: bool = False
    options: dict[str, Any] = field(default_factory=dict)

    def codec_options(self) -> dict[str, Any]:
        merged = dict(self.options)
        merged.update(
            quality=self.quality,
            metadata=self.metadata,
            palette=self.palette,
            sharpen=self.sharpen,
        )
        if self.format:
            merged["format"] = self.format
        return merged


@dataclass(slots=True)
class OperationSpec:
    """一次处理要执行的阶段集合，固定按 convert -> resize -> compress 顺序执行。"""

    convert: Optional[ConvertStage] = None
    resize: Optional[ResizeStage] = None
    compress: Optional[CompressStage] = None

    def stages(self) -> list[tuple[str, Any]]:
        """按固定顺序返回存在的阶段。"""

        present = []
        for name in STAGE_ORDER:
            stage = getattr(self, name)
            if stage is not None:
                present.append((name, stage))
        return present

    def is_empty(self) -> bool:
        return not self.stages()

    def operation_kind(self) -> str:
        """主操作类型，用于生成输出文件名后缀。"""

        stages = self.stages()
        if not stages:
            return "optimize"
        return stages[0][0]

    def target_format(self) -> Optional[str]:
        """最终输出文件的格式：最后一个显式指定格式的阶段决定。"""

        fmt: Optional[str] = None
        if self.convert is not None:
            fmt = self.convert.format
        if self.resize is not None and self.resize.format:
            fmt = self.resize.format
        if self.compress is not None and self.compress.format:
            fmt = self.compress.format
        return fmt

    def merged(self, overrides: "OperationSpec") -> "OperationSpec":
        """按阶段合并，overrides 中存在的阶段整体替换当前阶段。"""

        return OperationSpec(
            convert=overrides.convert if overrides.convert is not None else self.convert,
            resize=overrides.resize if overrides.resize is not None else self.resize,
            compress=overrides.compress if overrides.compress is not None else self.compress,
        )

    def validate(self) -> None:
        """检查各阶段参数，失败时抛出 ValidationError / InvalidConfigurationError。"""

        if self.convert is not None:
            _normalize_format(self.convert.format)
            if self.convert.quality is not None:
                validate_quality(self.convert.quality).raise_for_error()

        if self.resize is not None:
            validate_dimensions(self.resize.width, self.resize.height).raise_for_error()
            if self.resize.fit not in FIT_MODES:
                raise InvalidConfigurationError(f"未知的适配模式: {self.resize.fit}")
            _normalize_format(self.resize.format)

        if self.compress is not None:
            validate_quality(self.compress.quality).raise_for_error()
            if self.compress.metadata not in METADATA_POLICIES:
                raise InvalidConfigurationError(f"未知的元数据策略: {self.compress.metadata}")
            _normalize_format(self.compress.format)


@dataclass(slots=True)
class BatchEntry:
    """批处理配置文件中的单个条目。"""

    input: Path
    output: Path
    operations: Mapping[str, Any] = field(default_factory=dict)

    def spec(self) -> OperationSpec:
        return parse_operations(self.operations)


def _require_mapping(value: Any, name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidConfigurationError(f"{name} 必须是对象")
    return value


def _pop_int(options: dict[str, Any], key: str) -> Optional[int]:
    return _as_int(options.pop(key, None), key)


def _as_int(value: Any, key: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidConfigurationError(f"{key} 必须是整数")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"{key} 必须是整数: {value!r}") from exc


def parse_operations(raw: Optional[Mapping[str, Any]]) -> OperationSpec:
    """将已解析的 JSON 结构转换为 OperationSpec。"""

    data = _require_mapping(raw, "operations")
    unknown = set(data) - set(STAGE_ORDER)
    if unknown:
        raise InvalidConfigurationError(f"未知的操作: {', '.join(sorted(unknown))}")

    spec = OperationSpec()

    if data.get("convert") is not None:
        convert_raw = _require_mapping(data["convert"], "convert")
        options = dict(_require_mapping(convert_raw.get("options"), "convert.options"))
        quality = _pop_int(options, "quality")
        effort = _pop_int(options, "effort")
        spec.convert = ConvertStage(
            format=_normalize_format(convert_raw.get("format", "webp")) or "webp",
            quality=quality,
            effort=effort,
            options=options,
        )

    if data.get("resize") is not None:
        resize_raw = _require_mapping(data["resize"], "resize")
        options = dict(_require_mapping(resize_raw.get("options"), "resize.options"))
        width = _as_int(resize_raw.get("width"), "width")
        height = _as_int(resize_raw.get("height"), "height")
        if width is None or height is None:
            raise InvalidConfigurationError("resize 需要同时指定 width 与 height")
        spec.resize = ResizeStage(
            width=width,
            height=height,
            fit=str(options.pop("fit", "cover")),
            without_enlargement=bool(options.pop("without_enlargement", True)),
            background=str(options.pop("background", "#FFFFFF")),
            format=_normalize_format(options.pop("format", None)),
            options=options,
        )

    if data.get("compress") is not None:
        options = dict(_require_mapping(data["compress"], "compress"))
        quality = _pop_int(options, "quality")
        spec.compress = CompressStage(
            quality=80 if quality is None else quality,
            format=_normalize_format(options.pop("format", None)),
            metadata=str(options.pop("metadata", "none")),
            palette=bool(options.pop("palette", False)),
            sharpen=bool(options.pop("sharpen", False)),
            options=options,
        )

    spec.validate()
    return spec


def parse_batch_config(raw: Mapping[str, Any]) -> list[BatchEntry]:
    """解析 ``{"images": [{"input", "output", "operations"}]}`` 结构。"""

    data = _require_mapping(raw, "batch config")
    images = data.get("images")
    if not isinstance(images, Sequence) or isinstance(images, (str, bytes)):
        raise InvalidConfigurationError("批处理配置缺少 images 列表")

    entries: list[BatchEntry] = []
    for index, item in enumerate(images):
        entry = _require_mapping(item, f"images[{index}]")
        if not entry.get("input") or not entry.get("output"):
            raise InvalidConfigurationError(f"images[{index}] 需要 input 与 output")
        entries.append(
            BatchEntry(
                input=Path(str(entry["input"])),
                output=Path(str(entry["output"])),
                operations=_require_mapping(entry.get("operations"), f"images[{index}].operations"),
            )
        )
    return entries
