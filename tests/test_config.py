"""配置解析、阶段顺序与预设。"""

from __future__ import annotations

from pathlib import Path

import pytest

from image_optimizer.core.config import (
    CompressStage,
    ConvertStage,
    OperationSpec,
    ResizeStage,
    parse_batch_config,
    parse_operations,
)
from image_optimizer.core.exceptions import InvalidConfigurationError, ValidationError
from image_optimizer.core.presets import build_preset


def test_parse_operations_full() -> None:
    spec = parse_operations(
        {
            "convert": {"format": "WEBP", "options": {"quality": 75, "effort": 4, "lossless": False}},
            "resize": {"width": 800, "height": 600, "options": {"fit": "inside"}},
            "compress": {"quality": 70, "format": "webp", "metadata": "exif"},
        }
    )

    assert spec.convert == ConvertStage(format="webp", quality=75, effort=4, options={"lossless": False})
    assert spec.resize is not None and (spec.resize.width, spec.resize.height, spec.resize.fit) == (800, 600, "inside")
    assert spec.compress is not None and spec.compress.metadata == "exif"
    assert [name for name, _ in spec.stages()] == ["convert", "resize", "compress"]


def test_parse_operations_empty_is_valid() -> None:
    spec = parse_operations({})

    assert spec.is_empty()
    assert spec.operation_kind() == "optimize"
    assert spec.target_format() is None


def test_parse_operations_rejects_unknown_stage() -> None:
    with pytest.raises(InvalidConfigurationError):
        parse_operations({"rotate": {"angle": 90}})


def test_parse_operations_rejects_bad_quality() -> None:
    with pytest.raises(ValidationError):
        parse_operations({"compress": {"quality": 0}})


def test_parse_operations_requires_both_dimensions() -> None:
    with pytest.raises(InvalidConfigurationError):
        parse_operations({"resize": {"width": 100}})


def test_parse_operations_rejects_unknown_fit() -> None:
    with pytest.raises(InvalidConfigurationError):
        parse_operations({"resize": {"width": 100, "height": 100, "options": {"fit": "stretch"}}})


def test_stages_follow_fixed_order_regardless_of_construction() -> None:
    spec = OperationSpec(compress=CompressStage(), resize=ResizeStage(width=10, height=10))

    assert [name for name, _ in spec.stages()] == ["resize", "compress"]
    assert spec.operation_kind() == "resize"


def test_parse_batch_config_keeps_raw_operations() -> None:
    entries = parse_batch_config(
        {"images": [{"input": "a.png", "output": "out/", "operations": {"convert": {"format": "webp"}}}]}
    )

    assert len(entries) == 1
    assert entries[0].input == Path("a.png")
    assert entries[0].spec().convert == ConvertStage(format="webp")


def test_parse_batch_config_requires_images() -> None:
    with pytest.raises(InvalidConfigurationError):
        parse_batch_config({"files": []})


def test_build_preset_and_overrides() -> None:
    web = build_preset("web")
    assert web.convert is not None and web.convert.format == "webp"
    assert web.compress is not None and web.compress.format == "webp"

    mobile = build_preset("mobile", OperationSpec(resize=ResizeStage(width=400, height=300, fit="inside")))
    assert mobile.resize is not None and (mobile.resize.width, mobile.resize.height) == (400, 300)
    assert mobile.convert is not None and mobile.convert.quality == 75

    assert build_preset("default").is_empty()


def test_build_preset_unknown() -> None:
    with pytest.raises(InvalidConfigurationError):
        build_preset("print")
