"""前置校验：文件、尺寸与质量参数。"""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from image_optimizer.core.exceptions import ValidationError
from image_optimizer.core.validation import (
    MAX_FILE_SIZE,
    validate_dimensions,
    validate_file,
    validate_quality,
)


@pytest.mark.parametrize("width,height", [(1, 1), (800, 600), (10000, 10000), (1, 10000)])
def test_valid_dimensions(width: int, height: int) -> None:
    result = validate_dimensions(width, height)

    assert result.is_valid
    assert result.error is None


@pytest.mark.parametrize("width,height", [(0, 100), (100, 0), (-5, 10), (10001, 10), (10, 10001)])
def test_invalid_dimensions_have_reason(width: int, height: int) -> None:
    result = validate_dimensions(width, height)

    assert not result.is_valid
    assert result.error


@pytest.mark.parametrize("quality", [1, 50, 100])
def test_valid_quality(quality: int) -> None:
    assert validate_quality(quality).is_valid


@pytest.mark.parametrize("quality", [0, 101, -1, 80.5, True])
def test_invalid_quality(quality) -> None:
    result = validate_quality(quality)

    assert not result.is_valid
    assert result.error


def test_validate_file_accepts_image(tmp_path: Path) -> None:
    path = tmp_path / "photo.PNG"
    Image.new("RGB", (8, 8), "red").save(path, format="PNG")

    assert validate_file(path).is_valid


def test_validate_file_rejects_missing(tmp_path: Path) -> None:
    result = validate_file(tmp_path / "missing.png")

    assert not result.is_valid
    assert "missing.png" in result.error


def test_validate_file_rejects_empty(tmp_path: Path) -> None:
    path = tmp_path / "empty.png"
    path.touch()

    assert not validate_file(path).is_valid


def test_validate_file_rejects_oversized(tmp_path: Path) -> None:
    path = tmp_path / "huge.jpg"
    with path.open("wb") as handle:
        handle.truncate(MAX_FILE_SIZE + 1)

    result = validate_file(path)

    assert not result.is_valid
    assert "100MB" in result.error


def test_validate_file_rejects_unsupported_extension(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("hello")

    result = validate_file(path)

    assert not result.is_valid
    assert ".txt" in result.error


def test_raise_for_error() -> None:
    validate_dimensions(10, 10).raise_for_error()

    with pytest.raises(ValidationError):
        validate_dimensions(0, 10).raise_for_error()
