"""Pillow 编解码：适配模式、格式推断与元数据策略。"""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image, features

from image_optimizer.core.exceptions import CodecError
from image_optimizer.processing.codec import PillowCodecGateway


def _make_image(path: Path, size: tuple[int, int] = (64, 32), mode: str = "RGB", color="green") -> Path:
    Image.new(mode, size, color).save(path)
    return path


@pytest.mark.parametrize(
    "fit,expected",
    [
        ("cover", (20, 20)),
        ("contain", (20, 20)),
        ("fill", (20, 20)),
        ("inside", (20, 10)),
        ("outside", (40, 20)),
    ],
)
def test_resize_fit_modes(tmp_path: Path, fit: str, expected: tuple[int, int]) -> None:
    source = _make_image(tmp_path / "wide.png")
    output = tmp_path / f"{fit}.png"

    result = PillowCodecGateway().resize(source, output, 20, 20, {"fit": fit})

    assert (result.width, result.height) == expected
    with Image.open(output) as img:
        assert img.size == expected


@pytest.mark.skipif(not features.check("avif"), reason="Pillow 未编译 AVIF 支持")
def test_convert_to_avif(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "photo.png")
    output = tmp_path / "photo.avif"

    result = PillowCodecGateway().convert(source, output, "avif", {"quality": 60})

    assert result.format == "avif"
    with Image.open(output) as img:
        assert img.format == "AVIF"
        assert img.size == (64, 32)


def test_contain_pads_with_background(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "wide.png", color="white")
    output = tmp_path / "contain.png"

    PillowCodecGateway().resize(source, output, 20, 20, {"fit": "contain", "background": "#FF0000"})

    with Image.open(output) as img:
        assert img.getpixel((10, 0))[:3] == (255, 0, 0)
        assert img.getpixel((10, 10))[:3] == (255, 255, 255)


def test_resize_without_enlargement_keeps_small_images(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "small.png", size=(10, 8))
    output = tmp_path / "out.png"

    result = PillowCodecGateway().resize(source, output, 100, 100, {"fit": "cover"})

    assert (result.width, result.height) == (10, 8)


def test_resize_allows_enlargement_when_requested(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "small.png", size=(10, 10))
    output = tmp_path / "out.png"

    result = PillowCodecGateway().resize(source, output, 50, 50, {"fit": "fill", "without_enlargement": False})

    assert (result.width, result.height) == (50, 50)


def test_resize_temp_target_keeps_source_format(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "photo.png")
    output = tmp_path / "final.jpg.temp.resized"

    result = PillowCodecGateway().resize(source, output, 16, 16)

    assert result.format == "png"
    with Image.open(output) as img:
        assert img.format == "PNG"


def test_convert_rgba_to_jpeg_flattens_alpha(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "alpha.png", mode="RGBA", color=(0, 0, 255, 0))
    output = tmp_path / "alpha.jpg"

    result = PillowCodecGateway().convert(source, output, "jpg", {"quality": 90})

    assert result.format == "jpeg"
    with Image.open(output) as img:
        assert img.mode == "RGB"
        r, g, b = img.getpixel((0, 0))
        assert min(r, g, b) > 240


def test_convert_unknown_format_fails(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "photo.png")

    with pytest.raises(CodecError):
        PillowCodecGateway().convert(source, tmp_path / "photo.xyz", "xyz")


def test_compress_png_palette(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "photo.png", size=(32, 32))
    output = tmp_path / "small.png"

    PillowCodecGateway().compress(source, output, {"quality": 70, "palette": True})

    with Image.open(output) as img:
        assert img.mode == "P"


def test_compress_metadata_policy(tmp_path: Path) -> None:
    source = tmp_path / "tagged.jpg"
    image = Image.new("RGB", (32, 32), "red")
    exif = Image.Exif()
    exif[0x010F] = "TestCamera"  # Make
    image.save(source, exif=exif.tobytes())
    stripped = tmp_path / "stripped.jpg"
    kept = tmp_path / "kept.jpg"

    gateway = PillowCodecGateway()
    gateway.compress(source, stripped, {"quality": 80, "metadata": "none"})
    gateway.compress(source, kept, {"quality": 80, "metadata": "exif"})

    with Image.open(stripped) as img:
        assert img.getexif().get(0x010F) is None
    with Image.open(kept) as img:
        assert img.getexif().get(0x010F) == "TestCamera"


def test_failed_encode_does_not_create_destination(tmp_path: Path) -> None:
    source = tmp_path / "broken.png"
    source.write_text("not an image")
    output = tmp_path / "out.png"

    with pytest.raises(CodecError):
        PillowCodecGateway().compress(source, output)

    assert not output.exists()
