"""基于 Pillow 的图像编解码实现（转换、缩放、压缩）。"""

from __future__ import annotations

import io
import logging
import math
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from image_optimizer.core.exceptions import CodecError, InvalidConfigurationError
from image_optimizer.core.models import CodecResult
from image_optimizer.utils.colors import parse_hex_color

LOGGER = logging.getLogger(__name__)

_RESAMPLING = getattr(Image, "Resampling", Image)

PIL_FORMATS = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "avif": "AVIF",
    "tiff": "TIFF",
    "tif": "TIFF",
    "gif": "GIF",
    "bmp": "BMP",
}

# 转换阶段的默认编码参数。
FORMAT_DEFAULTS: dict[str, dict[str, Any]] = {
    "WEBP": {"quality": 80, "lossless": False},
    "AVIF": {"quality": 70},
    "JPEG": {"quality": 85, "progressive": True},
    "PNG": {"compression_level": 8},
}

_NO_ALPHA_FORMATS = {"JPEG", "BMP"}
_RGB_ONLY_FORMATS = {"WEBP", "AVIF"}


class ImageCodecGateway(Protocol):
    """处理链依赖的编解码能力。"""

    def convert(
        self, input_path: Path, output_path: Path, fmt: str, options: Optional[Mapping[str, Any]] = None
    ) -> CodecResult: ...

    def resize(
        self,
        input_path: Path,
        output_path: Path,
        width: int,
        height: int,
        options: Optional[Mapping[str, Any]] = None,
    ) -> CodecResult: ...

    def compress(
        self, input_path: Path, output_path: Path, options: Optional[Mapping[str, Any]] = None
    ) -> CodecResult: ...


class PillowCodecGateway:
    """使用 Pillow 执行实际的像素处理。

    所有写入都先编码到内存，编码成功后才写入目标文件，避免留下半截文件。
    """

    def convert(
        self, input_path: Path, output_path: Path, fmt: str, options: Optional[Mapping[str, Any]] = None
    ) -> CodecResult:
        pil_format = _pil_format(fmt)
        LOGGER.debug("转换为 %s: %s -> %s", pil_format, input_path, output_path)

        params = dict(FORMAT_DEFAULTS.get(pil_format, {}))
        params.update(options or {})

        image, _ = _load_image(input_path)
        try:
            return _write_image(image, output_path, pil_format, params)
        finally:
            image.close()

    def resize(
        self,
        input_path: Path,
        output_path: Path,
        width: int,
        height: int,
        options: Optional[Mapping[str, Any]] = None,
    ) -> CodecResult:
        params = dict(options or {})
        fit = params.pop("fit", "cover")
        without_enlargement = bool(params.pop("without_enlargement", True))
        background = params.pop("background", "#FFFFFF")
        explicit_format = params.pop("format", None)
        LOGGER.debug("缩放至 %dx%d (%s): %s", width, height, fit, input_path)

        image, source_format = _load_image(input_path)
        resized: Optional[Image.Image] = None
        try:
            pil_format = _pil_format(explicit_format) if explicit_format else _infer_format(output_path, source_format)
            resized = _apply_fit(image, (int(width), int(height)), fit, background, without_enlargement)
            return _write_image(resized, output_path, pil_format, params)
        finally:
            _close_if_needed(image, resized)

    def compress(
        self, input_path: Path, output_path: Path, options: Optional[Mapping[str, Any]] = None
    ) -> CodecResult:
        params = dict(options or {})
        explicit_format = params.pop("format", None)
        metadata = params.pop("metadata", "none")
        palette = bool(params.pop("palette", False))
        sharpen = bool(params.pop("sharpen", False))
        params.setdefault("quality", 80)

        image, source_format = _load_image(input_path)
        working = image
        try:
            pil_format = _pil_format(explicit_format) if explicit_format else _infer_format(output_path, source_format)
            LOGGER.debug("压缩为 %s (quality=%s): %s", pil_format, params["quality"], input_path)

            params.update(_metadata_params(image, metadata))
            if pil_format == "PNG":
                params.setdefault("compression_level", 9)
            if pil_format == "WEBP":
                params.setdefault("effort", 6)

            if sharpen:
                working = working.filter(ImageFilter.SHARPEN)
            if palette and pil_format == "PNG":
                working = _quantize(working)

            return _write_image(working, output_path, pil_format, params)
        finally:
            _close_if_needed(image, working if working is not image else None)


def _pil_format(fmt: str) -> str:
    key = str(fmt).lower().lstrip(".")
    pil_format = PIL_FORMATS.get(key)
    if pil_format is None:
        raise CodecError(f"不支持的输出格式: {fmt}")
    return pil_format


def _infer_format(output_path: Path, source_format: str) -> str:
    """优先使用输出文件扩展名，其次沿用源图片格式（临时文件没有图片扩展名）。"""

    pil_format = PIL_FORMATS.get(output_path.suffix.lower().lstrip("."))
    if pil_format:
        return pil_format
    if source_format in PIL_FORMATS.values():
        return source_format
    raise CodecError(f"无法确定输出格式: {output_path}")


def _load_image(path: Path) -> tuple[Image.Image, str]:
    """加载图片，执行 EXIF 旋转校正与模式归一化，返回图片及源格式。"""

    try:
        with Image.open(path) as img:
            img.load()
            source_format = (img.format or "").upper()
            img = ImageOps.exif_transpose(img)
            img = _normalize_mode(img)
            return img.copy(), source_format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        LOGGER.debug("无法识别图像文件 %s: %s", path, exc)
        raise CodecError(f"无法加载图像: {path}") from exc


def _normalize_mode(img: Image.Image) -> Image.Image:
    if img.mode in {"RGB", "RGBA", "L"}:
        return img
    if img.mode in {"LA", "PA"} or (img.mode == "P" and "transparency" in img.info):
        return img.convert("RGBA")
    return img.convert("RGB")


def _prepare_for_format(image: Image.Image, pil_format: str) -> Image.Image:
    if pil_format in _NO_ALPHA_FORMATS and image.mode == "RGBA":
        # 保留 Alpha 信息，通过白色背景混合生成 RGB。
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    if pil_format in _RGB_ONLY_FORMATS and image.mode not in {"RGB", "RGBA"}:
        return image.convert("RGB")
    return image


def _save_params(pil_format: str, options: Mapping[str, Any]) -> dict[str, Any]:
    """将通用选项映射为 Pillow 的保存参数，未识别的选项忽略。"""

    params: dict[str, Any] = {}
    quality = options.get("quality")
    effort = options.get("effort")

    if pil_format == "JPEG":
        params.update(optimize=True, subsampling=0, progressive=bool(options.get("progressive", True)))
        if quality is not None:
            params["quality"] = int(quality)
    elif pil_format == "WEBP":
        params["lossless"] = bool(options.get("lossless", False))
        if quality is not None:
            params["quality"] = int(quality)
        if effort is not None:
            params["method"] = max(0, min(int(effort), 6))
    elif pil_format == "AVIF":
        if quality is not None:
            params["quality"] = int(quality)
        if effort is not None:
            params["speed"] = max(0, min(10 - int(effort), 10))
    elif pil_format == "PNG":
        params["optimize"] = True
        level = options.get("compression_level", options.get("compressionLevel"))
        if level is not None:
            params["compress_level"] = max(0, min(int(level), 9))

    for key in ("exif", "icc_profile"):
        if options.get(key):
            params[key] = options[key]
    return params


def _write_image(image: Image.Image, destination: Path, pil_format: str, options: Mapping[str, Any]) -> CodecResult:
    prepared = _prepare_for_format(image, pil_format)
    buffer = io.BytesIO()
    try:
        prepared.save(buffer, format=pil_format, **_save_params(pil_format, options))
    except (KeyError, ValueError, OSError) as exc:
        raise CodecError(f"编码 {pil_format} 失败: {destination}") from exc

    data = buffer.getvalue()
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)
    except OSError as exc:
        raise CodecError(f"写入文件失败: {destination}") from exc

    return CodecResult(
        format=pil_format.lower(),
        width=prepared.width,
        height=prepared.height,
        size_bytes=len(data),
    )


def _apply_fit(
    image: Image.Image,
    target: tuple[int, int],
    fit: str,
    background: str,
    without_enlargement: bool,
) -> Image.Image:
    """按适配模式调整尺寸。"""

    if without_enlargement and image.width <= target[0] and image.height <= target[1]:
        return image.copy()

    if fit == "cover":
        return ImageOps.fit(image, target, _RESAMPLING.LANCZOS, centering=(0.5, 0.5))
    if fit == "contain":
        return _apply_contain(image, target, background)
    if fit == "fill":
        return image.resize(target, _RESAMPLING.LANCZOS)
    if fit == "inside":
        return ImageOps.contain(image, target, _RESAMPLING.LANCZOS)
    if fit == "outside":
        scale = max(target[0] / image.width, target[1] / image.height)
        size = (max(1, math.ceil(image.width * scale)), max(1, math.ceil(image.height * scale)))
        return image.resize(size, _RESAMPLING.LANCZOS)

    raise InvalidConfigurationError(f"未知的适配模式: {fit}")


def _apply_contain(image: Image.Image, target: tuple[int, int], background: str) -> Image.Image:
    """等比缩放后居中放置在背景画布上。"""

    color = parse_hex_color(background)
    if color[3] == 255:
        canvas = Image.new("RGB", target, color[:3])
    else:
        canvas = Image.new("RGBA", target, color)

    resized = ImageOps.contain(image, target, _RESAMPLING.LANCZOS)
    offset = (
        (target[0] - resized.width) // 2,
        (target[1] - resized.height) // 2,
    )
    if resized.mode == "RGBA":
        canvas.paste(resized, offset, mask=resized)
    else:
        canvas.paste(resized, offset)
    return canvas


def _metadata_params(image: Image.Image, policy: str) -> dict[str, Any]:
    """根据元数据策略挑选需要保留的 EXIF / ICC 信息。"""

    if policy == "none":
        return {}
    if policy not in {"all", "exif", "icc"}:
        raise InvalidConfigurationError(f"未知的元数据策略: {policy}")

    params: dict[str, Any] = {}
    if policy in {"all", "exif"}:
        exif = image.getexif()
        if len(exif):
            params["exif"] = exif.tobytes()
    if policy in {"all", "icc"}:
        icc = image.info.get("icc_profile")
        if icc:
            params["icc_profile"] = icc
    return params


def _quantize(image: Image.Image) -> Image.Image:
    if image.mode == "RGBA":
        return image.quantize(colors=256, method=Image.Quantize.FASTOCTREE)
    if image.mode != "RGB":
        image = image.convert("RGB")
    return image.quantize(colors=256)


def _close_if_needed(*images: Optional[Image.Image]) -> None:
    for img in images:
        if img is not None:
            img.close()
