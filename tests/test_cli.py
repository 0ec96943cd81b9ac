"""命令行入口：退出码与输出文件。"""

from __future__ import annotations

import json
from pathlib import Path

from PIL import Image
from typer.testing import CliRunner

from image_optimizer.cli.main import app

runner = CliRunner()


def _make_image(path: Path, size: tuple[int, int] = (80, 60)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, "purple").save(path)
    return path


def test_convert_command(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "photo.png")
    output = tmp_path / "photo.webp"

    result = runner.invoke(app, ["convert", str(source), str(output), "--format", "webp", "--quality", "70"])

    assert result.exit_code == 0, result.output
    assert output.exists()


def test_convert_missing_input_exits_with_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["convert", str(tmp_path / "missing.png"), str(tmp_path / "out.webp")])

    assert result.exit_code == 1


def test_compress_rejects_bad_quality(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "photo.png")

    result = runner.invoke(app, ["compress", str(source), str(tmp_path / "out.webp"), "--quality", "0"])

    assert result.exit_code == 1
    assert not (tmp_path / "out.webp").exists()


def test_rejected_input_does_not_create_output_directory(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "photo.png")

    bad_quality = runner.invoke(app, ["compress", str(source), str(tmp_path / "outdir"), "--quality", "0"])
    missing = runner.invoke(app, ["convert", str(tmp_path / "missing.png"), str(tmp_path / "outdir2")])

    assert bad_quality.exit_code == 1
    assert missing.exit_code == 1
    assert not (tmp_path / "outdir").exists()
    assert not (tmp_path / "outdir2").exists()


def test_resize_directory(tmp_path: Path) -> None:
    source = tmp_path / "input"
    _make_image(source / "a.png")
    _make_image(source / "b.jpg")
    output = tmp_path / "output"

    result = runner.invoke(app, ["resize", str(source), str(output), "-w", "40", "-h", "30", "--fit", "fill"])

    assert result.exit_code == 0, result.output
    assert (output / "a_40x30.png").exists()
    assert (output / "b_40x30.jpg").exists()


def test_empty_directory_exits_with_error(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()

    result = runner.invoke(app, ["compress", str(source), str(tmp_path / "output")])

    assert result.exit_code == 1
    assert not (tmp_path / "output").exists()


def test_optimize_with_preset(tmp_path: Path) -> None:
    source = _make_image(tmp_path / "photo.png", size=(400, 300))
    output = tmp_path / "thumbs"

    result = runner.invoke(app, ["optimize", str(source), str(output), "--preset", "thumbnail"])

    assert result.exit_code == 0, result.output
    produced = output / "photo_converted.webp"
    with Image.open(produced) as img:
        assert img.size == (300, 300)


def test_batch_command_partial_success(tmp_path: Path) -> None:
    good = _make_image(tmp_path / "good.png")
    config_path = tmp_path / "batch.json"
    config_path.write_text(
        json.dumps(
            {
                "images": [
                    {"input": str(good), "output": str(tmp_path / "good.webp"), "operations": {"convert": {"format": "webp"}}},
                    {"input": str(tmp_path / "missing.png"), "output": str(tmp_path / "x.webp"), "operations": {}},
                ]
            }
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["batch", str(config_path)])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "good.webp").exists()


def test_batch_command_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "batch.json"
    config_path.write_text("{not json", encoding="utf-8")

    result = runner.invoke(app, ["batch", str(config_path)])

    assert result.exit_code == 1
