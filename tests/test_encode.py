from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from bordercrop.config import EncodeSettings, ToolSettings
from bordercrop.models import Rectangle
from bordercrop.render.encode import encode_with_crop

LETTERBOX = Rectangle(x=0, y=140, w=1920, h=800)


def test_encode_with_crop_applies_crop_and_even_scale(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[list[str]] = []

    def _capture(command: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        captured.append(command)
        return subprocess.CompletedProcess(args=command, returncode=0, stdout="", stderr="")

    monkeypatch.setattr(subprocess, "run", _capture)

    result = encode_with_crop(
        tmp_path / "in.mp4",
        LETTERBOX,
        tmp_path / "nested" / "out.mp4",
        tools=ToolSettings(ffmpeg_binary="/opt/ffmpeg", threads=2),
        encode=EncodeSettings(crf=20, preset="fast"),
    )

    command = captured[0]
    assert result == (tmp_path / "nested" / "out.mp4").resolve()
    assert result.parent.is_dir()
    assert command[0] == "/opt/ffmpeg"
    assert command[command.index("-vf") + 1] == "crop=1920:800:0:140,scale=trunc(iw/2)*2:trunc(ih/2)*2:flags=bicubic"
    assert command[command.index("-crf") + 1] == "20"
    assert command[command.index("-preset") + 1] == "fast"
    assert command[command.index("-threads") + 1] == "2"
    assert command[-1] == str(result)


def test_encode_with_crop_wraps_missing_binary_error(tmp_path: Path) -> None:
    def _raise_missing(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError("ffmpeg")

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(subprocess, "run", _raise_missing)
        with pytest.raises(RuntimeError, match="ffmpeg executable was not found"):
            encode_with_crop(tmp_path / "in.mp4", LETTERBOX, tmp_path / "out.mp4")


def test_encode_with_crop_wraps_encoder_failure_with_stderr(tmp_path: Path) -> None:
    def _raise_process_error(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise subprocess.CalledProcessError(
            returncode=1,
            cmd=["ffmpeg"],
            output="",
            stderr="Invalid too big or non positive size for width '1920' or height '800'",
        )

    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(subprocess, "run", _raise_process_error)
        with pytest.raises(RuntimeError, match="ffmpeg failed to encode cropped output.*Invalid too big"):
            encode_with_crop(tmp_path / "in.mp4", LETTERBOX, tmp_path / "out.mp4")
