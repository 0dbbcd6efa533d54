from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any

from bordercrop.errors import InputDimensionsUnavailable
from bordercrop.models import FrameDimensions

_MISSING_LIBRARY_MARKERS = ("error while loading shared libraries", "cannot open shared object file")


def probe_dimensions(video_path: str | Path, ffprobe_binary: str = "ffprobe") -> FrameDimensions:
    """Return the display width/height (and duration when known) of the first video stream."""

    source_path = Path(video_path).expanduser().resolve()
    if not source_path.exists():
        raise FileNotFoundError(f"Video file not found: {source_path}")

    payload = _run_ffprobe(source_path, ffprobe_binary=ffprobe_binary)
    return _dimensions_from_payload(source_path, payload)


def _run_ffprobe(video_path: Path, ffprobe_binary: str = "ffprobe") -> dict[str, Any]:
    command = [
        ffprobe_binary,
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=width,height:stream_side_data=rotation:stream_tags=rotate:format=duration",
        "-print_format",
        "json",
        str(video_path),
    ]

    try:
        completed = subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as exc:
        raise InputDimensionsUnavailable(
            "ffprobe executable was not found. Install FFmpeg so ffprobe is available on PATH."
        ) from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        if any(marker in stderr for marker in _MISSING_LIBRARY_MARKERS):
            raise InputDimensionsUnavailable(
                "ffprobe is installed but failed to start because required shared libraries are missing. "
                f"ffprobe stderr: {stderr}"
            ) from exc
        details = f" ffprobe stderr: {stderr}" if stderr else ""
        raise InputDimensionsUnavailable(
            f"ffprobe failed while probing media file: {video_path}.{details}"
        ) from exc

    try:
        return json.loads(completed.stdout)
    except json.JSONDecodeError as exc:
        raise InputDimensionsUnavailable("ffprobe returned invalid JSON output.") from exc


def _dimensions_from_payload(video_path: Path, payload: dict[str, Any]) -> FrameDimensions:
    streams = payload.get("streams") or []
    if not streams:
        raise InputDimensionsUnavailable(f"No video stream found in {video_path}")

    width = _to_int(streams[0].get("width"))
    height = _to_int(streams[0].get("height"))
    if not width or not height or width <= 0 or height <= 0:
        raise InputDimensionsUnavailable(f"ffprobe reported no usable frame size for {video_path}")

    # ffmpeg autorotates before cropdetect/bbox, so candidates arrive in display orientation.
    if abs(_rotation_degrees(streams[0])) % 180 == 90:
        width, height = height, width

    duration = _to_float(payload.get("format", {}).get("duration"))
    return FrameDimensions(width=width, height=height, duration_seconds=duration)


def _rotation_degrees(stream: dict[str, Any]) -> int:
    for side_data in stream.get("side_data_list") or []:
        rotation = _to_float(side_data.get("rotation"))
        if rotation is not None:
            return round(rotation)
    rotate_tag = _to_float((stream.get("tags") or {}).get("rotate"))
    return round(rotate_tag) if rotate_tag is not None else 0


def _to_float(raw_value: Any) -> float | None:
    if raw_value in (None, "N/A", ""):
        return None
    return float(raw_value)


def _to_int(raw_value: Any) -> int | None:
    if raw_value in (None, "N/A", ""):
        return None
    return int(raw_value)
