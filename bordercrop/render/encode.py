from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from bordercrop.config import EncodeSettings, ToolSettings
from bordercrop.models import Rectangle

logger = logging.getLogger(__name__)


def encode_with_crop(
    input_path: str | Path,
    rectangle: Rectangle,
    output_path: str | Path,
    *,
    tools: ToolSettings | None = None,
    encode: EncodeSettings | None = None,
) -> Path:
    """Re-encode the input cropped to the rectangle, keeping even output dimensions."""

    tools = tools or ToolSettings()
    encode = encode or EncodeSettings()
    target = Path(output_path).expanduser().resolve()
    target.parent.mkdir(parents=True, exist_ok=True)

    video_filter = ",".join(
        [
            rectangle.as_crop_filter(),
            "scale=trunc(iw/2)*2:trunc(ih/2)*2:flags=bicubic",
        ]
    )
    command = [
        tools.ffmpeg_binary,
        "-v",
        "error",
        "-y",
        "-i",
        str(input_path),
        "-vf",
        video_filter,
        "-c:v",
        "libx264",
        "-crf",
        str(encode.crf),
        "-preset",
        encode.preset,
        "-pix_fmt",
        "yuv420p",
        "-movflags",
        "+faststart",
        "-threads",
        str(tools.threads),
        "-an",
        str(target),
    ]

    logger.debug("Encoding %s with %s", input_path, rectangle.as_crop_filter())
    try:
        subprocess.run(command, check=True, capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise RuntimeError(
            "ffmpeg executable was not found. Install FFmpeg so ffmpeg is available on PATH."
        ) from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        details = f" ffmpeg stderr: {stderr}" if stderr else ""
        raise RuntimeError(f"ffmpeg failed to encode cropped output: {target}.{details}") from exc

    return target
