from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "BORDERCROP_"


class ToolSettings(BaseModel):
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    threads: int = 4
    probe_timeout_seconds: float = 30.0


class DetectionSettings(BaseModel):
    probe_seconds: float = 3.0
    start_offset_seconds: float = 2.0
    timeout_seconds: float = 60.0
    max_parallel_probes: int = 3
    acceptance_score: float = 0.0
    min_crop_ratio: float = 0.5
    strict_min_crop_ratio: float = 0.6


class RefinementSettings(BaseModel):
    enabled: bool = True
    probe_seconds: float = 2.0
    start_offset_seconds: float = 0.0
    timeout_seconds: float = 30.0


class GridSettings(BaseModel):
    dark_blur_radii: list[int] = Field(default_factory=lambda: [16])
    dark_sensitivity_limits: list[int] = Field(default_factory=lambda: [24])
    light_thresholds: list[int] = Field(default_factory=lambda: [238, 242, 246, 250])
    light_blur_radii: list[int] = Field(default_factory=lambda: [18, 24, 30])
    light_sensitivity_limit: int = 8
    inverted_sensitivity_limits: list[int] = Field(default_factory=lambda: [30, 45, 60, 75])
    inverted_blur_radii: list[int] = Field(default_factory=lambda: [18, 24, 30])
    edge_sensitivity_limits: list[int] = Field(default_factory=lambda: [30, 45, 60])
    edge_blur_radius: int = 4
    motion_sensitivity_limits: list[int] = Field(default_factory=lambda: [30, 45, 60])
    motion_blur_radius: int = 8


class WeightSettings(BaseModel):
    dark_border: float = 400.0
    light_border_threshold: float = 300.0
    inverted_fallback: float = 200.0
    edge_fallback: float = 1.0
    motion_bounding_box: float = 1.0


class EncodeSettings(BaseModel):
    crf: int = 18
    preset: str = "ultrafast"


class LoggingSettings(BaseModel):
    level: str = "INFO"


class Settings(BaseModel):
    tools: ToolSettings = Field(default_factory=ToolSettings)
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    refinement: RefinementSettings = Field(default_factory=RefinementSettings)
    grids: GridSettings = Field(default_factory=GridSettings)
    weights: WeightSettings = Field(default_factory=WeightSettings)
    encode: EncodeSettings = Field(default_factory=EncodeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides."""

    resolved_path = Path(
        config_path
        or os.getenv(f"{ENV_PREFIX}CONFIG")
        or DEFAULT_CONFIG_PATH
    )
    raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    return Settings.model_validate(data)


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    return raw_value
