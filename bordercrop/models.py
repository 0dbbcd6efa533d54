from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

DetectionMode = Literal["dark", "light", "motion"]


class StrategyKind(str, Enum):
    DARK_BORDER = "dark_border"
    LIGHT_BORDER_THRESHOLD = "light_border_threshold"
    INVERTED_FALLBACK = "inverted_fallback"
    EDGE_FALLBACK = "edge_fallback"
    MOTION_BOUNDING_BOX = "motion_bounding_box"


class SelectorState(str, Enum):
    NOT_STARTED = "not_started"
    PROBING = "probing"
    FOUND = "found"
    EXHAUSTED = "exhausted"


@dataclass(slots=True, frozen=True)
class Rectangle:
    """Crop geometry in the probed frame's native pixel space."""

    x: int
    y: int
    w: int
    h: int

    def __post_init__(self) -> None:
        if self.w <= 0 or self.h <= 0:
            raise ValueError(f"Rectangle needs a positive size, got {self.w}x{self.h}")

    @property
    def right(self) -> int:
        return self.x + self.w

    @property
    def bottom(self) -> int:
        return self.y + self.h

    def fits_within(self, width: int, height: int) -> bool:
        if self.x < 0 or self.y < 0:
            return False
        return self.right <= width and self.bottom <= height

    def as_crop_filter(self) -> str:
        return f"crop={self.w}:{self.h}:{self.x}:{self.y}"

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


@dataclass(slots=True, frozen=True)
class FrameDimensions:
    width: int
    height: int
    duration_seconds: float | None = None


@dataclass(slots=True, frozen=True)
class StrategySpec:
    """One parameterized detection attempt."""

    kind: StrategyKind
    probe_seconds: float
    start_offset: float
    blur_radius: int
    sensitivity_limit: int
    brightness_threshold: int | None = None

    def label(self) -> str:
        parts = [self.kind.value, f"blur={self.blur_radius}", f"limit={self.sensitivity_limit}"]
        if self.brightness_threshold is not None:
            parts.append(f"threshold={self.brightness_threshold}")
        return " ".join(parts)


@dataclass(slots=True, frozen=True)
class StrategyTier:
    """Strategies issued together before the selector decides whether to continue."""

    label: str
    specs: tuple[StrategySpec, ...]


@dataclass(slots=True, frozen=True)
class Candidate:
    rectangle: Rectangle
    spec: StrategySpec
    score: float


@dataclass(slots=True)
class SelectionReport:
    """Explainable summary of one selector run."""

    state: SelectorState = SelectorState.NOT_STARTED
    tiers_attempted: list[str] = field(default_factory=list)
    probes_run: int = 0
    probes_failed: int = 0
    candidates_rejected: int = 0
    timed_out: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "tiers_attempted": list(self.tiers_attempted),
            "probes_run": self.probes_run,
            "probes_failed": self.probes_failed,
            "candidates_rejected": self.candidates_rejected,
            "timed_out": self.timed_out,
        }


@dataclass(slots=True)
class DetectionOutcome:
    """Winning rectangle of one detection request, or an explicit miss."""

    candidate: Candidate | None
    report: SelectionReport = field(default_factory=SelectionReport)

    @property
    def found(self) -> bool:
        return self.candidate is not None

    @property
    def rectangle(self) -> Rectangle | None:
        return self.candidate.rectangle if self.candidate is not None else None
