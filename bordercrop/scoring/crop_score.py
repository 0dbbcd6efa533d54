from __future__ import annotations

from dataclasses import dataclass

from bordercrop.models import Rectangle

REJECTED_SCORE = float("-inf")
DEFAULT_MIN_CROP_RATIO = 0.5


@dataclass(slots=True)
class CropScoreDetails:
    """Explainable output for one candidate rectangle."""

    score: float
    accepted: bool
    reason: str
    removed_area: int
    bars: dict[str, int]
    bar_weight: float


def score_candidate(
    rectangle: Rectangle,
    frame_width: int,
    frame_height: int,
    *,
    bar_weight: float = 1.0,
    min_crop_ratio: float = DEFAULT_MIN_CROP_RATIO,
) -> float:
    """Score a crop rectangle; higher is better, REJECTED_SCORE marks an unusable crop."""

    return explain_candidate(
        rectangle,
        frame_width,
        frame_height,
        bar_weight=bar_weight,
        min_crop_ratio=min_crop_ratio,
    ).score


def explain_candidate(
    rectangle: Rectangle,
    frame_width: int,
    frame_height: int,
    *,
    bar_weight: float = 1.0,
    min_crop_ratio: float = DEFAULT_MIN_CROP_RATIO,
) -> CropScoreDetails:
    """Score a rectangle as removed area plus a weighted bonus for the largest single bar.

    The bar bonus makes one large uniform border (letterbox or pillarbox) outrank
    a crop that shaves small amounts from every side.
    """

    if frame_width <= 0 or frame_height <= 0:
        raise ValueError(f"Frame dimensions must be positive, got {frame_width}x{frame_height}")

    if not rectangle.fits_within(frame_width, frame_height):
        return _rejected(bar_weight, "reject:outside_frame")

    if rectangle.w < min_crop_ratio * frame_width or rectangle.h < min_crop_ratio * frame_height:
        return _rejected(bar_weight, "reject:over_aggressive")

    bars = _bar_sizes(rectangle, frame_width, frame_height)
    removed_area = frame_width * frame_height - rectangle.w * rectangle.h
    score = float(removed_area) + max(bar_weight, 0.0) * max(bars.values())

    return CropScoreDetails(
        score=score,
        accepted=True,
        reason=_dominant_bar(bars) if score > 0 else "full_frame",
        removed_area=removed_area,
        bars=bars,
        bar_weight=bar_weight,
    )


def _bar_sizes(rectangle: Rectangle, frame_width: int, frame_height: int) -> dict[str, int]:
    return {
        "top": rectangle.y,
        "bottom": frame_height - rectangle.bottom,
        "left": rectangle.x,
        "right": frame_width - rectangle.right,
    }


def _dominant_bar(bars: dict[str, int]) -> str:
    side = sorted(bars, key=lambda key: (-bars[key], key))[0]
    return f"bar:{side}"


def _rejected(bar_weight: float, reason: str) -> CropScoreDetails:
    return CropScoreDetails(
        score=REJECTED_SCORE,
        accepted=False,
        reason=reason,
        removed_area=0,
        bars={},
        bar_weight=bar_weight,
    )
