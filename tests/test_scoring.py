from __future__ import annotations

import pytest

from bordercrop.models import Rectangle
from bordercrop.scoring.crop_score import REJECTED_SCORE, explain_candidate, score_candidate


@pytest.mark.parametrize(
    ("rectangle", "frame"),
    [
        (Rectangle(x=0, y=0, w=959, h=1080), (1920, 1080)),
        (Rectangle(x=0, y=0, w=1920, h=539), (1920, 1080)),
        (Rectangle(x=400, y=300, w=100, h=100), (1920, 1080)),
        (Rectangle(x=0, y=0, w=539, h=1920), (1080, 1920)),
    ],
)
def test_score_candidate_rejects_over_aggressive_crops(rectangle: Rectangle, frame: tuple[int, int]) -> None:
    assert score_candidate(rectangle, *frame, bar_weight=400) == REJECTED_SCORE


def test_score_candidate_strict_ratio_raises_the_floor() -> None:
    rectangle = Rectangle(x=0, y=0, w=1920, h=600)

    assert score_candidate(rectangle, 1920, 1080) > REJECTED_SCORE
    assert score_candidate(rectangle, 1920, 1080, min_crop_ratio=0.6) == REJECTED_SCORE


def test_score_candidate_rejects_rectangle_outside_frame() -> None:
    details = explain_candidate(Rectangle(x=10, y=0, w=1920, h=1080), 1920, 1080)

    assert details.score == REJECTED_SCORE
    assert details.reason == "reject:outside_frame"


def test_full_frame_scores_zero_and_loses_to_a_real_border() -> None:
    full_frame = score_candidate(Rectangle(x=0, y=0, w=1920, h=1080), 1920, 1080, bar_weight=400)
    letterboxed = score_candidate(Rectangle(x=0, y=2, w=1920, h=1076), 1920, 1080, bar_weight=1)

    assert full_frame == 0.0
    assert full_frame > REJECTED_SCORE
    assert letterboxed > full_frame


def test_score_candidate_adds_weighted_largest_bar() -> None:
    details = explain_candidate(Rectangle(x=0, y=140, w=1920, h=800), 1920, 1080, bar_weight=300)

    assert details.removed_area == 1920 * 280
    assert details.bars == {"top": 140, "bottom": 140, "left": 0, "right": 0}
    assert details.score == pytest.approx(1920 * 280 + 300 * 140)
    assert details.reason == "bar:bottom"


def test_score_increases_with_removed_area_when_bars_are_equal() -> None:
    # Largest bar is 100px in both; the second removes more area.
    smaller = score_candidate(Rectangle(x=0, y=100, w=1920, h=930), 1920, 1080, bar_weight=200)
    larger = score_candidate(Rectangle(x=0, y=100, w=1920, h=880), 1920, 1080, bar_weight=200)

    assert larger > smaller


def test_single_large_bar_beats_diffuse_crop_of_similar_area() -> None:
    # 1920x100 header removed vs. ~26px shaved from every side: similar area, different shape.
    header = score_candidate(Rectangle(x=0, y=100, w=1920, h=980), 1920, 1080, bar_weight=300)
    diffuse = score_candidate(Rectangle(x=26, y=26, w=1868, h=1028), 1920, 1080, bar_weight=300)

    assert header > diffuse


def test_explain_candidate_requires_positive_frame() -> None:
    with pytest.raises(ValueError, match="Frame dimensions must be positive"):
        explain_candidate(Rectangle(x=0, y=0, w=10, h=10), 0, 1080)


@pytest.mark.parametrize(("w", "h"), [(0, 1080), (1920, 0), (-1920, 1080)])
def test_rectangle_rejects_non_positive_size_at_construction(w: int, h: int) -> None:
    with pytest.raises(ValueError, match="positive size"):
        Rectangle(x=0, y=0, w=w, h=h)
