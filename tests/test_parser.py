from __future__ import annotations

import pytest

from bordercrop.detect.parser import parse_bbox_union, parse_candidate, parse_crop_rectangle
from bordercrop.models import Rectangle, StrategyKind

CROPDETECT_STDERR = """\
Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'in.mp4':
  Duration: 00:00:12.00, start: 0.000000, bitrate: 2201 kb/s
[Parsed_cropdetect_2 @ 0x55d1] x1:0 x2:1919 y1:138 y2:941 w:1920 h:800 x:0 y:140 pts:0 t:0.000000 crop=1920:800:0:140
[Parsed_cropdetect_2 @ 0x55d1] x1:0 x2:1919 y1:139 y2:940 w:1920 h:800 x:0 y:140 pts:512 t:0.040000 crop=1920:800:0:140
[Parsed_cropdetect_2 @ 0x55d1] x1:0 x2:1919 y1:140 y2:939 w:1920 h:800 x:0 y:140 pts:1024 t:0.080000 crop=1920:800:0:140
"""

BBOX_METADATA_STDERR = """\
[Parsed_metadata_4 @ 0x7f00] frame:0    pts:0       pts_time:0
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.x1=120
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.x2=899
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.y1=200
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.y2=799
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.w=780
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.h=600
[Parsed_metadata_4 @ 0x7f00] frame:1    pts:512     pts_time:0.04
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.x1=100
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.x2=799
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.y1=250
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.y2=899
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.w=700
[Parsed_metadata_4 @ 0x7f00] lavfi.bbox.h=650
"""


def test_parse_crop_rectangle_takes_last_token_from_cropdetect_log() -> None:
    assert parse_crop_rectangle(CROPDETECT_STDERR) == Rectangle(x=0, y=140, w=1920, h=800)


@pytest.mark.parametrize("text", ["", None, "frame=  100 fps=0.0 q=-0.0 Lsize=N/A", "crop=abc:1:2:3"])
def test_parse_crop_rectangle_returns_none_without_tokens(text: str | None) -> None:
    assert parse_crop_rectangle(text) is None


@pytest.mark.parametrize("token_count", [1, 2, 7])
def test_parse_crop_rectangle_returns_last_of_n_tokens(token_count: int) -> None:
    lines = [f"[cropdetect] crop={1000 + i * 2}:{500 + i * 2}:{i}:{i * 3}" for i in range(token_count)]
    last = token_count - 1

    rectangle = parse_crop_rectangle("\n".join(lines))

    assert rectangle == Rectangle(x=last, y=last * 3, w=1000 + last * 2, h=500 + last * 2)


def test_parse_crop_rectangle_rejects_zero_sized_last_token() -> None:
    assert parse_crop_rectangle("crop=1920:1080:0:0\ncrop=0:1080:0:0") is None


def test_parse_bbox_union_spans_all_frames() -> None:
    rectangle = parse_bbox_union(BBOX_METADATA_STDERR)

    # x1=min(120, 100), y1=min(200, 250), x2=max(900, 800), y2=max(800, 900)
    assert rectangle == Rectangle(x=100, y=200, w=800, h=700)


def test_parse_bbox_union_reads_bare_components() -> None:
    text = "x=10 y=20 w=100 h=50\nx=30 y=10 w=100 h=50\n"

    assert parse_bbox_union(text) == Rectangle(x=10, y=10, w=120, h=60)


def test_parse_bbox_union_ignores_unrelated_keys() -> None:
    text = "frame=  12 fps=0.0 q=-0.0 size=N/A time=00:00:00.48 bitrate=N/A speed=2.1x\nlavfi.bbox.x1=5\n"

    assert parse_bbox_union(text) is None


@pytest.mark.parametrize("text", ["", None, "no bounding boxes here"])
def test_parse_bbox_union_returns_none_without_components(text: str | None) -> None:
    assert parse_bbox_union(text) is None


def test_parse_bbox_union_returns_none_for_non_positive_size() -> None:
    assert parse_bbox_union("x=10 y=10 w=0 h=40") is None


def test_parse_candidate_dispatches_on_strategy_kind() -> None:
    assert parse_candidate(BBOX_METADATA_STDERR, StrategyKind.MOTION_BOUNDING_BOX) == Rectangle(x=100, y=200, w=800, h=700)
    assert parse_candidate(CROPDETECT_STDERR, StrategyKind.DARK_BORDER) == Rectangle(x=0, y=140, w=1920, h=800)
    assert parse_candidate(BBOX_METADATA_STDERR, StrategyKind.LIGHT_BORDER_THRESHOLD) is None
