from __future__ import annotations

import re

from bordercrop.models import Rectangle, StrategyKind

_CROP_TOKEN = re.compile(r"crop=(\d+):(\d+):(\d+):(\d+)")
# Matches bbox metadata (lavfi.bbox.x1=12) as well as bare x=/y=/w=/h= components.
_BBOX_COMPONENT = re.compile(r"(?:lavfi\.bbox\.|(?<![\w.]))(x1|y1|x|y|w|h)=(-?\d+)")
_BBOX_KEY_ALIASES = {"x1": "x", "y1": "y"}


def parse_crop_rectangle(text: str | None) -> Rectangle | None:
    """Return the last crop=w:h:x:y token; cropdetect refines its estimate as frames accumulate."""

    if not text:
        return None

    last_match = None
    for last_match in _CROP_TOKEN.finditer(text):
        pass
    if last_match is None:
        return None

    w, h, x, y = (int(group) for group in last_match.groups())
    if w <= 0 or h <= 0:
        return None
    return Rectangle(x=x, y=y, w=w, h=h)


def parse_bbox_union(text: str | None) -> Rectangle | None:
    """Union of per-frame bounding boxes emitted over the probe window."""

    if not text:
        return None

    components: dict[str, list[int]] = {"x": [], "y": [], "w": [], "h": []}
    for match in _BBOX_COMPONENT.finditer(text):
        key = _BBOX_KEY_ALIASES.get(match.group(1), match.group(1))
        components[key].append(int(match.group(2)))

    frames = list(zip(components["x"], components["y"], components["w"], components["h"]))
    if not frames:
        return None

    x1 = min(x for x, _, _, _ in frames)
    y1 = min(y for _, y, _, _ in frames)
    x2 = max(x + w for x, _, w, _ in frames)
    y2 = max(y + h for _, y, _, h in frames)

    width = x2 - x1
    height = y2 - y1
    if width <= 0 or height <= 0:
        return None
    return Rectangle(x=x1, y=y1, w=width, h=height)


def parse_candidate(text: str | None, kind: StrategyKind) -> Rectangle | None:
    if kind is StrategyKind.MOTION_BOUNDING_BOX:
        return parse_bbox_union(text)
    return parse_crop_rectangle(text)
