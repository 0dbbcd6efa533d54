from __future__ import annotations

from bordercrop.config import GridSettings, WeightSettings
from bordercrop.models import DetectionMode, StrategyKind, StrategySpec, StrategyTier

SUPPORTED_MODES: tuple[DetectionMode, ...] = ("dark", "light", "motion")

# cropdetect: round=2 keeps even sizes for yuv420p, reset=0 keeps refining over the whole window.
_CROPDETECT = "cropdetect=limit={limit}:round=2:reset=0"


def build_filter_chain(spec: StrategySpec) -> str:
    """Translate a strategy into an ffmpeg filter graph whose log output the parser understands."""

    blur = _boxblur(spec.blur_radius)

    if spec.kind is StrategyKind.DARK_BORDER:
        steps = ["format=gray", blur, _CROPDETECT.format(limit=spec.sensitivity_limit)]
    elif spec.kind is StrategyKind.LIGHT_BORDER_THRESHOLD:
        if spec.brightness_threshold is None:
            raise ValueError("Light border threshold strategy requires a brightness_threshold.")
        # Pixels brighter than the threshold become black background, everything else content.
        lut = f"lut=y='val>{spec.brightness_threshold}?0:255'"
        steps = ["format=gray", blur, lut, _CROPDETECT.format(limit=spec.sensitivity_limit)]
    elif spec.kind is StrategyKind.INVERTED_FALLBACK:
        steps = ["format=gray", "negate", blur, _CROPDETECT.format(limit=spec.sensitivity_limit)]
    elif spec.kind is StrategyKind.EDGE_FALLBACK:
        steps = [
            "format=gray",
            "edgedetect=low=0.1:high=0.3",
            blur,
            _CROPDETECT.format(limit=spec.sensitivity_limit),
        ]
    elif spec.kind is StrategyKind.MOTION_BOUNDING_BOX:
        # Static regions cancel out in the frame difference; bbox reports what moved.
        steps = [
            "format=gray",
            "tblend=all_mode=difference",
            blur,
            f"bbox=min_val={spec.sensitivity_limit}",
            "metadata=mode=print",
        ]
    else:
        raise ValueError(f"Unsupported strategy kind: {spec.kind}")

    return ",".join(step for step in steps if step)


def bar_weight_for(kind: StrategyKind, weights: WeightSettings) -> float:
    return float(getattr(weights, kind.value))


def plan_for_mode(
    mode: str,
    grids: GridSettings,
    *,
    probe_seconds: float,
    start_offset: float,
) -> list[StrategyTier]:
    """Return the fixed, priority-ordered tiers for a detection mode.

    dark:   a single dark-border pass.
    light:  threshold sweep, then inversion fallback, then edge fallback.
    motion: union of per-frame motion bounding boxes.
    """

    normalized = _normalize_mode(mode)

    def spec(kind: StrategyKind, blur: int, limit: int, threshold: int | None = None) -> StrategySpec:
        return StrategySpec(
            kind=kind,
            probe_seconds=probe_seconds,
            start_offset=start_offset,
            blur_radius=blur,
            sensitivity_limit=limit,
            brightness_threshold=threshold,
        )

    if normalized == "dark":
        return [
            StrategyTier(
                label="dark_border",
                specs=tuple(
                    spec(StrategyKind.DARK_BORDER, blur, limit)
                    for limit in grids.dark_sensitivity_limits
                    for blur in grids.dark_blur_radii
                ),
            )
        ]

    if normalized == "motion":
        return [
            StrategyTier(
                label="motion_bounding_box",
                specs=tuple(
                    spec(StrategyKind.MOTION_BOUNDING_BOX, grids.motion_blur_radius, limit)
                    for limit in grids.motion_sensitivity_limits
                ),
            )
        ]

    tiers = [
        StrategyTier(
            label=f"light_border_threshold:{threshold}",
            specs=tuple(
                spec(StrategyKind.LIGHT_BORDER_THRESHOLD, blur, grids.light_sensitivity_limit, threshold)
                for blur in grids.light_blur_radii
            ),
        )
        for threshold in grids.light_thresholds
    ]
    tiers.extend(
        StrategyTier(
            label=f"inverted_fallback:{limit}",
            specs=tuple(spec(StrategyKind.INVERTED_FALLBACK, blur, limit) for blur in grids.inverted_blur_radii),
        )
        for limit in grids.inverted_sensitivity_limits
    )
    tiers.append(
        StrategyTier(
            label="edge_fallback",
            specs=tuple(
                spec(StrategyKind.EDGE_FALLBACK, grids.edge_blur_radius, limit)
                for limit in grids.edge_sensitivity_limits
            ),
        )
    )
    return tiers


def _boxblur(radius: int) -> str:
    if radius <= 0:
        return ""
    return f"boxblur={radius}:1:cr=0:ar=0"


def _normalize_mode(mode: str) -> DetectionMode:
    normalized = mode.lower().strip()
    if normalized not in SUPPORTED_MODES:
        msg = (
            f"Unsupported detection mode '{mode}'. "
            "Expected one of: dark, light, motion."
        )
        raise ValueError(msg)
    return normalized  # type: ignore[return-value]
