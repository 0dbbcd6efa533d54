from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from bordercrop.config import Settings
from bordercrop.detect.selector import CropSelector
from bordercrop.detect.strategies import plan_for_mode
from bordercrop.errors import CropNotDetected, ProbeFailed
from bordercrop.ingest.invoker import Invoker, ProbeInvoker
from bordercrop.ingest.probe import probe_dimensions
from bordercrop.models import DetectionOutcome, FrameDimensions, Rectangle
from bordercrop.render.encode import encode_with_crop

logger = logging.getLogger(__name__)

DimensionProbe = Callable[..., FrameDimensions]
Encoder = Callable[..., Path]


def build_invoker(settings: Settings) -> ProbeInvoker:
    return ProbeInvoker(
        ffmpeg_binary=settings.tools.ffmpeg_binary,
        threads=settings.tools.threads,
        probe_timeout_seconds=settings.tools.probe_timeout_seconds,
    )


def detect(
    input_path: str | Path,
    frame: FrameDimensions,
    mode: str,
    timeout_seconds: float | None = None,
    *,
    settings: Settings | None = None,
    invoker: Invoker | None = None,
    strict: bool = False,
    probe_seconds: float | None = None,
    start_offset: float | None = None,
) -> DetectionOutcome:
    """Run every strategy of the mode's plan against the input and pick the best crop.

    A miss is a normal outcome. ProbeFailed is raised only when no probe of the
    request produced any diagnostics, so a broken ffmpeg install is not reported
    as "no border".
    """

    settings = settings or Settings()
    detection = settings.detection
    window = probe_seconds if probe_seconds is not None else detection.probe_seconds
    offset = start_offset if start_offset is not None else detection.start_offset_seconds
    if frame.duration_seconds is not None and frame.duration_seconds <= offset:
        logger.info(
            "Clip is %.2fs long; probing from the start instead of %.2fs",
            frame.duration_seconds,
            offset,
        )
        offset = 0.0

    tiers = plan_for_mode(mode, settings.grids, probe_seconds=window, start_offset=offset)
    selector = CropSelector(
        invoker or build_invoker(settings),
        frame,
        weights=settings.weights,
        min_crop_ratio=detection.strict_min_crop_ratio if strict else detection.min_crop_ratio,
        acceptance_score=detection.acceptance_score,
        max_parallel_probes=detection.max_parallel_probes,
    )
    budget = timeout_seconds if timeout_seconds is not None else detection.timeout_seconds
    outcome = selector.select(input_path, tiers, timeout_seconds=budget)

    report = outcome.report
    if not outcome.found and report.probes_run > 0 and report.probes_failed >= report.probes_run:
        raise ProbeFailed(
            f"All {report.probes_run} probe(s) failed for {input_path}; check the ffmpeg installation and input file."
        )

    logger.info(
        "Detection for %s (%s): %s after %d probe(s)",
        input_path,
        mode,
        outcome.rectangle.as_crop_filter() if outcome.rectangle else "no usable candidate",
        report.probes_run,
    )
    return outcome


def detect_crop(
    input_path: str | Path,
    frame: FrameDimensions,
    mode: str,
    timeout_seconds: float | None = None,
    **kwargs: Any,
) -> Rectangle:
    outcome = detect(input_path, frame, mode, timeout_seconds, **kwargs)
    if outcome.rectangle is None:
        raise CropNotDetected()
    return outcome.rectangle


def refine(
    intermediate_path: str | Path,
    mode: str,
    *,
    settings: Settings | None = None,
    invoker: Invoker | None = None,
    dimension_probe: DimensionProbe = probe_dimensions,
    strict: bool = False,
) -> Rectangle | None:
    """Second, shorter pass against an already-cropped file.

    The returned rectangle lives in the intermediate's own coordinate space.
    """

    settings = settings or Settings()
    frame = dimension_probe(intermediate_path, ffprobe_binary=settings.tools.ffprobe_binary)
    outcome = detect(
        intermediate_path,
        frame,
        mode,
        settings.refinement.timeout_seconds,
        settings=settings,
        invoker=invoker,
        strict=strict,
        probe_seconds=settings.refinement.probe_seconds,
        start_offset=settings.refinement.start_offset_seconds,
    )
    return outcome.rectangle


def crop_with_refinement(
    input_path: str | Path,
    output_path: str | Path,
    mode: str,
    *,
    settings: Settings | None = None,
    invoker: Invoker | None = None,
    dimension_probe: DimensionProbe = probe_dimensions,
    encoder: Encoder = encode_with_crop,
    refine_pass: bool | None = None,
    strict: bool = False,
    timeout_seconds: float | None = None,
) -> dict[str, Any]:
    """Detect, crop, and optionally shave residual border remnants in a second pass."""

    settings = settings or Settings()
    source = Path(input_path).expanduser().resolve()
    target = Path(output_path).expanduser().resolve()
    use_refinement = settings.refinement.enabled if refine_pass is None else refine_pass

    frame = dimension_probe(source, ffprobe_binary=settings.tools.ffprobe_binary)
    first = detect_crop(
        source,
        frame,
        mode,
        timeout_seconds,
        settings=settings,
        invoker=invoker,
        strict=strict,
    )

    if not use_refinement:
        encoder(source, first, target, tools=settings.tools, encode=settings.encode)
        return _crop_summary(source, target, frame, first, None)

    intermediate = target.with_name(f"{target.stem}.pass1{target.suffix}")
    try:
        encoder(source, first, intermediate, tools=settings.tools, encode=settings.encode)
        try:
            second = refine(
                intermediate,
                mode,
                settings=settings,
                invoker=invoker,
                dimension_probe=dimension_probe,
                strict=strict,
            )
        except ProbeFailed as exc:
            logger.warning("Refinement probes failed; keeping first-pass output: %s", exc)
            second = None
        else:
            if second is None:
                logger.info("Refinement found no residual border; keeping first-pass output")
        if second is None:
            intermediate.replace(target)
        else:
            logger.info("Refinement trimmed %s from the first-pass output", second.as_crop_filter())
            encoder(intermediate, second, target, tools=settings.tools, encode=settings.encode)
    finally:
        intermediate.unlink(missing_ok=True)

    return _crop_summary(source, target, frame, first, second)


def _crop_summary(
    source: Path,
    target: Path,
    frame: FrameDimensions,
    first: Rectangle,
    second: Rectangle | None,
) -> dict[str, Any]:
    return {
        "status": "ok",
        "input_path": str(source),
        "output_path": str(target),
        "frame": {"width": frame.width, "height": frame.height},
        "crop": first.to_dict(),
        "refinement": second.to_dict() if second is not None else None,
    }
