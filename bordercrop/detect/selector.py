from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterable

from bordercrop.config import WeightSettings
from bordercrop.detect.parser import parse_candidate
from bordercrop.detect.strategies import bar_weight_for
from bordercrop.errors import CandidateRejected, NoCandidateParsed, ProbeFailed
from bordercrop.ingest.invoker import Invoker
from bordercrop.models import (
    Candidate,
    DetectionOutcome,
    FrameDimensions,
    SelectionReport,
    SelectorState,
    StrategySpec,
    StrategyTier,
)
from bordercrop.scoring.crop_score import DEFAULT_MIN_CROP_RATIO, explain_candidate

logger = logging.getLogger(__name__)

_FAILED = "failed"
_EMPTY = "empty"
_REJECTED = "rejected"
_SCORED = "scored"


class BestCandidate:
    """Lock-protected running maximum shared by concurrent probe workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._best: Candidate | None = None

    def offer(self, candidate: Candidate) -> bool:
        with self._lock:
            if self._best is None or candidate.score > self._best.score:
                self._best = candidate
                return True
            return False

    def get(self) -> Candidate | None:
        with self._lock:
            return self._best


def evaluate_probe_output(
    text: str | None,
    spec: StrategySpec,
    frame: FrameDimensions,
    *,
    weights: WeightSettings,
    min_crop_ratio: float = DEFAULT_MIN_CROP_RATIO,
) -> Candidate:
    """Parse and score one probe's diagnostics.

    Raises NoCandidateParsed or CandidateRejected; both only mean this
    combination yielded nothing.
    """

    rectangle = parse_candidate(text, spec.kind)
    if rectangle is None:
        raise NoCandidateParsed(f"No rectangle in diagnostics for {spec.label()}")

    details = explain_candidate(
        rectangle,
        frame.width,
        frame.height,
        bar_weight=bar_weight_for(spec.kind, weights),
        min_crop_ratio=min_crop_ratio,
    )
    if not details.accepted:
        raise CandidateRejected(f"{rectangle.as_crop_filter()} rejected ({details.reason}) for {spec.label()}")

    return Candidate(rectangle=rectangle, spec=spec, score=details.score)


class CropSelector:
    """Drives the tiered strategy search for one detection request.

    Probes inside a tier run concurrently; the next tier is only started when
    no candidate of the completed tiers cleared the acceptance score.
    """

    def __init__(
        self,
        invoker: Invoker,
        frame: FrameDimensions,
        *,
        weights: WeightSettings | None = None,
        min_crop_ratio: float = DEFAULT_MIN_CROP_RATIO,
        acceptance_score: float = 0.0,
        max_parallel_probes: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.invoker = invoker
        self.frame = frame
        self.weights = weights or WeightSettings()
        self.min_crop_ratio = min_crop_ratio
        self.acceptance_score = acceptance_score
        self.max_parallel_probes = max(int(max_parallel_probes), 1)
        self._clock = clock

    def select(
        self,
        input_path: str | Path,
        tiers: Iterable[StrategyTier],
        timeout_seconds: float | None = None,
    ) -> DetectionOutcome:
        report = SelectionReport(state=SelectorState.PROBING)
        best = BestCandidate()
        cancel = threading.Event()
        deadline = self._clock() + timeout_seconds if timeout_seconds is not None else None
        previous_tier_seconds: float | None = None

        executor = ThreadPoolExecutor(max_workers=self.max_parallel_probes, thread_name_prefix="probe")
        try:
            for tier in tiers:
                remaining = None
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0 or (previous_tier_seconds is not None and remaining <= previous_tier_seconds):
                        logger.info(
                            "Skipping tier %s: %.2fs left of the detection budget",
                            tier.label,
                            max(remaining, 0.0),
                        )
                        report.timed_out = True
                        break

                report.tiers_attempted.append(tier.label)
                tier_started = self._clock()
                futures = [
                    executor.submit(self._run_probe, input_path, spec, cancel, best)
                    for spec in tier.specs
                ]
                report.probes_run += len(futures)

                done, pending = wait(futures, timeout=remaining)
                self._tally(done, report)

                if pending:
                    logger.warning(
                        "Detection budget exhausted during tier %s; terminating %d in-flight probe(s)",
                        tier.label,
                        len(pending),
                    )
                    cancel.set()
                    for future in pending:
                        future.cancel()
                    self.invoker.terminate_all()
                    report.probes_failed += len(pending)
                    report.timed_out = True
                    break

                previous_tier_seconds = self._clock() - tier_started
                current = best.get()
                if current is not None and current.score > self.acceptance_score:
                    logger.info(
                        "Tier %s produced an accepted candidate %s (score=%.1f); stopping search",
                        tier.label,
                        current.rectangle.as_crop_filter(),
                        current.score,
                    )
                    break
                logger.info("Tier %s produced no accepted candidate", tier.label)
        finally:
            cancel.set()
            # The deadline path has already killed in-flight processes.
            executor.shutdown(wait=True, cancel_futures=True)

        winner = best.get()
        if winner is not None and winner.score > self.acceptance_score:
            report.state = SelectorState.FOUND
            return DetectionOutcome(candidate=winner, report=report)

        report.state = SelectorState.EXHAUSTED
        return DetectionOutcome(candidate=None, report=report)

    def _run_probe(
        self,
        input_path: str | Path,
        spec: StrategySpec,
        cancel: threading.Event,
        best: BestCandidate,
    ) -> str:
        if cancel.is_set():
            return _FAILED

        try:
            text = self.invoker.run(input_path, spec, cancel=cancel)
        except ProbeFailed as exc:
            logger.debug("Probe failed: %s", exc)
            return _FAILED

        try:
            candidate = evaluate_probe_output(
                text,
                spec,
                self.frame,
                weights=self.weights,
                min_crop_ratio=self.min_crop_ratio,
            )
        except NoCandidateParsed as exc:
            logger.debug("%s", exc)
            return _EMPTY
        except CandidateRejected as exc:
            logger.debug("%s", exc)
            return _REJECTED

        if best.offer(candidate):
            logger.debug(
                "New best %s score=%.1f from %s",
                candidate.rectangle.as_crop_filter(),
                candidate.score,
                spec.label(),
            )
        return _SCORED

    @staticmethod
    def _tally(done: set[Future[str]], report: SelectionReport) -> None:
        for future in done:
            if future.cancelled():
                report.probes_failed += 1
                continue
            status = future.result()
            if status == _FAILED:
                report.probes_failed += 1
            elif status == _REJECTED:
                report.candidates_rejected += 1
