from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import Protocol

from bordercrop.detect.strategies import build_filter_chain
from bordercrop.errors import ProbeFailed
from bordercrop.models import StrategySpec

logger = logging.getLogger(__name__)


class Invoker(Protocol):
    def run(self, input_path: str | Path, spec: StrategySpec, cancel: threading.Event | None = None) -> str: ...

    def terminate_all(self) -> None: ...


class ProbeInvoker:
    """Runs one ffmpeg analysis pass per strategy and returns its stderr diagnostics.

    In-flight processes are tracked so a request-level timeout can terminate
    them instead of leaving them orphaned.
    """

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        threads: int = 4,
        probe_timeout_seconds: float | None = 30.0,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.threads = threads
        self.probe_timeout_seconds = probe_timeout_seconds
        self._active: set[subprocess.Popen[str]] = set()
        self._lock = threading.Lock()

    def build_command(self, input_path: str | Path, spec: StrategySpec) -> list[str]:
        if spec.probe_seconds <= 0:
            raise ValueError(f"probe_seconds must be positive, got {spec.probe_seconds}")

        return [
            self.ffmpeg_binary,
            "-hide_banner",
            "-nostats",
            "-ss",
            _format_seconds(max(spec.start_offset, 0.0)),
            "-t",
            _format_seconds(spec.probe_seconds),
            "-i",
            str(input_path),
            "-vf",
            build_filter_chain(spec),
            "-an",
            "-threads",
            str(self.threads),
            "-f",
            "null",
            "-",
        ]

    def run(self, input_path: str | Path, spec: StrategySpec, cancel: threading.Event | None = None) -> str:
        command = self.build_command(input_path, spec)

        with self._lock:
            if cancel is not None and cancel.is_set():
                raise ProbeFailed(f"Probe cancelled before start: {spec.label()}")
            try:
                process = subprocess.Popen(
                    command,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.PIPE,
                    text=True,
                    errors="replace",
                )
            except OSError as exc:
                raise ProbeFailed(f"ffmpeg could not be started ({self.ffmpeg_binary}): {exc}") from exc
            self._active.add(process)

        try:
            _, stderr = process.communicate(timeout=self.probe_timeout_seconds)
        except subprocess.TimeoutExpired as exc:
            process.kill()
            process.communicate()
            raise ProbeFailed(
                f"ffmpeg probe timed out after {self.probe_timeout_seconds}s: {spec.label()}"
            ) from exc
        finally:
            with self._lock:
                self._active.discard(process)

        if process.returncode != 0:
            tail = (stderr or "").strip().splitlines()[-1:] or ["no stderr"]
            raise ProbeFailed(f"ffmpeg exited with code {process.returncode} for {spec.label()}: {tail[0]}")

        return stderr or ""

    def terminate_all(self) -> None:
        with self._lock:
            active = list(self._active)
        for process in active:
            if process.poll() is None:
                logger.debug("Terminating in-flight probe pid=%s", process.pid)
                process.kill()


def _format_seconds(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".") or "0"
