from __future__ import annotations

import json
import logging
from pathlib import Path
from time import perf_counter
from typing import Callable, TypeVar

import typer

from bordercrop.config import Settings, load_settings
from bordercrop.detect.engine import crop_with_refinement, detect
from bordercrop.errors import BorderCropError, CropNotDetected
from bordercrop.ingest.probe import probe_dimensions
from bordercrop.logging_config import configure_logging

app = typer.Typer(help="Detect and crop uniform borders around video content.")
config_app = typer.Typer(help="Configuration commands.")

app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_DETECTED_EXIT_CODE = 2

CONFIG_OPTION = typer.Option(
    Path("configs/default.yaml"),
    "--config",
    "-c",
    envvar="BORDERCROP_CONFIG",
    help="Path to YAML configuration file.",
)


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _bootstrap(config_path: Path, verbose: bool = False) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging, verbose=verbose)
    logger.debug("Loaded runtime settings from %s", config_path)
    return settings


def _fail(exc: Exception) -> typer.Exit:
    if isinstance(exc, CropNotDetected):
        logger.info("No crop region detected")
        typer.echo(f"Error: {exc}", err=True)
        return typer.Exit(code=NOT_DETECTED_EXIT_CODE)

    logger.error("Detection failed: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


@config_app.command("show")
def show_config(config_path: Path = CONFIG_OPTION) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@app.command()
def probe(video_path: str, config_path: Path = CONFIG_OPTION) -> None:
    """Print the frame dimensions and duration ffprobe reports for a video."""

    settings = _bootstrap(config_path)
    try:
        frame = probe_dimensions(video_path, ffprobe_binary=settings.tools.ffprobe_binary)
    except (BorderCropError, FileNotFoundError) as exc:
        raise _fail(exc) from exc

    typer.echo(
        json.dumps(
            {
                "video_path": video_path,
                "width": frame.width,
                "height": frame.height,
                "duration_seconds": frame.duration_seconds,
            },
            indent=2,
        )
    )


@app.command("detect")
def detect_command(
    video_path: str,
    mode: str = typer.Option("dark", "--mode", "-m", help="Border type: dark, light or motion."),
    timeout: float | None = typer.Option(None, help="Wall-clock budget in seconds for the whole search."),
    strict: bool = typer.Option(False, help="Reject crops that keep less than 60% of either dimension."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every probe at DEBUG level."),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Find the crop rectangle without re-encoding."""

    settings = _bootstrap(config_path, verbose=verbose)
    total_steps = 2
    try:
        frame = _run_with_progress(
            1,
            total_steps,
            "Probe dimensions",
            lambda: probe_dimensions(video_path, ffprobe_binary=settings.tools.ffprobe_binary),
        )
        outcome = _run_with_progress(
            2,
            total_steps,
            f"Detect {mode} borders",
            lambda: detect(video_path, frame, mode, timeout, settings=settings, strict=strict),
        )
        if outcome.candidate is None:
            raise CropNotDetected()
    except (BorderCropError, FileNotFoundError, ValueError) as exc:
        raise _fail(exc) from exc

    candidate = outcome.candidate
    typer.echo(
        json.dumps(
            {
                "status": "ok",
                "video_path": video_path,
                "mode": mode,
                "frame": {"width": frame.width, "height": frame.height},
                "crop": candidate.rectangle.to_dict(),
                "crop_filter": candidate.rectangle.as_crop_filter(),
                "score": candidate.score,
                "strategy": candidate.spec.label(),
                "report": outcome.report.to_dict(),
            },
            indent=2,
        )
    )


@app.command("crop")
def crop_command(
    video_path: str,
    output_path: Path,
    mode: str = typer.Option("dark", "--mode", "-m", help="Border type: dark, light or motion."),
    refine: bool | None = typer.Option(None, "--refine/--no-refine", help="Run a second pass on the cropped output."),
    timeout: float | None = typer.Option(None, help="Wall-clock budget in seconds for the first detection pass."),
    strict: bool = typer.Option(False, help="Reject crops that keep less than 60% of either dimension."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every probe at DEBUG level."),
    config_path: Path = CONFIG_OPTION,
) -> None:
    """Detect borders and write a cropped re-encode of the video."""

    settings = _bootstrap(config_path, verbose=verbose)
    try:
        summary = _run_with_progress(
            1,
            1,
            f"Crop {mode} borders",
            lambda: crop_with_refinement(
                video_path,
                output_path,
                mode,
                settings=settings,
                refine_pass=refine,
                strict=strict,
                timeout_seconds=timeout,
            ),
        )
    except (RuntimeError, FileNotFoundError, ValueError) as exc:
        raise _fail(exc) from exc

    typer.echo(json.dumps(summary, indent=2))


if __name__ == "__main__":
    app()
