from __future__ import annotations

import logging

from bordercrop.config import LoggingSettings

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s"


def resolve_log_level(settings: LoggingSettings, verbose: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    return getattr(logging, settings.level.upper(), logging.INFO)


def configure_logging(settings: LoggingSettings, verbose: bool = False) -> None:
    """Configure process-wide logging once at startup.

    Probe workers log from pool threads, so the thread name is part of the format.
    """

    logging.basicConfig(
        level=resolve_log_level(settings, verbose=verbose),
        format=DEFAULT_LOG_FORMAT,
        force=True,
    )
