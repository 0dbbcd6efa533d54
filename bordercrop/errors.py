from __future__ import annotations


class BorderCropError(RuntimeError):
    """Base class for border detection failures."""


class ProbeFailed(BorderCropError):
    """ffmpeg could not start, exited non-zero, or timed out."""


class NoCandidateParsed(BorderCropError):
    """Diagnostic text contained no extractable rectangle."""


class CandidateRejected(BorderCropError):
    """A rectangle was extracted but fell outside the acceptance band."""


class CropNotDetected(BorderCropError):
    """Every strategy was exhausted without an accepted candidate."""

    def __init__(self, message: str = "could not find a crop region") -> None:
        super().__init__(message)


class InputDimensionsUnavailable(BorderCropError):
    """The dimension query failed, so candidates cannot be scored."""
