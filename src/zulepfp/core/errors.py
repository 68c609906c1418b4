"""Exception hierarchy for the Zule PFP core.

Only terminal failures are modelled as exceptions.  Per-attempt upstream
failures (rate limiting, unavailability, empty payloads) are values of
:mod:`zulepfp.core.generation_client` and are absorbed by the retry
controller.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from zulepfp.core.generation_client import GenerationOutcome


class ZulePfpError(Exception):
    """Base class for all service errors."""


class NoCredentialsError(ZulePfpError):
    """The credential pool is empty; no generation attempt was made."""

    def __init__(self, message: str = "No API key available.") -> None:
        super().__init__(message)


class MaxRetriesExceededError(ZulePfpError):
    """Every attempt in the retry budget failed.

    Attributes:
        attempts: Number of attempts actually performed.
        last_outcome: Outcome of the final attempt, or ``None`` when the
            budget was zero.
    """

    def __init__(self, attempts: int, last_outcome: GenerationOutcome | None = None) -> None:
        super().__init__("Max retries reached. Unable to generate image.")
        self.attempts = attempts
        self.last_outcome = last_outcome


class MissingAssetError(ZulePfpError):
    """A required local asset (the watermark logo) does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Asset not found: {path}")
        self.path = Path(path)
