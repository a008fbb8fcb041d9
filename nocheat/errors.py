"""
Error hierarchy for the nocheat engine.

Every exception raised by the package derives from NoCheatError and carries a
machine-readable ``code`` so the boundary layer can translate it into a stable
status for native callers.

- Input errors: malformed payloads, wrong vector dimensions.
- Training errors: degenerate or inconsistent training sets.
- Model errors: split into "unavailable" (missing file, I/O failure) and
  "format" (corrupt or truncated binary) so callers can tell "no model"
  apart from "bad model".
"""

from typing import Any, Dict, List, Optional

__all__ = [
    "NoCheatError",
    "InputError",
    "DimensionMismatchError",
    "DataValidationError",
    "TrainingError",
    "EmptyTrainingSetError",
    "LabelCountMismatchError",
    "InvalidLabelError",
    "SingleClassError",
    "ModelError",
    "ModelUnavailableError",
    "ModelNotFoundError",
    "ModelIOError",
    "ModelFormatError",
    "CorruptModelError",
    "TruncatedModelError",
]


class NoCheatError(Exception):
    """Base exception for all nocheat errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable description
        context: Extra key/value details for debugging
    """

    code: str = "NOCHEAT_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class InputError(NoCheatError, ValueError):
    """Caller supplied input the engine cannot use."""

    code = "INPUT_ERROR"


class DimensionMismatchError(InputError):
    """Feature vector length does not match the model's feature count."""

    code = "DIMENSION_MISMATCH"

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"expected feature vector of length {expected}, got {actual}",
            context={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class DataValidationError(InputError):
    """Payload failed schema validation."""

    code = "DATA_VALIDATION"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        context = {"error_count": len(self.errors)} if self.errors else None
        super().__init__(message, context=context)


# ---------------------------------------------------------------------------
# Training errors
# ---------------------------------------------------------------------------


class TrainingError(NoCheatError, ValueError):
    """Training set cannot produce a useful model."""

    code = "TRAINING_ERROR"


class EmptyTrainingSetError(TrainingError):
    """No samples were supplied."""

    code = "EMPTY_TRAINING_SET"


class LabelCountMismatchError(TrainingError):
    """Number of labels differs from number of samples."""

    code = "LABEL_COUNT_MISMATCH"


class InvalidLabelError(TrainingError):
    """A label is outside {0.0, 1.0}."""

    code = "INVALID_LABEL"


class SingleClassError(TrainingError):
    """Only one class is present in the labels."""

    code = "SINGLE_CLASS"


# ---------------------------------------------------------------------------
# Model errors
# ---------------------------------------------------------------------------


class ModelError(NoCheatError):
    """Problem obtaining a usable model."""

    code = "MODEL_ERROR"


class ModelUnavailableError(ModelError):
    """No model could be read."""

    code = "MODEL_UNAVAILABLE"


class ModelNotFoundError(ModelUnavailableError):
    """Model file does not exist."""

    code = "MODEL_NOT_FOUND"


class ModelIOError(ModelUnavailableError):
    """Model file exists but could not be opened, read or written."""

    code = "MODEL_IO"


class ModelFormatError(ModelError):
    """Model bytes were read but do not decode to a valid forest."""

    code = "MODEL_FORMAT"


class CorruptModelError(ModelFormatError):
    """Malformed header, tag stream or field value."""

    code = "MODEL_CORRUPT"


class TruncatedModelError(ModelFormatError):
    """Byte stream ended in the middle of a structure."""

    code = "MODEL_TRUNCATED"
