"""
Byte-buffer entry points for native hosts.

Game servers embed the engine through a thin C shim that passes UTF-8 JSON
buffers in and out. These functions are the Python side of that contract:
every call returns an integer status, and no exception escapes.

    STATUS_OK                   0
    STATUS_NULL_INPUT          -1   no payload
    STATUS_PARSE_ERROR         -2   invalid UTF-8 / JSON / top-level shape
    STATUS_ANALYSIS_ERROR      -3   engine or model failure
    STATUS_SERIALIZATION_ERROR -4   response could not be encoded
    STATUS_ALLOCATION_ERROR    -5   out of memory

Per-record problems are not errors at this level; those players come back
flagged InvalidData.
"""

from typing import Optional, Tuple
import json
import logging

from .data.loader import DataLoader
from .engine.analysis import AnalysisEngine
from .engine.registry import get_registry
from .errors import DataValidationError, NoCheatError

logger = logging.getLogger(__name__)

STATUS_OK = 0
STATUS_NULL_INPUT = -1
STATUS_PARSE_ERROR = -2
STATUS_ANALYSIS_ERROR = -3
STATUS_SERIALIZATION_ERROR = -4
STATUS_ALLOCATION_ERROR = -5


def status_for_error(exc: BaseException) -> int:
    """Map an exception raised while handling a call to its status code."""
    if isinstance(exc, MemoryError):
        return STATUS_ALLOCATION_ERROR
    if isinstance(exc, (UnicodeDecodeError, json.JSONDecodeError, DataValidationError, RecursionError)):
        return STATUS_PARSE_ERROR
    if isinstance(exc, NoCheatError):
        return STATUS_ANALYSIS_ERROR
    if isinstance(exc, (TypeError, ValueError, OverflowError)):
        return STATUS_SERIALIZATION_ERROR
    return STATUS_ANALYSIS_ERROR


def _decode(payload):
    if isinstance(payload, str):
        return json.loads(payload)
    return json.loads(bytes(payload).decode("utf-8"))


def analyze_round(payload: Optional[bytes], engine: Optional[AnalysisEngine] = None) -> Tuple[int, bytes]:
    """
    Analyze a JSON batch of player statistics.

    Args:
        payload: UTF-8 JSON, a list of player objects or {"players": [...]}
        engine: Engine to use (process-wide model when None)

    Returns:
        (status, response JSON bytes); the bytes are empty on failure
    """
    if payload is None:
        return STATUS_NULL_INPUT, b""

    try:
        doc = _decode(payload)
    except MemoryError as exc:
        return status_for_error(exc), b""
    except (ValueError, TypeError, RecursionError) as exc:
        # Covers bad UTF-8, bad JSON, nesting too deep and oversized integer literals.
        logger.warning("Rejected analysis payload: %s", exc)
        return STATUS_PARSE_ERROR, b""

    try:
        batch = DataLoader.parse_batch(doc)
    except (DataValidationError, RecursionError, MemoryError) as exc:
        logger.warning("Rejected analysis payload: %s", exc)
        return status_for_error(exc), b""

    try:
        response = (engine or AnalysisEngine()).analyze(batch)
    except (NoCheatError, MemoryError) as exc:
        logger.error("Analysis failed: %s", exc)
        return status_for_error(exc), b""
    except Exception as exc:
        logger.error("Unexpected analysis failure: %s", exc)
        return STATUS_ANALYSIS_ERROR, b""

    try:
        body = json.dumps(response.to_dict(), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError, OverflowError, MemoryError) as exc:
        logger.error("Could not serialize analysis response: %s", exc)
        return status_for_error(exc), b""
    except Exception as exc:
        logger.error("Unexpected serialization failure: %s", exc)
        return STATUS_SERIALIZATION_ERROR, b""
    return STATUS_OK, body


def set_model_path(path: Optional[str]) -> int:
    """
    Swap the process-wide model for the one at path.

    Returns:
        STATUS_OK, STATUS_NULL_INPUT for a missing path, or
        STATUS_ANALYSIS_ERROR when the model cannot be loaded (the previous
        model stays active)
    """
    if not path:
        return STATUS_NULL_INPUT
    try:
        get_registry().set_model_path(path)
    except (NoCheatError, MemoryError) as exc:
        logger.error("Could not switch model to %s: %s", path, exc)
        return status_for_error(exc)
    except Exception as exc:
        logger.error("Unexpected failure switching model to %s: %s", path, exc)
        return STATUS_ANALYSIS_ERROR
    return STATUS_OK


def free_buffer(buffer: Optional[bytes]) -> None:
    """Release a response buffer. Python buffers are garbage collected, so this does nothing."""
    return None
