"""Schema validators for player statistics payloads."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional


def _to_count(value) -> Optional[int]:
    """Return value as a non-negative int, or None when it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and math.isfinite(value) and value.is_integer() and value >= 0:
        return int(value)
    return None


def _to_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _validate_count_map(value, label: str) -> List[str]:
    if not isinstance(value, dict):
        return [f"{label} must be an object mapping weapon names to counts"]
    errors: List[str] = []
    for weapon, count in value.items():
        if not isinstance(weapon, str):
            errors.append(f"{label} has non-string weapon key {weapon!r}")
        elif _to_count(count) is None:
            errors.append(f"{label}['{weapon}'] must be a non-negative integer")
    return errors


def validate_player_fields(doc: Dict[str, Any], prefix: str = "player") -> List[str]:
    """
    Validate the data fields of one player record (everything but player_id).

    Args:
        doc: Decoded JSON object
        prefix: Label used at the start of every message

    Returns:
        List of human-readable problems; empty when the record is valid
    """
    if not isinstance(doc, dict):
        return [f"{prefix} must be an object"]

    errors: List[str] = []
    missing = [k for k in ("shots_fired", "hits", "headshots") if k not in doc]
    if missing:
        errors.append(f"{prefix} missing fields: {', '.join(missing)}")

    if "shots_fired" in doc:
        errors.extend(_validate_count_map(doc["shots_fired"], f"{prefix}.shots_fired"))
    if "hits" in doc:
        errors.extend(_validate_count_map(doc["hits"], f"{prefix}.hits"))
    if "headshots" in doc and _to_count(doc["headshots"]) is None:
        errors.append(f"{prefix}.headshots must be a non-negative integer")

    timestamps = doc.get("shot_timestamps_ms")
    if timestamps is not None:
        if not isinstance(timestamps, list):
            errors.append(f"{prefix}.shot_timestamps_ms must be a list of integers")
        else:
            previous = None
            for t_idx, ts in enumerate(timestamps):
                value = _to_count(ts)
                if value is None:
                    errors.append(f"{prefix}.shot_timestamps_ms[{t_idx}] must be a non-negative integer")
                    break
                if previous is not None and value < previous:
                    errors.append(f"{prefix}.shot_timestamps_ms must be non-decreasing (index {t_idx})")
                    break
                previous = value

    label = doc.get("training_label")
    if label is not None:
        val = _to_float(label)
        if val not in (0.0, 1.0):
            errors.append(f"{prefix}.training_label must be 0.0 or 1.0, got {label!r}")
    return errors


def validate_player_record(record: Any, idx: Optional[int] = None) -> List[str]:
    """Validate a full player record including player_id."""
    prefix = f"players[{idx}]" if idx is not None else "player"
    if not isinstance(record, dict):
        return [f"{prefix} must be an object"]

    errors: List[str] = []
    player_id = record.get("player_id")
    if not isinstance(player_id, str) or not player_id:
        errors.append(f"{prefix} missing or invalid player_id")
    fields = {k: v for k, v in record.items() if k != "player_id"}
    errors.extend(validate_player_fields(fields, prefix))
    return errors


def validate_batch_payload(payload: Any) -> List[str]:
    """Check the top-level shape of a batch: a list, or an object with a 'players' list."""
    if isinstance(payload, list):
        return []
    if isinstance(payload, dict):
        players = payload.get("players")
        if isinstance(players, list):
            return []
        return ["batch payload object must include a 'players' list"]
    return ["batch payload must be a list of player objects"]


def validate_training_payload(payload: Any) -> List[str]:
    """
    Validate a labeled training set.

    Every record must be a valid player record and carry a training_label.
    """
    errors = validate_batch_payload(payload)
    if errors:
        return errors
    records = payload if isinstance(payload, list) else payload["players"]
    if not records:
        return ["training payload must include at least one player"]

    for idx, record in enumerate(records):
        errors.extend(validate_player_record(record, idx))
        if isinstance(record, dict) and record.get("training_label") is None:
            errors.append(f"players[{idx}] missing training_label")
    return errors
