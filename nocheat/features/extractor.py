"""
Feature extraction for per-round player statistics.

Turns one player's raw counts and shot timestamps into the fixed-order
feature vector consumed by the random forest:

    0  accuracy_rate          total hits / max(total shots, 1)
    1  headshot_ratio         headshots / max(total hits, 1)
    2  interval_mean_ms       mean gap between consecutive shots
    3  interval_variance_ms2  population variance of those gaps

Denominators are floored at 1 instead of short-circuiting so that players
with no activity still produce a full-length vector with stable semantics.
Timing features fall back to TIMING_SENTINEL when fewer than two timestamps
are available.

The order of FEATURE_NAMES is shared by training and inference. Changing it
invalidates every saved model.
"""

from typing import TYPE_CHECKING, Mapping, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from ..models.player import DefaultPlayerData, PlayerStats

logger = logging.getLogger(__name__)


FEATURE_NAMES: Tuple[str, ...] = (
    "accuracy_rate",
    "headshot_ratio",
    "interval_mean_ms",
    "interval_variance_ms2",
)
FEATURE_COUNT = len(FEATURE_NAMES)

TIMING_SENTINEL = 0.0


def total_count(counts: Mapping[str, int]) -> int:
    """Sum a per-weapon count map."""
    return int(sum(counts.values()))


def accuracy_rate(total_hits: int, total_shots: int) -> float:
    return total_hits / max(total_shots, 1)


def headshot_ratio(headshots: int, total_hits: int) -> float:
    return headshots / max(total_hits, 1)


def shot_intervals(timestamps: Optional[Sequence[int]]) -> Optional[np.ndarray]:
    """
    Gaps between consecutive shot timestamps.

    Args:
        timestamps: Ordered shot times in milliseconds, or None

    Returns:
        Array of len(timestamps) - 1 intervals, or None with fewer than
        two timestamps
    """
    if timestamps is None or len(timestamps) < 2:
        return None
    return np.diff(np.asarray(timestamps, dtype=np.float64))


def interval_statistics(timestamps: Optional[Sequence[int]]) -> Tuple[float, float]:
    """Mean and population variance of shot intervals (sentinels when unavailable)."""
    intervals = shot_intervals(timestamps)
    if intervals is None:
        return TIMING_SENTINEL, TIMING_SENTINEL
    return float(np.mean(intervals)), float(np.var(intervals))


def extract_default_features(data: "DefaultPlayerData") -> np.ndarray:
    """
    Build the feature vector for the built-in player data shape.

    Pure and deterministic: identical input yields a bit-identical vector.

    Args:
        data: Player statistics for one round

    Returns:
        float64 array of length FEATURE_COUNT in FEATURE_NAMES order
    """
    shots = total_count(data.shots_fired)
    hits = total_count(data.hits)
    interval_mean, interval_var = interval_statistics(data.shot_timestamps_ms)

    vector = np.array(
        [
            accuracy_rate(hits, shots),
            headshot_ratio(data.headshots, hits),
            interval_mean,
            interval_var,
        ],
        dtype=np.float64,
    )
    return vector


def feature_matrix(batch: Sequence["PlayerStats"]) -> np.ndarray:
    """
    Stack the feature vectors of a batch into an (n_players, n_features) matrix.

    Works for any Analyzable data type; every entry must produce vectors of
    the same length.
    """
    if not batch:
        return np.empty((0, FEATURE_COUNT), dtype=np.float64)
    rows = [np.asarray(p.data.extract_features(), dtype=np.float64) for p in batch]
    return np.vstack(rows)


def build_feature_frame(batch: Sequence["PlayerStats"]) -> pd.DataFrame:
    """
    Tabulate raw totals and derived features for a batch of default players.

    Args:
        batch: PlayerStats carrying DefaultPlayerData

    Returns:
        DataFrame with player_id, shots, hits, headshots and one column per
        entry of FEATURE_NAMES, one row per player in input order
    """
    records = []
    for player in batch:
        data = player.data
        row = {
            "player_id": player.player_id,
            "shots": total_count(data.shots_fired),
            "hits": total_count(data.hits),
            "headshots": int(data.headshots),
        }
        row.update(zip(FEATURE_NAMES, extract_default_features(data).tolist()))
        records.append(row)

    columns = ["player_id", "shots", "hits", "headshots", *FEATURE_NAMES]
    frame = pd.DataFrame.from_records(records, columns=columns)
    logger.debug("Built feature frame with %d rows", len(frame))
    return frame
