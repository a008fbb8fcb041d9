"""
Behavioral rule checks.

Each rule looks at one player's aggregate ratios or shot timing and emits a
named flag. Flags are reported alongside the model score and, when the
engine is configured to blend, nudge it.

AimSnap uses a robust z-score of shot intervals:

    z_i = (interval_i - median) / MAD_normal

where MAD_normal is the median absolute deviation scaled to match the
standard deviation of a normal distribution. An interval far below the
player's own typical rhythm (z < -aim_snap_zscore) is a snap that human
reaction time rarely produces.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Optional
import logging

import numpy as np
from scipy import stats

logger = logging.getLogger(__name__)

HIGH_ACCURACY = "HighAccuracy"
HIGH_HEADSHOT_RATIO = "HighHeadshotRatio"
AIM_SNAP = "AimSnap"
INCONSISTENT_COUNTS = "InconsistentCounts"
INVALID_DATA = "InvalidData"

# Flags that describe play style (as opposed to data quality); used by the score blend.
BEHAVIOR_FLAGS = (HIGH_ACCURACY, HIGH_HEADSHOT_RATIO, AIM_SNAP)

# Lower bounds on the interval spread used for z-scores: an absolute floor in
# ms, and a share of the median interval. Fixed-rate automatic fire with a few
# ms of tick jitter stays well inside the relative floor.
MIN_INTERVAL_MAD_MS = 1.0
MIN_INTERVAL_SPREAD_FRACTION = 0.1


@dataclass
class RuleThresholds:
    """Thresholds for the rule checks."""

    high_accuracy: float = 0.80
    high_headshot_ratio: float = 0.70
    aim_snap_zscore: float = 3.5
    aim_snap_min_intervals: int = 4

    def __post_init__(self):
        for name in ("high_accuracy", "high_headshot_ratio"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.aim_snap_zscore <= 0:
            raise ValueError(f"aim_snap_zscore must be > 0, got {self.aim_snap_zscore}")
        if self.aim_snap_min_intervals < 2:
            raise ValueError(f"aim_snap_min_intervals must be >= 2, got {self.aim_snap_min_intervals}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleThresholds":
        """Create thresholds from a dictionary; missing keys keep their defaults."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unknown rule threshold(s): {', '.join(unknown)}")
        return cls(**data)


def robust_zscores(intervals: np.ndarray) -> np.ndarray:
    """Median/MAD z-scores of shot intervals."""
    median = float(np.median(intervals))
    mad = float(stats.median_abs_deviation(intervals, scale="normal"))
    spread = max(mad, MIN_INTERVAL_MAD_MS, MIN_INTERVAL_SPREAD_FRACTION * median)
    return (intervals - median) / spread


def has_aim_snap(intervals: Optional[np.ndarray], thresholds: RuleThresholds) -> bool:
    if intervals is None or intervals.shape[0] < thresholds.aim_snap_min_intervals:
        return False
    return bool(np.any(robust_zscores(intervals) < -thresholds.aim_snap_zscore))


def evaluate_rules(data, thresholds: Optional[RuleThresholds] = None) -> List[str]:
    """
    Run every rule against one player's data.

    Args:
        data: Any Analyzable
        thresholds: Rule configuration (defaults when None)

    Returns:
        Fired flags in fixed rule order
    """
    thresholds = thresholds or RuleThresholds()
    flags: List[str] = []
    if data.accuracy_rate() > thresholds.high_accuracy:
        flags.append(HIGH_ACCURACY)
    if data.headshot_ratio() > thresholds.high_headshot_ratio:
        flags.append(HIGH_HEADSHOT_RATIO)
    if has_aim_snap(data.shot_intervals(), thresholds):
        flags.append(AIM_SNAP)
    if data.count_inconsistency():
        flags.append(INCONSISTENT_COUNTS)
    return flags


def behavior_flag_count(flags) -> int:
    return sum(1 for f in flags if f in BEHAVIOR_FLAGS)
