"""Feature extraction for player statistics."""

from .extractor import (
    FEATURE_COUNT,
    FEATURE_NAMES,
    build_feature_frame,
    extract_default_features,
    feature_matrix,
    shot_intervals,
)

__all__ = [
    "FEATURE_COUNT",
    "FEATURE_NAMES",
    "build_feature_frame",
    "extract_default_features",
    "feature_matrix",
    "shot_intervals",
]
