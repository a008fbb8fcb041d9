"""
Model training from labeled player statistics.

Turns a batch of PlayerStats into a feature matrix, trains a forest and
persists it. Also produces the built-in default model from a synthetic,
deterministic training set so a fresh install can score players before any
real labeled data exists.
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union
import logging

import numpy as np

from ..errors import DataValidationError, EmptyTrainingSetError, LabelCountMismatchError
from ..features.extractor import feature_matrix
from ..models.player import DefaultPlayerData, PlayerStats
from .forest import ForestParams, RandomForest, train_forest
from .model_store import default_model_path, save_model

logger = logging.getLogger(__name__)

# Synthetic player archetypes: (accuracy base, accuracy steps, headshot base, headshot steps)
_LEGIT_PROFILE = (0.40, 25, 0.10, 15)
_CHEAT_PROFILE = (0.80, 18, 0.40, 40)


def labels_from_stats(stats: Sequence[PlayerStats]) -> List[float]:
    """
    Read training_label from every record.

    Raises:
        LabelCountMismatchError: if any record has no label
    """
    labels: List[float] = []
    missing: List[str] = []
    for player in stats:
        label = getattr(player.data, "training_label", None)
        if label is None:
            missing.append(player.player_id)
        else:
            labels.append(float(label))
    if missing:
        raise LabelCountMismatchError(
            f"{len(missing)} of {len(stats)} records have no training_label",
            context={"first_missing": missing[0]},
        )
    return labels


def training_matrix(stats: Sequence[PlayerStats]) -> np.ndarray:
    """
    Feature matrix for a labeled batch.

    Raises:
        EmptyTrainingSetError: if the batch is empty
        DataValidationError: if any record produces non-finite features
    """
    if not stats:
        raise EmptyTrainingSetError("training set has no samples")
    X = feature_matrix(stats)
    bad_rows = np.nonzero(~np.isfinite(X).all(axis=1))[0]
    if bad_rows.size:
        ids = [stats[int(i)].player_id for i in bad_rows]
        raise DataValidationError(
            "training records produced non-finite features",
            [f"{pid}: non-finite feature value" for pid in ids],
        )
    return X


def train_model(
    stats: Sequence[PlayerStats],
    labels: Optional[Sequence[float]] = None,
    path: Optional[Union[str, Path]] = None,
    params: Optional[ForestParams] = None,
) -> RandomForest:
    """
    Train a forest on labeled player statistics and optionally save it.

    Args:
        stats: Player statistics, one record per sample
        labels: 0.0 / 1.0 per record; read from training_label when omitted
        path: Where to save the model (not saved when None)
        params: Forest configuration

    Returns:
        Trained RandomForest
    """
    if labels is None:
        labels = labels_from_stats(stats)
    X = training_matrix(stats)

    positives = int(sum(1 for v in labels if v == 1.0))
    logger.info(
        "Training on %d players (%d labeled cheater, %d legitimate)",
        len(stats), positives, len(labels) - positives,
    )
    forest = train_forest(X, labels, params)

    if path is not None:
        save_model(forest, path)
    return forest


def _synthetic_timestamps(rng: np.random.Generator, cheater: bool) -> List[int]:
    """Shot times in ms for one round of synthetic play."""
    n_shots = int(rng.integers(12, 30))
    if cheater:
        # Metronomic fire with periodic near-instant target snaps.
        intervals = rng.normal(110.0, 6.0, size=n_shots - 1)
        intervals[::5] = rng.uniform(8.0, 20.0, size=intervals[::5].shape[0])
    else:
        intervals = rng.uniform(120.0, 650.0, size=n_shots - 1)
    intervals = np.maximum(intervals, 1.0)
    start = int(rng.integers(0, 60_000))
    return [start] + (start + np.cumsum(np.rint(intervals))).astype(int).tolist()


def _synthetic_player(
    player_id: str,
    index: int,
    profile: tuple,
    label: float,
    rng: np.random.Generator,
) -> PlayerStats:
    acc_base, acc_steps, hs_base, hs_steps = profile
    shot_count = 100 + index
    accuracy = acc_base + (index % acc_steps) * 0.01
    rifle_hits = int(shot_count * accuracy)
    pistol_shots = shot_count // 2
    pistol_hits = int(pistol_shots * accuracy)
    total_hits = rifle_hits + pistol_hits
    headshots = int(total_hits * (hs_base + (index % hs_steps) * 0.01))

    timestamps = None
    if index % 2 == 0:
        timestamps = tuple(_synthetic_timestamps(rng, cheater=label == 1.0))

    data = DefaultPlayerData(
        shots_fired={"rifle": shot_count, "pistol": pistol_shots},
        hits={"rifle": rifle_hits, "pistol": pistol_hits},
        headshots=headshots,
        shot_timestamps_ms=timestamps,
        training_label=label,
    )
    return PlayerStats(player_id=player_id, data=data)


def synthetic_training_set(count: int = 50, seed: int = 7) -> List[PlayerStats]:
    """
    Deterministic labeled set of legitimate-like and cheat-like players.

    Legitimate players hit 40-64% of shots with 10-24% headshots and an
    irregular human rhythm; cheaters hit 80-97% with 40-79% headshots and
    tight, snapping fire. Every other player omits timestamps so both classes
    also cover the timing sentinel.

    Args:
        count: Players per class
        seed: Seed for the timestamp generator

    Returns:
        2 * count labeled PlayerStats (legitimate first)
    """
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")
    rng = np.random.default_rng(seed)
    players = [
        _synthetic_player(f"normal_player_{i}", i, _LEGIT_PROFILE, 0.0, rng)
        for i in range(count)
    ]
    players.extend(
        _synthetic_player(f"cheater_{i}", i, _CHEAT_PROFILE, 1.0, rng)
        for i in range(count)
    )
    return players


def generate_default_model(
    path: Optional[Union[str, Path]] = None,
    params: Optional[ForestParams] = None,
) -> RandomForest:
    """
    Train the built-in model on the synthetic set and save it.

    Args:
        path: Output file (defaults to NOCHEAT_MODEL_PATH / models/cheat_model.bin)
        params: Forest configuration

    Returns:
        Trained RandomForest
    """
    path = path if path is not None else default_model_path()
    logger.info("Generating default model at %s", path)
    stats = synthetic_training_set()
    return train_model(stats, path=path, params=params)
