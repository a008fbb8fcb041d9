"""
Holdout evaluation of trained forests.

Splits labeled player statistics into stratified train/holdout sets and
reports how well a forest's probabilities separate cheaters from
legitimate players on data it has not seen.
"""

from dataclasses import asdict, dataclass
from typing import List, Optional, Sequence, Tuple
import logging

import numpy as np
from sklearn.metrics import accuracy_score, brier_score_loss, log_loss, roc_auc_score
from sklearn.model_selection import train_test_split

from ..errors import TrainingError
from ..models.player import PlayerStats
from .forest import RandomForest
from .trainer import labels_from_stats, training_matrix

logger = logging.getLogger(__name__)

# Probabilities are clipped before log loss so a single confident miss stays finite.
_LOG_LOSS_EPS = 1e-6


@dataclass
class EvaluationReport:
    """Classification and calibration metrics on a labeled set."""

    n_samples: int
    n_positive: int
    accuracy: float  # at the decision threshold
    brier_score: float  # mean squared probability error
    log_loss: float
    roc_auc: Optional[float]  # None when only one class is present
    threshold: float = 0.5

    def __str__(self) -> str:
        auc = f"{self.roc_auc:.4f}" if self.roc_auc is not None else "n/a"
        return (
            f"Evaluation ({self.n_samples} players, {self.n_positive} cheaters):\n"
            f"  Accuracy: {self.accuracy:.4f}\n"
            f"  Brier Score: {self.brier_score:.4f}\n"
            f"  Log Loss: {self.log_loss:.4f}\n"
            f"  ROC AUC: {auc}"
        )

    def to_dict(self) -> dict:
        return asdict(self)


def evaluate_forest(
    forest: RandomForest,
    X: np.ndarray,
    y: Sequence[float],
    threshold: float = 0.5,
) -> EvaluationReport:
    """
    Score a forest against known labels.

    Args:
        forest: Trained model
        X: Feature matrix (n_samples, feature_count)
        y: 0.0 / 1.0 labels
        threshold: Probability at or above which a player counts as a cheater

    Returns:
        EvaluationReport
    """
    y_true = np.asarray(y, dtype=np.float64)
    if y_true.shape[0] == 0:
        raise TrainingError("cannot evaluate on an empty set")

    probs = forest.predict_many(X)
    predicted = (probs >= threshold).astype(np.float64)
    clipped = np.clip(probs, _LOG_LOSS_EPS, 1.0 - _LOG_LOSS_EPS)

    roc_auc = None
    if np.unique(y_true).shape[0] == 2:
        roc_auc = float(roc_auc_score(y_true, probs))

    report = EvaluationReport(
        n_samples=int(y_true.shape[0]),
        n_positive=int(y_true.sum()),
        accuracy=float(accuracy_score(y_true, predicted)),
        brier_score=float(brier_score_loss(y_true, probs)),
        log_loss=float(log_loss(y_true, clipped, labels=[0.0, 1.0])),
        roc_auc=roc_auc,
        threshold=threshold,
    )
    logger.info(
        "Evaluated %d players: accuracy=%.4f brier=%.4f",
        report.n_samples, report.accuracy, report.brier_score,
    )
    return report


def evaluate_model(
    forest: RandomForest,
    stats: Sequence[PlayerStats],
    threshold: float = 0.5,
) -> EvaluationReport:
    """Evaluate a forest on labeled player statistics (labels from training_label)."""
    labels = labels_from_stats(stats)
    return evaluate_forest(forest, training_matrix(stats), labels, threshold)


def holdout_split(
    stats: Sequence[PlayerStats],
    holdout_fraction: float,
    seed: int = 42,
) -> Tuple[List[PlayerStats], List[PlayerStats]]:
    """
    Stratified train/holdout split of labeled player statistics.

    Args:
        stats: Labeled records
        holdout_fraction: Share of records held out, in (0, 1)
        seed: Shuffle seed

    Returns:
        (train, holdout) lists

    Raises:
        TrainingError: if the set is too small to stratify at this fraction
    """
    if not 0.0 < holdout_fraction < 1.0:
        raise ValueError(f"holdout_fraction must be in (0, 1), got {holdout_fraction}")
    labels = labels_from_stats(stats)
    indices = np.arange(len(stats))
    try:
        train_idx, holdout_idx = train_test_split(
            indices,
            test_size=holdout_fraction,
            random_state=seed,
            stratify=labels,
        )
    except ValueError as exc:
        raise TrainingError(
            f"cannot hold out {holdout_fraction:.0%} of {len(stats)} records: {exc}",
            context={"records": len(stats)},
        ) from exc

    train = [stats[int(i)] for i in sorted(train_idx)]
    holdout = [stats[int(i)] for i in sorted(holdout_idx)]
    logger.info("Split %d records into %d train / %d holdout", len(stats), len(train), len(holdout))
    return train, holdout
