"""
Random forest of binary decision trees.

Prediction is soft voting: the arithmetic mean of the trees' leaf
probabilities, which yields a continuous suspicion score rather than a
majority verdict.

Training grows every tree independently on its own bootstrap resample.
Per-tree seeds are spawned from the forest seed up front, so the trained
forest is identical whether trees are grown sequentially or across a
process pool.
"""

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging
import multiprocessing

import numpy as np

from ..errors import (
    DimensionMismatchError,
    EmptyTrainingSetError,
    InvalidLabelError,
    LabelCountMismatchError,
    SingleClassError,
)
from .tree import DecisionTree, TreeParams, bootstrap_tree

logger = logging.getLogger(__name__)


@dataclass
class ForestParams:
    """Configuration for forest training."""

    tree_count: int = 100
    max_depth: int = 12
    min_leaf_size: int = 2
    max_features: Optional[int] = None  # None = ceil(sqrt(n_features))
    leaf_smoothing: float = 0.0
    seed: int = 42
    n_jobs: Optional[int] = None  # None = all CPUs but one

    def __post_init__(self):
        if self.tree_count < 1:
            raise ValueError(f"tree_count must be >= 1, got {self.tree_count}")
        if self.n_jobs is None:
            self.n_jobs = max(1, multiprocessing.cpu_count() - 1)
        if self.n_jobs < 1:
            raise ValueError(f"n_jobs must be >= 1, got {self.n_jobs}")
        # Validates the per-tree limits eagerly.
        self.tree_params()

    def tree_params(self) -> TreeParams:
        return TreeParams(
            max_depth=self.max_depth,
            min_leaf_size=self.min_leaf_size,
            max_features=self.max_features,
            leaf_smoothing=self.leaf_smoothing,
        )


@dataclass(frozen=True, eq=False)
class RandomForest:
    """Immutable ensemble of trees trained on vectors of the same length."""

    trees: Tuple[DecisionTree, ...]
    feature_count: int

    def __post_init__(self):
        if not self.trees:
            raise ValueError("forest must contain at least one tree")
        for i, tree in enumerate(self.trees):
            if tree.feature_count != self.feature_count:
                raise ValueError(
                    f"tree {i} expects {tree.feature_count} features, forest expects {self.feature_count}"
                )

    @property
    def tree_count(self) -> int:
        return len(self.trees)

    def predict(self, vector) -> float:
        """
        Mean tree probability for one feature vector.

        Raises:
            DimensionMismatchError: if the vector length differs from feature_count
        """
        x = np.asarray(vector, dtype=np.float64)
        if x.ndim != 1 or x.shape[0] != self.feature_count:
            raise DimensionMismatchError(self.feature_count, int(x.size))
        total = sum(tree._walk(x) for tree in self.trees)
        return float(min(1.0, max(0.0, total / len(self.trees))))

    def predict_many(self, matrix) -> np.ndarray:
        """Row-wise predict over an (n, feature_count) matrix."""
        X = np.asarray(matrix, dtype=np.float64)
        if X.ndim != 2 or X.shape[1] != self.feature_count:
            actual = X.shape[1] if X.ndim == 2 else int(X.size)
            raise DimensionMismatchError(self.feature_count, actual)
        return np.array([self.predict(row) for row in X], dtype=np.float64)

    def structurally_equal(self, other: "RandomForest", tol: float = 1e-6) -> bool:
        return (
            self.feature_count == other.feature_count
            and self.tree_count == other.tree_count
            and all(a.structurally_equal(b, tol) for a, b in zip(self.trees, other.trees))
        )


def validate_training_set(samples, labels: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Check a labeled training set and convert it to arrays.

    Returns:
        (X, y) as float64 arrays

    Raises:
        EmptyTrainingSetError, LabelCountMismatchError, InvalidLabelError,
        SingleClassError, DimensionMismatchError
    """
    if samples is None or len(samples) == 0:
        raise EmptyTrainingSetError("training set has no samples")
    if len(labels) != len(samples):
        raise LabelCountMismatchError(
            "number of samples and labels must match",
            context={"samples": len(samples), "labels": len(labels)},
        )

    y = np.asarray(labels, dtype=np.float64)
    bad = np.nonzero((y != 0.0) & (y != 1.0))[0]
    if bad.size:
        first = int(bad[0])
        raise InvalidLabelError(
            f"labels must be 0.0 or 1.0; got {labels[first]!r} at index {first}",
            context={"invalid_count": int(bad.size)},
        )
    if y.min() == y.max():
        raise SingleClassError(
            f"training set contains only label {y[0]}; both classes are required",
            context={"samples": int(y.shape[0])},
        )

    lengths = {len(s) for s in samples}
    if len(lengths) != 1:
        expected = len(samples[0])
        actual = next(len(s) for s in samples if len(s) != expected)
        raise DimensionMismatchError(expected, actual)
    X = np.asarray(samples, dtype=np.float64)
    if X.shape[1] == 0:
        raise DimensionMismatchError(1, 0)
    return X, y


def _grow_batch(
    X: np.ndarray,
    y: np.ndarray,
    params: TreeParams,
    seeds: List[np.random.SeedSequence],
) -> List[DecisionTree]:
    """Grow one tree per seed. Module-level so it can run in worker processes."""
    return [bootstrap_tree(X, y, params, seed) for seed in seeds]


def train_forest(samples, labels: Sequence[float], params: Optional[ForestParams] = None) -> RandomForest:
    """
    Train a random forest on labeled feature vectors.

    Args:
        samples: Sequence of equal-length feature vectors (or a 2-D array)
        labels: 0.0 (legitimate) / 1.0 (cheater) per sample
        params: Training configuration

    Returns:
        Trained RandomForest
    """
    params = params or ForestParams()
    X, y = validate_training_set(samples, labels)
    tree_params = params.tree_params()

    seeds = np.random.SeedSequence(params.seed).spawn(params.tree_count)
    n_workers = min(params.n_jobs, params.tree_count)

    logger.info(
        "Training forest: %d trees on %d samples x %d features (%d worker(s))",
        params.tree_count, X.shape[0], X.shape[1], n_workers,
    )

    # One contiguous chunk of seeds per worker; order is restored on join.
    chunks = [list(c) for c in np.array_split(np.arange(params.tree_count), n_workers) if len(c)]
    seed_batches = [[seeds[i] for i in chunk] for chunk in chunks]

    trees: List[DecisionTree] = []
    if n_workers > 1:
        try:
            with ProcessPoolExecutor(max_workers=n_workers) as executor:
                futures = [
                    executor.submit(_grow_batch, X, y, tree_params, batch)
                    for batch in seed_batches
                ]
                for future in futures:
                    trees.extend(future.result())
        except (RuntimeError, OSError) as exc:
            logger.warning("Process pool unavailable (%s); training sequentially", exc)
            trees = _grow_batch(X, y, tree_params, seeds)
    else:
        trees = _grow_batch(X, y, tree_params, seeds)

    forest = RandomForest(trees=tuple(trees), feature_count=X.shape[1])
    logger.info(
        "Trained forest with %d trees (%d nodes total)",
        forest.tree_count, sum(t.node_count for t in forest.trees),
    )
    return forest
