"""
Binary decision trees over feature thresholds.

Trees are stored as an append-only arena of parallel numpy arrays. Node 0 is
the root and nodes are appended in pre-order (node, left subtree, right
subtree), so a saved tree is a straight walk of the arena.

Internal node i:  feature[i] >= 0, go left when x[feature[i]] <= threshold[i]
Leaf node i:      feature[i] == LEAF, value[i] is the positive-class probability

Induction uses Gini impurity reduction. Candidate partitions are enumerated
at every distinct value present in the node; the stored threshold sits
halfway to the next distinct value, which reproduces the same partition on
the training samples while leaving room on both sides for unseen values.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging
import math

import numpy as np

from ..errors import DimensionMismatchError

logger = logging.getLogger(__name__)

LEAF = -1

# Splits must reduce impurity by more than this to be taken.
MIN_IMPURITY_DECREASE = 1e-12


@dataclass(frozen=True)
class TreeParams:
    """Growth limits for a single tree."""

    max_depth: int = 12
    min_leaf_size: int = 2
    max_features: Optional[int] = None  # None = ceil(sqrt(n_features))
    leaf_smoothing: float = 0.0  # additive (Laplace-style) smoothing of leaf probabilities

    def __post_init__(self):
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.min_leaf_size < 1:
            raise ValueError(f"min_leaf_size must be >= 1, got {self.min_leaf_size}")
        if self.max_features is not None and self.max_features < 1:
            raise ValueError(f"max_features must be >= 1, got {self.max_features}")
        if self.leaf_smoothing < 0:
            raise ValueError(f"leaf_smoothing must be >= 0, got {self.leaf_smoothing}")

    def features_per_split(self, n_features: int) -> int:
        if self.max_features is None:
            return max(1, math.ceil(math.sqrt(n_features)))
        return min(self.max_features, n_features)


@dataclass(frozen=True, eq=False)
class DecisionTree:
    """Immutable trained tree."""

    feature: np.ndarray
    threshold: np.ndarray
    left: np.ndarray
    right: np.ndarray
    value: np.ndarray
    feature_count: int

    @property
    def node_count(self) -> int:
        return int(self.feature.shape[0])

    def is_leaf(self, node: int) -> bool:
        return int(self.feature[node]) == LEAF

    def leaf_values(self) -> np.ndarray:
        """Leaf probabilities in pre-order."""
        return self.value[self.feature == LEAF]

    def depth(self) -> int:
        """Length of the longest root-to-leaf path (a lone leaf has depth 0)."""
        deepest = 0
        stack = [(0, 0)]
        while stack:
            node, d = stack.pop()
            if self.is_leaf(node):
                deepest = max(deepest, d)
            else:
                stack.append((int(self.left[node]), d + 1))
                stack.append((int(self.right[node]), d + 1))
        return deepest

    def predict(self, vector) -> float:
        """
        Positive-class probability for one feature vector.

        Raises:
            DimensionMismatchError: if the vector length differs from feature_count
        """
        x = np.asarray(vector, dtype=np.float64)
        if x.ndim != 1 or x.shape[0] != self.feature_count:
            raise DimensionMismatchError(self.feature_count, int(x.size))
        return self._walk(x)

    def predict_many(self, matrix) -> np.ndarray:
        X = np.asarray(matrix, dtype=np.float64)
        if X.ndim != 2 or X.shape[1] != self.feature_count:
            actual = X.shape[1] if X.ndim == 2 else int(X.size)
            raise DimensionMismatchError(self.feature_count, actual)
        return np.array([self._walk(row) for row in X], dtype=np.float64)

    def _walk(self, x: np.ndarray) -> float:
        node = 0
        while self.feature[node] != LEAF:
            if x[self.feature[node]] <= self.threshold[node]:
                node = self.left[node]
            else:
                node = self.right[node]
        return float(self.value[node])

    def validate(self) -> List[str]:
        """Check arena integrity; returns a list of problems."""
        errors: List[str] = []
        n = self.node_count
        if n == 0:
            return ["tree has no nodes"]
        for node in range(n):
            f = int(self.feature[node])
            if f == LEAF:
                p = float(self.value[node])
                if not 0.0 <= p <= 1.0:
                    errors.append(f"leaf {node} probability {p} outside [0, 1]")
                continue
            if not 0 <= f < self.feature_count:
                errors.append(f"node {node} feature index {f} outside [0, {self.feature_count})")
            for child in (int(self.left[node]), int(self.right[node])):
                if not node < child < n:
                    errors.append(f"node {node} child index {child} out of range")
            if not math.isfinite(float(self.threshold[node])):
                errors.append(f"node {node} threshold is not finite")
        return errors

    def structurally_equal(self, other: "DecisionTree", tol: float = 1e-6) -> bool:
        """Same shape, split features, thresholds and leaf probabilities."""
        if self.feature_count != other.feature_count or self.node_count != other.node_count:
            return False
        if not np.array_equal(self.feature, other.feature):
            return False
        internal = self.feature != LEAF
        leaves = ~internal
        return (
            np.array_equal(self.left[internal], other.left[internal])
            and np.array_equal(self.right[internal], other.right[internal])
            and np.allclose(self.threshold[internal], other.threshold[internal], atol=tol, rtol=0.0)
            and np.allclose(self.value[leaves], other.value[leaves], atol=tol, rtol=0.0)
        )


class TreeArena:
    """Append-only node storage used while growing or decoding a tree."""

    def __init__(self):
        self.feature: List[int] = []
        self.threshold: List[float] = []
        self.left: List[int] = []
        self.right: List[int] = []
        self.value: List[float] = []

    def __len__(self) -> int:
        return len(self.feature)

    def add_leaf(self, probability: float) -> int:
        return self._append(LEAF, 0.0, probability)

    def add_split(self, feature: int, threshold: float) -> int:
        """Append an internal node; children are attached with set_children()."""
        return self._append(feature, threshold, 0.0)

    def set_children(self, node: int, left: int, right: int) -> None:
        self.left[node] = left
        self.right[node] = right

    def _append(self, feature: int, threshold: float, value: float) -> int:
        self.feature.append(feature)
        self.threshold.append(threshold)
        self.left.append(LEAF)
        self.right.append(LEAF)
        self.value.append(value)
        return len(self.feature) - 1

    def freeze(self, feature_count: int) -> DecisionTree:
        return DecisionTree(
            feature=np.array(self.feature, dtype=np.int32),
            threshold=np.array(self.threshold, dtype=np.float64),
            left=np.array(self.left, dtype=np.int32),
            right=np.array(self.right, dtype=np.int32),
            value=np.array(self.value, dtype=np.float64),
            feature_count=feature_count,
        )


def gini(positives: float, total: float) -> float:
    """Gini impurity of a binary node."""
    if total <= 0:
        return 0.0
    p = positives / total
    return 2.0 * p * (1.0 - p)


def best_split_for_feature(
    x: np.ndarray,
    y: np.ndarray,
) -> Optional[Tuple[float, float, float]]:
    """
    Best Gini split of one feature column.

    Args:
        x: Feature values for the node's samples
        y: Labels (0.0 / 1.0) for the same samples

    Returns:
        (impurity_decrease, left_value, next_value) where the partition is
        x <= left_value, and next_value is the smallest value on the right;
        None when the column is constant
    """
    order = np.argsort(x, kind="stable")
    xs = x[order]
    ys = y[order]
    n = xs.shape[0]

    # Split after position i wherever the sorted value changes.
    boundaries = np.nonzero(xs[:-1] < xs[1:])[0]
    if boundaries.size == 0:
        return None

    cum_pos = np.cumsum(ys)
    total_pos = cum_pos[-1]
    n_left = (boundaries + 1).astype(np.float64)
    pos_left = cum_pos[boundaries]
    n_right = n - n_left
    pos_right = total_pos - pos_left

    p_left = pos_left / n_left
    p_right = pos_right / n_right
    weighted = (n_left * 2.0 * p_left * (1.0 - p_left) + n_right * 2.0 * p_right * (1.0 - p_right)) / n
    decrease = gini(total_pos, n) - weighted

    # argmax keeps the first maximum, i.e. the lowest threshold on ties.
    best = int(np.argmax(decrease))
    idx = int(boundaries[best])
    return float(decrease[best]), float(xs[idx]), float(xs[idx + 1])


def find_best_split(
    X: np.ndarray,
    y: np.ndarray,
    features: np.ndarray,
) -> Optional[Tuple[int, float]]:
    """
    Best (feature, threshold) among the given feature indices.

    Features are visited in ascending order and an incumbent is only
    replaced by a strictly larger impurity decrease, so ties resolve to the
    lowest feature index and then the lowest threshold.
    """
    best_gain = MIN_IMPURITY_DECREASE
    best: Optional[Tuple[int, float]] = None
    for f in np.sort(features):
        found = best_split_for_feature(X[:, f], y)
        if found is None:
            continue
        gain, left_value, next_value = found
        if gain > best_gain:
            threshold = left_value + (next_value - left_value) / 2.0
            if threshold >= next_value:
                # Adjacent floats: the midpoint rounds up onto the right side.
                threshold = left_value
            best_gain = gain
            best = (int(f), threshold)
    return best


def build_tree(
    X: np.ndarray,
    y: np.ndarray,
    params: TreeParams,
    rng: np.random.Generator,
) -> DecisionTree:
    """
    Grow a tree on (X, y) as given (no resampling).

    Args:
        X: Feature matrix (n_samples, n_features)
        y: Labels in {0.0, 1.0}
        params: Growth limits
        rng: Source of randomness for per-split feature sampling

    Returns:
        Trained DecisionTree
    """
    n_features = X.shape[1]
    k = params.features_per_split(n_features)
    arena = TreeArena()

    def leaf_probability(labels: np.ndarray) -> float:
        a = params.leaf_smoothing
        return float((labels.sum() + a) / (labels.shape[0] + 2.0 * a))

    def grow(rows: np.ndarray, depth: int) -> int:
        labels = y[rows]
        positives = labels.sum()
        if (
            positives == 0
            or positives == labels.shape[0]
            or labels.shape[0] < params.min_leaf_size
            or depth >= params.max_depth
        ):
            return arena.add_leaf(leaf_probability(labels))

        sub_X = X[rows]
        sampled = rng.choice(n_features, size=k, replace=False)
        split = find_best_split(sub_X, labels, sampled)
        if split is None and k < n_features:
            # Sampled features cannot separate this node; fall back to the rest.
            remaining = np.setdiff1d(np.arange(n_features), sampled)
            split = find_best_split(sub_X, labels, remaining)
        if split is None:
            return arena.add_leaf(leaf_probability(labels))

        feature, threshold = split
        node = arena.add_split(feature, threshold)
        goes_left = sub_X[:, feature] <= threshold
        left = grow(rows[goes_left], depth + 1)
        right = grow(rows[~goes_left], depth + 1)
        arena.set_children(node, left, right)
        return node

    grow(np.arange(X.shape[0]), 0)
    tree = arena.freeze(n_features)
    logger.debug("Grew tree with %d nodes (depth %d)", tree.node_count, tree.depth())
    return tree


def bootstrap_tree(
    X: np.ndarray,
    y: np.ndarray,
    params: TreeParams,
    seed: np.random.SeedSequence,
) -> DecisionTree:
    """Grow one tree on a bootstrap resample drawn from its own seed."""
    rng = np.random.default_rng(seed)
    n = X.shape[0]
    rows = rng.integers(0, n, size=n)
    return build_tree(X[rows], y[rows], params, rng)
