"""Unit tests for decision tree induction and the random forest."""

import numpy as np
import pytest

from nocheat.errors import (
    DimensionMismatchError,
    EmptyTrainingSetError,
    InvalidLabelError,
    LabelCountMismatchError,
    SingleClassError,
)
from nocheat.ml.forest import ForestParams, RandomForest, train_forest
from nocheat.ml.tree import (
    LEAF,
    TreeArena,
    TreeParams,
    best_split_for_feature,
    build_tree,
    find_best_split,
    gini,
)


@pytest.fixture
def noisy_data():
    """Two overlapping clusters in four dimensions."""
    rng = np.random.default_rng(3)
    X = np.vstack([
        rng.normal(0.0, 1.0, size=(60, 4)),
        rng.normal(1.0, 1.0, size=(60, 4)),
    ])
    y = np.array([0.0] * 60 + [1.0] * 60)
    return X, y


def test_gini():
    assert gini(0, 10) == 0.0
    assert gini(10, 10) == 0.0
    assert gini(5, 10) == pytest.approx(0.5)
    assert gini(0, 0) == 0.0


def test_split_threshold_is_midpoint():
    x = np.array([1.0, 2.0, 3.0, 4.0])
    y = np.array([0.0, 0.0, 1.0, 1.0])
    gain, left_value, next_value = best_split_for_feature(x, y)
    assert gain == pytest.approx(0.5)
    assert (left_value, next_value) == (2.0, 3.0)

    feature, threshold = find_best_split(x.reshape(-1, 1), y, np.array([0]))
    assert feature == 0
    assert threshold == pytest.approx(2.5)


def test_constant_column_has_no_split():
    x = np.full(5, 7.0)
    y = np.array([0.0, 1.0, 0.0, 1.0, 0.0])
    assert best_split_for_feature(x, y) is None


def test_ties_resolve_to_lowest_feature():
    col = np.array([0.1, 0.2, 0.8, 0.9])
    X = np.column_stack([col, col, col])
    y = np.array([0.0, 0.0, 1.0, 1.0])
    feature, _ = find_best_split(X, y, np.array([2, 1, 0]))
    assert feature == 0


def test_build_tree_separates_two_samples():
    X = np.array([[0.3, 0.1, 0.0, 0.0], [0.95, 0.8, 0.0, 0.0]])
    y = np.array([0.0, 1.0])
    tree = build_tree(X, y, TreeParams(), np.random.default_rng(0))

    assert tree.predict(X[0]) == 0.0
    assert tree.predict(X[1]) == 1.0
    assert tree.node_count == 3
    assert tree.validate() == []


def test_max_depth_is_respected(noisy_data):
    X, y = noisy_data
    tree = build_tree(X, y, TreeParams(max_depth=2), np.random.default_rng(0))
    assert tree.depth() <= 2


def test_zero_depth_is_single_leaf(noisy_data):
    X, y = noisy_data
    tree = build_tree(X, y, TreeParams(max_depth=0), np.random.default_rng(0))
    assert tree.node_count == 1
    assert tree.feature[0] == LEAF
    assert tree.value[0] == pytest.approx(0.5)


def test_leaf_smoothing():
    X = np.array([[0.0], [1.0], [2.0]])
    y = np.array([1.0, 1.0, 1.0])
    tree = build_tree(X, y, TreeParams(leaf_smoothing=1.0), np.random.default_rng(0))
    assert tree.node_count == 1
    assert tree.value[0] == pytest.approx(4.0 / 5.0)


def test_tree_params_validation():
    with pytest.raises(ValueError):
        TreeParams(min_leaf_size=0)
    with pytest.raises(ValueError):
        TreeParams(max_features=0)
    assert TreeParams().features_per_split(4) == 2
    assert TreeParams(max_features=10).features_per_split(4) == 4


def test_tree_predict_rejects_wrong_length():
    arena = TreeArena()
    arena.add_leaf(0.5)
    tree = arena.freeze(4)
    with pytest.raises(DimensionMismatchError) as exc_info:
        tree.predict([0.1, 0.2])
    assert exc_info.value.expected == 4
    assert exc_info.value.actual == 2


def test_validate_reports_bad_child():
    arena = TreeArena()
    root = arena.add_split(0, 0.5)
    arena.set_children(root, 0, 0)
    errors = arena.freeze(1).validate()
    assert any("child index" in e for e in errors)


def test_forest_two_sample_predictions():
    samples = [[0.3, 0.1, 0.0, 0.0], [0.95, 0.8, 0.0, 0.0]]
    forest = train_forest(samples, [0.0, 1.0], ForestParams(n_jobs=1))

    assert forest.tree_count == 100
    assert forest.predict(samples[0]) < 0.5
    assert forest.predict(samples[1]) > 0.5


def test_forest_predictions_are_probabilities(noisy_data):
    X, y = noisy_data
    forest = train_forest(X, y, ForestParams(tree_count=10, n_jobs=1))

    points = np.random.default_rng(11).normal(0.5, 3.0, size=(200, 4))
    probs = forest.predict_many(points)
    assert probs.shape == (200,)
    assert np.all((probs >= 0.0) & (probs <= 1.0))
    assert forest.predict(points[0]) == pytest.approx(probs[0])


def test_forest_predict_rejects_wrong_length(noisy_data):
    X, y = noisy_data
    forest = train_forest(X, y, ForestParams(tree_count=2, n_jobs=1))
    with pytest.raises(DimensionMismatchError):
        forest.predict([0.0, 0.0, 0.0])
    with pytest.raises(DimensionMismatchError):
        forest.predict_many(np.zeros((3, 5)))


def test_forest_training_is_deterministic(noisy_data):
    X, y = noisy_data
    params = ForestParams(tree_count=8, seed=5, n_jobs=1)
    first = train_forest(X, y, params)
    second = train_forest(X, y, params)
    assert first.structurally_equal(second)

    other = train_forest(X, y, ForestParams(tree_count=8, seed=6, n_jobs=1))
    assert not first.structurally_equal(other)


def test_parallel_training_matches_sequential(noisy_data):
    X, y = noisy_data
    sequential = train_forest(X, y, ForestParams(tree_count=6, seed=9, n_jobs=1))
    parallel = train_forest(X, y, ForestParams(tree_count=6, seed=9, n_jobs=2))
    assert parallel.structurally_equal(sequential)


def test_every_trained_tree_is_valid(noisy_data):
    X, y = noisy_data
    forest = train_forest(X, y, ForestParams(tree_count=5, n_jobs=1))
    for tree in forest.trees:
        assert tree.validate() == []
        internal = tree.feature != LEAF
        assert np.all(tree.feature[internal] < forest.feature_count)


def test_empty_training_set():
    with pytest.raises(EmptyTrainingSetError):
        train_forest([], [], ForestParams(n_jobs=1))


def test_label_count_mismatch():
    with pytest.raises(LabelCountMismatchError):
        train_forest([[0.0], [1.0]], [0.0], ForestParams(n_jobs=1))


def test_invalid_label():
    with pytest.raises(InvalidLabelError):
        train_forest([[0.0], [1.0]], [0.0, 0.5], ForestParams(n_jobs=1))


def test_single_class():
    with pytest.raises(SingleClassError):
        train_forest([[0.0], [1.0]], [1.0, 1.0], ForestParams(n_jobs=1))


def test_ragged_samples():
    with pytest.raises(DimensionMismatchError):
        train_forest([[0.0, 1.0], [1.0]], [0.0, 1.0], ForestParams(n_jobs=1))


def test_training_errors_are_value_errors():
    with pytest.raises(ValueError):
        train_forest([], [], ForestParams(n_jobs=1))


def test_forest_params_defaults():
    params = ForestParams()
    assert params.tree_count == 100
    assert params.max_depth == 12
    assert params.min_leaf_size == 2
    assert params.seed == 42
    assert params.n_jobs >= 1
    with pytest.raises(ValueError):
        ForestParams(tree_count=0)


def test_forest_params_rejects_zero_workers():
    with pytest.raises(ValueError, match="n_jobs"):
        ForestParams(tree_count=3, n_jobs=0)
    with pytest.raises(ValueError):
        ForestParams(n_jobs=-2)


def test_forest_rejects_mixed_feature_counts():
    a = TreeArena()
    a.add_leaf(0.1)
    b = TreeArena()
    b.add_leaf(0.2)
    with pytest.raises(ValueError):
        RandomForest(trees=(a.freeze(4), b.freeze(3)), feature_count=4)
