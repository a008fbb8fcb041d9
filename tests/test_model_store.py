"""Unit tests for the binary model format."""

import struct

import numpy as np
import pytest

from nocheat.errors import (
    CorruptModelError,
    ModelFormatError,
    ModelIOError,
    ModelNotFoundError,
    ModelUnavailableError,
    TruncatedModelError,
)
from nocheat.ml.forest import ForestParams, RandomForest, train_forest
from nocheat.ml.model_store import (
    DEFAULT_MODEL_PATH,
    FORMAT_VERSION,
    MAGIC,
    default_model_path,
    dumps,
    load_model,
    loads,
    save_model,
)
from nocheat.ml.tree import TreeArena


def header(feature_count=4, tree_count=1, magic=MAGIC, version=FORMAT_VERSION):
    return struct.pack("<4sHII", magic, version, feature_count, tree_count)


@pytest.fixture
def forest():
    rng = np.random.default_rng(1)
    X = rng.random((80, 4))
    y = (X[:, 0] + 0.3 * X[:, 1] > 0.7).astype(float)
    return train_forest(X, y, ForestParams(tree_count=7, n_jobs=1))


def test_round_trip_bytes(forest):
    restored = loads(dumps(forest))

    assert restored.tree_count == forest.tree_count
    assert restored.feature_count == forest.feature_count
    assert restored.structurally_equal(forest)
    for a, b in zip(forest.trees, restored.trees):
        np.testing.assert_allclose(a.leaf_values(), b.leaf_values(), atol=1e-6)


def test_round_trip_file(forest, tmp_path):
    path = tmp_path / "nested" / "model.bin"
    save_model(forest, path)
    restored = load_model(path)

    assert restored.structurally_equal(forest)
    points = np.random.default_rng(2).random((20, 4))
    np.testing.assert_allclose(restored.predict_many(points), forest.predict_many(points))
    assert not (tmp_path / "nested" / "model.bin.tmp").exists()


def test_leaf_only_tree_layout():
    arena = TreeArena()
    arena.add_leaf(0.25)
    single = RandomForest(trees=(arena.freeze(4),), feature_count=4)

    assert dumps(single) == header() + struct.pack("<Bd", 1, 0.25)


def test_split_layout_is_preorder():
    arena = TreeArena()
    root = arena.add_split(2, 1.5)
    left = arena.add_leaf(0.0)
    right = arena.add_leaf(1.0)
    arena.set_children(root, left, right)
    single = RandomForest(trees=(arena.freeze(4),), feature_count=4)

    expected = (
        header()
        + struct.pack("<BId", 0, 2, 1.5)
        + struct.pack("<Bd", 1, 0.0)
        + struct.pack("<Bd", 1, 1.0)
    )
    assert dumps(single) == expected
    assert loads(expected).structurally_equal(single)


def test_bad_magic(forest):
    data = bytearray(dumps(forest))
    data[0:4] = b"XXXX"
    with pytest.raises(CorruptModelError):
        loads(bytes(data))


def test_unknown_version(forest):
    data = bytearray(dumps(forest))
    data[4:6] = struct.pack("<H", FORMAT_VERSION + 1)
    with pytest.raises(CorruptModelError):
        loads(bytes(data))


def test_unknown_tag():
    with pytest.raises(CorruptModelError):
        loads(header() + b"\x07")


def test_feature_index_out_of_range():
    data = header(feature_count=4) + struct.pack("<BId", 0, 9, 0.5)
    with pytest.raises(CorruptModelError):
        loads(data)


def test_probability_out_of_range():
    with pytest.raises(CorruptModelError):
        loads(header() + struct.pack("<Bd", 1, 1.5))
    with pytest.raises(CorruptModelError):
        loads(header() + struct.pack("<Bd", 1, float("nan")))


def test_zero_trees():
    with pytest.raises(CorruptModelError):
        loads(header(tree_count=0))


def test_trailing_bytes(forest):
    with pytest.raises(CorruptModelError):
        loads(dumps(forest) + b"\x00")


def test_truncated_stream(forest):
    data = dumps(forest)
    with pytest.raises(TruncatedModelError):
        loads(data[:-3])
    with pytest.raises(TruncatedModelError):
        loads(data[:5])
    with pytest.raises(TruncatedModelError):
        loads(b"")


def test_truncated_missing_right_subtree():
    data = header() + struct.pack("<BId", 0, 1, 0.5) + struct.pack("<Bd", 1, 0.0)
    with pytest.raises(TruncatedModelError):
        loads(data)


def test_format_errors_share_base():
    with pytest.raises(ModelFormatError):
        loads(b"NCRF")


def test_missing_file(tmp_path):
    with pytest.raises(ModelNotFoundError) as exc_info:
        load_model(tmp_path / "absent.bin")
    assert isinstance(exc_info.value, ModelUnavailableError)


def test_unreadable_path(tmp_path):
    with pytest.raises(ModelIOError):
        load_model(tmp_path)


def test_default_model_path(monkeypatch):
    monkeypatch.delenv("NOCHEAT_MODEL_PATH", raising=False)
    assert default_model_path() == DEFAULT_MODEL_PATH

    monkeypatch.setenv("NOCHEAT_MODEL_PATH", "/srv/models/live.bin")
    assert default_model_path() == "/srv/models/live.bin"
