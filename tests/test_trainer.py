"""Tests for model training and the built-in default model."""

import numpy as np
import pytest

from nocheat.errors import DataValidationError, EmptyTrainingSetError, LabelCountMismatchError
from nocheat.ml.forest import ForestParams
from nocheat.ml.model_store import load_model
from nocheat.ml.trainer import (
    generate_default_model,
    labels_from_stats,
    synthetic_training_set,
    train_model,
)
from nocheat.models.player import Analyzable, DefaultPlayerData, PlayerStats


def player(pid, shots, hits, headshots, label=None):
    return PlayerStats(
        pid,
        DefaultPlayerData(
            shots_fired={"rifle": shots},
            hits={"rifle": hits},
            headshots=headshots,
            training_label=label,
        ),
    )


@pytest.fixture(scope="module")
def default_model(tmp_path_factory):
    path = tmp_path_factory.mktemp("models") / "cheat_model.bin"
    forest = generate_default_model(path, ForestParams(tree_count=25, n_jobs=1))
    return path, forest


def test_synthetic_set_shape():
    stats = synthetic_training_set()
    labels = labels_from_stats(stats)

    assert len(stats) == 100
    assert labels.count(0.0) == 50
    assert labels.count(1.0) == 50
    assert len({p.player_id for p in stats}) == 100


def test_synthetic_set_profiles():
    stats = synthetic_training_set()
    legit = [p.data for p in stats if p.data.training_label == 0.0]
    cheaters = [p.data for p in stats if p.data.training_label == 1.0]

    assert all(0.38 <= d.accuracy_rate() <= 0.65 for d in legit)
    assert all(0.08 <= d.headshot_ratio() <= 0.25 for d in legit)
    assert all(0.78 <= d.accuracy_rate() <= 0.98 for d in cheaters)
    assert all(0.38 <= d.headshot_ratio() <= 0.80 for d in cheaters)


def test_synthetic_set_mixes_timing_presence():
    stats = synthetic_training_set()
    for label in (0.0, 1.0):
        group = [p.data for p in stats if p.data.training_label == label]
        with_timing = [d for d in group if d.shot_timestamps_ms is not None]
        assert 0 < len(with_timing) < len(group)
        for d in with_timing:
            ts = d.shot_timestamps_ms
            assert list(ts) == sorted(ts)


def test_synthetic_set_is_deterministic():
    first = [p.to_document() for p in synthetic_training_set(seed=7)]
    second = [p.to_document() for p in synthetic_training_set(seed=7)]
    assert first == second


def test_labels_from_stats_requires_every_label():
    stats = [player("a", 10, 5, 1, 0.0), player("b", 10, 9, 8)]
    with pytest.raises(LabelCountMismatchError):
        labels_from_stats(stats)


def test_train_model_saves(tmp_path):
    stats = [
        player("a", 100, 45, 5, 0.0),
        player("b", 100, 50, 8, 0.0),
        player("c", 100, 93, 70, 1.0),
        player("d", 100, 97, 80, 1.0),
    ]
    path = tmp_path / "custom.bin"
    forest = train_model(stats, path=path, params=ForestParams(tree_count=5, n_jobs=1))

    assert path.exists()
    assert load_model(path).structurally_equal(forest)


def test_train_model_with_explicit_labels():
    stats = [player("a", 100, 45, 5), player("b", 100, 95, 70)]
    forest = train_model(stats, labels=[0.0, 1.0], params=ForestParams(tree_count=3, n_jobs=1))
    assert forest.feature_count == 4


def test_train_model_empty():
    with pytest.raises(EmptyTrainingSetError):
        train_model([], labels=[], params=ForestParams(n_jobs=1))


def test_train_model_rejects_non_finite_features():
    class BrokenData(Analyzable):
        training_label = 1.0

        def accuracy_rate(self):
            return 0.5

        def headshot_ratio(self):
            return 0.1

        def extract_features(self):
            return np.array([np.nan, 0.0, 0.0, 0.0])

    stats = [player("a", 100, 45, 5, 0.0), PlayerStats("broken", BrokenData())]
    with pytest.raises(DataValidationError):
        train_model(stats, params=ForestParams(n_jobs=1))


def test_default_model_file(default_model):
    path, forest = default_model
    assert path.exists()
    assert load_model(path).structurally_equal(forest)


def test_default_model_scores_ordinary_player_low(default_model):
    _, forest = default_model
    data = player("p", 100, 50, 10).data
    assert forest.predict(data.extract_features()) < 0.5


def test_default_model_scores_aimbot_player_high(default_model):
    _, forest = default_model
    data = player("p", 100, 95, 70).data
    assert forest.predict(data.extract_features()) > 0.5


def test_default_model_is_reproducible(default_model, tmp_path):
    _, forest = default_model
    again = generate_default_model(tmp_path / "again.bin", ForestParams(tree_count=25, n_jobs=1))
    assert again.structurally_equal(forest)


def test_default_model_honours_env_path(tmp_path, monkeypatch):
    target = tmp_path / "env" / "model.bin"
    monkeypatch.setenv("NOCHEAT_MODEL_PATH", str(target))
    generate_default_model(params=ForestParams(tree_count=2, n_jobs=1))
    assert target.exists()
