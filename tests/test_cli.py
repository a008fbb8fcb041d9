"""Tests for the command-line interface."""

import json

import pytest

from nocheat.main import main
from nocheat.ml.model_store import load_model
from nocheat.ml.trainer import synthetic_training_set


@pytest.fixture
def training_file(tmp_path):
    path = tmp_path / "train.json"
    path.write_text(json.dumps([p.to_document() for p in synthetic_training_set(count=20)]))
    return path


@pytest.fixture
def batch_file(tmp_path):
    players = [
        {"player_id": "steady", "shots_fired": {"rifle": 100}, "hits": {"rifle": 50}, "headshots": 10},
        {"player_id": "aimbot", "shots_fired": {"rifle": 100}, "hits": {"rifle": 95}, "headshots": 70},
        {"player_id": "broken", "shots_fired": {"rifle": "many"}, "hits": {}, "headshots": 0},
    ]
    path = tmp_path / "batch.json"
    path.write_text(json.dumps({"players": players}))
    return path


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "model.bin"
    assert main(["train", "default", "--output", str(path), "--trees", "10", "--jobs", "1"]) == 0
    return path


def test_train_default(capsys, model_file):
    forest = load_model(model_file)
    assert forest.tree_count == 10
    assert forest.feature_count == 4
    assert "Saved 10 trees" in capsys.readouterr().out


def test_train_custom_with_holdout(training_file, tmp_path, capsys):
    output = tmp_path / "custom.bin"
    code = main([
        "train", "custom",
        "--input", str(training_file),
        "--output", str(output),
        "--holdout", "0.25",
        "--trees", "8",
        "--jobs", "1",
    ])

    assert code == 0
    assert output.exists()
    out = capsys.readouterr().out
    assert "Holding out 10 players" in out
    assert "ROC AUC" in out


def test_train_custom_rejects_unlabeled_data(batch_file, tmp_path, capsys):
    code = main(["train", "custom", "--input", str(batch_file), "--output", str(tmp_path / "m.bin")])
    assert code == 1
    assert "missing training_label" in capsys.readouterr().out


def test_analyze_writes_response(model_file, batch_file, tmp_path, capsys):
    output = tmp_path / "results.json"
    code = main(["analyze", "--input", str(batch_file), "--model", str(model_file), "--output", str(output)])

    assert code == 0
    with open(output) as f:
        doc = json.load(f)
    assert [r["player_id"] for r in doc["results"]] == ["steady", "aimbot", "broken"]
    assert doc["results"][2]["flags"] == ["InvalidData"]

    out = capsys.readouterr().out
    assert out.index("aimbot") < out.index("steady")


def test_analyze_with_thresholds_file(model_file, batch_file, tmp_path):
    thresholds = tmp_path / "rules.json"
    thresholds.write_text(json.dumps({"high_accuracy": 0.4}))
    output = tmp_path / "results.json"

    code = main([
        "analyze", "--input", str(batch_file), "--model", str(model_file),
        "--thresholds", str(thresholds), "--output", str(output),
    ])
    assert code == 0
    with open(output) as f:
        doc = json.load(f)
    assert doc["results"][0]["flags"] == ["HighAccuracy"]


def test_analyze_missing_model(batch_file, tmp_path, capsys):
    code = main(["analyze", "--input", str(batch_file), "--model", str(tmp_path / "absent.bin")])
    assert code == 1
    assert "not found" in capsys.readouterr().out


def test_evaluate(model_file, training_file, capsys):
    assert main(["evaluate", "--input", str(training_file), "--model", str(model_file)]) == 0
    assert "Brier Score" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_train_without_mode(capsys):
    assert main(["train"]) == 1


def test_train_default_rejects_zero_jobs(tmp_path, capsys):
    code = main(["train", "default", "--output", str(tmp_path / "m.bin"), "--jobs", "0"])
    assert code == 1
    assert "n_jobs" in capsys.readouterr().out
    assert not (tmp_path / "m.bin").exists()
