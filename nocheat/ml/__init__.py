"""Random forest training, inference and persistence."""

from .forest import ForestParams, RandomForest, train_forest
from .model_store import DEFAULT_MODEL_PATH, default_model_path, dumps, load_model, loads, save_model
from .tree import DecisionTree, TreeParams, build_tree
from .trainer import generate_default_model, labels_from_stats, synthetic_training_set, train_model

__all__ = [
    "DEFAULT_MODEL_PATH",
    "DecisionTree",
    "ForestParams",
    "RandomForest",
    "TreeParams",
    "build_tree",
    "default_model_path",
    "dumps",
    "generate_default_model",
    "labels_from_stats",
    "load_model",
    "loads",
    "save_model",
    "synthetic_training_set",
    "train_forest",
    "train_model",
]
