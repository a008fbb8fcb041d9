"""
nocheat: cheat detection for multiplayer games from per-round statistics.

A random forest scores each player's feature vector; rule checks add
behavioral flags; the engine fuses both into a suspicion score.
"""

from .engine.analysis import AnalysisEngine, EngineConfig, analyze_stats
from .engine.registry import ModelRegistry, get_registry
from .engine.rules import RuleThresholds
from .errors import NoCheatError
from .features.extractor import FEATURE_COUNT, FEATURE_NAMES
from .ml.forest import ForestParams, RandomForest, train_forest
from .ml.model_store import load_model, save_model
from .ml.trainer import generate_default_model, train_model
from .models import (
    Analyzable,
    AnalysisResponse,
    DefaultAnalysisResult,
    DefaultPlayerData,
    MalformedRecord,
    PlayerResult,
    PlayerStats,
)

__version__ = "0.1.0"

__all__ = [
    "Analyzable",
    "AnalysisEngine",
    "AnalysisResponse",
    "DefaultAnalysisResult",
    "DefaultPlayerData",
    "EngineConfig",
    "FEATURE_COUNT",
    "FEATURE_NAMES",
    "ForestParams",
    "MalformedRecord",
    "ModelRegistry",
    "NoCheatError",
    "PlayerResult",
    "PlayerStats",
    "RandomForest",
    "RuleThresholds",
    "analyze_stats",
    "generate_default_model",
    "get_registry",
    "load_model",
    "save_model",
    "train_forest",
    "train_model",
]
