"""Rule checks, model registry and the analysis engine."""

from .analysis import AnalysisEngine, EngineConfig, analyze_stats
from .registry import ModelRegistry, get_registry
from .rules import RuleThresholds, evaluate_rules

__all__ = [
    "AnalysisEngine",
    "EngineConfig",
    "ModelRegistry",
    "RuleThresholds",
    "analyze_stats",
    "evaluate_rules",
    "get_registry",
]
