"""
Analysis engine.

For every player in a batch:

1. Extract the feature vector from the player's data
2. Score it with the random forest (mean tree probability)
3. Run the rule checks for behavioral flags
4. Fuse probability and flags into {suspicion_score, flags}

Records that cannot be scored (malformed input, extraction failures,
non-finite features) are scored on the neutral all-zero vector and flagged
InvalidData; the rest of the batch is unaffected.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import logging

import numpy as np

from ..errors import DimensionMismatchError
from ..ml.forest import ForestParams, RandomForest
from ..models.player import MalformedRecord
from ..models.result import AnalysisResponse, DefaultAnalysisResult, PlayerResult
from .registry import ModelRegistry, get_registry
from .rules import (
    BEHAVIOR_FLAGS,
    INVALID_DATA,
    RuleThresholds,
    behavior_flag_count,
    evaluate_rules,
)

logger = logging.getLogger(__name__)

# Failures from a data type's accessors that mark one record as unusable.
EXTRACTION_ERRORS = (TypeError, ValueError, KeyError, AttributeError, ArithmeticError)


@dataclass
class EngineConfig:
    """Configuration for the analysis engine."""

    model_path: Optional[str] = None  # None = process-wide registry
    synthesize_default: bool = True
    default_params: Optional[ForestParams] = None
    # Share of the score taken from behavioral flags; 0 = forest probability only.
    flag_blend_weight: float = 0.0
    thresholds: RuleThresholds = field(default_factory=RuleThresholds)

    def __post_init__(self):
        if not 0.0 <= self.flag_blend_weight <= 1.0:
            raise ValueError(f"flag_blend_weight must be in [0, 1], got {self.flag_blend_weight}")


class AnalysisEngine:
    """Scores batches of player statistics against a forest."""

    def __init__(
        self,
        model: Optional[RandomForest] = None,
        registry: Optional[ModelRegistry] = None,
        config: Optional[EngineConfig] = None,
    ):
        """
        Args:
            model: Fixed forest to score with (bypasses any registry)
            registry: Model slot to read the active forest from
            config: Engine configuration

        With neither model nor registry, config.model_path selects a private
        registry for that file; otherwise the process-wide registry is used.
        """
        self.config = config or EngineConfig()
        self._model = model
        if model is None and registry is None:
            if self.config.model_path is not None:
                registry = ModelRegistry(
                    self.config.model_path,
                    synthesize_default=self.config.synthesize_default,
                    default_params=self.config.default_params,
                )
            else:
                registry = get_registry()
        self.registry = registry

    @property
    def model(self) -> RandomForest:
        if self._model is not None:
            return self._model
        return self.registry.get()

    def score(self, probability: float, flags: Sequence[str]) -> float:
        """Fuse a forest probability with behavioral flags into a suspicion score."""
        w = self.config.flag_blend_weight
        score = probability
        if w > 0.0:
            score = (1.0 - w) * probability + w * (behavior_flag_count(flags) / len(BEHAVIOR_FLAGS))
        return float(min(1.0, max(0.0, score)))

    def _invalid(self, player_id: str, forest: RandomForest) -> PlayerResult:
        neutral = np.zeros(forest.feature_count, dtype=np.float64)
        flags = (INVALID_DATA,)
        result = DefaultAnalysisResult(
            suspicion_score=self.score(forest.predict(neutral), flags),
            flags=flags,
        )
        return PlayerResult(player_id=player_id, result=result)

    def analyze_player(self, entry, forest: Optional[RandomForest] = None, index: int = 0) -> PlayerResult:
        """
        Score one batch entry.

        Args:
            entry: PlayerStats or MalformedRecord
            forest: Model to use (the engine's current model when None)
            index: Position in the batch, used to name entries without an id

        Raises:
            DimensionMismatchError: if the data type's vectors do not fit the model
        """
        if forest is None:
            forest = self.model
        player_id = getattr(entry, "player_id", None) or f"#{index}"

        if isinstance(entry, MalformedRecord):
            logger.warning("Scoring malformed record %s as InvalidData: %s", player_id, entry.reason)
            return self._invalid(player_id, forest)

        try:
            data = entry.data
            vector = np.asarray(data.extract_features(), dtype=np.float64)
            flags = evaluate_rules(data, self.config.thresholds)
        except EXTRACTION_ERRORS as exc:
            logger.warning("Feature extraction failed for %s: %s", player_id, exc)
            return self._invalid(player_id, forest)

        if vector.ndim != 1 or not np.all(np.isfinite(vector)):
            logger.warning("Non-finite features for %s", player_id)
            return self._invalid(player_id, forest)
        if vector.shape[0] != forest.feature_count:
            raise DimensionMismatchError(forest.feature_count, int(vector.shape[0]))

        probability = forest.predict(vector)
        result = DefaultAnalysisResult(
            suspicion_score=self.score(probability, flags),
            flags=tuple(flags),
        )
        return PlayerResult(player_id=player_id, result=result)

    def analyze(self, batch: Sequence) -> AnalysisResponse:
        """
        Score a batch; one result per entry, in input order.

        The active model is read once, so a concurrent hot swap never splits a
        batch across two models.
        """
        forest = self.model
        results: List[PlayerResult] = [
            self.analyze_player(entry, forest, idx) for idx, entry in enumerate(batch)
        ]
        invalid = sum(1 for r in results if r.result.has_flag(INVALID_DATA))
        logger.info("Analyzed %d players (%d invalid)", len(results), invalid)
        return AnalysisResponse(results=results)


def analyze_stats(batch: Sequence, config: Optional[EngineConfig] = None) -> AnalysisResponse:
    """Analyze a batch with the process-wide model (or config.model_path)."""
    return AnalysisEngine(config=config).analyze(batch)
