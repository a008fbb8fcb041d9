"""Player statistics models."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Generic, Mapping, Optional, Tuple, Type, TypeVar

import numpy as np

from ..data.validators import validate_player_fields
from ..errors import DataValidationError
from ..features.extractor import (
    accuracy_rate,
    extract_default_features,
    headshot_ratio,
    shot_intervals,
    total_count,
)


class Analyzable(ABC):
    """
    Capability interface for game-specific player data.

    Any statistics shape can be scored by the engine as long as it reduces
    to a fixed-length feature vector and exposes the two aggregate ratios the
    rule checks look at.
    """

    @abstractmethod
    def accuracy_rate(self) -> float:
        """Fraction of shots that hit."""

    @abstractmethod
    def headshot_ratio(self) -> float:
        """Fraction of hits that were headshots."""

    @abstractmethod
    def extract_features(self) -> np.ndarray:
        """Fixed-order numeric feature vector for the classifier."""

    def shot_intervals(self) -> Optional[np.ndarray]:
        """Gaps between consecutive shots in ms, if timing data exists."""
        return None

    def count_inconsistency(self) -> bool:
        """True when raw counts contradict each other (data-quality signal)."""
        return False

    def is_suspicious(self) -> bool:
        """Quick rule-only verdict using the default thresholds."""
        from ..engine.rules import RuleThresholds

        thresholds = RuleThresholds()
        return (
            self.accuracy_rate() > thresholds.high_accuracy
            or self.headshot_ratio() > thresholds.high_headshot_ratio
        )


@dataclass(frozen=True)
class DefaultPlayerData(Analyzable):
    """
    Built-in per-round statistics for shooter games.

    The per-weapon maps are copied into read-only views on construction and
    timestamps into a tuple, so instances are immutable and hashable.
    """

    shots_fired: Mapping[str, int] = field(default_factory=dict)
    hits: Mapping[str, int] = field(default_factory=dict)
    headshots: int = 0
    shot_timestamps_ms: Optional[Tuple[int, ...]] = None
    training_label: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "shots_fired", MappingProxyType(dict(self.shots_fired)))
        object.__setattr__(self, "hits", MappingProxyType(dict(self.hits)))
        if self.shot_timestamps_ms is not None:
            object.__setattr__(self, "shot_timestamps_ms", tuple(self.shot_timestamps_ms))

    def __hash__(self):
        return hash((
            tuple(sorted(self.shots_fired.items())),
            tuple(sorted(self.hits.items())),
            self.headshots,
            self.shot_timestamps_ms,
            self.training_label,
        ))

    def __reduce__(self):
        return (
            self.__class__,
            (dict(self.shots_fired), dict(self.hits), self.headshots,
             self.shot_timestamps_ms, self.training_label),
        )

    @property
    def total_shots(self) -> int:
        return total_count(self.shots_fired)

    @property
    def total_hits(self) -> int:
        return total_count(self.hits)

    def accuracy_rate(self) -> float:
        return accuracy_rate(self.total_hits, self.total_shots)

    def headshot_ratio(self) -> float:
        return headshot_ratio(self.headshots, self.total_hits)

    def extract_features(self) -> np.ndarray:
        return extract_default_features(self)

    def shot_intervals(self) -> Optional[np.ndarray]:
        return shot_intervals(self.shot_timestamps_ms)

    def count_inconsistency(self) -> bool:
        hits = self.total_hits
        return hits > self.total_shots or self.headshots > hits

    def to_document(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        doc: Dict[str, Any] = {
            "shots_fired": dict(self.shots_fired),
            "hits": dict(self.hits),
            "headshots": self.headshots,
        }
        if self.shot_timestamps_ms is not None:
            doc["shot_timestamps_ms"] = list(self.shot_timestamps_ms)
        if self.training_label is not None:
            doc["training_label"] = self.training_label
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "DefaultPlayerData":
        """
        Create player data from a decoded JSON object.

        Unknown keys are ignored.

        Raises:
            DataValidationError: if the document fails schema validation
        """
        errors = validate_player_fields(doc)
        if errors:
            raise DataValidationError("invalid player data", errors)

        timestamps = doc.get("shot_timestamps_ms")
        label = doc.get("training_label")
        return cls(
            shots_fired={k: int(v) for k, v in doc["shots_fired"].items()},
            hits={k: int(v) for k, v in doc["hits"].items()},
            headshots=int(doc["headshots"]),
            shot_timestamps_ms=tuple(int(t) for t in timestamps) if timestamps is not None else None,
            training_label=float(label) if label is not None else None,
        )


T = TypeVar("T", bound=Analyzable)


@dataclass(frozen=True)
class PlayerStats(Generic[T]):
    """One player's statistics for a round, keyed by player_id."""

    player_id: str
    data: T

    def to_document(self) -> Dict[str, Any]:
        """Flat document: the data fields plus player_id."""
        doc = dict(self.data.to_document())
        doc["player_id"] = self.player_id
        return doc

    @classmethod
    def from_document(
        cls,
        doc: Dict[str, Any],
        data_cls: Type[Any] = DefaultPlayerData,
    ) -> "PlayerStats":
        """
        Create player stats from a flat document.

        Args:
            doc: Decoded JSON object with player_id and data fields
            data_cls: Data type implementing from_document()

        Raises:
            DataValidationError: if player_id is missing or the data is invalid
        """
        if not isinstance(doc, dict):
            raise DataValidationError("player record must be an object")
        player_id = doc.get("player_id")
        if not isinstance(player_id, str) or not player_id:
            raise DataValidationError("player record missing or invalid player_id")
        fields = {k: v for k, v in doc.items() if k != "player_id"}
        return cls(player_id=player_id, data=data_cls.from_document(fields))


@dataclass(frozen=True)
class MalformedRecord:
    """Placeholder for a batch entry that could not be parsed."""

    player_id: str
    reason: str
