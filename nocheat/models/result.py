"""Analysis result models."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Tuple, TypeVar


@dataclass(frozen=True)
class DefaultAnalysisResult:
    """Suspicion score plus behavioral flags for one player."""

    suspicion_score: float
    flags: Tuple[str, ...] = ()

    def __post_init__(self):
        if not 0.0 <= self.suspicion_score <= 1.0:
            raise ValueError(f"suspicion_score must be in [0, 1], got {self.suspicion_score}")

    def has_flag(self, flag: str) -> bool:
        return flag in self.flags

    def to_document(self) -> Dict[str, Any]:
        return {
            "suspicion_score": self.suspicion_score,
            "flags": list(self.flags),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "DefaultAnalysisResult":
        return cls(
            suspicion_score=float(doc["suspicion_score"]),
            flags=tuple(doc.get("flags", [])),
        )


R = TypeVar("R")


@dataclass(frozen=True)
class PlayerResult(Generic[R]):
    """Analysis result for a single player."""

    player_id: str
    result: R

    def to_dict(self) -> Dict[str, Any]:
        """Flat dictionary: player_id merged with the result document."""
        doc = {"player_id": self.player_id}
        doc.update(self.result.to_document())
        return doc


@dataclass
class AnalysisResponse(Generic[R]):
    """Results for a batch of players, in input order."""

    results: List[PlayerResult[R]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.results)

    def get(self, player_id: str) -> PlayerResult[R]:
        """Return the first result for player_id."""
        for result in self.results:
            if result.player_id == player_id:
                return result
        raise KeyError(player_id)

    def to_dict(self) -> dict:
        """Convert response to dictionary."""
        return {"results": [r.to_dict() for r in self.results]}

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResponse[DefaultAnalysisResult]":
        """Create a default-typed response from a dictionary."""
        results = [
            PlayerResult(
                player_id=row["player_id"],
                result=DefaultAnalysisResult.from_document(row),
            )
            for row in data.get("results", [])
        ]
        return cls(results=results)
