"""Player statistics and analysis result models."""

from .player import Analyzable, DefaultPlayerData, MalformedRecord, PlayerStats
from .result import AnalysisResponse, DefaultAnalysisResult, PlayerResult

__all__ = [
    "Analyzable",
    "AnalysisResponse",
    "DefaultAnalysisResult",
    "DefaultPlayerData",
    "MalformedRecord",
    "PlayerResult",
    "PlayerStats",
]
