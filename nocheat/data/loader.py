"""Data loader for player statistics batches and analysis results."""

import json
import logging
from pathlib import Path
from typing import Any, List, Type, Union

from ..errors import DataValidationError
from ..models.player import DefaultPlayerData, MalformedRecord, PlayerStats
from ..models.result import AnalysisResponse
from .validators import validate_batch_payload, validate_training_payload

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _records(payload: Any) -> List[Any]:
    return payload if isinstance(payload, list) else payload["players"]


def _fallback_id(record: Any, idx: int) -> str:
    if isinstance(record, dict):
        player_id = record.get("player_id")
        if isinstance(player_id, str) and player_id:
            return player_id
    return f"#{idx}"


class DataLoader:
    """Loads player statistics from JSON documents and files."""

    @staticmethod
    def parse_batch(payload: Any, data_cls: Type[Any] = DefaultPlayerData) -> list:
        """
        Build a batch from a decoded JSON payload.

        Entries that fail validation become MalformedRecord placeholders so the
        batch keeps its length and order. Entries without a usable player_id
        are identified by their position ("#3").

        Args:
            payload: List of player objects, or {"players": [...]}
            data_cls: Player data type implementing from_document()

        Returns:
            List of PlayerStats / MalformedRecord in input order

        Raises:
            DataValidationError: if the top-level shape is wrong
        """
        errors = validate_batch_payload(payload)
        if errors:
            raise DataValidationError("invalid batch payload", errors)

        batch: list = []
        for idx, record in enumerate(_records(payload)):
            try:
                batch.append(PlayerStats.from_document(record, data_cls))
            except (TypeError, ValueError, KeyError) as exc:
                if isinstance(exc, DataValidationError):
                    reason = "; ".join(exc.errors) if exc.errors else exc.message
                else:
                    reason = f"{type(exc).__name__}: {exc}"
                player_id = _fallback_id(record, idx)
                logger.warning("Malformed player record %s: %s", player_id, reason)
                batch.append(MalformedRecord(player_id=player_id, reason=reason))
        return batch

    @staticmethod
    def parse_training(payload: Any, data_cls: Type[Any] = DefaultPlayerData) -> List[PlayerStats]:
        """
        Build a labeled training set; every record must be valid and labeled.

        Raises:
            DataValidationError: with every problem found
        """
        errors = validate_training_payload(payload)
        if errors:
            raise DataValidationError(f"invalid training data ({len(errors)} problems)", errors)
        return [PlayerStats.from_document(record, data_cls) for record in _records(payload)]

    @staticmethod
    def read_json(file_path: PathLike) -> Any:
        """
        Read a JSON document.

        Raises:
            DataValidationError: if the file is not valid JSON
        """
        with open(file_path, "r", encoding="utf-8") as f:
            try:
                return json.load(f)
            except json.JSONDecodeError as exc:
                raise DataValidationError(f"{file_path} is not valid JSON: {exc}") from exc

    @staticmethod
    def load_batch(file_path: PathLike, data_cls: Type[Any] = DefaultPlayerData) -> list:
        """Load a batch of player statistics for analysis."""
        batch = DataLoader.parse_batch(DataLoader.read_json(file_path), data_cls)
        logger.info("Loaded %d players from %s", len(batch), file_path)
        return batch

    @staticmethod
    def load_training_data(file_path: PathLike, data_cls: Type[Any] = DefaultPlayerData) -> List[PlayerStats]:
        """Load a labeled training set."""
        stats = DataLoader.parse_training(DataLoader.read_json(file_path), data_cls)
        logger.info("Loaded %d labeled players from %s", len(stats), file_path)
        return stats

    @staticmethod
    def save_batch(batch: List[PlayerStats], file_path: PathLike) -> None:
        """Save player statistics as a JSON list."""
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump([p.to_document() for p in batch], f, indent=2)

    @staticmethod
    def save_response(response: AnalysisResponse, file_path: PathLike) -> None:
        """
        Save analysis results to a JSON file.

        Args:
            response: Results to save
            file_path: Output file path
        """
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(response.to_dict(), f, indent=2)

    @staticmethod
    def load_response(file_path: PathLike) -> AnalysisResponse:
        with open(file_path, "r", encoding="utf-8") as f:
            return AnalysisResponse.from_dict(json.load(f))
