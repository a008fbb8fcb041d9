"""
Process-wide model slot.

Readers take the current forest reference without locking; a forest is
immutable, so whatever reference a reader holds stays valid for the whole
analysis. Writers (first load, default synthesis, hot swap) build the new
forest completely and then replace the reference under a lock, so readers
see either the old model or the new one and never a partial state.
"""

from pathlib import Path
from typing import Optional, Union
import logging
import threading

from ..errors import ModelNotFoundError
from ..ml.forest import ForestParams, RandomForest
from ..ml.model_store import default_model_path, load_model
from ..ml.trainer import generate_default_model

logger = logging.getLogger(__name__)


class ModelRegistry:
    """Single-slot holder for the active forest."""

    def __init__(
        self,
        model_path: Optional[Union[str, Path]] = None,
        synthesize_default: bool = True,
        default_params: Optional[ForestParams] = None,
    ):
        """
        Args:
            model_path: Model file; NOCHEAT_MODEL_PATH or the default location when None
            synthesize_default: Train and save the built-in model when the file is missing
            default_params: Forest configuration for the synthesized model;
                single-process training when None
        """
        self._configured_path = Path(model_path) if model_path is not None else None
        self._model_path: Optional[Path] = None
        self._model: Optional[RandomForest] = None
        self._lock = threading.Lock()
        self.synthesize_default = synthesize_default
        self.default_params = default_params

    @property
    def model(self) -> Optional[RandomForest]:
        """Current forest, or None before init()."""
        return self._model

    @property
    def model_path(self) -> Optional[Path]:
        """File the current forest came from."""
        return self._model_path

    def _resolve_path(self) -> Path:
        if self._configured_path is not None:
            return self._configured_path
        return Path(default_model_path())

    def init(self) -> RandomForest:
        """
        Load the configured model, synthesizing the default one if it is missing.

        Idempotent: returns the current model when one is already active.

        Raises:
            ModelNotFoundError: file missing and synthesis disabled
            ModelIOError, ModelFormatError: file unreadable or invalid
        """
        with self._lock:
            if self._model is not None:
                return self._model
            path = self._resolve_path()
            try:
                forest = load_model(path)
            except ModelNotFoundError:
                if not self.synthesize_default:
                    raise
                logger.warning("No model at %s; synthesizing the default model", path)
                forest = generate_default_model(path, self.synthesis_params())
            self._model = forest
            self._model_path = path
            return forest

    def synthesis_params(self) -> ForestParams:
        if self.default_params is not None:
            return self.default_params
        return ForestParams(n_jobs=1)

    def get(self) -> RandomForest:
        """Current forest, initializing on first use."""
        model = self._model
        if model is not None:
            return model
        return self.init()

    def set_model_path(self, path: Union[str, Path]) -> RandomForest:
        """
        Load a model from path and make it the active one.

        On failure the previously active model stays in place.
        """
        path = Path(path)
        forest = load_model(path)
        with self._lock:
            self._model = forest
            self._model_path = path
            self._configured_path = path
        logger.info("Active model switched to %s", path)
        return forest

    def set_model(self, forest: RandomForest) -> None:
        """Install an in-memory forest as the active model."""
        with self._lock:
            self._model = forest
            self._model_path = None

    def clear(self) -> None:
        with self._lock:
            self._model = None
            self._model_path = None


_registry: Optional[ModelRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> ModelRegistry:
    """Process-wide registry, created on first use."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = ModelRegistry()
    return _registry


def reset_registry() -> None:
    """Drop the process-wide registry (the next get_registry() builds a fresh one)."""
    global _registry
    with _registry_lock:
        _registry = None
