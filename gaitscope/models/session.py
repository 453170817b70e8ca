"""Explicit lifecycle for the external inference models.

A :class:`ModelSession` owns one black-box model (the sequence autoencoder or
the SEI classifier). It moves through ``UNLOADED -> LOADING -> READY`` (or
``FAILED``) and is passed by reference into each pipeline call instead of
living in module globals. Model calls run off the event loop via
``asyncio.to_thread``; that is the single suspension point of each stage.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from gaitscope.config import AnomalyConfig, ClassifierConfig, NUM_FEATURES, SeiConfig
from gaitscope.quality.failures import InferenceError, ModelNotReadyError

logger = logging.getLogger(__name__)

Model = Callable[[np.ndarray], Any]
ModelLoader = Callable[[], Model]


class ModelState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def release(obj: Any) -> None:
    """Free a tensor-like object through whichever hook it exposes."""
    for hook in ("dispose", "close"):
        method = getattr(obj, hook, None)
        if callable(method):
            method()
            return


class TensorScope:
    """Collects tensor-like intermediates so they can be freed together."""

    def __init__(self) -> None:
        self._held: List[Any] = []

    def track(self, obj: Any) -> Any:
        self._held.append(obj)
        return obj

    def release_all(self) -> None:
        while self._held:
            release(self._held.pop())


@contextmanager
def scoped_tensors() -> Iterator[TensorScope]:
    """Yield a :class:`TensorScope` that is emptied on every exit path."""
    scope = TensorScope()
    try:
        yield scope
    finally:
        scope.release_all()


class ModelSession:
    """Lifecycle wrapper around one external model.

    Args:
        name: Label used in logs and error messages.
        loader: Zero-argument callable returning the model callable.
        warmup_shape: When given, one prediction on zeros of this shape is run
            right after loading.
    """

    def __init__(
        self,
        name: str,
        loader: ModelLoader,
        warmup_shape: Optional[Sequence[int]] = None,
    ) -> None:
        self.name = name
        self._loader = loader
        self._warmup_shape = tuple(warmup_shape) if warmup_shape else None
        self._model: Optional[Model] = None
        self.state = ModelState.UNLOADED

    @property
    def is_ready(self) -> bool:
        return self.state is ModelState.READY

    def _load_blocking(self) -> Model:
        model = self._loader()
        if self._warmup_shape is not None:
            with scoped_tensors() as scope:
                dummy = scope.track(np.zeros(self._warmup_shape, dtype=np.float32))
                scope.track(model(dummy))
        return model

    async def load(self) -> None:
        """Load (and warm up) the model; a no-op when already READY."""
        if self.state is ModelState.READY:
            return
        self.state = ModelState.LOADING
        logger.info("[%s] loading model", self.name)
        try:
            self._model = await asyncio.to_thread(self._load_blocking)
        except Exception as exc:
            self.state = ModelState.FAILED
            self._model = None
            logger.error("[%s] failed to load model: %s", self.name, exc)
            raise InferenceError(f"Failed to load {self.name} model: {exc}") from exc
        self.state = ModelState.READY
        logger.info("[%s] model ready", self.name)

    def dispose(self) -> None:
        if self._model is not None:
            release(self._model)
        self._model = None
        self.state = ModelState.UNLOADED

    def require_ready(self) -> Model:
        if self.state is not ModelState.READY or self._model is None:
            raise ModelNotReadyError(
                f"{self.name} model not loaded (state={self.state.value}). "
                "Call load() first."
            )
        return self._model

    async def predict(self, batch: np.ndarray, scope: Optional[TensorScope] = None) -> np.ndarray:
        """Run the model on ``batch`` and return its output as a numpy array.

        Raw model outputs are handed to ``scope`` (when given) for release.
        """

        model = self.require_ready()
        try:
            raw = await asyncio.to_thread(model, batch)
            if scope is not None:
                scope.track(raw)
            return np.array(raw, dtype=float)
        except Exception as exc:
            raise InferenceError(f"{self.name} inference failed: {exc}") from exc


@dataclass
class AnalysisContext:
    """Everything one analysis run needs, passed explicitly into each call."""

    autoencoder: ModelSession
    classifier: ModelSession
    anomaly_config: AnomalyConfig = field(default_factory=AnomalyConfig)
    sei_config: SeiConfig = field(default_factory=SeiConfig)
    classifier_config: ClassifierConfig = field(default_factory=ClassifierConfig)

    @classmethod
    def from_loaders(
        cls,
        reconstruct_loader: ModelLoader,
        classify_loader: ModelLoader,
        **configs: Any,
    ) -> "AnalysisContext":
        anomaly_config = configs.get("anomaly_config") or AnomalyConfig()
        classifier_config = configs.get("classifier_config") or ClassifierConfig()
        return cls(
            autoencoder=ModelSession(
                "autoencoder",
                reconstruct_loader,
                warmup_shape=(1, anomaly_config.sequence_length, NUM_FEATURES),
            ),
            classifier=ModelSession(
                "classifier", classify_loader, warmup_shape=classifier_config.input_shape
            ),
            anomaly_config=anomaly_config,
            sei_config=configs.get("sei_config") or SeiConfig(),
            classifier_config=classifier_config,
        )

    async def load(self) -> None:
        """Load both sessions; the first failure is raised once both have settled."""
        results = await asyncio.gather(
            self.autoencoder.load(), self.classifier.load(), return_exceptions=True
        )
        for outcome in results:
            if isinstance(outcome, BaseException):
                raise outcome

    def dispose(self) -> None:
        self.autoencoder.dispose()
        self.classifier.dispose()


def load_model_factory(target: str) -> Tuple[ModelLoader, ModelLoader]:
    """Resolve ``"package.module:callable"`` to ``(reconstruct_loader, classify_loader)``."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"model factory must look like 'package.module:callable', got {target!r}")
    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as exc:
        raise ValueError(f"cannot resolve model factory {target!r}: {exc}") from exc
    loaders = factory()
    if not isinstance(loaders, tuple) or len(loaders) != 2:
        raise ValueError("model factory must return (reconstruct_loader, classify_loader)")
    return loaders
