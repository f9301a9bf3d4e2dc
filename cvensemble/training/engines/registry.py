#!filepath: cvensemble/training/engines/registry.py
from __future__ import annotations

from typing import Callable, Dict, Optional

import numpy as np

from cvensemble.config.cluster_config import MemberConfig
from cvensemble.data.bundle import Interval, OutputKind, SampleBundle
from cvensemble.training.engines.model_train_engine import ModelTrainEngine
from cvensemble.utils.errors import ConfigurationError

# (cfg, kind, training bundle, rng, native output range) -> trainer
MemberEngineFactory = Callable[
    [MemberConfig, OutputKind, SampleBundle, np.random.Generator, Optional[Interval]],
    ModelTrainEngine,
]


# ------------------------------------------------------------------
# Global registry
# ------------------------------------------------------------------
_ENGINE_REGISTRY: Dict[str, MemberEngineFactory] = {}


def register_member_engine(family: str, factory: MemberEngineFactory | None = None):
    """
    Register a trainer factory under ``family``.

    Usable directly or as a decorator.
    """

    def _wrap(f: MemberEngineFactory):
        _ENGINE_REGISTRY[family] = f
        return f

    if factory is not None:
        return _wrap(factory)
    return _wrap


def unregister_member_engine(family: str) -> None:
    _ENGINE_REGISTRY.pop(family, None)


def resolve_member_engine(family: str) -> MemberEngineFactory:
    # builtin engines register on import
    from cvensemble.training.engines import model  # noqa: F401

    try:
        return _ENGINE_REGISTRY[family]
    except KeyError:
        known = ", ".join(sorted(_ENGINE_REGISTRY)) or "<none>"
        raise ConfigurationError(
            f"Unknown member family '{family}' (registered: {known})"
        ) from None


def create_trainer(
    cfg: MemberConfig,
    kind: OutputKind,
    training: SampleBundle,
    rng: np.random.Generator,
    output_range: Optional[Interval] = None,
) -> ModelTrainEngine:
    factory = resolve_member_engine(cfg.family)
    return factory(cfg, kind, training, rng, output_range)
