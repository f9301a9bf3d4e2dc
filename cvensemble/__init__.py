#!filepath: cvensemble/__init__.py

from .utils.logger import Logging, logs, init_logging
from .utils.errors import (
    ConfigurationError,
    EnsembleError,
    LogicError,
    NumericalInstabilityError,
)
from .config import (
    AppConfig,
    ChainConfig,
    ClusterConfig,
    CrossValidationConfig,
    MemberConfig,
    StackingConfig,
    StackingMode,
    WeightingConfig,
)
from .data.bundle import Fold, Interval, OutputKind, SampleBundle
from .data.folds import split_folds
from .data.filters import FeatureFilter, ScalerFeatureFilter
from .training.engines.registry import register_member_engine, resolve_member_engine
from .training.engines.train_result import ScopeKey, TrainedMember
from .training.policies import (
    PatienceStopPolicy,
    StopDecision,
    default_stop_policy,
    is_better,
    make_default_stop_policy,
)
from .training.progress import BuildProgress, MemberSnapshot, ProgressScope
from .training.member_builder import MemberBuilder
from .training.cluster import Ensemble
from .training.cluster_builder import EnsembleBuilder, build_ensemble
from .training.chain import ChainBuilder, EnsembleChain, build_chain
from .observability.progress import ProgressReporter

__version__ = "0.1.0"

__all__ = [
    "logs", "Logging", "init_logging",
    "EnsembleError", "ConfigurationError", "LogicError", "NumericalInstabilityError",
    "AppConfig", "ChainConfig", "ClusterConfig", "CrossValidationConfig",
    "MemberConfig", "StackingConfig", "StackingMode", "WeightingConfig",
    "Fold", "Interval", "OutputKind", "SampleBundle", "split_folds",
    "FeatureFilter", "ScalerFeatureFilter",
    "register_member_engine", "resolve_member_engine",
    "ScopeKey", "TrainedMember",
    "PatienceStopPolicy", "StopDecision", "default_stop_policy", "is_better",
    "make_default_stop_policy",
    "BuildProgress", "MemberSnapshot", "ProgressScope",
    "MemberBuilder",
    "Ensemble", "EnsembleBuilder", "build_ensemble",
    "ChainBuilder", "EnsembleChain", "build_chain",
    "ProgressReporter",
]
