from .app_config import AppConfig
from .cluster_config import (
    ChainConfig,
    ClusterConfig,
    CrossValidationConfig,
    MemberConfig,
    StackingConfig,
    StackingMode,
    WeightingConfig,
)
from .log_config import LogConfig

__all__ = [
    "AppConfig",
    "ChainConfig",
    "ClusterConfig",
    "CrossValidationConfig",
    "LogConfig",
    "MemberConfig",
    "StackingConfig",
    "StackingMode",
    "WeightingConfig",
]
