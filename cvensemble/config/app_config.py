#!filepath: cvensemble/config/app_config.py
import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from .cluster_config import ChainConfig, ClusterConfig, CrossValidationConfig
from .log_config import LogConfig


class AppConfig(BaseModel):
    """
    Top level YAML document: exactly one of ``cluster`` / ``chain``.
    """

    log: LogConfig = Field(default_factory=LogConfig)
    cross_validation: CrossValidationConfig = Field(default_factory=CrossValidationConfig)
    cluster: Optional[ClusterConfig] = None
    chain: Optional[ChainConfig] = None
    seed: int = 0

    @model_validator(mode="after")
    def _one_target(self):
        if (self.cluster is None) == (self.chain is None):
            raise ValueError("Config must define exactly one of 'cluster' or 'chain'")
        return self

    @classmethod
    def load(cls, path: str) -> "AppConfig":
        """
        读取 YAML 配置
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return cls(**raw)
