# cvensemble/config/cluster_config.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from cvensemble.data.bundle import Interval, OutputKind


class CrossValidationConfig(BaseModel):
    """
    CrossValidationConfig（FINAL）

    - fold_ratio  : fold size as a share of the bundle, (0, 0.5]
    - folds       : number of held-out folds used, 0 = every fold produced
    - repetitions : full fold loops, reshuffled between repetitions
    """

    fold_ratio: float = Field(default=0.1, gt=0.0, le=0.5)
    folds: int = Field(default=0, ge=0)
    repetitions: int = Field(default=1, ge=1)


class WeightingConfig(BaseModel):
    """
    Macro-weights of the eight member metrics.
    """

    training_group: float = Field(default=1.0, ge=0.0)
    testing_group: float = Field(default=1.0, ge=0.0)
    samples_count: float = Field(default=1.0, ge=0.0)
    precision: float = Field(default=1.0, ge=0.0)
    misrecognized: float = Field(default=1.0, ge=0.0)
    unrecognized: float = Field(default=0.0, ge=0.0)


class MemberConfig(BaseModel):
    family: str
    params: Dict[str, Any] = Field(default_factory=dict)
    attempts: int = Field(default=1, ge=1)
    epochs: int = Field(default=100, ge=1)


class StackingMode(str, Enum):
    SECOND_TIER_ONLY = "second_tier_only"
    AVERAGED = "averaged"


class StackingConfig(BaseModel):
    cross_validation: CrossValidationConfig = Field(
        default_factory=lambda: CrossValidationConfig(fold_ratio=1.0 / 3.0)
    )
    members: List[MemberConfig] = Field(min_length=1)
    mode: StackingMode = StackingMode.AVERAGED
    weighting: WeightingConfig = Field(default_factory=WeightingConfig)


class ClusterConfig(BaseModel):
    """
    ClusterConfig（FINAL）
    """

    name: str = "cluster"
    output_kind: OutputKind
    members: List[MemberConfig] = Field(min_length=1)
    weighting: WeightingConfig = Field(default_factory=WeightingConfig)

    # native output range of probability models, default [0, 1]
    output_range: Optional[Tuple[float, float]] = None

    stacking: Optional[StackingConfig] = None

    @field_validator("output_range")
    @classmethod
    def _check_range(cls, v):
        if v is not None and not v[1] > v[0]:
            raise ValueError(f"output_range must be (low, high) with low < high, got {v}")
        return v

    @model_validator(mode="after")
    def _range_only_for_probabilities(self):
        if self.output_range is not None and self.output_kind is OutputKind.CONTINUOUS:
            raise ValueError("output_range applies to probability output kinds only")
        return self

    def native_range(self) -> Optional[Interval]:
        if self.output_range is None:
            return self.output_kind.default_range
        return Interval(*self.output_range)


class ChainConfig(BaseModel):
    """
    ChainConfig（FINAL）

    Every stage shares the chain's output kind and cross-validation policy.
    """

    name: str = "chain"
    output_kind: OutputKind
    cross_validation: CrossValidationConfig = Field(default_factory=CrossValidationConfig)
    stages: List[ClusterConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def _same_output_kind(self):
        for stage in self.stages:
            if stage.output_kind is not self.output_kind:
                raise ValueError(
                    f"Stage '{stage.name}' output kind {stage.output_kind.value} "
                    f"differs from chain output kind {self.output_kind.value}"
                )
            if stage.stacking is not None:
                raise ValueError(f"Stage '{stage.name}': stacking is not supported in chains")
        return self
