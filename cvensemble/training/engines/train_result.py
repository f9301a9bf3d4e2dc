#!filepath: cvensemble/training/engines/train_result.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cvensemble.data.bundle import OutputKind
from cvensemble.stats.basic_stat import BasicStat, BinErrStat
from cvensemble.training.engines.model_train_engine import MemberModel


@dataclass(frozen=True, order=True)
class ScopeKey:
    """
    Which (repetition, held-out fold) produced a member.
    """

    repetition: int
    fold: int

    def __str__(self) -> str:
        return f"r{self.repetition}/f{self.fold}"


@dataclass(frozen=True)
class TrainedMember:
    """
    TrainedMember（FINAL / FROZEN）

    语义：
    - the best model of one driver run plus its error statistics
    - training_* stats come from the training bundle
    - testing_*  stats come from the held-out fold
    - bin stats only for probability output kinds
    - error stats hold one absolute error per output value
    """

    name: str
    output_kind: OutputKind
    output_values: int
    model: MemberModel
    trainer_info: str

    training_error: BasicStat
    testing_error: BasicStat
    combined_precision_error: float

    training_bin_error: Optional[BinErrStat] = None
    testing_bin_error: Optional[BinErrStat] = None
    combined_binary_error: float = 0.0

    weights_stat: Optional[BasicStat] = None
    scope: Optional[ScopeKey] = None

    @property
    def has_bin_stats(self) -> bool:
        return self.training_bin_error is not None and self.testing_bin_error is not None

    @property
    def training_samples(self) -> int:
        return self.training_error.count // self.output_values

    @property
    def testing_samples(self) -> int:
        return self.testing_error.count // self.output_values
