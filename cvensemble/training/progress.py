#!filepath: cvensemble/training/progress.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from cvensemble.training.engines.train_result import TrainedMember


@dataclass(frozen=True)
class MemberSnapshot:
    """
    Error figures of one iteration (no model reference).
    """

    attempt: int
    attempt_epoch: int
    training_error: float
    testing_error: float
    combined_precision_error: float
    combined_binary_error: float = 0.0
    training_bin_errors: Optional[float] = None
    testing_bin_errors: Optional[float] = None

    @classmethod
    def of(cls, member: TrainedMember, attempt: int, attempt_epoch: int) -> "MemberSnapshot":
        return cls(
            attempt=attempt,
            attempt_epoch=attempt_epoch,
            training_error=member.training_error.mean,
            testing_error=member.testing_error.mean,
            combined_precision_error=member.combined_precision_error,
            combined_binary_error=member.combined_binary_error,
            training_bin_errors=(
                member.training_bin_error.total.sum if member.has_bin_stats else None
            ),
            testing_bin_errors=(
                member.testing_bin_error.total.sum if member.has_bin_stats else None
            ),
        )

    def text(self) -> str:
        s = f"{self.training_error:.3E}"
        if self.training_bin_errors is not None:
            s += f"/{self.training_bin_errors:g}"
        s += f" {self.testing_error:.3E}"
        if self.testing_bin_errors is not None:
            s += f"/{self.testing_bin_errors:g}"
        return s


@dataclass(frozen=True)
class ProgressScope:
    """
    Position of a driver run inside the enclosing build (0-based counters).
    """

    ensemble_name: str = ""
    repetition: int = 0
    max_repetitions: int = 1
    stage: int = 0
    max_stages: int = 1
    fold: int = 0
    max_folds: int = 1
    member: int = 0
    max_members: int = 1


@dataclass(frozen=True)
class BuildProgress:
    """
    BuildProgress（FINAL / FROZEN）

    Immutable record handed to progress sinks after every training iteration.
    """

    member_name: str
    scope: ProgressScope
    attempt: int
    max_attempts: int
    attempt_epoch: int
    max_attempt_epochs: int
    current: MemberSnapshot
    best: MemberSnapshot
    last_improvement_epoch: int

    @property
    def current_is_best(self) -> bool:
        return (
            self.best.attempt == self.attempt
            and self.best.attempt_epoch == self.attempt_epoch
        )

    @property
    def new_member(self) -> bool:
        return self.attempt == 1 and self.attempt_epoch == 1

    @property
    def last_epoch(self) -> bool:
        return self.attempt_epoch == self.max_attempt_epochs

    @property
    def should_be_reported(self) -> bool:
        return self.new_member or self.current_is_best or self.last_epoch

    def info_text(self) -> str:
        sc = self.scope
        return (
            f"[{sc.ensemble_name}] "
            f"rep {sc.repetition + 1}/{sc.max_repetitions} "
            f"stage {sc.stage + 1}/{sc.max_stages} "
            f"fold {sc.fold + 1}/{sc.max_folds} "
            f"member {sc.member + 1}/{sc.max_members} "
            f"{self.member_name} "
            f"attempt {self.attempt}/{self.max_attempts} "
            f"epoch {self.attempt_epoch}/{self.max_attempt_epochs} "
            f"curr {self.current.text()} "
            f"best {self.best.text()} (a{self.best.attempt}e{self.best.attempt_epoch}) "
            f"last-imp {self.last_improvement_epoch}"
        )


ProgressSink = Callable[[BuildProgress], None]
