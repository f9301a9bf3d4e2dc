#!filepath: cvensemble/training/policies.py
from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from cvensemble.training.engines.train_result import TrainedMember
from cvensemble.training.progress import BuildProgress


class StopDecision(str, Enum):
    CONTINUE = "continue"
    NEXT_ATTEMPT = "next_attempt"
    STOP = "stop"


Comparator = Callable[[TrainedMember, TrainedMember], bool]
StopPolicy = Callable[[TrainedMember, TrainedMember, BuildProgress], StopDecision]


# =====================================================================
# Comparator
# =====================================================================
def is_better(candidate: TrainedMember, best: TrainedMember) -> bool:
    """
    Lexicographic comparison, lower wins:

    1. combined binary error           (probability kinds)
    2. testing misrecognized count     (probability kinds)
    3. training misrecognized count    (probability kinds)
    4. combined precision error
    """
    if candidate.has_bin_stats and best.has_bin_stats:
        keys = (
            (candidate.combined_binary_error, best.combined_binary_error),
            (
                candidate.testing_bin_error.by_class[0].sum,
                best.testing_bin_error.by_class[0].sum,
            ),
            (
                candidate.training_bin_error.by_class[0].sum,
                best.training_bin_error.by_class[0].sum,
            ),
        )
        for cand, bst in keys:
            if cand > bst:
                return False
            if cand < bst:
                return True

    return candidate.combined_precision_error < best.combined_precision_error


# =====================================================================
# Stop policies
# =====================================================================
def make_default_stop_policy(regression_epsilon: Optional[float] = None) -> StopPolicy:
    """
    Stop once further iterations cannot help.

    - probability kinds: best has no classification error on either bundle and
      the candidate precision is getting worse
    - continuous: only when ``regression_epsilon`` is set and the best combined
      precision error is at or below it
    """

    def _policy(
        candidate: TrainedMember,
        best: TrainedMember,
        progress: BuildProgress,
    ) -> StopDecision:
        if candidate.has_bin_stats:
            if (
                best.training_bin_error.total.sum == 0
                and best.testing_bin_error.total.sum == 0
                and candidate.combined_precision_error > best.combined_precision_error
            ):
                return StopDecision.STOP
            return StopDecision.CONTINUE

        if regression_epsilon is not None:
            if best.combined_precision_error <= regression_epsilon:
                return StopDecision.STOP
        return StopDecision.CONTINUE

    return _policy


default_stop_policy: StopPolicy = make_default_stop_policy()


class PatienceStopPolicy:
    """
    Ends the running attempt after ``patience`` epochs without improvement,
    on top of a base policy whose STOP always wins.
    """

    def __init__(self, patience: int, base: StopPolicy = default_stop_policy):
        if patience < 1:
            raise ValueError(f"patience must be >= 1, got {patience}")
        self.patience = patience
        self.base = base

    def __call__(
        self,
        candidate: TrainedMember,
        best: TrainedMember,
        progress: BuildProgress,
    ) -> StopDecision:
        decision = self.base(candidate, best, progress)
        if decision is not StopDecision.CONTINUE:
            return decision
        if progress.attempt_epoch - progress.last_improvement_epoch >= self.patience:
            return StopDecision.NEXT_ATTEMPT
        return StopDecision.CONTINUE
