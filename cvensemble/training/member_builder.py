#!filepath: cvensemble/training/member_builder.py
from __future__ import annotations

import copy
from dataclasses import replace
from typing import Optional

import numpy as np

from cvensemble.config.cluster_config import MemberConfig
from cvensemble.data.bundle import Interval, OutputKind, SampleBundle
from cvensemble.stats.basic_stat import BasicStat, BinErrStat
from cvensemble.training.engines.registry import create_trainer
from cvensemble.training.engines.train_result import TrainedMember
from cvensemble.training.policies import (
    Comparator,
    StopDecision,
    StopPolicy,
    default_stop_policy,
    is_better,
)
from cvensemble.training.progress import (
    BuildProgress,
    MemberSnapshot,
    ProgressScope,
    ProgressSink,
)
from cvensemble.utils.errors import ConfigurationError, LogicError, NumericalInstabilityError
from cvensemble.utils.logger import logs


class MemberBuilder:
    """
    MemberBuilder（FINAL）

    Drives the iterative training of one member on a (training, testing)
    pair and keeps the best iteration found.

    语义：
    - advance() = exactly one trainer iteration + evaluation
    - the best candidate holds a private copy of the model
    - numerical instability is skipped once an iteration has succeeded;
      the skipped epoch is still reported with current = best
    """

    def __init__(
        self,
        name: str,
        cfg: MemberConfig,
        kind: OutputKind,
        training: SampleBundle,
        testing: SampleBundle,
        rng: np.random.Generator,
        *,
        output_range: Optional[Interval] = None,
        comparator: Comparator = is_better,
        stop_policy: StopPolicy = default_stop_policy,
        progress: Optional[ProgressSink] = None,
        scope: ProgressScope = ProgressScope(),
    ):
        if len(testing) < 2:
            raise ConfigurationError(
                f"[{name}] testing bundle needs at least 2 samples, got {len(testing)}"
            )
        if training.output_dim != testing.output_dim:
            raise ConfigurationError(
                f"[{name}] output length mismatch: training {training.output_dim} "
                f"vs testing {testing.output_dim}"
            )
        if training.input_dim != testing.input_dim:
            raise ConfigurationError(
                f"[{name}] input length mismatch: training {training.input_dim} "
                f"vs testing {testing.input_dim}"
            )
        training.check(kind, output_range)
        testing.check(kind, output_range)

        self.name = name
        self.kind = kind
        self.training = training
        self.testing = testing
        self.comparator = comparator
        self.stop_policy = stop_policy
        self.progress = progress
        self.scope = scope

        native = output_range or kind.default_range
        self.threshold = native.mid if native is not None else None

        self.trainer = create_trainer(cfg, kind, training, rng, output_range)

        self._best: Optional[TrainedMember] = None
        self._best_attempt = 0
        self._best_epoch = 0
        self._last_improvement_epoch = 0
        self._last_improvement_precision = 0.0
        self._last_improvement_binary = 0.0
        self._skipped = 0
        self._finished = False

    # ------------------------------------------------------------------
    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def best(self) -> Optional[TrainedMember]:
        return self._best

    def advance(self) -> bool:
        """
        One training iteration. Returns False once the driver is done.
        """
        if self._finished:
            return False

        try:
            if not self.trainer.iteration():
                self._finished = True
                return False
        except NumericalInstabilityError as exc:
            if self._best is None:
                raise
            self._skipped += 1
            logs.warning(
                f"[MemberBuilder] {self.name} skipped unstable iteration "
                f"(attempt {self.trainer.attempt}, epoch {self.trainer.attempt_epoch}): {exc}"
            )
            if self.progress is not None:
                best = self._best_snapshot()
                self.progress(
                    self._build_progress(
                        self.trainer.attempt, self.trainer.attempt_epoch, best, best
                    )
                )
            return True

        candidate = self._evaluate()
        attempt = self.trainer.attempt
        epoch = self.trainer.attempt_epoch

        # new attempt restarts improvement tracking
        if epoch == 1:
            self._last_improvement_epoch = epoch
            self._last_improvement_precision = candidate.combined_precision_error
            self._last_improvement_binary = candidate.combined_binary_error

        if self._best is None:
            self._adopt(candidate, attempt, epoch)

        if (
            candidate.has_bin_stats
            and candidate.combined_binary_error < self._last_improvement_binary
        ) or candidate.combined_precision_error < self._last_improvement_precision:
            self._last_improvement_precision = candidate.combined_precision_error
            self._last_improvement_binary = candidate.combined_binary_error
            self._last_improvement_epoch = epoch

        current_snapshot = MemberSnapshot.of(candidate, attempt, epoch)
        progress = self._build_progress(attempt, epoch, current_snapshot, self._best_snapshot())

        better = self.comparator(candidate, self._best)
        decision = self.stop_policy(candidate, self._best, progress)

        if better:
            self._adopt(candidate, attempt, epoch)
            progress = replace(progress, best=current_snapshot)

        if self.progress is not None:
            self.progress(progress)

        if decision is StopDecision.STOP:
            self._finished = True
            return False
        if decision is StopDecision.NEXT_ATTEMPT:
            if not self.trainer.next_attempt():
                self._finished = True
                return False
        return True

    def build(self) -> TrainedMember:
        while self.advance():
            pass
        return self.result()

    def result(self) -> TrainedMember:
        if self._best is None:
            raise LogicError(f"[{self.name}] no successful training iteration")
        member = replace(self._best, weights_stat=self._best.model.compute_weights_stat())
        logs.debug(
            f"[MemberBuilder] {self.name} DONE best attempt {self._best_attempt} "
            f"epoch {self._best_epoch} "
            f"precision={member.combined_precision_error:.6g} "
            f"binary={member.combined_binary_error:g} skipped={self._skipped}"
        )
        return member

    # ------------------------------------------------------------------
    def _best_snapshot(self) -> MemberSnapshot:
        return MemberSnapshot.of(self._best, self._best_attempt, self._best_epoch)

    def _build_progress(
        self,
        attempt: int,
        epoch: int,
        current: MemberSnapshot,
        best: MemberSnapshot,
    ) -> BuildProgress:
        return BuildProgress(
            member_name=self.name,
            scope=self.scope,
            attempt=attempt,
            max_attempts=self.trainer.max_attempts,
            attempt_epoch=epoch,
            max_attempt_epochs=self.trainer.max_attempt_epochs,
            current=current,
            best=best,
            last_improvement_epoch=self._last_improvement_epoch,
        )

    def _adopt(self, candidate: TrainedMember, attempt: int, epoch: int) -> None:
        self._best = replace(candidate, model=copy.deepcopy(candidate.model))
        self._best_attempt = attempt
        self._best_epoch = epoch

    def _evaluate(self) -> TrainedMember:
        model = self.trainer.model
        train_out = model.compute_batch(self.training.inputs)
        test_out = model.compute_batch(self.testing.inputs)

        training_error = BasicStat(np.abs(self.training.outputs - train_out))
        testing_error = BasicStat(np.abs(self.testing.outputs - test_out))
        combined_precision = max(training_error.mean, testing_error.mean)

        training_bin = testing_bin = None
        combined_binary = 0.0
        if self.kind.has_binary_stats:
            training_bin = BinErrStat(self.threshold)
            training_bin.update(train_out, self.training.outputs)
            testing_bin = BinErrStat(self.threshold)
            testing_bin.update(test_out, self.testing.outputs)
            combined_binary = max(training_bin.total.sum, testing_bin.total.sum)

        return TrainedMember(
            name=self.name,
            output_kind=self.kind,
            output_values=self.training.output_dim,
            model=model,
            trainer_info=self.trainer.info_message,
            training_error=training_error,
            testing_error=testing_error,
            combined_precision_error=combined_precision,
            training_bin_error=training_bin,
            testing_bin_error=testing_bin,
            combined_binary_error=combined_binary,
        )
