#!filepath: cvensemble/training/cluster_builder.py
from __future__ import annotations

from time import perf_counter
from typing import List, Optional, Sequence

import numpy as np

from cvensemble.config.cluster_config import (
    ClusterConfig,
    CrossValidationConfig,
    MemberConfig,
)
from cvensemble.data.bundle import Interval, OutputKind, SampleBundle
from cvensemble.data.filters import FeatureFilter
from cvensemble.data.folds import split_folds
from cvensemble.training.cluster import Ensemble
from cvensemble.training.engines.train_result import ScopeKey, TrainedMember
from cvensemble.training.member_builder import MemberBuilder
from cvensemble.training.policies import (
    Comparator,
    StopPolicy,
    default_stop_policy,
    is_better,
)
from cvensemble.training.progress import ProgressScope, ProgressSink
from cvensemble.utils.errors import ConfigurationError
from cvensemble.utils.logger import logs


def fold_count(cv: CrossValidationConfig, produced: int) -> int:
    """Number of held-out folds used: 0 means every fold produced."""
    if cv.folds <= 0:
        return produced
    return min(cv.folds, produced)


class EnsembleBuilder:
    """
    EnsembleBuilder（FINAL）

    repetitions x held-out folds x member configs -> one finalized Ensemble.

    语义：
    - the bundle is reshuffled with the shared rng between repetitions only
    - every member trains on the union of the other folds
    - every member is evaluated on its own held-out fold
    """

    def __init__(
        self,
        cv: CrossValidationConfig,
        cfg: ClusterConfig,
        rng: np.random.Generator,
        *,
        filters: Optional[Sequence[FeatureFilter]] = None,
        progress: Optional[ProgressSink] = None,
        comparator: Comparator = is_better,
        stop_policy: StopPolicy = default_stop_policy,
    ):
        if not cfg.members:
            raise ConfigurationError(f"[{cfg.name}] no member configurations")
        self.cv = cv
        self.cfg = cfg
        self.rng = rng
        self.filters = filters
        self.progress = progress
        self.comparator = comparator
        self.stop_policy = stop_policy

    @property
    def kind(self) -> OutputKind:
        return self.cfg.output_kind

    @property
    def native_range(self) -> Optional[Interval]:
        return self.cfg.native_range()

    @property
    def threshold(self) -> float:
        native = self.native_range
        return native.mid if native is not None else 0.5

    # ------------------------------------------------------------------
    def build(self, bundle: SampleBundle) -> Ensemble:
        t0 = perf_counter()
        bundle.check(self.kind, self.native_range)
        logs.info(
            f"[EnsembleBuilder] START {self.cfg.name} n={len(bundle)} "
            f"kind={self.kind.value} members={len(self.cfg.members)} "
            f"ratio={self.cv.fold_ratio:.4g} folds={self.cv.folds} reps={self.cv.repetitions}"
        )

        ensemble = Ensemble(
            self.cfg.name, self.kind, self.cfg.weighting, self.native_range
        )
        data = bundle.copy()
        for rep in range(self.cv.repetitions):
            if rep > 0:
                data = data.shuffled(self.rng)
            folds = split_folds(data, self.cv.fold_ratio, self.kind, self.threshold)
            k = fold_count(self.cv, len(folds))

            for t in range(k):
                training = SampleBundle.concat(f.bundle for j, f in enumerate(folds) if j != t)
                testing = folds[t].bundle
                for mi, member_cfg in enumerate(self.cfg.members):
                    member = self.train_member(
                        member_cfg,
                        training,
                        testing,
                        ProgressScope(
                            ensemble_name=self.cfg.name,
                            repetition=rep,
                            max_repetitions=self.cv.repetitions,
                            fold=t,
                            max_folds=k,
                            member=mi,
                            max_members=len(self.cfg.members),
                        ),
                    )
                    ensemble.add_member(member, ScopeKey(rep, t), testing, self.filters)

        ensemble.finalize()
        if self.cfg.stacking is not None:
            self._attach_stacking(ensemble, bundle)

        logs.info(
            f"[EnsembleBuilder] DONE {self.cfg.name} members={len(ensemble)} "
            f"cost={perf_counter() - t0:.3f}s"
        )
        return ensemble

    def train_member(
        self,
        member_cfg: MemberConfig,
        training: SampleBundle,
        testing: SampleBundle,
        scope: ProgressScope,
        stage_cfg: Optional[ClusterConfig] = None,
    ) -> TrainedMember:
        cfg = stage_cfg or self.cfg
        name = (
            f"{cfg.name}/r{scope.repetition}s{scope.stage}f{scope.fold}"
            f"/{member_cfg.family}#{scope.member}"
        )
        return MemberBuilder(
            name,
            member_cfg,
            cfg.output_kind,
            training,
            testing,
            self.rng,
            output_range=cfg.native_range(),
            comparator=self.comparator,
            stop_policy=self.stop_policy,
            progress=self.progress,
            scope=scope,
        ).build()

    # ------------------------------------------------------------------
    def _attach_stacking(self, ensemble: Ensemble, bundle: SampleBundle) -> None:
        """
        Second tier trained on [combined, member outputs...] -> ideal output.
        """
        stacking = self.cfg.stacking
        secondary = SampleBundle(ensemble.stacking_features(bundle.inputs), bundle.outputs.copy())
        tier_cfg = ClusterConfig(
            name=f"{self.cfg.name}-stacking",
            output_kind=self.kind,
            members=stacking.members,
            weighting=stacking.weighting,
            output_range=self.cfg.output_range,
        )
        tier = EnsembleBuilder(
            stacking.cross_validation,
            tier_cfg,
            self.rng,
            filters=self.filters,
            progress=self.progress,
            comparator=self.comparator,
            stop_policy=self.stop_policy,
        ).build(secondary)
        ensemble.attach_stacking_tier(tier, stacking.mode)
        logs.info(
            f"[EnsembleBuilder] stacking tier attached to {self.cfg.name} "
            f"mode={stacking.mode.value} members={len(tier)}"
        )


# =====================================================================
# Public entry point
# =====================================================================
@logs.catch("build_ensemble failed")
def build_ensemble(
    policy: CrossValidationConfig,
    cluster_cfg: ClusterConfig,
    bundle: SampleBundle,
    *,
    rng: Optional[np.random.Generator] = None,
    seed: int = 0,
    filters: Optional[List[FeatureFilter]] = None,
    progress: Optional[ProgressSink] = None,
    comparator: Comparator = is_better,
    stop_policy: StopPolicy = default_stop_policy,
) -> Ensemble:
    """
    Train and finalize one ensemble with repeated k-fold cross-validation.

    ``rng`` is the single random source of the whole build; ``seed`` is used
    only when no generator is given.
    """
    if rng is None:
        rng = np.random.default_rng(seed)
    return EnsembleBuilder(
        policy,
        cluster_cfg,
        rng,
        filters=filters,
        progress=progress,
        comparator=comparator,
        stop_policy=stop_policy,
    ).build(bundle)
