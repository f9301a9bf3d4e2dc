#!filepath: cvensemble/training/chain.py
from __future__ import annotations

from time import perf_counter
from typing import List, Optional, Sequence

import numpy as np

from cvensemble.config.cluster_config import ChainConfig
from cvensemble.data.bundle import OutputKind, SampleBundle
from cvensemble.data.filters import FeatureFilter
from cvensemble.data.folds import split_folds
from cvensemble.training.cluster import Ensemble
from cvensemble.training.cluster_builder import EnsembleBuilder, fold_count
from cvensemble.training.engines.train_result import ScopeKey
from cvensemble.training.policies import (
    Comparator,
    StopPolicy,
    default_stop_policy,
    is_better,
)
from cvensemble.training.progress import ProgressScope, ProgressSink
from cvensemble.utils.errors import ConfigurationError, LogicError
from cvensemble.utils.logger import logs


class EnsembleChain:
    """
    EnsembleChain（FINAL）

    Stage i > 0 receives the input extended with the raw member outputs of
    stage i - 1; the chain output is the last stage output.
    """

    def __init__(self, name: str, kind: OutputKind, stages: Sequence[Ensemble]):
        if not stages:
            raise LogicError(f"[{name}] chain needs at least one stage")
        for stage in stages:
            if stage.kind is not kind:
                raise ConfigurationError(
                    f"[{name}] stage '{stage.name}' kind {stage.kind.value} "
                    f"!= chain kind {kind.value}"
                )
        self.name = name
        self.kind = kind
        self.stages: List[Ensemble] = list(stages)

    def __len__(self) -> int:
        return len(self.stages)

    def compute(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=float).ravel()
        output, precomputed = None, None
        for stage in self.stages:
            output, precomputed = stage.compute_detailed(x, precomputed)
        return output

    def compute_batch(self, inputs) -> np.ndarray:
        return np.vstack([self.compute(x) for x in np.asarray(inputs, dtype=float)])


class ChainBuilder(EnsembleBuilder):
    """
    ChainBuilder（FINAL）

    循环顺序（不可调换）：
        repetition -> stage -> held-out fold -> member config

    - stage 0 trains on the original folds
    - stage s + 1 fold t = original fold t + stage s outputs of the members
      that held fold t out
    - the stage loop only keeps the k folds actually used
    """

    def __init__(
        self,
        cfg: ChainConfig,
        rng: np.random.Generator,
        *,
        filters: Optional[Sequence[FeatureFilter]] = None,
        progress: Optional[ProgressSink] = None,
        comparator: Comparator = is_better,
        stop_policy: StopPolicy = default_stop_policy,
    ):
        if not cfg.stages:
            raise LogicError(f"[{cfg.name}] chain needs at least one stage")
        super().__init__(
            cfg.cross_validation,
            cfg.stages[0],
            rng,
            filters=filters,
            progress=progress,
            comparator=comparator,
            stop_policy=stop_policy,
        )
        for stage_cfg in cfg.stages:
            if not stage_cfg.members:
                raise ConfigurationError(f"[{stage_cfg.name}] no member configurations")
        self.chain_cfg = cfg

    def build(self, bundle: SampleBundle) -> EnsembleChain:
        t0 = perf_counter()
        cfg = self.chain_cfg
        bundle.check(cfg.output_kind, self.native_range)
        logs.info(
            f"[ChainBuilder] START {cfg.name} n={len(bundle)} stages={len(cfg.stages)} "
            f"ratio={self.cv.fold_ratio:.4g} folds={self.cv.folds} reps={self.cv.repetitions}"
        )

        stages = [
            Ensemble(s.name, s.output_kind, s.weighting, s.native_range()) for s in cfg.stages
        ]
        data = bundle.copy()
        for rep in range(self.cv.repetitions):
            if rep > 0:
                data = data.shuffled(self.rng)
            folds = split_folds(data, self.cv.fold_ratio, cfg.output_kind, self.threshold)
            k = fold_count(self.cv, len(folds))

            current = [f.bundle for f in folds]
            for s, stage_cfg in enumerate(cfg.stages):
                next_folds: List[SampleBundle] = []
                for t in range(k):
                    training = SampleBundle.concat(
                        b for j, b in enumerate(current) if j != t
                    )
                    testing = current[t]
                    outputs = []
                    for mi, member_cfg in enumerate(stage_cfg.members):
                        member = self.train_member(
                            member_cfg,
                            training,
                            testing,
                            ProgressScope(
                                ensemble_name=cfg.name,
                                repetition=rep,
                                max_repetitions=self.cv.repetitions,
                                stage=s,
                                max_stages=len(cfg.stages),
                                fold=t,
                                max_folds=k,
                                member=mi,
                                max_members=len(stage_cfg.members),
                            ),
                            stage_cfg=stage_cfg,
                        )
                        added = stages[s].add_member(
                            member, ScopeKey(rep, t), testing, self.filters
                        )
                        outputs.append(added.model.compute_batch(testing.inputs))
                    next_folds.append(folds[t].bundle.append_features(np.hstack(outputs)))
                current = next_folds

        for stage in stages:
            stage.finalize()

        logs.info(
            f"[ChainBuilder] DONE {cfg.name} members={[len(s) for s in stages]} "
            f"cost={perf_counter() - t0:.3f}s"
        )
        return EnsembleChain(cfg.name, cfg.output_kind, stages)


@logs.catch("build_chain failed")
def build_chain(
    chain_cfg: ChainConfig,
    bundle: SampleBundle,
    *,
    rng: Optional[np.random.Generator] = None,
    seed: int = 0,
    filters: Optional[List[FeatureFilter]] = None,
    progress: Optional[ProgressSink] = None,
    comparator: Comparator = is_better,
    stop_policy: StopPolicy = default_stop_policy,
) -> EnsembleChain:
    """
    Train a chain of ensembles; the cross-validation policy is the chain's own.
    """
    if rng is None:
        rng = np.random.default_rng(seed)
    return ChainBuilder(
        chain_cfg,
        rng,
        filters=filters,
        progress=progress,
        comparator=comparator,
        stop_policy=stop_policy,
    ).build(bundle)
