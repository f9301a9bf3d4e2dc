#!filepath: cvensemble/training/cluster.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

import numpy as np

from cvensemble.config.cluster_config import StackingMode, WeightingConfig
from cvensemble.data.bundle import PROBABILITY_RANGE, Interval, OutputKind, SampleBundle
from cvensemble.data.filters import FeatureFilter
from cvensemble.stats.basic_stat import BasicStat, BinErrStat
from cvensemble.training.engines.train_result import ScopeKey, TrainedMember
from cvensemble.training.weighting import compute_member_weights
from cvensemble.utils.errors import ConfigurationError, LogicError
from cvensemble.utils.vector_math import mix_probabilities, weighted_mean

# (scope, raw member output)
MemberOutput = Tuple[ScopeKey, np.ndarray]


@dataclass
class EnsembleErrorStats:
    """
    Held-out fold errors accumulated over every added member.
    """

    natural_precision: BasicStat = field(default_factory=BasicStat)
    normalized_precision: BasicStat = field(default_factory=BasicStat)
    bin_error: Optional[BinErrStat] = None


class Ensemble:
    """
    Ensemble / Cluster（FINAL）

    生命周期：
        empty -> accumulating (add_member*) -> finalized (compute only)

    - members keep insertion order
    - weights exist only after finalize()
    - an optional stacking tier corrects the first tier output
    """

    def __init__(
        self,
        name: str,
        kind: OutputKind,
        weighting: Optional[WeightingConfig] = None,
        output_range: Optional[Interval] = None,
    ):
        if output_range is not None and kind is OutputKind.CONTINUOUS:
            raise ConfigurationError("output_range applies to probability kinds only")

        self.name = name
        self.kind = kind
        self.weighting = weighting or WeightingConfig()
        self.output_range = output_range or kind.default_range
        self.threshold = self.output_range.mid if self.output_range is not None else None

        self.members: List[TrainedMember] = []
        self.output_dim: Optional[int] = None
        self.input_dim: Optional[int] = None
        self.error_stats = EnsembleErrorStats(
            bin_error=BinErrStat(self.threshold) if kind.has_binary_stats else None
        )

        self._weights: Optional[np.ndarray] = None
        self._stacking: Optional["Ensemble"] = None
        self._stacking_mode: Optional[StackingMode] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> str:
        if self._weights is not None:
            return "finalized"
        return "accumulating" if self.members else "empty"

    @property
    def finalized(self) -> bool:
        return self._weights is not None

    @property
    def weights(self) -> np.ndarray:
        if self._weights is None:
            raise LogicError(f"[{self.name}] weights requested before finalize()")
        return self._weights.copy()

    @property
    def stacking_tier(self) -> Optional["Ensemble"]:
        return self._stacking

    @property
    def stacking_mode(self) -> Optional[StackingMode]:
        return self._stacking_mode

    def __len__(self) -> int:
        return len(self.members)

    def __repr__(self) -> str:
        return f"Ensemble(name={self.name!r}, kind={self.kind.value}, members={len(self)}, state={self.state})"

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------
    def add_member(
        self,
        member: TrainedMember,
        scope: ScopeKey,
        test_bundle: SampleBundle,
        filters: Optional[Sequence[FeatureFilter]] = None,
    ) -> TrainedMember:
        """
        Append a trained member and account its held-out fold errors.
        """
        if self.finalized:
            raise LogicError(f"[{self.name}] cannot add members after finalize()")
        if member.output_kind is not self.kind:
            raise ConfigurationError(
                f"[{self.name}] member kind {member.output_kind.value} "
                f"!= ensemble kind {self.kind.value}"
            )
        if self.output_dim is not None and member.output_values != self.output_dim:
            raise ConfigurationError(
                f"[{self.name}] member output length {member.output_values} "
                f"!= ensemble output length {self.output_dim}"
            )
        if self.input_dim is not None and test_bundle.input_dim != self.input_dim:
            raise ConfigurationError(
                f"[{self.name}] member input length {test_bundle.input_dim} "
                f"!= ensemble input length {self.input_dim}"
            )
        if test_bundle.output_dim != member.output_values:
            raise ConfigurationError(
                f"[{self.name}] test bundle output length {test_bundle.output_dim} "
                f"!= member output length {member.output_values}"
            )
        if filters is not None and len(filters) != member.output_values:
            raise ConfigurationError(
                f"[{self.name}] {len(filters)} filters for {member.output_values} outputs"
            )

        member = replace(member, scope=scope)
        computed = member.model.compute_batch(test_bundle.inputs)
        ideal = test_bundle.outputs

        self.error_stats.normalized_precision.add_many(np.abs(ideal - computed))
        if filters is None:
            self.error_stats.natural_precision.add_many(np.abs(ideal - computed))
        else:
            for col, flt in enumerate(filters):
                for c, i in zip(computed[:, col], ideal[:, col]):
                    self.error_stats.natural_precision.add(
                        abs(flt.apply_reverse(i) - flt.apply_reverse(c))
                    )
        if self.error_stats.bin_error is not None:
            self.error_stats.bin_error.update(computed, ideal)

        self.output_dim = member.output_values
        self.input_dim = test_bundle.input_dim
        self.members.append(member)
        return member

    def finalize(self) -> None:
        if self.finalized:
            raise LogicError(f"[{self.name}] finalize() called twice")
        if not self.members:
            raise LogicError(f"[{self.name}] cannot finalize an empty ensemble")
        self._weights = compute_member_weights(self.members, self.weighting)

    def attach_stacking_tier(self, tier: "Ensemble", mode: StackingMode) -> None:
        if not self.finalized:
            raise LogicError(f"[{self.name}] stacking tier needs a finalized first tier")
        if self._stacking is not None:
            raise LogicError(f"[{self.name}] stacking tier already attached")
        if not tier.finalized:
            raise LogicError(f"[{self.name}] stacking tier must be finalized")
        if tier.kind is not self.kind or tier.output_dim != self.output_dim:
            raise ConfigurationError(
                f"[{self.name}] stacking tier output does not match the first tier"
            )
        self._stacking = tier
        self._stacking_mode = StackingMode(mode)

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------
    def compute(self, x) -> np.ndarray:
        output, _ = self.compute_detailed(x)
        return output

    def compute_batch(self, inputs) -> np.ndarray:
        return np.vstack([self.compute(x) for x in np.asarray(inputs, dtype=float)])

    def compute_detailed(
        self,
        x,
        precomputed: Optional[Sequence[MemberOutput]] = None,
    ) -> Tuple[np.ndarray, List[MemberOutput]]:
        """
        Final output plus every member's raw output tagged by its scope.

        ``precomputed`` holds the scope-tagged outputs of a previous chain
        stage; each member receives ``x`` extended with the ones sharing its
        own scope.
        """
        combined, member_outputs = self._compute_first_tier(x, precomputed)
        if self._stacking is None:
            return combined, member_outputs

        second = self._stacking.compute(self._stacking_input(combined, member_outputs))
        if self._stacking_mode is StackingMode.SECOND_TIER_ONLY:
            return second, member_outputs
        return (combined + second) / 2.0, member_outputs

    def stacking_features(self, inputs) -> np.ndarray:
        """
        [first tier combined output, member outputs...] for every input row.
        """
        rows = []
        for x in np.asarray(inputs, dtype=float):
            combined, member_outputs = self._compute_first_tier(x, None)
            rows.append(self._stacking_input(combined, member_outputs))
        return np.vstack(rows)

    # ------------------------------------------------------------------
    def _compute_first_tier(self, x, precomputed):
        if not self.finalized:
            raise LogicError(f"[{self.name}] compute() before finalize()")

        x = np.asarray(x, dtype=float).ravel()
        member_outputs: List[MemberOutput] = []
        for m in self.members:
            if precomputed is None:
                member_input = x
            else:
                extra = [out for key, out in precomputed if key == m.scope]
                member_input = np.concatenate([x, *extra])
            member_outputs.append(
                (m.scope, np.asarray(m.model.compute(member_input), dtype=float))
            )

        outputs = np.vstack([out for _, out in member_outputs])
        return self._combine(outputs), member_outputs

    @staticmethod
    def _stacking_input(combined: np.ndarray, member_outputs: Sequence[MemberOutput]) -> np.ndarray:
        return np.concatenate([combined, *[out for _, out in member_outputs]])

    def _combine(self, outputs: np.ndarray) -> np.ndarray:
        if self.kind is OutputKind.CONTINUOUS:
            return weighted_mean(outputs, self._weights)

        probabilities = np.clip(
            PROBABILITY_RANGE.rescale(outputs, self.output_range), 0.0, 1.0
        )
        mixed = np.array(
            [
                mix_probabilities(probabilities[:, col], self._weights)
                for col in range(probabilities.shape[1])
            ]
        )
        if self.kind is OutputKind.DISTRIBUTION:
            mixed = mixed / mixed.sum()
        return self.output_range.rescale(mixed, PROBABILITY_RANGE)
