#!filepath: cvensemble/training/weighting.py
from __future__ import annotations

from typing import Sequence

import numpy as np

from cvensemble.config.cluster_config import WeightingConfig
from cvensemble.training.engines.train_result import TrainedMember
from cvensemble.utils.vector_math import revert_meaning, scale_to_sum, softmax


def _recognized(members: Sequence[TrainedMember], attr: str, cls: int) -> np.ndarray:
    # share of correct decisions within one ideal class
    return np.array(
        [1.0 - getattr(m, attr).by_class[cls].mean for m in members], dtype=float
    )


def compute_member_weights(
    members: Sequence[TrainedMember],
    cfg: WeightingConfig,
) -> np.ndarray:
    """
    Reliability weights of ensemble members, non-negative and summing to 1.

    Per member and per bundle (training / testing):
    - sample count                    (more is better)
    - average precision error         (reverted: less is better)
    - misrecognized / unrecognized    (probability kinds only, as success rates)

    Every metric vector is scaled to sum 1 before the macro-weighted sum, then
    softmax turns scores into weights.
    """
    n = len(members)
    if n == 0:
        raise ValueError("No members to weight")
    if n == 1:
        return np.ones(1)

    def group(samples: str, error: str, bin_error: str) -> np.ndarray:
        score = cfg.samples_count * scale_to_sum(
            np.array([getattr(m, samples) for m in members], dtype=float)
        )
        score = score + cfg.precision * scale_to_sum(
            revert_meaning(np.array([getattr(m, error).mean for m in members]))
        )
        if all(m.has_bin_stats for m in members):
            score = score + cfg.misrecognized * scale_to_sum(
                _recognized(members, bin_error, 0)
            )
            score = score + cfg.unrecognized * scale_to_sum(
                _recognized(members, bin_error, 1)
            )
        return score

    scores = cfg.training_group * group(
        "training_samples", "training_error", "training_bin_error"
    ) + cfg.testing_group * group(
        "testing_samples", "testing_error", "testing_bin_error"
    )
    return softmax(scores)
