#!filepath: cvensemble/data/folds.py
from __future__ import annotations

from typing import List

import numpy as np
from sklearn.model_selection import KFold

from cvensemble.data.bundle import Fold, OutputKind, SampleBundle
from cvensemble.utils.errors import ConfigurationError


def split_folds(
    bundle: SampleBundle,
    fold_ratio: float,
    kind: OutputKind,
    threshold: float = 0.5,
) -> List[Fold]:
    """
    Partition ``bundle`` into near-equal folds of about ``fold_ratio * n``.

    - folds are pairwise disjoint and cover every sample exactly once
    - probability kinds keep the global class proportions per fold
    - no shuffling here: the caller shuffles once per repetition
    """
    if not 0.0 < fold_ratio <= 0.5:
        raise ConfigurationError(f"fold_ratio must be in (0, 0.5], got {fold_ratio}")

    n = len(bundle)
    fold_size = int(n * fold_ratio)
    if fold_size < 1:
        raise ConfigurationError(
            f"fold_ratio {fold_ratio} leaves less than 1 sample per fold (n={n})"
        )
    n_folds = n // fold_size
    if n_folds < 2:
        raise ConfigurationError(f"Bundle of {n} samples yields {n_folds} fold(s)")

    if kind is OutputKind.CONTINUOUS:
        kfold = KFold(n_splits=n_folds, shuffle=False)
        splits = [test for _, test in kfold.split(bundle.inputs)]
    else:
        splits = _stratified_indices(bundle.class_labels(kind, threshold), n_folds)

    folds: List[Fold] = []
    for test_idx in splits:
        test_idx = np.sort(test_idx)
        folds.append(Fold(bundle=bundle.subset(test_idx), indices=test_idx))
    return folds


def _stratified_indices(labels: np.ndarray, n_folds: int) -> List[np.ndarray]:
    """
    Deal the rows, grouped by class in their current order, round-robin
    into ``n_folds`` buckets.

    - every class count per fold differs by at most 1 between folds
    - fold sizes differ by at most 1
    - works for any n_folds <= n, however small the classes are
    """
    order = np.argsort(labels, kind="stable")
    return [order[i::n_folds] for i in range(n_folds)]
