# cvensemble/utils/vector_math.py
from __future__ import annotations

import numpy as np

# logit of exactly 0 or 1 is infinite
_P_EPS = 1e-12


def scale_to_sum(values: np.ndarray, new_sum: float = 1.0) -> np.ndarray:
    """
    Rescale non-negative values so that they sum to ``new_sum``.

    A zero-sum vector becomes uniform.
    """
    values = np.asarray(values, dtype=float)
    total = values.sum()
    if total == 0.0:
        return np.full(values.shape, new_sum / values.size)
    return values * (new_sum / total)


def revert_meaning(values: np.ndarray) -> np.ndarray:
    """
    Mirror values inside their own [min, max] range (lowest becomes highest).
    """
    values = np.asarray(values, dtype=float)
    return (values.max() + values.min()) - values


def softmax(values: np.ndarray) -> np.ndarray:
    values = np.asarray(values, dtype=float)
    exps = np.exp(values - values.max())
    return exps / exps.sum()


def mix_probabilities(probabilities: np.ndarray, weights: np.ndarray) -> float:
    """
    Weighted mixing of probabilities in log-odds space.

    - mixing p with itself returns p
    - a zero-weighted probability has no effect
    - the result stays in [0, 1]
    """
    p = np.clip(np.asarray(probabilities, dtype=float), _P_EPS, 1.0 - _P_EPS)
    w = np.asarray(weights, dtype=float)
    total_weight = w.sum()
    if total_weight <= 0.0:
        raise ValueError("Probability mixing requires a positive total weight")

    log_odds = np.log(p) - np.log1p(-p)
    # shift by the first log-odds keeps identical inputs exact
    base = log_odds[0]
    mixed = base + float(np.dot(w, log_odds - base)) / total_weight
    return float(1.0 / (1.0 + np.exp(-mixed)))


def weighted_mean(values: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """
    Weighted arithmetic mean along axis 0, shifted to the first row so that
    identical rows average to exactly that row.
    """
    values = np.asarray(values, dtype=float)
    w = np.asarray(weights, dtype=float)
    base = values[0]
    return base + (w @ (values - base)) / w.sum()
