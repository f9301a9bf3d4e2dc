#!filepath: cvensemble/stats/basic_stat.py
from __future__ import annotations

import math
from typing import Iterable

import numpy as np


class BasicStat:
    """
    Running accumulator（count / sum / mean / std / min / max）
    """

    __slots__ = ("count", "sum", "sum_sq", "min", "max")

    def __init__(self, values: Iterable[float] | None = None):
        self.count = 0
        self.sum = 0.0
        self.sum_sq = 0.0
        self.min = math.inf
        self.max = -math.inf
        if values is not None:
            self.add_many(values)

    def add(self, value: float) -> None:
        value = float(value)
        self.count += 1
        self.sum += value
        self.sum_sq += value * value
        self.min = min(self.min, value)
        self.max = max(self.max, value)

    def add_many(self, values: Iterable[float]) -> None:
        for v in np.asarray(values, dtype=float).ravel():
            self.add(v)

    def merge(self, other: "BasicStat") -> None:
        if other.count == 0:
            return
        self.count += other.count
        self.sum += other.sum
        self.sum_sq += other.sum_sq
        self.min = min(self.min, other.min)
        self.max = max(self.max, other.max)

    @property
    def mean(self) -> float:
        return self.sum / self.count if self.count else 0.0

    @property
    def variance(self) -> float:
        if self.count == 0:
            return 0.0
        return max(self.sum_sq / self.count - self.mean ** 2, 0.0)

    @property
    def std(self) -> float:
        return math.sqrt(self.variance)

    def copy(self) -> "BasicStat":
        clone = BasicStat()
        clone.merge(self)
        return clone

    def __repr__(self) -> str:
        if self.count == 0:
            return "BasicStat(count=0)"
        return (
            f"BasicStat(count={self.count}, mean={self.mean:.6g}, "
            f"std={self.std:.6g}, min={self.min:.6g}, max={self.max:.6g})"
        )


class BinErrStat:
    """
    Binary decision errors against a threshold.

    - by_class[0] : ideal false -> 1 when computed true  (misrecognized)
    - by_class[1] : ideal true  -> 1 when computed false (unrecognized)
    - total       : every decision, 1 on error
    """

    __slots__ = ("threshold", "by_class", "total")

    def __init__(self, threshold: float):
        self.threshold = threshold
        self.by_class = (BasicStat(), BasicStat())
        self.total = BasicStat()

    def update(self, computed, ideal) -> None:
        computed = np.asarray(computed, dtype=float).ravel()
        ideal = np.asarray(ideal, dtype=float).ravel()
        for c, i in zip(computed, ideal):
            ideal_bin = int(i >= self.threshold)
            err = 0.0 if int(c >= self.threshold) == ideal_bin else 1.0
            self.by_class[ideal_bin].add(err)
            self.total.add(err)

    def merge(self, other: "BinErrStat") -> None:
        self.by_class[0].merge(other.by_class[0])
        self.by_class[1].merge(other.by_class[1])
        self.total.merge(other.total)

    @property
    def misrecognized_rate(self) -> float:
        return self.by_class[0].mean

    @property
    def unrecognized_rate(self) -> float:
        return self.by_class[1].mean

    def __repr__(self) -> str:
        return (
            f"BinErrStat(errors={self.total.sum:g}/{self.total.count}, "
            f"mis={self.by_class[0].sum:g}, un={self.by_class[1].sum:g})"
        )
