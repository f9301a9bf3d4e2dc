#!filepath: cvensemble/data/filters.py
from __future__ import annotations

from typing import List, Protocol

import numpy as np


class FeatureFilter(Protocol):
    """
    Maps a normalized value back to its natural scale.
    """

    def apply_reverse(self, value: float) -> float: ...


class ScalerFeatureFilter:
    """
    One column of a fitted scikit-learn scaler (MinMaxScaler / StandardScaler).
    """

    def __init__(self, scaler, column: int = 0):
        if not hasattr(scaler, "inverse_transform"):
            raise TypeError(f"{type(scaler).__name__} has no inverse_transform")
        self.scaler = scaler
        self.column = column
        self._width = int(scaler.n_features_in_)

    def apply_reverse(self, value: float) -> float:
        row = np.zeros((1, self._width))
        row[0, self.column] = value
        return float(self.scaler.inverse_transform(row)[0, self.column])

    @classmethod
    def from_scaler(cls, scaler) -> List["ScalerFeatureFilter"]:
        """One filter per column the scaler was fitted on."""
        return [cls(scaler, i) for i in range(int(scaler.n_features_in_))]
