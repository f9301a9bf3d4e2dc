#!filepath: cvensemble/data/bundle.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from cvensemble.utils.errors import ConfigurationError


# =====================================================================
# Output kind
# =====================================================================
class OutputKind(str, Enum):
    """
    Semantic of the ideal / computed output vector.
    """

    CONTINUOUS = "continuous"
    SINGLE_PROBABILITY = "single_probability"
    DISTRIBUTION = "distribution"

    @property
    def has_binary_stats(self) -> bool:
        return self is not OutputKind.CONTINUOUS

    @property
    def default_range(self) -> Optional["Interval"]:
        if self is OutputKind.CONTINUOUS:
            return None
        return PROBABILITY_RANGE


# =====================================================================
# Interval
# =====================================================================
@dataclass(frozen=True)
class Interval:
    low: float
    high: float

    def __post_init__(self):
        if not self.high > self.low:
            raise ConfigurationError(
                f"Interval requires low < high, got [{self.low}, {self.high}]"
            )

    @property
    def mid(self) -> float:
        return (self.low + self.high) / 2.0

    @property
    def span(self) -> float:
        return self.high - self.low

    def rescale(self, value, source: "Interval"):
        """Linearly map ``value`` from ``source`` into this interval."""
        if source == self:
            return value
        return self.low + (np.asarray(value, dtype=float) - source.low) * (
            self.span / source.span
        )


PROBABILITY_RANGE = Interval(0.0, 1.0)


# =====================================================================
# Sample bundle
# =====================================================================
class SampleBundle:
    """
    SampleBundle（FINAL）

    语义：
    - inputs  : (n, d_in)  float matrix
    - outputs : (n, d_out) float matrix, ideal values
    - row i of inputs pairs with row i of outputs
    """

    __slots__ = ("inputs", "outputs")

    def __init__(self, inputs, outputs):
        inputs = np.asarray(inputs, dtype=float)
        outputs = np.asarray(outputs, dtype=float)
        if inputs.ndim == 1:
            inputs = inputs.reshape(-1, 1)
        if outputs.ndim == 1:
            outputs = outputs.reshape(-1, 1)
        if inputs.ndim != 2 or outputs.ndim != 2:
            raise ConfigurationError("Bundle inputs and outputs must be 2-D")
        if inputs.shape[0] != outputs.shape[0]:
            raise ConfigurationError(
                f"Bundle has {inputs.shape[0]} inputs but {outputs.shape[0]} outputs"
            )
        self.inputs = inputs
        self.outputs = outputs

    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return self.inputs.shape[0]

    def __repr__(self) -> str:
        return (
            f"SampleBundle(n={len(self)}, inputs={self.input_dim}, "
            f"outputs={self.output_dim})"
        )

    @property
    def input_dim(self) -> int:
        return self.inputs.shape[1]

    @property
    def output_dim(self) -> int:
        return self.outputs.shape[1]

    # ------------------------------------------------------------------
    # Derivation (always copies, never views)
    # ------------------------------------------------------------------
    def subset(self, indices: Sequence[int]) -> "SampleBundle":
        idx = np.asarray(indices, dtype=int)
        return SampleBundle(self.inputs[idx].copy(), self.outputs[idx].copy())

    def copy(self) -> "SampleBundle":
        return SampleBundle(self.inputs.copy(), self.outputs.copy())

    def shuffled(self, rng: np.random.Generator) -> "SampleBundle":
        return self.subset(rng.permutation(len(self)))

    def with_inputs(self, inputs) -> "SampleBundle":
        return SampleBundle(inputs, self.outputs.copy())

    def append_features(self, extra) -> "SampleBundle":
        extra = np.asarray(extra, dtype=float)
        if extra.ndim == 1:
            extra = extra.reshape(-1, 1)
        return self.with_inputs(np.hstack([self.inputs, extra]))

    @staticmethod
    def concat(bundles: Iterable["SampleBundle"]) -> "SampleBundle":
        bundles = list(bundles)
        if not bundles:
            raise ConfigurationError("Cannot concatenate zero bundles")
        return SampleBundle(
            np.vstack([b.inputs for b in bundles]),
            np.vstack([b.outputs for b in bundles]),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def class_labels(self, kind: OutputKind, threshold: float) -> np.ndarray:
        """
        Integer class of every ideal output.

        SINGLE_PROBABILITY: 1 if value >= threshold else 0
        DISTRIBUTION: index of the hot class
        """
        if kind is OutputKind.SINGLE_PROBABILITY:
            return (self.outputs[:, 0] >= threshold).astype(int)
        if kind is OutputKind.DISTRIBUTION:
            return np.argmax(self.outputs, axis=1)
        raise ConfigurationError("Continuous outputs have no class labels")

    def check(self, kind: OutputKind, output_range: Optional[Interval] = None) -> None:
        if len(self) < 2:
            raise ConfigurationError(f"Bundle needs at least 2 samples, got {len(self)}")
        if not (np.isfinite(self.inputs).all() and np.isfinite(self.outputs).all()):
            raise ConfigurationError("Bundle contains NaN or infinite values")

        if kind is OutputKind.CONTINUOUS:
            return

        native = output_range or kind.default_range
        if self.outputs.min() < native.low or self.outputs.max() > native.high:
            raise ConfigurationError(
                f"{kind.value} outputs must lie in [{native.low}, {native.high}]"
            )

        if kind is OutputKind.SINGLE_PROBABILITY:
            if self.output_dim != 1:
                raise ConfigurationError(
                    f"single_probability expects 1 output value, got {self.output_dim}"
                )
            return

        # DISTRIBUTION
        if self.output_dim < 2:
            raise ConfigurationError("distribution expects at least 2 output values")
        probabilities = PROBABILITY_RANGE.rescale(self.outputs, native)
        if not np.allclose(probabilities.sum(axis=1), 1.0, atol=1e-6):
            raise ConfigurationError("distribution outputs must sum to 1 on every row")
        hot = (probabilities > 0.5).sum(axis=1)
        if not (hot == 1).all():
            raise ConfigurationError(
                "distribution outputs must have exactly one hot class on every row"
            )

    # ------------------------------------------------------------------
    # pandas
    # ------------------------------------------------------------------
    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        input_columns: List[str],
        output_columns: List[str],
    ) -> "SampleBundle":
        missing = [c for c in [*input_columns, *output_columns] if c not in df.columns]
        if missing:
            raise ConfigurationError(f"Missing columns: {missing}")
        return cls(
            df[input_columns].to_numpy(dtype=float),
            df[output_columns].to_numpy(dtype=float),
        )

    def to_frame(
        self,
        input_columns: Optional[List[str]] = None,
        output_columns: Optional[List[str]] = None,
    ) -> pd.DataFrame:
        input_columns = input_columns or [f"x{i}" for i in range(self.input_dim)]
        output_columns = output_columns or [f"y{i}" for i in range(self.output_dim)]
        return pd.DataFrame(
            np.hstack([self.inputs, self.outputs]),
            columns=[*input_columns, *output_columns],
        )


# =====================================================================
# Fold
# =====================================================================
@dataclass(frozen=True)
class Fold:
    """
    Disjoint slice of a bundle plus the row positions it was taken from.
    """

    bundle: SampleBundle
    indices: np.ndarray

    def __len__(self) -> int:
        return len(self.bundle)
