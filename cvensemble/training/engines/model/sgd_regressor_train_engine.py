# cvensemble/training/engines/model/sgd_regressor_train_engine.py
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

import numpy as np
from sklearn.linear_model import SGDRegressor

from cvensemble.config.cluster_config import MemberConfig
from cvensemble.data.bundle import Interval, OutputKind, SampleBundle
from cvensemble.stats.basic_stat import BasicStat
from cvensemble.training.engines.model_train_engine import MemberModel, ModelTrainEngine
from cvensemble.training.engines.registry import register_member_engine
from cvensemble.utils.errors import ConfigurationError, NumericalInstabilityError

_SEED_HIGH = 2**31 - 1


class SGDRegressorModel(MemberModel):
    """
    One SGDRegressor per output value.
    """

    def __init__(self, params: Dict[str, Any], n_outputs: int):
        self.params = dict(params)
        try:
            self.estimators: List[SGDRegressor] = [
                SGDRegressor(**self.params) for _ in range(n_outputs)
            ]
        except TypeError as exc:
            raise ConfigurationError(f"Invalid SGDRegressor params: {exc}") from exc

    def randomize_weights(self, rng: np.random.Generator) -> None:
        self.estimators = [
            SGDRegressor(**{**self.params, "random_state": int(rng.integers(0, _SEED_HIGH))})
            for _ in self.estimators
        ]

    def compute_batch(self, inputs: np.ndarray) -> np.ndarray:
        inputs = np.asarray(inputs, dtype=float)
        return np.column_stack([est.predict(inputs) for est in self.estimators])

    def compute_weights_stat(self) -> BasicStat:
        return BasicStat(
            np.concatenate([np.r_[est.coef_, est.intercept_] for est in self.estimators])
        )

    def is_finite(self) -> bool:
        return all(
            np.isfinite(est.coef_).all() and np.isfinite(est.intercept_).all()
            for est in self.estimators
        )


class SGDRegressorTrainEngine(ModelTrainEngine):
    """
    SGDRegressor Epoch Train Engine（FINAL）

    One iteration == one partial_fit pass per output value.
    """

    def __init__(self, model: SGDRegressorModel, training: SampleBundle, **kwargs):
        self.training = training
        super().__init__(model, **kwargs)

    def train_epoch(self) -> None:
        model: SGDRegressorModel = self.model
        snapshot = copy.deepcopy(model.estimators)
        try:
            for i, est in enumerate(model.estimators):
                est.partial_fit(self.training.inputs, self.training.outputs[:, i])
        except ValueError as exc:
            # sklearn reports diverging SGD as a ValueError
            if "overflow" not in str(exc):
                raise
            model.estimators = snapshot
            raise NumericalInstabilityError(f"SGDRegressor diverged: {exc}") from exc

        if not model.is_finite():
            model.estimators = snapshot
            raise NumericalInstabilityError("SGDRegressor produced non-finite weights")


@register_member_engine("sgd_regressor")
def build_sgd_regressor(
    cfg: MemberConfig,
    kind: OutputKind,
    training: SampleBundle,
    rng: np.random.Generator,
    output_range: Optional[Interval] = None,
) -> SGDRegressorTrainEngine:
    if kind is not OutputKind.CONTINUOUS:
        raise ConfigurationError(
            f"sgd_regressor supports continuous output only, got {kind.value}"
        )
    model = SGDRegressorModel(cfg.params, training.output_dim)
    return SGDRegressorTrainEngine(
        model,
        training,
        max_attempts=cfg.attempts,
        max_attempt_epochs=cfg.epochs,
        rng=rng,
    )
