# cvensemble/training/engines/model/sgd_classifier_train_engine.py
from __future__ import annotations

import copy
from typing import Any, Dict, Optional

import numpy as np
from sklearn.linear_model import SGDClassifier

from cvensemble.config.cluster_config import MemberConfig
from cvensemble.data.bundle import PROBABILITY_RANGE, Interval, OutputKind, SampleBundle
from cvensemble.stats.basic_stat import BasicStat
from cvensemble.training.engines.model_train_engine import MemberModel, ModelTrainEngine
from cvensemble.training.engines.registry import register_member_engine
from cvensemble.utils.errors import ConfigurationError, NumericalInstabilityError

_SEED_HIGH = 2**31 - 1

# losses exposing predict_proba
_PROBABILISTIC_LOSSES = ("log_loss", "modified_huber")


class SGDClassifierModel(MemberModel):
    """
    SGDClassifier emitting class probabilities in the native output range.

    - single_probability : P(class 1), one value
    - distribution       : one probability per class
    """

    def __init__(
        self,
        params: Dict[str, Any],
        kind: OutputKind,
        n_outputs: int,
        native_range: Interval,
    ):
        self.params = {"loss": "log_loss", **params}
        if self.params["loss"] not in _PROBABILISTIC_LOSSES:
            raise ConfigurationError(
                f"sgd_classifier loss must be one of {_PROBABILISTIC_LOSSES}, "
                f"got '{self.params['loss']}'"
            )
        self.kind = kind
        self.native_range = native_range
        self.classes = np.arange(2 if kind is OutputKind.SINGLE_PROBABILITY else n_outputs)
        try:
            self.estimator = SGDClassifier(**self.params)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid SGDClassifier params: {exc}") from exc

    def randomize_weights(self, rng: np.random.Generator) -> None:
        self.estimator = SGDClassifier(
            **{**self.params, "random_state": int(rng.integers(0, _SEED_HIGH))}
        )

    def compute_batch(self, inputs: np.ndarray) -> np.ndarray:
        proba = self.estimator.predict_proba(np.asarray(inputs, dtype=float))
        if self.kind is OutputKind.SINGLE_PROBABILITY:
            proba = proba[:, 1:2]
        return self.native_range.rescale(proba, PROBABILITY_RANGE)

    def compute_weights_stat(self) -> BasicStat:
        return BasicStat(np.r_[self.estimator.coef_.ravel(), self.estimator.intercept_])

    def is_finite(self) -> bool:
        return bool(
            np.isfinite(self.estimator.coef_).all()
            and np.isfinite(self.estimator.intercept_).all()
        )


class SGDClassifierTrainEngine(ModelTrainEngine):
    """
    SGDClassifier Epoch Train Engine（FINAL）
    """

    def __init__(self, model: SGDClassifierModel, training: SampleBundle, **kwargs):
        self.training = training
        self.labels = training.class_labels(model.kind, model.native_range.mid)
        super().__init__(model, **kwargs)

    def train_epoch(self) -> None:
        model: SGDClassifierModel = self.model
        snapshot = copy.deepcopy(model.estimator)
        try:
            model.estimator.partial_fit(
                self.training.inputs, self.labels, classes=model.classes
            )
        except ValueError as exc:
            if "overflow" not in str(exc):
                raise
            model.estimator = snapshot
            raise NumericalInstabilityError(f"SGDClassifier diverged: {exc}") from exc

        if not model.is_finite():
            model.estimator = snapshot
            raise NumericalInstabilityError("SGDClassifier produced non-finite weights")


@register_member_engine("sgd_classifier")
def build_sgd_classifier(
    cfg: MemberConfig,
    kind: OutputKind,
    training: SampleBundle,
    rng: np.random.Generator,
    output_range: Optional[Interval] = None,
) -> SGDClassifierTrainEngine:
    if not kind.has_binary_stats:
        raise ConfigurationError("sgd_classifier does not support continuous output")
    model = SGDClassifierModel(
        cfg.params,
        kind,
        training.output_dim,
        output_range or kind.default_range,
    )
    return SGDClassifierTrainEngine(
        model,
        training,
        max_attempts=cfg.attempts,
        max_attempt_epochs=cfg.epochs,
        rng=rng,
    )
