#!filepath: cvensemble/training/engines/model_train_engine.py
from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from cvensemble.stats.basic_stat import BasicStat


class MemberModel(ABC):
    """
    Abstract MemberModel (FINAL)

    A trainable predictor with a fixed input / output dimensionality.
    """

    @abstractmethod
    def compute_batch(self, inputs: np.ndarray) -> np.ndarray:
        """
        (n, d_in) -> (n, d_out)
        """
        raise NotImplementedError

    def compute(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=float).reshape(1, -1)
        return self.compute_batch(x)[0]

    @abstractmethod
    def compute_weights_stat(self) -> BasicStat:
        raise NotImplementedError

    @abstractmethod
    def randomize_weights(self, rng: np.random.Generator) -> None:
        raise NotImplementedError


class ModelTrainEngine(ABC):
    """
    Abstract ModelTrainEngine (FINAL)

    Iterative trainer of one MemberModel.

    语义：
    - iteration()    : one epoch of the current attempt, False when exhausted
    - next_attempt() : restart from randomized weights, False when no attempt left
    - attempt / attempt_epoch are 1-based once training started
    """

    def __init__(
        self,
        model: MemberModel,
        *,
        max_attempts: int,
        max_attempt_epochs: int,
        rng: np.random.Generator,
    ):
        self.model = model
        self.max_attempts = max_attempts
        self.max_attempt_epochs = max_attempt_epochs
        self.rng = rng

        self.attempt = 1
        self.attempt_epoch = 0
        self.model.randomize_weights(self.rng)

    @property
    def info_message(self) -> str:
        return (
            f"attempt {self.attempt}/{self.max_attempts}, "
            f"epoch {self.attempt_epoch}/{self.max_attempt_epochs}"
        )

    def next_attempt(self) -> bool:
        if self.attempt >= self.max_attempts:
            return False
        self.attempt += 1
        self.attempt_epoch = 0
        self.model.randomize_weights(self.rng)
        return True

    def iteration(self) -> bool:
        if self.attempt_epoch == self.max_attempt_epochs:
            if not self.next_attempt():
                return False
        self.attempt_epoch += 1
        self.train_epoch()
        return True

    @abstractmethod
    def train_epoch(self) -> None:
        """
        One pass over the training bundle.

        Must leave the model unchanged and raise NumericalInstabilityError
        when the update is not finite.
        """
        raise NotImplementedError
