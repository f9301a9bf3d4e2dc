#!filepath: cvensemble/training/engines/model/__init__.py
"""
Builtin member engines.

Importing this package registers every engine below in the engine registry.
"""

from .sgd_regressor_train_engine import SGDRegressorModel, SGDRegressorTrainEngine
from .sgd_classifier_train_engine import SGDClassifierModel, SGDClassifierTrainEngine

__all__ = [
    "SGDRegressorModel",
    "SGDRegressorTrainEngine",
    "SGDClassifierModel",
    "SGDClassifierTrainEngine",
]
