# tests/training/conftest.py
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pytest

from cvensemble.data.bundle import OutputKind
from cvensemble.stats.basic_stat import BasicStat, BinErrStat
from cvensemble.training.engines.train_result import TrainedMember

from fake_engines import ConstantModel


def _bin(errors_class0: Sequence[float], errors_class1: Sequence[float]) -> BinErrStat:
    stat = BinErrStat(threshold=0.5)
    for e in errors_class0:
        stat.by_class[0].add(e)
        stat.total.add(e)
    for e in errors_class1:
        stat.by_class[1].add(e)
        stat.total.add(e)
    return stat


@pytest.fixture
def member_factory():
    """
    Build a TrainedMember from plain figures.

    errors are absolute errors per sample (single output value).
    """

    def _make(
        *,
        kind: OutputKind = OutputKind.CONTINUOUS,
        value=0.0,
        training_errors: Sequence[float] = (0.1, 0.1),
        testing_errors: Sequence[float] = (0.1, 0.1),
        training_bin: Optional[tuple] = None,
        testing_bin: Optional[tuple] = None,
        name: str = "m",
    ) -> TrainedMember:
        value = np.atleast_1d(np.asarray(value, dtype=float))
        model = ConstantModel(len(value))
        model.value = value
        training_error = BasicStat(np.repeat(training_errors, len(value)))
        testing_error = BasicStat(np.repeat(testing_errors, len(value)))

        train_bin = test_bin = None
        combined_binary = 0.0
        if kind.has_binary_stats:
            train_bin = _bin(*(training_bin or ((0.0,), (0.0,))))
            test_bin = _bin(*(testing_bin or ((0.0,), (0.0,))))
            combined_binary = max(train_bin.total.sum, test_bin.total.sum)

        return TrainedMember(
            name=name,
            output_kind=kind,
            output_values=len(value),
            model=model,
            trainer_info="",
            training_error=training_error,
            testing_error=testing_error,
            combined_precision_error=max(training_error.mean, testing_error.mean),
            training_bin_error=train_bin,
            testing_bin_error=test_bin,
            combined_binary_error=combined_binary,
        )

    return _make


@pytest.fixture
def recorded_runs(monkeypatch):
    """
    Every driver run of a build: (scope, training bundle, testing bundle).
    """
    from types import SimpleNamespace

    from cvensemble.training import cluster_builder
    from cvensemble.training.member_builder import MemberBuilder

    runs = []

    class RecordingMemberBuilder(MemberBuilder):
        def __init__(self, name, cfg, kind, training, testing, rng, **kwargs):
            runs.append(
                SimpleNamespace(
                    name=name,
                    scope=kwargs["scope"],
                    training=training,
                    testing=testing,
                    training_ids=set(training.inputs[:, 0].tolist()),
                    testing_ids=set(testing.inputs[:, 0].tolist()),
                )
            )
            super().__init__(name, cfg, kind, training, testing, rng, **kwargs)

    monkeypatch.setattr(cluster_builder, "MemberBuilder", RecordingMemberBuilder)
    return runs
