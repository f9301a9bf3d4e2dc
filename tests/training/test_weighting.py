# tests/training/test_weighting.py
import numpy as np
import pytest

from cvensemble.config.cluster_config import WeightingConfig
from cvensemble.data.bundle import OutputKind
from cvensemble.training.weighting import compute_member_weights


def test_single_member_weight_is_exactly_one(member_factory):
    w = compute_member_weights([member_factory()], WeightingConfig())
    assert w.tolist() == [1.0]


def test_weights_are_normalized(member_factory):
    members = [
        member_factory(testing_errors=(0.1, 0.2)),
        member_factory(testing_errors=(0.5, 0.5, 0.1)),
        member_factory(training_errors=(0.0, 0.0, 0.0, 0.3)),
    ]
    w = compute_member_weights(members, WeightingConfig())
    assert np.all(w >= 0)
    assert w.sum() == pytest.approx(1.0, abs=1e-9)


def test_lower_testing_error_gets_higher_weight(member_factory):
    w = compute_member_weights(
        [member_factory(testing_errors=(0.1, 0.1)), member_factory(testing_errors=(0.3, 0.3))],
        WeightingConfig(),
    )
    assert w[0] > w[1]
    assert w.sum() == pytest.approx(1.0, abs=1e-9)


def test_more_training_samples_gets_higher_weight(member_factory):
    w = compute_member_weights(
        [member_factory(training_errors=(0.1,) * 8), member_factory(training_errors=(0.1,) * 2)],
        WeightingConfig(),
    )
    assert w[0] > w[1]


def test_fewer_misrecognitions_gets_higher_weight(member_factory):
    kind = OutputKind.SINGLE_PROBABILITY
    w = compute_member_weights(
        [
            member_factory(kind=kind, testing_bin=((0.0, 0.0), (0.0,))),
            member_factory(kind=kind, testing_bin=((1.0, 1.0), (0.0,))),
        ],
        WeightingConfig(),
    )
    assert w[0] > w[1]


def test_zero_macro_weights_give_uniform_weights(member_factory):
    cfg = WeightingConfig(training_group=0.0, testing_group=0.0)
    w = compute_member_weights(
        [member_factory(testing_errors=(0.1, 0.1)), member_factory(testing_errors=(0.9, 0.9))],
        cfg,
    )
    assert w.tolist() == pytest.approx([0.5, 0.5])
