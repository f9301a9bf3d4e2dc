# tests/training/test_cluster.py
from dataclasses import replace

import numpy as np
import pytest
from sklearn.preprocessing import MinMaxScaler

from cvensemble.config.cluster_config import StackingMode
from cvensemble.data.bundle import Interval, OutputKind, SampleBundle
from cvensemble.data.filters import ScalerFeatureFilter
from cvensemble.stats.basic_stat import BasicStat
from cvensemble.training.cluster import Ensemble
from cvensemble.training.engines.model_train_engine import MemberModel
from cvensemble.training.engines.train_result import ScopeKey
from cvensemble.utils.errors import ConfigurationError, LogicError

C = OutputKind.CONTINUOUS
S = OutputKind.SINGLE_PROBABILITY
D = OutputKind.DISTRIBUTION


class InputSumModel(MemberModel):
    def compute_batch(self, inputs):
        return np.asarray(inputs, dtype=float).sum(axis=1, keepdims=True)

    def compute_weights_stat(self):
        return BasicStat()

    def randomize_weights(self, rng):
        pass


def _test_bundle(ideal, n=2):
    ideal = np.atleast_1d(np.asarray(ideal, dtype=float))
    return SampleBundle(np.zeros((n, 1)), np.tile(ideal, (n, 1)))


def _ensemble(member_factory, kind, values, **kwargs):
    ens = Ensemble("e", kind, **kwargs)
    for i, v in enumerate(values):
        member = member_factory(kind=kind, value=v, testing_errors=(0.1 * (i + 1),) * 2)
        ens.add_member(member, ScopeKey(0, i), _test_bundle(v))
    return ens


# ----------------------------------------------------------------------
# state machine
# ----------------------------------------------------------------------
def test_compute_before_finalize_is_logic_error(member_factory):
    ens = _ensemble(member_factory, C, [0.1])
    with pytest.raises(LogicError):
        ens.compute([0.0])


def test_finalize_twice_is_logic_error(member_factory):
    ens = _ensemble(member_factory, C, [0.1])
    ens.finalize()
    with pytest.raises(LogicError):
        ens.finalize()


def test_state_transitions(member_factory):
    ens = Ensemble("e", C)
    assert ens.state == "empty"
    with pytest.raises(LogicError):
        ens.finalize()

    ens.add_member(member_factory(), ScopeKey(0, 0), _test_bundle(0.0))
    assert ens.state == "accumulating"
    with pytest.raises(LogicError):
        _ = ens.weights

    ens.finalize()
    assert ens.state == "finalized"
    with pytest.raises(LogicError):
        ens.add_member(member_factory(), ScopeKey(0, 1), _test_bundle(0.0))


def test_weights_are_a_copy(member_factory):
    ens = _ensemble(member_factory, C, [0.1, 0.2])
    ens.finalize()
    w = ens.weights
    w[:] = 0.0
    assert ens.weights.sum() == pytest.approx(1.0)


# ----------------------------------------------------------------------
# member addition
# ----------------------------------------------------------------------
def test_member_kind_must_match(member_factory):
    ens = Ensemble("e", C)
    with pytest.raises(ConfigurationError):
        ens.add_member(member_factory(kind=S, value=0.5), ScopeKey(0, 0), _test_bundle(0.5))


def test_member_output_length_must_match(member_factory):
    ens = Ensemble("e", C)
    ens.add_member(member_factory(value=[0.0, 0.0]), ScopeKey(0, 0), _test_bundle([0.0, 0.0]))
    with pytest.raises(ConfigurationError):
        ens.add_member(member_factory(value=0.0), ScopeKey(0, 1), _test_bundle(0.0))


def test_member_input_length_must_match(member_factory):
    ens = Ensemble("e", C)
    ens.add_member(member_factory(), ScopeKey(0, 0), _test_bundle(0.0))
    assert ens.input_dim == 1

    wide = SampleBundle(np.zeros((2, 3)), np.zeros(2))
    with pytest.raises(ConfigurationError):
        ens.add_member(member_factory(), ScopeKey(0, 1), wide)
    assert len(ens) == 1


def test_add_member_sets_scope_and_error_stats(member_factory):
    ens = Ensemble("e", S)
    added = ens.add_member(
        member_factory(kind=S, value=0.8), ScopeKey(2, 3), _test_bundle(1.0, n=4)
    )
    assert added.scope == ScopeKey(2, 3)
    assert ens.members[0].scope == ScopeKey(2, 3)
    assert ens.error_stats.normalized_precision.count == 4
    assert ens.error_stats.normalized_precision.mean == pytest.approx(0.2)
    assert ens.error_stats.bin_error.total.sum == 0


def test_natural_error_stats_use_filters(member_factory):
    scaler = MinMaxScaler().fit(np.array([[0.0], [100.0]]))
    ens = Ensemble("e", C)
    ens.add_member(
        member_factory(value=0.5),
        ScopeKey(0, 0),
        _test_bundle(0.6),
        ScalerFeatureFilter.from_scaler(scaler),
    )
    assert ens.error_stats.normalized_precision.mean == pytest.approx(0.1)
    assert ens.error_stats.natural_precision.mean == pytest.approx(10.0)


# ----------------------------------------------------------------------
# combination
# ----------------------------------------------------------------------
def test_continuous_identical_outputs_combine_exactly(member_factory):
    ens = _ensemble(member_factory, C, [[0.3, -1.7]] * 3)
    ens.finalize()
    assert ens.compute([0.0]).tolist() == [0.3, -1.7]


def test_continuous_combination_is_weighted_mean(member_factory):
    ens = _ensemble(member_factory, C, [0.0, 1.0])
    ens.finalize()
    w = ens.weights
    assert ens.compute([0.0])[0] == pytest.approx(w[1])


def test_probability_identical_outputs_combine(member_factory):
    ens = _ensemble(member_factory, S, [0.7, 0.7])
    ens.finalize()
    assert ens.compute([0.0])[0] == pytest.approx(0.7, abs=1e-9)


def test_probability_native_range(member_factory):
    ens = _ensemble(member_factory, S, [0.4, 0.4], output_range=Interval(-1.0, 1.0))
    ens.finalize()
    assert ens.threshold == 0.0
    assert ens.compute([0.0])[0] == pytest.approx(0.4, abs=1e-9)


def test_distribution_single_one_hot_member(member_factory):
    ens = _ensemble(member_factory, D, [[0.0, 1.0, 0.0]])
    ens.finalize()
    out = ens.compute([0.0])
    assert out[1] >= out[0]
    assert out[1] >= out[2]
    assert out.sum() == pytest.approx(1.0)


def test_distribution_output_is_renormalized(member_factory):
    ens = _ensemble(member_factory, D, [[0.2, 0.5, 0.3], [0.6, 0.1, 0.3], [0.1, 0.1, 0.8]])
    ens.finalize()
    out = ens.compute([0.0])
    assert out.sum() == pytest.approx(1.0)
    assert np.all(out >= 0.0)


def test_compute_detailed_routes_precomputed_by_scope(member_factory):
    ens = Ensemble("e", C)
    for fold in range(2):
        member = replace(member_factory(), model=InputSumModel())
        ens.add_member(member, ScopeKey(0, fold), SampleBundle(np.zeros((2, 2)), np.zeros(2)))
    ens.finalize()

    precomputed = [(ScopeKey(0, 0), np.array([1.0])), (ScopeKey(0, 1), np.array([10.0]))]
    _, outputs = ens.compute_detailed([0.5], precomputed)

    assert [key for key, _ in outputs] == [ScopeKey(0, 0), ScopeKey(0, 1)]
    assert outputs[0][1].tolist() == [1.5]
    assert outputs[1][1].tolist() == [10.5]


# ----------------------------------------------------------------------
# stacking tier
# ----------------------------------------------------------------------
def _finalized(member_factory, kind, values):
    ens = _ensemble(member_factory, kind, values)
    ens.finalize()
    return ens


def test_stacking_modes(member_factory):
    first = _finalized(member_factory, C, [0.2, 0.2])
    tier = _finalized(member_factory, C, [0.6])
    first.attach_stacking_tier(tier, StackingMode.AVERAGED)
    assert first.compute([0.0])[0] == pytest.approx(0.4)

    first = _finalized(member_factory, C, [0.2, 0.2])
    first.attach_stacking_tier(_finalized(member_factory, C, [0.6]), StackingMode.SECOND_TIER_ONLY)
    assert first.compute([0.0])[0] == pytest.approx(0.6)


def test_stacking_features_layout(member_factory):
    first = _finalized(member_factory, C, [0.2, 0.4])
    features = first.stacking_features(np.zeros((3, 1)))
    assert features.shape == (3, 3)
    assert features[0, 1:].tolist() == [0.2, 0.4]


def test_stacking_attach_rules(member_factory):
    open_first = _ensemble(member_factory, C, [0.2])
    tier = _finalized(member_factory, C, [0.6])
    with pytest.raises(LogicError):
        open_first.attach_stacking_tier(tier, StackingMode.AVERAGED)

    first = _finalized(member_factory, C, [0.2])
    with pytest.raises(LogicError):
        first.attach_stacking_tier(_ensemble(member_factory, C, [0.6]), StackingMode.AVERAGED)

    first.attach_stacking_tier(tier, StackingMode.AVERAGED)
    with pytest.raises(LogicError):
        first.attach_stacking_tier(tier, StackingMode.AVERAGED)


def test_stacking_tier_must_match_outputs(member_factory):
    first = _finalized(member_factory, C, [0.2])
    with pytest.raises(ConfigurationError):
        first.attach_stacking_tier(_finalized(member_factory, C, [[0.6, 0.1]]), StackingMode.AVERAGED)
