# tests/conftest.py
from __future__ import annotations

import numpy as np
import pytest
from loguru import logger

from cvensemble.config.cluster_config import MemberConfig
from cvensemble.data.bundle import SampleBundle
from cvensemble.training.engines.registry import register_member_engine

from fake_engines import fake_mean, fake_scripted

register_member_engine("fake_mean", fake_mean)
register_member_engine("fake_scripted", fake_scripted)


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


# =====================================================================
# Bundles (column 0 of the inputs is the sample id)
# =====================================================================
def _ids(n: int) -> np.ndarray:
    return np.arange(n, dtype=float).reshape(-1, 1)


@pytest.fixture
def regression_bundle() -> SampleBundle:
    rng = np.random.default_rng(7)
    n = 100
    x = rng.normal(size=(n, 2))
    y = 0.5 * x[:, 0] - 0.25 * x[:, 1] + 0.01 * rng.normal(size=n)
    return SampleBundle(np.hstack([_ids(n), x]), y.reshape(-1, 1))


@pytest.fixture
def binary_bundle() -> SampleBundle:
    rng = np.random.default_rng(11)
    n = 60
    x = rng.normal(size=(n, 2))
    y = (np.arange(n) % 3 == 0).astype(float)
    x[:, 0] += 2.0 * y
    return SampleBundle(np.hstack([_ids(n), x]), y.reshape(-1, 1))


@pytest.fixture
def distribution_bundle() -> SampleBundle:
    rng = np.random.default_rng(13)
    n = 60
    labels = np.arange(n) % 3
    x = rng.normal(size=(n, 2)) + labels.reshape(-1, 1)
    y = np.eye(3)[labels]
    return SampleBundle(np.hstack([_ids(n), x]), y)


@pytest.fixture
def fake_member() -> MemberConfig:
    return MemberConfig(family="fake_mean", params={"rate": 0.5}, epochs=5)
