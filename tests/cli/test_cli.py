# tests/cli/test_cli.py
import numpy as np
import pandas as pd
from typer.testing import CliRunner

from cvensemble.cli import app

runner = CliRunner()


def _write_data(path):
    rng = np.random.default_rng(0)
    x = rng.normal(size=(60, 2))
    df = pd.DataFrame({"a": x[:, 0], "b": x[:, 1], "y": 0.5 * x[:, 0] - 0.2 * x[:, 1]})
    df.to_csv(path, index=False)


CLUSTER_YAML = """
seed: 1
cross_validation:
  fold_ratio: 0.25
cluster:
  name: demo
  output_kind: continuous
  members:
    - family: sgd_regressor
      epochs: 5
      params:
        learning_rate: constant
        eta0: 0.05
"""

CHAIN_YAML = """
seed: 1
chain:
  name: demo-chain
  output_kind: continuous
  cross_validation:
    fold_ratio: 0.5
  stages:
    - name: s0
      output_kind: continuous
      members:
        - family: sgd_regressor
          epochs: 3
    - name: s1
      output_kind: continuous
      members:
        - family: sgd_regressor
          epochs: 3
"""


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "v0.1.0" in result.stdout


def test_train_cluster_and_sample(tmp_path):
    cfg = tmp_path / "cfg.yml"
    cfg.write_text(CLUSTER_YAML, encoding="utf-8")
    data = tmp_path / "data.csv"
    _write_data(data)

    result = runner.invoke(
        app,
        ["train", str(cfg), str(data), "--inputs", "a,b", "--outputs", "y", "--sample", "0.1,0.2"],
    )
    assert result.exit_code == 0, result.stdout
    assert "demo" in result.stdout
    assert "output:" in result.stdout


def test_train_chain(tmp_path):
    cfg = tmp_path / "cfg.yml"
    cfg.write_text(CHAIN_YAML, encoding="utf-8")
    data = tmp_path / "data.csv"
    _write_data(data)

    result = runner.invoke(app, ["train", str(cfg), str(data), "--inputs", "a,b", "--outputs", "y"])
    assert result.exit_code == 0, result.stdout
    assert "s0" in result.stdout
    assert "s1" in result.stdout


def test_train_missing_column(tmp_path):
    cfg = tmp_path / "cfg.yml"
    cfg.write_text(CLUSTER_YAML, encoding="utf-8")
    data = tmp_path / "data.csv"
    _write_data(data)

    result = runner.invoke(app, ["train", str(cfg), str(data), "--inputs", "a,zzz", "--outputs", "y"])
    assert result.exit_code != 0
