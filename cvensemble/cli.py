#!filepath: cvensemble/cli.py
from typing import List, Optional

import numpy as np
import pandas as pd
import typer
from rich import print
from rich.table import Table

from cvensemble import __version__
from cvensemble.config.app_config import AppConfig
from cvensemble.data.bundle import SampleBundle
from cvensemble.observability.progress import ProgressReporter
from cvensemble.training.chain import build_chain
from cvensemble.training.cluster import Ensemble
from cvensemble.training.cluster_builder import build_ensemble
from cvensemble.utils.logger import init_logging

app = typer.Typer(help="Cross-validated ensemble training CLI")


def _columns(value: str) -> List[str]:
    return [c.strip() for c in value.split(",") if c.strip()]


def _ensemble_table(ensemble: Ensemble) -> Table:
    table = Table(title=f"{ensemble.name} ({ensemble.kind.value})")
    table.add_column("#", justify="right")
    table.add_column("scope")
    table.add_column("weight", justify="right")
    table.add_column("train err", justify="right")
    table.add_column("test err", justify="right")
    for i, (member, w) in enumerate(zip(ensemble.members, ensemble.weights)):
        table.add_row(
            str(i),
            str(member.scope),
            f"{w:.4f}",
            f"{member.training_error.mean:.4E}",
            f"{member.testing_error.mean:.4E}",
        )
    return table


@app.command()
def version():
    print(f"v{__version__}")


@app.command()
def train(
    config: str = typer.Argument(..., help="YAML config file"),
    data: str = typer.Argument(..., help="CSV file with input and output columns"),
    inputs: str = typer.Option(..., "--inputs", help="comma separated input columns"),
    outputs: str = typer.Option(..., "--outputs", help="comma separated output columns"),
    sample: Optional[str] = typer.Option(None, "--sample", help="comma separated input values"),
):
    """
    训练配置中的 cluster / chain，并输出成员权重
    """
    cfg = AppConfig.load(config)
    init_logging(cfg.log)

    df = pd.read_csv(data)
    bundle = SampleBundle.from_frame(df, _columns(inputs), _columns(outputs))
    reporter = ProgressReporter(enabled=True)
    rng = np.random.default_rng(cfg.seed)

    if cfg.cluster is not None:
        print(f"[green]Training cluster '{cfg.cluster.name}' on {len(bundle)} samples[/green]")
        model = build_ensemble(
            cfg.cross_validation, cfg.cluster, bundle, rng=rng, progress=reporter
        )
        ensembles = [model]
        if model.stacking_tier is not None:
            ensembles.append(model.stacking_tier)
    else:
        print(f"[green]Training chain '{cfg.chain.name}' on {len(bundle)} samples[/green]")
        model = build_chain(cfg.chain, bundle, rng=rng, progress=reporter)
        ensembles = model.stages

    for ensemble in ensembles:
        print(_ensemble_table(ensemble))
        stats = ensemble.error_stats
        line = f"held-out error: {stats.natural_precision.mean:.4E}"
        if stats.bin_error is not None:
            line += f", binary errors: {stats.bin_error.total.sum:g}/{stats.bin_error.total.count}"
        print(line)

    print(f"[blue]{reporter.summary()}[/blue]")

    if sample is not None:
        x = np.array([float(v) for v in _columns(sample)])
        result = model.compute(x)
        print(f"[yellow]output: {np.array2string(result, precision=6)}[/yellow]")


if __name__ == "__main__":
    app()
