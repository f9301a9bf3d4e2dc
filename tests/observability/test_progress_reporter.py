# tests/observability/test_progress_reporter.py
from cvensemble.config.cluster_config import ClusterConfig, CrossValidationConfig
from cvensemble.data.bundle import OutputKind
from cvensemble.observability.progress import ProgressReporter
from cvensemble.training.cluster_builder import build_ensemble


def _build(bundle, member, reporter):
    cfg = ClusterConfig(name="c", output_kind=OutputKind.CONTINUOUS, members=[member])
    build_ensemble(CrossValidationConfig(fold_ratio=0.5), cfg, bundle, progress=reporter)


def test_reporter_counts_members_and_reports(regression_bundle, fake_member):
    reporter = ProgressReporter(enabled=True)
    _build(regression_bundle, fake_member, reporter)

    assert reporter.received == 2 * fake_member.epochs
    assert reporter.members == 2
    # first and last epoch of every member are always reported
    assert 4 <= reporter.reported <= reporter.received
    assert "members=2" in reporter.summary()


def test_reporter_disabled(regression_bundle, fake_member):
    reporter = ProgressReporter(enabled=False)
    _build(regression_bundle, fake_member, reporter)

    assert reporter.received == 2 * fake_member.epochs
    assert reporter.reported == 0
    assert reporter.members == 0
