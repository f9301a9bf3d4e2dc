#!filepath: cvensemble/observability/progress.py
from cvensemble.training.progress import BuildProgress
from cvensemble.utils.logger import logs


class ProgressReporter:
    """
    最轻量进度 sink：只记录值得报告的快照（新成员 / 新最优 / 最后一轮）
    """

    def __init__(self, enabled: bool = True, report_all: bool = False):
        self.enabled = enabled
        self.report_all = report_all
        self.received = 0
        self.reported = 0
        self.members = 0

    def __call__(self, progress: BuildProgress) -> None:
        self.received += 1
        if not self.enabled:
            return
        if progress.new_member:
            self.members += 1
        if not (self.report_all or progress.should_be_reported):
            return
        self.reported += 1
        logs.debug(f"[Progress] {progress.info_text()}")

    def summary(self) -> str:
        return (
            f"iterations={self.received} reported={self.reported} "
            f"members={self.members}"
        )
