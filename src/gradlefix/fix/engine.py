"""Fix Engine: wires reader, detector, classifier, planner and orchestrator together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from gradlefix.core.config import GradlefixConfig, load_config
from gradlefix.core.errors import ProjectUnreadable
from gradlefix.core.models import ClassifiedFinding, FixPlan, IssueCategory, ProjectModel
from gradlefix.core.timeouts import CancellationToken
from gradlefix.fix.checkpoint import CheckpointProvider, make_checkpoint_provider
from gradlefix.fix.confidence import ConfidenceClassifier
from gradlefix.fix.models import RunReport, RunState
from gradlefix.fix.orchestrator import Orchestrator
from gradlefix.fix.planner import FixPlanGenerator
from gradlefix.project.reader import ProjectModelProvider, ProjectModelReader
from gradlefix.scanner.engine import DetectionResult, IssueDetector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Analysis:
    """Everything computed before any file is touched."""

    model: ProjectModel
    detection: DetectionResult
    classified: list[ClassifiedFinding]
    plan: FixPlan


class FixEngine:
    """Core engine that analyzes a project and applies its fix plan."""

    def __init__(
        self,
        project_path: Path | None = None,
        config: GradlefixConfig | None = None,
        provider: ProjectModelProvider | None = None,
        checkpoints: CheckpointProvider | None = None,
        cancel: CancellationToken | None = None,
    ):
        self.project_path = (project_path or Path.cwd()).resolve()
        self.config = config or load_config(self.project_path)
        self.reader = ProjectModelReader(provider, timeout=self.config.timeouts.model_seconds)
        self.detector = IssueDetector(
            workers=self.config.detect.workers,
            categories=_categories(self.config.detect.categories),
            ignore=self.config.detect.ignore,
            exclude=self.config.exclude,
        )
        self.classifier = ConfidenceClassifier()
        self.planner = FixPlanGenerator(self.config.fix.auto_threshold)
        self._checkpoints = checkpoints
        self.cancel = cancel

    @property
    def checkpoints(self) -> CheckpointProvider:
        if self._checkpoints is None:
            self._checkpoints = make_checkpoint_provider(
                self.config.fix.checkpoint,
                self.project_path,
                timeout=self.config.timeouts.checkpoint_seconds,
            )
        return self._checkpoints

    def analyze(self) -> Analysis:
        """Read, detect, classify and plan. Raises ProjectUnreadable."""
        model = self.reader.read(self.project_path)
        detection = self.detector.detect(model)
        classified = self.classifier.classify_all(detection.findings)
        plan = self.planner.generate(classified)
        return Analysis(model=model, detection=detection, classified=classified, plan=plan)

    def run(self, dry_run: bool | None = None, analysis: Analysis | None = None) -> RunReport:
        """Analyze (unless given a fresh ``analysis``) and apply the plan. Always returns a report."""
        if dry_run is None:
            dry_run = self.config.fix.dry_run

        try:
            analysis = analysis or self.analyze()
        except ProjectUnreadable as e:
            logger.error("Project unreadable: %s (%s)", e, e.diagnostic)
            return RunReport(
                project_name=self.project_path.name,
                project_root=self.project_path,
                state=RunState.ABORTED,
                error=f"{e}: {e.diagnostic}" if e.diagnostic else str(e),
            )

        orchestrator = Orchestrator(
            self.checkpoints, self.detector, config=self.config, cancel=self.cancel
        )
        return orchestrator.execute(
            analysis.model,
            analysis.plan,
            analysis.classified,
            dry_run=dry_run,
            skipped=analysis.detection.skipped,
        )


def _categories(names: list[str]) -> set[IssueCategory] | None:
    if not names:
        return None
    return {IssueCategory(name.upper()) for name in names}
