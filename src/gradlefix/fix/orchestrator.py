"""Run orchestration: assess, checkpoint, apply, verify, then commit or roll back."""

from __future__ import annotations

import logging

from gradlefix.core.config import ComplexityConfig, GradlefixConfig
from gradlefix.core.errors import CheckpointFailure, StageTimeout, VerificationFailure
from gradlefix.core.models import (
    ClassifiedFinding,
    FixAction,
    FixClass,
    FixPlan,
    ProjectModel,
    SkippedFile,
)
from gradlefix.core.timeouts import CancellationToken, call_with_timeout
from gradlefix.fix.applier import FixApplier
from gradlefix.fix.checkpoint import Checkpoint, CheckpointProvider
from gradlefix.fix.models import (
    AppliedAction,
    BatchOutcome,
    ComplexityAssessment,
    EngineMode,
    ProjectSize,
    RunReport,
    RunState,
)
from gradlefix.scanner.engine import IssueDetector

logger = logging.getLogger(__name__)

_SIZE_ORDER = [ProjectSize.SMALL, ProjectSize.MEDIUM, ProjectSize.LARGE]


def _size_for(value: int, small: int, medium: int) -> ProjectSize:
    if value <= small:
        return ProjectSize.SMALL
    if value <= medium:
        return ProjectSize.MEDIUM
    return ProjectSize.LARGE


def assess_complexity(
    model: ProjectModel,
    classified: list[ClassifiedFinding],
    thresholds: ComplexityConfig | None = None,
) -> ComplexityAssessment:
    """Size the project by module count, raised to the size by declared-file count."""
    t = thresholds or ComplexityConfig()
    file_count = len(model.declared_files)
    size = max(
        _size_for(model.module_count, t.small_modules, t.medium_modules),
        _size_for(file_count, t.small_files, t.medium_files),
        key=_SIZE_ORDER.index,
    )
    has_unsafe = any(c.fix_class is FixClass.UNSAFE for c in classified)

    if size is ProjectSize.LARGE and has_unsafe:
        mode = EngineMode.MANUAL_REVIEW_REQUIRED
    elif size is ProjectSize.LARGE:
        mode = EngineMode.STAGED
    else:
        mode = EngineMode.DIRECT

    return ComplexityAssessment(
        size=size,
        module_count=model.module_count,
        file_count=file_count,
        has_unsafe=has_unsafe,
        mode=mode,
    )


def module_batches(actions: tuple[FixAction, ...]) -> list[tuple[str, list[FixAction]]]:
    """Group actions per module, modules in order of first appearance."""
    batches: dict[str, list[FixAction]] = {}
    for action in actions:
        batches.setdefault(action.module, []).append(action)
    return list(batches.items())


class Orchestrator:
    """Drives one run through the state machine and always returns a RunReport."""

    def __init__(
        self,
        checkpoints: CheckpointProvider,
        detector: IssueDetector,
        config: GradlefixConfig | None = None,
        cancel: CancellationToken | None = None,
        applier: FixApplier | None = None,
    ):
        self.checkpoints = checkpoints
        self.detector = detector
        self.config = config or GradlefixConfig()
        self.cancel = cancel
        self.applier = applier

    def execute(
        self,
        model: ProjectModel,
        plan: FixPlan,
        classified: list[ClassifiedFinding],
        dry_run: bool = False,
        skipped: list[SkippedFile] | None = None,
    ) -> RunReport:
        report = RunReport(
            project_name=model.name,
            project_root=model.root,
            tool_version=model.tool_version,
            plan=plan,
            findings_count=len(classified),
            skipped_files=list(skipped or []),
        )

        report.assessment = assess_complexity(model, classified, self.config.complexity)
        logger.debug("Assessment: %s", report.assessment)

        if not classified:
            return self._finish(report, RunState.CLEAN)
        if report.assessment.mode is EngineMode.MANUAL_REVIEW_REQUIRED:
            return self._finish(report, RunState.MANUAL_REVIEW_REQUIRED)
        if dry_run or plan.is_empty:
            return self._finish(report, RunState.PLANNED)

        if report.assessment.mode is EngineMode.STAGED:
            batches = module_batches(plan.actions)
        else:
            batches = [("all", list(plan.actions))]

        applier = self.applier or FixApplier(model.root)
        for index, (name, actions) in enumerate(batches):
            outcome = self._run_batch(model, applier, name, actions, report)
            report.batches.append(outcome)
            report.attempted.extend(outcome.attempted)
            report.applied.extend(outcome.applied)
            report.stale.extend(outcome.stale)
            report.verification_failures.extend(outcome.verification_failures)

            if outcome.state is not RunState.COMMITTED:
                report.rollback_ok = outcome.rollback_ok
                committed = [b.name for b in report.batches if b.state is RunState.COMMITTED]
                if outcome.state is RunState.ABORTED and committed:
                    report.error = f"{report.error}; batches already committed: {', '.join(committed)}"
                report.not_attempted = [
                    a.action_id for _, later in batches[index + 1:] for a in later
                ]
                return self._finish(report, outcome.state)

        return self._finish(report, RunState.COMMITTED)

    def _run_batch(
        self,
        model: ProjectModel,
        applier: FixApplier,
        name: str,
        actions: list[FixAction],
        report: RunReport,
    ) -> BatchOutcome:
        outcome = BatchOutcome(name=name)
        files = list(dict.fromkeys(a.location.file for a in actions))
        timeout = self.config.timeouts.checkpoint_seconds

        try:
            checkpoint = call_with_timeout(
                lambda: self.checkpoints.create(files), timeout, "checkpoint"
            )
        except (CheckpointFailure, StageTimeout) as e:
            logger.error("Checkpoint for batch %s failed: %s", name, e)
            report.error = f"checkpoint failed: {e}"
            outcome.state = RunState.ABORTED
            return outcome
        self._transition(outcome, RunState.CHECKPOINTED)

        try:
            return self._apply_and_verify(model, applier, name, actions, report, checkpoint, outcome)
        except Exception as e:
            logger.exception("Batch %s failed after its checkpoint was taken", name)
            report.error = f"batch {name} failed: {type(e).__name__}: {e}"
            self._rollback(checkpoint, outcome)
            return outcome

    def _apply_and_verify(
        self,
        model: ProjectModel,
        applier: FixApplier,
        name: str,
        actions: list[FixAction],
        report: RunReport,
        checkpoint: Checkpoint,
        outcome: BatchOutcome,
    ) -> BatchOutcome:
        if self._cancelled():
            self._discard(checkpoint)
            report.error = "cancelled before applying"
            outcome.state = RunState.ABORTED
            return outcome

        self._transition(outcome, RunState.APPLYING)
        outcome.attempted = [a.action_id for a in actions]
        try:
            result = applier.apply(actions)
        except OSError as e:
            logger.error("Writing batch %s failed: %s", name, e)
            report.error = f"write failed: {e}"
            self._rollback(checkpoint, outcome)
            return outcome
        outcome.applied = result.applied
        outcome.stale = result.stale

        if self._cancelled():
            report.error = "cancelled before verification"
            self._rollback(checkpoint, outcome)
            return outcome

        self._transition(outcome, RunState.VERIFYING)
        try:
            self._verify(model, result.applied)
        except VerificationFailure as e:
            logger.warning("Verification of batch %s failed: %s", name, e)
            outcome.verification_failures = e.finding_ids
            self._rollback(checkpoint, outcome)
            return outcome

        self._discard(checkpoint)
        self._transition(outcome, RunState.COMMITTED)
        return outcome

    def _verify(self, model: ProjectModel, applied: list[AppliedAction]) -> None:
        """Re-detect the fixed categories over the rewritten files."""
        if not applied:
            return
        categories = {a.action.category for a in applied}
        files = list(dict.fromkeys(a.applied_location.file for a in applied))
        detection = self.detector.restricted_to(categories).detect(model, files)

        failing = [
            f.finding_id
            for f in detection.findings
            if any(a.applied_location.overlaps(f.location) for a in applied)
        ]
        if failing:
            raise VerificationFailure(
                f"{len(failing)} fixed locations still match a fixed category", failing
            )
        unreadable = {s.file for s in detection.skipped} & set(files)
        if unreadable:
            raise VerificationFailure(
                "Rewritten files could not be re-scanned: " + ", ".join(sorted(unreadable))
            )

    def _rollback(self, checkpoint: Checkpoint, outcome: BatchOutcome) -> None:
        try:
            ok = call_with_timeout(
                lambda: self.checkpoints.restore(checkpoint),
                self.config.timeouts.checkpoint_seconds,
                "rollback",
            )
        except (CheckpointFailure, StageTimeout, OSError) as e:
            logger.error("Rollback of %s failed: %s", checkpoint.checkpoint_id, e)
            ok = False
        if not ok:
            logger.error("Checkpoint %s was not fully restored", checkpoint.checkpoint_id)
        outcome.rollback_ok = ok
        self._transition(outcome, RunState.ROLLED_BACK)

    def _discard(self, checkpoint: Checkpoint) -> None:
        try:
            call_with_timeout(
                lambda: self.checkpoints.discard(checkpoint),
                self.config.timeouts.checkpoint_seconds,
                "discard",
            )
        except (StageTimeout, OSError) as e:
            logger.warning("Could not discard checkpoint %s: %s", checkpoint.checkpoint_id, e)

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.cancelled

    def _transition(self, outcome: BatchOutcome, state: RunState) -> None:
        logger.debug("Batch %s: %s -> %s", outcome.name, outcome.state.value, state.value)
        outcome.state = state

    def _finish(self, report: RunReport, state: RunState) -> RunReport:
        report.state = state
        logger.info("Run finished in %s (exit %d)", state.value, report.exit_code)
        return report
