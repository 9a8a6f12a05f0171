"""Tests for run orchestration: complexity, batches, verification, rollback."""

from __future__ import annotations

import time
from pathlib import Path

import pytest

from gradlefix.core.config import ComplexityConfig, GradlefixConfig
from gradlefix.core.errors import CheckpointFailure
from gradlefix.core.models import Finding, IssueCategory, Location, Severity, SkippedFile
from gradlefix.core.timeouts import CancellationToken
from gradlefix.fix.applier import FixApplier
from gradlefix.fix.checkpoint import MemoryCheckpointProvider
from gradlefix.fix.engine import FixEngine
from gradlefix.fix.models import EngineMode, ProjectSize, RunState
from gradlefix.fix.orchestrator import Orchestrator, assess_complexity, module_batches
from gradlefix.scanner.engine import DetectionResult, IssueDetector


class AlwaysFailingDetector(IssueDetector):
    """Reports a finding covering every re-scanned file (optionally only some)."""

    def __init__(self, only: str | None = None):
        super().__init__(workers=1)
        self.only = only

    def restricted_to(self, categories):
        return self

    def detect(self, model, source_files=None):
        findings = [
            Finding(
                finding_id=f"F-9{i:02d}",
                signature_id="CC-001",
                category=IssueCategory.SYSTEM_PROPERTY_ACCESS,
                severity=Severity.HIGH,
                location=Location(file, 1, 1000, 0, 10**6),
                matched_text="",
                message="still broken",
            )
            for i, file in enumerate(source_files or [])
            if self.only is None or file == self.only
        ]
        return DetectionResult(findings=findings)


class FailingCheckpoints(MemoryCheckpointProvider):
    def create(self, files):
        raise CheckpointFailure("disk full")


class SlowCheckpoints(MemoryCheckpointProvider):
    def create(self, files):
        time.sleep(0.5)
        return super().create(files)


class CancellingApplier(FixApplier):
    """Cancels the run right after writing, before verification starts."""

    def __init__(self, project_path: Path, token: CancellationToken):
        super().__init__(project_path)
        self.token = token

    def apply(self, actions):
        result = super().apply(actions)
        self.token.cancel()
        return result


class ExplodingApplier(FixApplier):
    """Writes the batch, then fails with an error the orchestrator does not expect."""

    def apply(self, actions):
        super().apply(actions)
        raise RuntimeError("boom")


class SecondCheckpointFails(MemoryCheckpointProvider):
    def create(self, files):
        if self.created:
            raise CheckpointFailure("disk full")
        return super().create(files)


def _engine(path: Path, config: GradlefixConfig | None = None, **kwargs) -> FixEngine:
    config = config or GradlefixConfig()
    return FixEngine(path, config=config, checkpoints=MemoryCheckpointProvider(path), **kwargs)


@pytest.fixture
def three_module_project(make_project, settings_on) -> Path:
    return make_project({
        "settings.gradle.kts": 'include(":app", ":lib")\n',
        "build.gradle.kts": 'val env = System.getProperty("env")\n',
        "app/build.gradle.kts": 'tasks.create("hello") { }\n',
        "lib/build.gradle.kts": 'tasks.create("pack") { }\n',
        "gradle.properties": settings_on,
    }, gradle_version="8.5")


def _staged_config() -> GradlefixConfig:
    config = GradlefixConfig()
    config.complexity = ComplexityConfig(small_modules=1, medium_modules=2)
    return config


class TestAssessComplexity:
    def test_small_project_is_direct(self, two_module_project):
        analysis = _engine(two_module_project).analyze()
        assessment = assess_complexity(analysis.model, analysis.classified)

        assert assessment.size is ProjectSize.SMALL
        assert assessment.module_count == 2
        assert assessment.file_count == 4
        assert assessment.mode is EngineMode.DIRECT

    def test_file_count_can_raise_the_size(self, two_module_project):
        analysis = _engine(two_module_project).analyze()
        thresholds = ComplexityConfig(small_files=1, medium_files=2)

        assert assess_complexity(analysis.model, analysis.classified, thresholds).size is ProjectSize.LARGE

    def test_module_batches_keep_first_appearance_order(self, three_module_project):
        plan = _engine(three_module_project).analyze().plan
        assert [name for name, _ in module_batches(plan.actions)] == [":app", ":", ":lib"]


class TestScenarios:
    def test_single_fix_is_committed(self, scenario_a):
        engine = _engine(scenario_a)
        report = engine.run()

        assert report.state is RunState.COMMITTED
        assert report.exit_code == 2
        assert [a.action_id for a in report.applied] == ["A-001"]
        assert 'providers.systemProperty("user.home").orNull' in (scenario_a / "build.gradle.kts").read_text()

        again = engine.analyze()
        assert IssueCategory.SYSTEM_PROPERTY_ACCESS not in again.detection.categories

    def test_large_project_with_unsafe_finding_needs_review(self, make_project, tree_bytes, settings_on):
        modules = [f"m{i:02d}" for i in range(25)]
        files = {
            "settings.gradle.kts": "".join(f'include(":{m}")\n' for m in modules),
            "build.gradle.kts": 'val password = "hunter2hunter2"\nval env = System.getenv("CI")\n',
            "gradle.properties": settings_on,
        }
        files.update({f"{m}/build.gradle.kts": "plugins { java }\n" for m in modules})
        project = make_project(files, gradle_version="8.5")
        before = tree_bytes(project)
        engine = _engine(project)

        report = engine.run()

        assert report.state is RunState.MANUAL_REVIEW_REQUIRED
        assert report.exit_code == 1
        assert report.assessment.size is ProjectSize.LARGE
        assert engine.checkpoints.created == []
        assert tree_bytes(project) == before
        assert not (project / ".gradlefix").exists()

    def test_stale_action_does_not_fail_the_run(self, two_module_project):
        engine = _engine(two_module_project)
        analysis = engine.analyze()
        (two_module_project / "build.gradle.kts").write_text('val env = System.getProperty("other")\n')

        report = engine.run(analysis=analysis)

        assert report.state is RunState.COMMITTED
        assert [a.action_id for a in report.applied] == ["A-001"]
        assert [s.action_id for s in report.stale] == ["A-002"]
        assert 'tasks.register("hello")' in (two_module_project / "app/build.gradle.kts").read_text()


class TestRollback:
    def test_failed_verification_restores_every_byte(self, two_module_project, tree_bytes):
        analysis = _engine(two_module_project).analyze()
        before = tree_bytes(two_module_project)
        checkpoints = MemoryCheckpointProvider(two_module_project)

        report = Orchestrator(checkpoints, AlwaysFailingDetector()).execute(
            analysis.model, analysis.plan, analysis.classified
        )

        assert report.state is RunState.ROLLED_BACK
        assert report.exit_code == 3
        assert report.rollback_ok is True
        assert report.attempted == ["A-001", "A-002"]
        assert report.verification_failures
        assert tree_bytes(two_module_project) == before
        assert checkpoints.restored == ["mem-1"]

    def test_unreadable_rewritten_file_fails_verification(self, two_module_project, tree_bytes):
        analysis = _engine(two_module_project).analyze()
        before = tree_bytes(two_module_project)

        class SkippingDetector(IssueDetector):
            def restricted_to(self, categories):
                return self

            def detect(self, model, source_files=None):
                return DetectionResult(skipped=[
                    SkippedFile(file, "LexError: broken") for file in source_files or []
                ])

        report = Orchestrator(MemoryCheckpointProvider(two_module_project), SkippingDetector()).execute(
            analysis.model, analysis.plan, analysis.classified
        )

        assert report.state is RunState.ROLLED_BACK
        assert tree_bytes(two_module_project) == before

    def test_unexpected_apply_error_restores_and_reports(self, two_module_project, tree_bytes):
        analysis = _engine(two_module_project).analyze()
        before = tree_bytes(two_module_project)
        checkpoints = MemoryCheckpointProvider(two_module_project)

        report = Orchestrator(
            checkpoints, IssueDetector(), applier=ExplodingApplier(two_module_project)
        ).execute(analysis.model, analysis.plan, analysis.classified)

        assert report.state is RunState.ROLLED_BACK
        assert report.rollback_ok is True
        assert report.error == "batch all failed: RuntimeError: boom"
        assert checkpoints.restored == ["mem-1"]
        assert tree_bytes(two_module_project) == before

    def test_file_turned_undecodable_is_stale(self, two_module_project):
        engine = _engine(two_module_project)
        analysis = engine.analyze()
        (two_module_project / "build.gradle.kts").write_bytes(b"\xff\xfe")

        report = engine.run(analysis=analysis)

        assert report.state is RunState.COMMITTED
        assert [a.action_id for a in report.applied] == ["A-001"]
        assert [s.action_id for s in report.stale] == ["A-002"]
        assert engine.checkpoints.restored == []
        assert (two_module_project / "build.gradle.kts").read_bytes() == b"\xff\xfe"


class TestStagedMode:
    def test_each_module_is_its_own_batch(self, three_module_project):
        engine = _engine(three_module_project, _staged_config())
        report = engine.run()

        assert report.assessment.mode is EngineMode.STAGED
        assert report.state is RunState.COMMITTED
        assert [(b.name, b.state) for b in report.batches] == [
            (":app", RunState.COMMITTED),
            (":", RunState.COMMITTED),
            (":lib", RunState.COMMITTED),
        ]
        assert len(engine.checkpoints.created) == 3
        assert engine.checkpoints.discarded == ["mem-1", "mem-2", "mem-3"]

    def test_failed_batch_stops_later_batches(self, three_module_project):
        analysis = _engine(three_module_project, _staged_config()).analyze()
        original_lib = (three_module_project / "lib/build.gradle.kts").read_text()
        original_root = (three_module_project / "build.gradle.kts").read_text()

        report = Orchestrator(
            MemoryCheckpointProvider(three_module_project),
            AlwaysFailingDetector(only="build.gradle.kts"),
            config=_staged_config(),
        ).execute(analysis.model, analysis.plan, analysis.classified)

        assert report.state is RunState.ROLLED_BACK
        assert [(b.name, b.state) for b in report.batches] == [
            (":app", RunState.COMMITTED),
            (":", RunState.ROLLED_BACK),
        ]
        assert report.not_attempted == ["A-003"]
        assert 'tasks.register("hello")' in (three_module_project / "app/build.gradle.kts").read_text()
        assert (three_module_project / "build.gradle.kts").read_text() == original_root
        assert (three_module_project / "lib/build.gradle.kts").read_text() == original_lib

    def test_checkpoint_failure_after_a_committed_batch_names_it(self, three_module_project):
        analysis = _engine(three_module_project, _staged_config()).analyze()

        report = Orchestrator(
            SecondCheckpointFails(three_module_project),
            IssueDetector(),
            config=_staged_config(),
        ).execute(analysis.model, analysis.plan, analysis.classified)

        assert report.state is RunState.ABORTED
        assert [(b.name, b.state) for b in report.batches] == [
            (":app", RunState.COMMITTED),
            (":", RunState.ABORTED),
        ]
        assert report.error == "checkpoint failed: disk full; batches already committed: :app"
        assert report.not_attempted == ["A-003"]
        assert 'tasks.register("hello")' in (three_module_project / "app/build.gradle.kts").read_text()


class TestCancellationAndCheckpoints:
    def test_cancel_before_apply_aborts(self, two_module_project, tree_bytes):
        before = tree_bytes(two_module_project)
        token = CancellationToken()
        token.cancel()
        engine = _engine(two_module_project, cancel=token)

        report = engine.run()

        assert report.state is RunState.ABORTED
        assert report.exit_code == 4
        assert report.error == "cancelled before applying"
        assert engine.checkpoints.discarded == ["mem-1"]
        assert tree_bytes(two_module_project) == before

    def test_cancel_after_apply_rolls_back(self, two_module_project, tree_bytes):
        analysis = _engine(two_module_project).analyze()
        before = tree_bytes(two_module_project)
        token = CancellationToken()

        report = Orchestrator(
            MemoryCheckpointProvider(two_module_project),
            IssueDetector(),
            cancel=token,
            applier=CancellingApplier(two_module_project, token),
        ).execute(analysis.model, analysis.plan, analysis.classified)

        assert report.state is RunState.ROLLED_BACK
        assert report.error == "cancelled before verification"
        assert tree_bytes(two_module_project) == before

    def test_checkpoint_failure_touches_nothing(self, two_module_project, tree_bytes):
        before = tree_bytes(two_module_project)
        engine = FixEngine(
            two_module_project,
            config=GradlefixConfig(),
            checkpoints=FailingCheckpoints(two_module_project),
        )

        report = engine.run()

        assert report.state is RunState.ABORTED
        assert report.error == "checkpoint failed: disk full"
        assert report.attempted == []
        assert tree_bytes(two_module_project) == before

    def test_checkpoint_timeout_aborts(self, two_module_project, tree_bytes):
        before = tree_bytes(two_module_project)
        config = GradlefixConfig()
        config.timeouts.checkpoint_seconds = 0.05
        engine = FixEngine(
            two_module_project, config=config, checkpoints=SlowCheckpoints(two_module_project)
        )

        report = engine.run()

        assert report.state is RunState.ABORTED
        assert "checkpoint timed out" in report.error
        assert tree_bytes(two_module_project) == before


class TestTerminalStates:
    def test_dry_run_only_plans(self, two_module_project, tree_bytes):
        before = tree_bytes(two_module_project)
        engine = _engine(two_module_project)

        report = engine.run(dry_run=True)

        assert report.state is RunState.PLANNED
        assert report.exit_code == 1
        assert len(report.plan.actions) == 2
        assert engine.checkpoints.created == []
        assert tree_bytes(two_module_project) == before

    def test_clean_project(self, make_project, settings_on):
        project = make_project({
            "build.gradle.kts": "plugins { java }\n",
            "gradle.properties": settings_on,
        })
        report = _engine(project).run()

        assert report.state is RunState.CLEAN
        assert report.exit_code == 0

    def test_only_manual_findings(self, make_project, settings_on):
        project = make_project({
            "build.gradle.kts": "afterEvaluate {\n}\n",
            "gradle.properties": settings_on,
        })
        report = _engine(project).run()

        assert report.state is RunState.PLANNED
        assert [m.reason for m in report.plan.manual_review] == ["manual"]

    def test_unreadable_project(self, tmp_path):
        report = FixEngine(tmp_path / "missing", config=GradlefixConfig()).run()

        assert report.state is RunState.ABORTED
        assert report.exit_code == 4
        assert report.error.startswith("Not a directory")

    def test_report_serializes(self, scenario_a):
        data = _engine(scenario_a).run().to_dict()

        assert data["state"] == "COMMITTED"
        assert data["exit_code"] == 2
        assert data["applied"][0]["action_id"] == "A-001"
        assert data["summary"]["auto_actions"] == 1
        assert data["batches"][0]["name"] == "all"
