"""Run-level data models: states, complexity assessment, batches and the run report."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path

from gradlefix.core.models import (
    FixAction,
    FixPlan,
    Location,
    SkippedFile,
    StaleActionError,
    ToolVersion,
)


class RunState(enum.Enum):
    ASSESSING = "ASSESSING"
    CHECKPOINTED = "CHECKPOINTED"
    APPLYING = "APPLYING"
    VERIFYING = "VERIFYING"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"
    ABORTED = "ABORTED"
    MANUAL_REVIEW_REQUIRED = "MANUAL_REVIEW_REQUIRED"
    CLEAN = "CLEAN"
    PLANNED = "PLANNED"


EXIT_CODES = {
    RunState.CLEAN: 0,
    RunState.PLANNED: 1,
    RunState.MANUAL_REVIEW_REQUIRED: 1,
    RunState.COMMITTED: 2,
    RunState.ROLLED_BACK: 3,
    RunState.ABORTED: 4,
}


class ProjectSize(enum.Enum):
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"


class EngineMode(enum.Enum):
    DIRECT = "DIRECT"
    STAGED = "STAGED"
    MANUAL_REVIEW_REQUIRED = "MANUAL_REVIEW_REQUIRED"


@dataclass(frozen=True)
class ComplexityAssessment:
    size: ProjectSize
    module_count: int
    file_count: int
    has_unsafe: bool
    mode: EngineMode


@dataclass(frozen=True)
class AppliedAction:
    """A FixAction that was written, with where its replacement now lives."""

    action: FixAction
    applied_location: Location

    @property
    def action_id(self) -> str:
        return self.action.action_id


@dataclass
class BatchOutcome:
    """Result of one checkpoint/apply/verify cycle (one module in STAGED mode)."""

    name: str
    attempted: list[str] = field(default_factory=list)
    applied: list[AppliedAction] = field(default_factory=list)
    stale: list[StaleActionError] = field(default_factory=list)
    verification_failures: list[str] = field(default_factory=list)
    state: RunState = RunState.ASSESSING
    rollback_ok: bool | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "attempted": list(self.attempted),
            "applied": [a.action_id for a in self.applied],
            "stale": [_stale_dict(s) for s in self.stale],
            "verification_failures": list(self.verification_failures),
            "rollback_ok": self.rollback_ok,
        }


@dataclass
class RunReport:
    """Everything a run produced. Every run ends with one, whatever its outcome."""

    project_name: str
    project_root: Path
    tool_version: ToolVersion | None = None
    assessment: ComplexityAssessment | None = None
    plan: FixPlan | None = None
    findings_count: int = 0
    applied: list[AppliedAction] = field(default_factory=list)
    attempted: list[str] = field(default_factory=list)
    skipped_files: list[SkippedFile] = field(default_factory=list)
    stale: list[StaleActionError] = field(default_factory=list)
    verification_failures: list[str] = field(default_factory=list)
    batches: list[BatchOutcome] = field(default_factory=list)
    not_attempted: list[str] = field(default_factory=list)
    state: RunState = RunState.ASSESSING
    error: str = ""
    rollback_ok: bool | None = None

    @property
    def exit_code(self) -> int:
        return EXIT_CODES.get(self.state, 4)

    def to_dict(self) -> dict:
        plan = self.plan
        return {
            "project": {
                "name": self.project_name,
                "root": str(self.project_root),
                "tool_version": str(self.tool_version) if self.tool_version else None,
            },
            "state": self.state.value,
            "exit_code": self.exit_code,
            "error": self.error or None,
            "assessment": _assessment_dict(self.assessment),
            "findings": self.findings_count,
            "summary": _summary_dict(plan),
            "actions": [_action_dict(a) for a in plan.actions] if plan else [],
            "applied": [
                {**_action_dict(a.action), "applied_at": _location_dict(a.applied_location)}
                for a in self.applied
            ],
            "attempted": list(self.attempted),
            "not_attempted": list(self.not_attempted),
            "manual_review": [
                {
                    "finding_id": m.finding_id,
                    "category": m.category.value,
                    "location": _location_dict(m.location),
                    "fix_class": m.fix_class.value,
                    "confidence": m.confidence,
                    "reason": m.reason,
                    "message": m.message,
                }
                for m in (plan.manual_review if plan else ())
            ],
            "skipped_files": [{"file": s.file, "reason": s.reason} for s in self.skipped_files],
            "stale": [_stale_dict(s) for s in self.stale],
            "verification_failures": list(self.verification_failures),
            "batches": [b.to_dict() for b in self.batches],
            "rollback_ok": self.rollback_ok,
        }


def _location_dict(location: Location) -> dict:
    return {
        "file": location.file,
        "start_line": location.start_line,
        "end_line": location.end_line,
        "start": location.start,
        "end": location.end,
    }


def _action_dict(action: FixAction) -> dict:
    return {
        "action_id": action.action_id,
        "finding_id": action.source_finding_id,
        "category": action.category.value,
        "module": action.module,
        "location": _location_dict(action.location),
        "original": action.original_text,
        "replacement": action.replacement_text,
        "diff": action.diff,
    }


def _stale_dict(stale: StaleActionError) -> dict:
    return {"action_id": stale.action_id, "file": stale.file, "reason": stale.reason}


def _summary_dict(plan: FixPlan | None) -> dict | None:
    if plan is None:
        return None
    s = plan.summary
    return {
        "by_category": dict(s.by_category),
        "auto_actions": s.auto_actions,
        "manual_review": s.manual_review,
        "files_touched": s.files_touched,
        "lines_changed": s.lines_changed,
        "estimated_minutes": s.estimated_minutes,
        "auto_threshold": plan.auto_threshold,
    }


def _assessment_dict(assessment: ComplexityAssessment | None) -> dict | None:
    if assessment is None:
        return None
    return {
        "size": assessment.size.value,
        "module_count": assessment.module_count,
        "file_count": assessment.file_count,
        "has_unsafe": assessment.has_unsafe,
        "mode": assessment.mode.value,
    }
