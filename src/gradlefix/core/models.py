"""Shared data models used across gradlefix modules."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath


class Severity(enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IssueCategory(enum.Enum):
    EAGER_TASK = "EAGER_TASK"
    PROJECT_ACCESS_AT_EXECUTION = "PROJECT_ACCESS_AT_EXECUTION"
    SYSTEM_PROPERTY_ACCESS = "SYSTEM_PROPERTY_ACCESS"
    DEPRECATED_API = "DEPRECATED_API"
    PERFORMANCE_SETTING_MISSING = "PERFORMANCE_SETTING_MISSING"
    EAGER_CONFIGURATION = "EAGER_CONFIGURATION"
    CONFIGURATION_TIME_RESOLUTION = "CONFIGURATION_TIME_RESOLUTION"
    CONVENTION_DEPRECATION = "CONVENTION_DEPRECATION"
    CREDENTIAL_EXPOSURE = "CREDENTIAL_EXPOSURE"
    INSECURE_REPOSITORY = "INSECURE_REPOSITORY"


class FixClass(enum.Enum):
    AUTO = "AUTO"
    MANUAL = "MANUAL"
    UNSAFE = "UNSAFE"


_VERSION_RE = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?")


@dataclass(frozen=True, order=True)
class ToolVersion:
    """Semantic version triple of the build tool."""

    major: int
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, text: str) -> ToolVersion:
        """Parse ``8.5``, ``8.10.2`` or ``9.0-rc-1`` style versions."""
        match = _VERSION_RE.match(text.strip())
        if not match:
            raise ValueError(f"Not a version: {text!r}")
        major, minor, patch = match.groups()
        return cls(int(major), int(minor), int(patch or 0))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass(frozen=True)
class Module:
    """One Gradle project inside a build."""

    name: str
    path: str
    source_files: tuple[str, ...] = ()
    tasks: tuple[str, ...] = ()

    @property
    def is_root(self) -> bool:
        return self.name == ":"


@dataclass(frozen=True)
class ProjectModel:
    """Immutable snapshot of a build project at analysis time."""

    root: Path
    name: str
    tool_version: ToolVersion | None
    modules: tuple[Module, ...]
    properties: dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def root_module(self) -> Module:
        for module in self.modules:
            if module.is_root:
                return module
        return self.modules[0]

    @property
    def module_count(self) -> int:
        return len(self.modules)

    @property
    def declared_files(self) -> list[str]:
        files: list[str] = []
        for module in self.modules:
            files.extend(module.source_files)
        return files

    def module_for(self, file: str) -> Module:
        """Return the innermost module whose directory contains ``file``."""
        file_path = PurePosixPath(file)
        best = self.root_module
        best_depth = -1
        for module in self.modules:
            if module.is_root:
                continue
            module_path = PurePosixPath(module.path)
            if file_path.is_relative_to(module_path):
                depth = len(module_path.parts)
                if depth > best_depth:
                    best, best_depth = module, depth
        return best


@dataclass(frozen=True)
class Location:
    """A span inside one file: 1-based inclusive lines, 0-based half-open offsets."""

    file: str
    start_line: int
    end_line: int
    start: int
    end: int

    def overlaps(self, other: Location) -> bool:
        if self.file != other.file:
            return False
        if self.start == self.end:
            return other.start < self.start < other.end
        if other.start == other.end:
            return self.start < other.start < self.end
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.file}:{self.start_line}"
        return f"{self.file}:{self.start_line}-{self.end_line}"


@dataclass(frozen=True)
class Finding:
    """A single issue detected in build-script text."""

    finding_id: str
    signature_id: str
    category: IssueCategory
    severity: Severity
    location: Location
    matched_text: str
    message: str
    module: str = ":"
    replacements: tuple[str, ...] = ()
    in_multiline_string: bool = False
    cross_module: bool = False
    in_execution_block: bool = False

    @property
    def ambiguous(self) -> bool:
        return len(self.replacements) > 1

    @property
    def sort_key(self) -> tuple:
        loc = self.location
        return (loc.file, loc.start_line, loc.start, self.signature_id, loc.end)


@dataclass(frozen=True)
class ClassifiedFinding:
    """A Finding with its fix class and confidence score."""

    finding: Finding
    fix_class: FixClass
    confidence: float
    reasons: tuple[str, ...] = ()

    @property
    def finding_id(self) -> str:
        return self.finding.finding_id

    @property
    def category(self) -> IssueCategory:
        return self.finding.category

    @property
    def location(self) -> Location:
        return self.finding.location


@dataclass(frozen=True)
class FixAction:
    """One concrete, reversible text edit."""

    action_id: str
    location: Location
    original_text: str
    replacement_text: str
    source_finding_id: str
    category: IssueCategory
    module: str = ":"

    @property
    def diff(self) -> str:
        lines = [f"- {line}" for line in self.original_text.splitlines()]
        lines.extend(f"+ {line}" for line in self.replacement_text.splitlines())
        return "\n".join(lines)


@dataclass(frozen=True)
class ManualReviewItem:
    """A finding the plan does not fix automatically."""

    finding_id: str
    category: IssueCategory
    location: Location
    fix_class: FixClass
    confidence: float
    reason: str
    message: str = ""


@dataclass(frozen=True)
class PlanSummary:
    by_category: dict[str, int]
    auto_actions: int
    manual_review: int
    files_touched: int
    lines_changed: int
    estimated_minutes: int


@dataclass(frozen=True)
class FixPlan:
    """The complete, unapplied set of proposed edits plus summary."""

    actions: tuple[FixAction, ...]
    manual_review: tuple[ManualReviewItem, ...]
    summary: PlanSummary
    auto_threshold: float = 0.75

    @property
    def is_empty(self) -> bool:
        return not self.actions

    @property
    def files(self) -> list[str]:
        seen: dict[str, None] = {}
        for action in self.actions:
            seen.setdefault(action.location.file, None)
        return list(seen)


@dataclass(frozen=True)
class SkippedFile:
    """A source file the detector could not analyze."""

    file: str
    reason: str


@dataclass(frozen=True)
class StaleActionError:
    """A FixAction whose original text no longer matched the live file."""

    action_id: str
    file: str
    reason: str
