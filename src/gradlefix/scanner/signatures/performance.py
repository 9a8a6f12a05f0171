"""Build performance signatures (PERF-001 through PERF-104)."""

from __future__ import annotations

import re

from gradlefix.core.models import IssueCategory, ProjectModel, Severity, ToolVersion
from gradlefix.scanner.signatures.base import PropertyCheck, TextSignature, since


class PERF001TasksAll(TextSignature):
    signature_id = "PERF-001"
    category = IssueCategory.EAGER_CONFIGURATION
    severity = Severity.MEDIUM
    message = "tasks.all { } realizes every task; use tasks.configureEach { }"
    pattern = re.compile(r"\btasks\.all\s*\{")


class PERF002AfterEvaluate(TextSignature):
    signature_id = "PERF-002"
    category = IssueCategory.EAGER_CONFIGURATION
    severity = Severity.LOW
    message = "afterEvaluate { } defers configuration; prefer lazy properties"
    pattern = re.compile(r"\bafterEvaluate\s*\{")


class PERF003CrossProjectConfiguration(TextSignature):
    signature_id = "PERF-003"
    category = IssueCategory.EAGER_CONFIGURATION
    severity = Severity.LOW
    pattern = re.compile(r"\b(allprojects|subprojects)\s*\{")

    def describe(self, match: re.Match) -> str:
        return f"{match.group(1)} {{ }} couples projects; move shared logic into convention plugins"


class PERF004ConfigurationTimeResolution(TextSignature):
    signature_id = "PERF-004"
    category = IssueCategory.CONFIGURATION_TIME_RESOLUTION
    severity = Severity.HIGH
    scope = "configuration"
    pattern = re.compile(r"\bconfigurations\.(\w+)\.resolve\s*\(\s*\)")

    def describe(self, match: re.Match) -> str:
        return f"Configuration '{match.group(1)}' resolved at configuration time"


def _vfs_watch_opt_in(model: ProjectModel) -> bool:
    # watching is opt-in between 6.5 and 7.0, on by default afterwards
    version = model.tool_version
    return version is not None and ToolVersion(6, 5) <= version < ToolVersion(7, 0)


class PERF101ParallelExecution(PropertyCheck):
    signature_id = "PERF-101"
    severity = Severity.HIGH
    message = "Parallel project execution is disabled"
    property_key = "org.gradle.parallel"


class PERF102BuildCache(PropertyCheck):
    signature_id = "PERF-102"
    severity = Severity.HIGH
    message = "Build cache is disabled"
    property_key = "org.gradle.caching"
    predicate = since(3, 5)


class PERF103FileSystemWatching(PropertyCheck):
    signature_id = "PERF-103"
    severity = Severity.MEDIUM
    message = "File system watching is disabled"
    property_key = "org.gradle.vfs.watch"
    predicate = _vfs_watch_opt_in


class PERF104ConfigurationCache(PropertyCheck):
    signature_id = "PERF-104"
    severity = Severity.HIGH
    message = "Configuration cache is disabled"
    property_key = "org.gradle.configuration-cache"
    predicate = since(6, 6)
