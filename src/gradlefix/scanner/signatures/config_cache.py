"""Configuration-cache signatures (CC-001 through CC-008)."""

from __future__ import annotations

import re

from gradlefix.core.models import IssueCategory, Severity
from gradlefix.scanner.signatures.base import KOTLIN, ScanContext, TextSignature, since

SERVICE_INJECTION_CALLS = ("copy", "exec", "javaexec", "delete", "file")


def _provider_lookup(kind: str, key: str, quote: str, default: str | None, language: str) -> str:
    lookup = f"providers.{kind}({quote}{key}{quote})"
    if default is not None:
        return f"{lookup}.getOrElse({quote}{default}{quote})"
    return f"{lookup}.orNull" if language == KOTLIN else f"{lookup}.getOrNull()"


class CC001SystemGetProperty(TextSignature):
    """System.getProperty is a configuration input the cache cannot track."""

    signature_id = "CC-001"
    category = IssueCategory.SYSTEM_PROPERTY_ACCESS
    severity = Severity.HIGH
    message = "System.getProperty read at configuration time"
    predicate = since(6, 1)
    pattern = re.compile(
        r"""\bSystem\.getProperty\s*\(\s*(["'])([^"'\n]+)\1(?:\s*,\s*(["'])([^"'\n]*)\3)?\s*\)"""
    )

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        quote, key, _, default = match.groups()
        lookup = _provider_lookup("systemProperty", key, quote, default, ctx.language)
        if in_exec:
            # at execution time the value may be read eagerly or captured as an input
            return (lookup, f"providers.systemProperty({quote}{key}{quote}).get()")
        return (lookup,)

    def describe(self, match: re.Match) -> str:
        return f"System.getProperty({match.group(2)!r}) bypasses the Provider API"


class CC002SystemGetenv(TextSignature):
    """System.getenv is a configuration input the cache cannot track."""

    signature_id = "CC-002"
    category = IssueCategory.SYSTEM_PROPERTY_ACCESS
    severity = Severity.HIGH
    message = "System.getenv read at configuration time"
    predicate = since(6, 1)
    pattern = re.compile(r"""\bSystem\.getenv\s*\(\s*(["'])([^"'\n]+)\1\s*\)""")

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        quote, key = match.groups()
        lookup = _provider_lookup("environmentVariable", key, quote, None, ctx.language)
        if in_exec:
            return (lookup, f"providers.environmentVariable({quote}{key}{quote}).get()")
        return (lookup,)

    def describe(self, match: re.Match) -> str:
        return f"System.getenv({match.group(2)!r}) bypasses the Provider API"


class CC003EagerTaskCreate(TextSignature):
    signature_id = "CC-003"
    category = IssueCategory.EAGER_TASK
    severity = Severity.MEDIUM
    message = "tasks.create() eagerly creates and configures the task"
    predicate = since(4, 9)
    pattern = re.compile(r"""\btasks\.create\s*(<[^>\n]+>)?\s*\(\s*(["'])([^"'\n]+)\2""")

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        type_arg, quote, name = match.groups()
        return (f"tasks.register{type_arg or ''}({quote}{name}{quote}",)

    def describe(self, match: re.Match) -> str:
        return f"Eager task creation of '{match.group(3)}' with tasks.create()"


class CC004EagerGetByName(TextSignature):
    signature_id = "CC-004"
    category = IssueCategory.EAGER_TASK
    severity = Severity.MEDIUM
    message = "tasks.getByName() eagerly realizes the task"
    predicate = since(4, 9)
    pattern = re.compile(r"""\btasks\.getByName\s*(<[^>\n]+>)?\s*\(\s*(["'])([^"'\n]+)\2""")

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        type_arg, quote, name = match.groups()
        return (f"tasks.named{type_arg or ''}({quote}{name}{quote}",)

    def describe(self, match: re.Match) -> str:
        return f"Eager task access of '{match.group(3)}' with tasks.getByName()"


class CC005BuildDirTemplate(TextSignature):
    """``$buildDir`` / ``${buildDir}`` inside string templates."""

    signature_id = "CC-005"
    category = IssueCategory.DEPRECATED_API
    severity = Severity.MEDIUM
    message = "Deprecated $buildDir reference"
    predicate = since(4, 4)
    pattern = re.compile(r"\$(?:\{buildDir\}|buildDir\b)")

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        return ("${layout.buildDirectory.get().asFile}",)


class CC006ProjectBuildDir(TextSignature):
    signature_id = "CC-006"
    category = IssueCategory.DEPRECATED_API
    severity = Severity.MEDIUM
    message = "Deprecated project.buildDir reference"
    predicate = since(4, 4)
    scope = "configuration"
    pattern = re.compile(r"\bproject\.buildDir\b")

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        return ("layout.buildDirectory.get().asFile",)


class CC007ProjectServiceAtExecution(TextSignature):
    """project.copy/exec/delete inside doLast/doFirst needs an injected service."""

    signature_id = "CC-007"
    category = IssueCategory.PROJECT_ACCESS_AT_EXECUTION
    severity = Severity.HIGH
    scope = "execution"
    pattern = re.compile(r"\bproject\.(" + "|".join(SERVICE_INJECTION_CALLS) + r")\b")

    def describe(self, match: re.Match) -> str:
        call = match.group(1)
        service = "ExecOperations" if call in ("exec", "javaexec") else "FileSystemOperations"
        if call == "file":
            return "project.file at execution time; capture the file during configuration"
        return f"project.{call} at execution time; inject {service} instead"


class CC008ProjectAccessAtExecution(TextSignature):
    signature_id = "CC-008"
    category = IssueCategory.PROJECT_ACCESS_AT_EXECUTION
    severity = Severity.HIGH
    scope = "execution"
    pattern = re.compile(
        r"\bproject\.(?!(?:" + "|".join(SERVICE_INJECTION_CALLS) + r")\b)(\w+)"
    )

    def describe(self, match: re.Match) -> str:
        return f"project.{match.group(1)} accessed at execution time; capture it during configuration"
