"""Version-migration signatures (MIG-001 through MIG-006)."""

from __future__ import annotations

import re

from gradlefix.core.models import IssueCategory, Severity
from gradlefix.scanner.signatures.base import GROOVY, KOTLIN, ScanContext, TextSignature, since


class _PropertyAssignment(TextSignature):
    """``name = "value"`` assignments of a removed property."""

    category = IssueCategory.DEPRECATED_API
    severity = Severity.HIGH
    replacement_kotlin = ""
    replacement_groovy = ""

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        quote, value = match.group(1), match.group(2)
        template = self.replacement_kotlin if ctx.language == KOTLIN else self.replacement_groovy
        return (template.format(q=quote, value=value),)


class MIG001ArchivesBaseName(_PropertyAssignment):
    signature_id = "MIG-001"
    message = "archivesBaseName is removed in Gradle 9; use base.archivesName"
    predicate = since(7, 1)
    pattern = re.compile(r"""\barchivesBaseName\s*=\s*(["'])([^"'\n]+)\1""")
    replacement_kotlin = "base.archivesName.set({q}{value}{q})"
    replacement_groovy = "base.archivesName = {q}{value}{q}"


class MIG002MainClassName(_PropertyAssignment):
    signature_id = "MIG-002"
    message = "mainClassName is removed; use application.mainClass"
    predicate = since(6, 4)
    pattern = re.compile(r"""\bmainClassName\s*=\s*(["'])([^"'\n]+)\1""")
    replacement_kotlin = "application.mainClass.set({q}{value}{q})"
    replacement_groovy = "application.mainClass = {q}{value}{q}"


class MIG003ArchiveName(_PropertyAssignment):
    signature_id = "MIG-003"
    message = "archiveName is removed; use archiveFileName"
    predicate = since(5, 1)
    pattern = re.compile(r"""\barchiveName\s*=\s*(["'])([^"'\n]+)\1""")
    replacement_kotlin = "archiveFileName.set({q}{value}{q})"
    replacement_groovy = "archiveFileName = {q}{value}{q}"


class MIG004EagerTaskDefinition(TextSignature):
    """Groovy ``task name { }`` definitions."""

    signature_id = "MIG-004"
    category = IssueCategory.EAGER_TASK
    severity = Severity.MEDIUM
    message = "Eager Groovy task definition"
    languages = frozenset({GROOVY})
    predicate = since(4, 9)
    pattern = re.compile(
        r"^([ \t]*)task[ \t]+(\w+)(?:[ \t]*\([ \t]*type[ \t]*:[ \t]*([\w.]+)[ \t]*\))?[ \t]*\{",
        re.MULTILINE,
    )

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        indent, name, task_type = match.groups()
        if task_type:
            return (f"{indent}tasks.register('{name}', {task_type}) {{",)
        return (f"{indent}tasks.register('{name}') {{",)

    def describe(self, match: re.Match) -> str:
        return f"Eager task definition 'task {match.group(2)}'"


class MIG005EagerTaskDependency(TextSignature):
    """Groovy ``compileJava.dependsOn generate`` statements."""

    signature_id = "MIG-005"
    category = IssueCategory.EAGER_TASK
    severity = Severity.LOW
    message = "Eager task dependency declaration"
    languages = frozenset({GROOVY})
    predicate = since(4, 9)
    pattern = re.compile(
        r"^([ \t]*)(?!(?:tasks|project)\b)(\w+)\.dependsOn[ \t]+'?(\w+)'?[ \t]*$",
        re.MULTILINE,
    )

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        indent, task, dependency = match.groups()
        return (f"{indent}tasks.named('{task}') {{ dependsOn '{dependency}' }}",)

    def describe(self, match: re.Match) -> str:
        return f"{match.group(2)}.dependsOn realizes '{match.group(2)}' eagerly"


class MIG006TopLevelCompatibility(TextSignature):
    """Top-level source/targetCompatibility conventions."""

    signature_id = "MIG-006"
    category = IssueCategory.CONVENTION_DEPRECATION
    severity = Severity.MEDIUM
    scope = "top-level"
    pattern = re.compile(
        r"^[ \t]*(sourceCompatibility|targetCompatibility)[ \t]*=",
        re.MULTILINE,
    )

    def describe(self, match: re.Match) -> str:
        return f"Top-level {match.group(1)} convention; move it into java {{ }} or use a toolchain"
