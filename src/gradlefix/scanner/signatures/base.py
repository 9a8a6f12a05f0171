"""Base classes for issue signatures."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from gradlefix.core.models import (
    Finding,
    IssueCategory,
    Location,
    ProjectModel,
    Severity,
    ToolVersion,
)
from gradlefix.scanner.lexer import LexicalMap

KOTLIN = "kotlin"
GROOVY = "groovy"
PROPERTIES = "properties"

SCRIPT_LANGUAGES = frozenset({KOTLIN, GROOVY})


@dataclass
class ScanContext:
    """Everything a signature may look at for one file."""

    model: ProjectModel
    file: str
    text: str
    language: str
    lexmap: LexicalMap | None = None
    module: str = ":"
    cross_module: bool = False

    def __post_init__(self) -> None:
        self._blocks = None

    def in_execution_block(self, offset: int) -> bool:
        if self.lexmap is None:
            return False
        if self._blocks is None:
            self._blocks = self.lexmap.execution_blocks()
        return any(b.body_start <= offset < b.body_end for b in self._blocks)


def location_for(file: str, text: str, start: int, end: int) -> Location:
    """Build a Location for the half-open span [start, end) of ``text``."""
    start_line = text.count("\n", 0, start) + 1
    last = max(start, end - 1)
    end_line = text.count("\n", 0, last) + 1 if end > start else start_line
    return Location(file=file, start_line=start_line, end_line=end_line, start=start, end=end)


def since(major: int, minor: int = 0):
    """Predicate: the replacement API exists in the project's tool version.

    An unknown version is treated as current.
    """
    required = ToolVersion(major, minor)

    def predicate(model: ProjectModel) -> bool:
        return model.tool_version is None or model.tool_version >= required

    return predicate


class Signature(ABC):
    """One entry of the issue catalog."""

    signature_id: str = ""
    category: IssueCategory = IssueCategory.DEPRECATED_API
    severity: Severity = Severity.MEDIUM
    message: str = ""
    languages: frozenset[str] = SCRIPT_LANGUAGES
    predicate = None

    def applies_to(self, model: ProjectModel) -> bool:
        """Model predicate gate; signatures without one always apply."""
        predicate = type(self).predicate
        return predicate is None or predicate(model)

    @abstractmethod
    def scan(self, ctx: ScanContext) -> list[Finding]:
        """Return raw findings for one file (ids are assigned by the detector)."""
        ...

    def _make_finding(
        self,
        ctx: ScanContext,
        start: int,
        end: int,
        replacements: tuple[str, ...] = (),
        message: str | None = None,
        in_multiline_string: bool = False,
        in_execution_block: bool = False,
    ) -> Finding:
        """Helper to create a Finding with this signature's defaults."""
        return Finding(
            finding_id="",
            signature_id=self.signature_id,
            category=self.category,
            severity=self.severity,
            location=location_for(ctx.file, ctx.text, start, end),
            matched_text=ctx.text[start:end],
            message=message or self.message,
            module=ctx.module,
            replacements=replacements,
            in_multiline_string=in_multiline_string,
            cross_module=ctx.cross_module,
            in_execution_block=in_execution_block,
        )


class TextSignature(Signature):
    """A regex signature over script text.

    ``scope`` narrows where a match counts: ``any``, ``execution`` (inside
    doLast/doFirst), ``configuration`` (outside them) or ``top-level``
    (brace depth zero).
    """

    pattern: re.Pattern = re.compile(r"(?!)")
    scope: str = "any"

    def scan(self, ctx: ScanContext) -> list[Finding]:
        findings = []
        lexmap = ctx.lexmap
        for match in self.pattern.finditer(ctx.text):
            start, end = match.span()
            if lexmap is not None and not lexmap.is_code(start):
                continue
            in_exec = ctx.in_execution_block(start)
            if self.scope == "execution" and not in_exec:
                continue
            if self.scope == "configuration" and in_exec:
                continue
            if self.scope == "top-level" and lexmap is not None and lexmap.depth_at(start) != 0:
                continue
            if not self.accept(match, ctx):
                continue
            findings.append(self._make_finding(
                ctx,
                start,
                end,
                replacements=self.replacements(match, ctx, in_exec),
                message=self.describe(match),
                in_multiline_string=lexmap is not None and lexmap.in_multiline_string(start),
                in_execution_block=in_exec,
            ))
        return findings

    def accept(self, match: re.Match, ctx: ScanContext) -> bool:
        return True

    def replacements(self, match: re.Match, ctx: ScanContext, in_exec: bool) -> tuple[str, ...]:
        """Candidate rewrites for the matched text. Empty means no mechanical fix."""
        return ()

    def describe(self, match: re.Match) -> str:
        return self.message


class PropertyCheck(Signature):
    """Fires when a gradle.properties setting is absent or not the expected value."""

    languages = frozenset({PROPERTIES})
    category = IssueCategory.PERFORMANCE_SETTING_MISSING
    property_key: str = ""
    expected: str = "true"

    def scan(self, ctx: ScanContext) -> list[Finding]:
        text = ctx.text
        wanted = f"{self.property_key}={self.expected}"
        line_re = re.compile(
            rf"^[ \t]*{re.escape(self.property_key)}[ \t]*[=:][ \t]*(?P<value>[^\r\n]*?)[ \t]*(?=\r?$)",
            re.MULTILINE,
        )

        current = None
        for match in line_re.finditer(text):
            current = match  # the last assignment wins, as in java.util.Properties

        if current is not None:
            if current.group("value") == self.expected:
                return []
            start = current.start() + (len(current.group(0)) - len(current.group(0).lstrip()))
            return [self._make_finding(
                ctx, start, current.end(),
                replacements=(wanted,),
                message=f"{self.message} ({self.property_key}={current.group('value')})",
            )]

        newline = "\r\n" if "\r\n" in text else "\n"
        prefix = newline if text and not text.endswith("\n") else ""
        return [self._make_finding(
            ctx, len(text), len(text),
            replacements=(f"{prefix}{wanted}{newline}",),
            message=f"{self.message} ({self.property_key} not set)",
        )]
