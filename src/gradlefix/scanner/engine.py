"""Issue detector: runs the signature catalog over a project's build files."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path

from gradlefix.core.errors import LexError
from gradlefix.core.models import Finding, IssueCategory, ProjectModel, SkippedFile
from gradlefix.scanner.lexer import lex
from gradlefix.scanner.signatures import ALL_SIGNATURES, Signature
from gradlefix.scanner.signatures.base import GROOVY, KOTLIN, PROPERTIES, ScanContext

logger = logging.getLogger(__name__)

PROPERTIES_FILE = "gradle.properties"


@dataclass
class DetectionResult:
    """Findings (sorted and numbered) plus the files that could not be analyzed."""

    findings: list[Finding] = field(default_factory=list)
    skipped: list[SkippedFile] = field(default_factory=list)

    @property
    def categories(self) -> set[IssueCategory]:
        return {f.category for f in self.findings}


def language_for(file: str) -> str | None:
    """Map a relative file path to the signature language it is scanned as."""
    name = file.rsplit("/", 1)[-1]
    if name == PROPERTIES_FILE:
        return PROPERTIES
    if name.endswith((".gradle.kts", ".kts", ".kt")):
        return KOTLIN
    if name.endswith((".gradle", ".groovy")):
        return GROOVY
    return None


class IssueDetector:
    """Main detector that runs every applicable signature on every build file."""

    def __init__(
        self,
        workers: int = 4,
        categories: set[IssueCategory] | None = None,
        ignore: list[str] | tuple[str, ...] = (),
        exclude: list[str] | tuple[str, ...] = (),
    ):
        self.workers = max(1, workers)
        self.categories = set(categories) if categories else None
        self.ignore = set(ignore)
        self.exclude = list(exclude)

    def restricted_to(self, categories: set[IssueCategory]) -> IssueDetector:
        """A detector with the same settings that only reports ``categories``."""
        return IssueDetector(
            workers=self.workers, categories=categories, ignore=self.ignore, exclude=self.exclude
        )

    def detect(self, model: ProjectModel, source_files: list[str] | None = None) -> DetectionResult:
        """Scan ``source_files`` (default: every declared file) and return sorted findings."""
        files = [f for f in (source_files if source_files is not None else model.declared_files)
                 if not self._excluded(f)]
        signatures = self._signatures_for(model)

        result = DetectionResult()
        if len(files) <= 1 or self.workers == 1:
            outcomes = [self._scan_file(model, file, signatures) for file in files]
        else:
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="gradlefix-detect") as pool:
                outcomes = list(pool.map(lambda f: self._scan_file(model, f, signatures), files))

        for findings, skipped in outcomes:
            result.findings.extend(findings)
            if skipped is not None:
                result.skipped.append(skipped)

        result.findings.sort(key=lambda f: f.sort_key)
        result.findings = [
            replace(f, finding_id=f"F-{i:03d}") for i, f in enumerate(result.findings, start=1)
        ]
        result.skipped.sort(key=lambda s: s.file)
        logger.debug(
            "Detected %d findings in %d files (%d skipped)",
            len(result.findings), len(files), len(result.skipped),
        )
        return result

    def _signatures_for(self, model: ProjectModel) -> list[Signature]:
        signatures = []
        for signature_cls in ALL_SIGNATURES:
            signature = signature_cls()
            if signature.signature_id in self.ignore:
                continue
            if self.categories is not None and signature.category not in self.categories:
                continue
            if not signature.applies_to(model):
                continue
            signatures.append(signature)
        return signatures

    def _scan_file(
        self, model: ProjectModel, file: str, signatures: list[Signature]
    ) -> tuple[list[Finding], SkippedFile | None]:
        language = language_for(file)
        if language is None:
            return [], None
        active = [s for s in signatures if language in s.languages]
        if not active:
            return [], None

        path = model.root / file
        try:
            if language == PROPERTIES and not path.exists():
                text = ""
            else:
                text = _read_script(path)
            lexmap = lex(text) if language != PROPERTIES else None
        except (OSError, UnicodeDecodeError, LexError) as e:
            logger.warning("Skipping %s: %s", file, e)
            return [], SkippedFile(file=file, reason=f"{type(e).__name__}: {e}")

        module = model.module_for(file).name
        ctx = ScanContext(
            model=model,
            file=file,
            text=text,
            language=language,
            lexmap=lexmap,
            module=module,
            cross_module=module != model.root_module.name,
        )
        findings: list[Finding] = []
        for signature in active:
            findings.extend(signature.scan(ctx))
        return findings, None

    def _excluded(self, file: str) -> bool:
        padded = f"/{file}/"
        return any(f"/{pattern.strip('/')}/" in padded for pattern in self.exclude)


def _read_script(path: Path) -> str:
    # newline="" keeps CRLF intact so offsets match the bytes written back
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()
