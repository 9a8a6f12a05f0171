"""Confidence classifier: assigns a fix class and a 0..1 confidence to each finding."""

from __future__ import annotations

from gradlefix.core.models import ClassifiedFinding, Finding, FixClass, IssueCategory

# category -> (base confidence, fix class)
CATEGORY_TABLE: dict[IssueCategory, tuple[float, FixClass]] = {
    IssueCategory.EAGER_TASK: (0.90, FixClass.AUTO),
    IssueCategory.SYSTEM_PROPERTY_ACCESS: (0.90, FixClass.AUTO),
    IssueCategory.DEPRECATED_API: (0.85, FixClass.AUTO),
    IssueCategory.PERFORMANCE_SETTING_MISSING: (0.85, FixClass.AUTO),
    IssueCategory.PROJECT_ACCESS_AT_EXECUTION: (0.60, FixClass.MANUAL),
    IssueCategory.CONVENTION_DEPRECATION: (0.60, FixClass.MANUAL),
    IssueCategory.EAGER_CONFIGURATION: (0.50, FixClass.MANUAL),
    IssueCategory.CONFIGURATION_TIME_RESOLUTION: (0.50, FixClass.MANUAL),
    IssueCategory.CREDENTIAL_EXPOSURE: (0.95, FixClass.UNSAFE),
    IssueCategory.INSECURE_REPOSITORY: (0.90, FixClass.UNSAFE),
}

# Turning on the configuration cache only helps once the scripts are compatible.
SIGNATURE_OVERRIDES: dict[str, tuple[float, FixClass]] = {
    "PERF-104": (0.60, FixClass.MANUAL),
}

MULTILINE_STRING_PENALTY = 0.3
CROSS_MODULE_PENALTY = 0.1
AMBIGUOUS_PENALTY = 0.2


class ConfidenceClassifier:
    """Pure, table-driven classification. No I/O, no randomness."""

    def __init__(
        self,
        table: dict[IssueCategory, tuple[float, FixClass]] | None = None,
        overrides: dict[str, tuple[float, FixClass]] | None = None,
    ):
        self.table = table or CATEGORY_TABLE
        self.overrides = SIGNATURE_OVERRIDES if overrides is None else overrides

    def classify(self, finding: Finding) -> ClassifiedFinding:
        base, fix_class = self.overrides.get(
            finding.signature_id, self.table[finding.category]
        )
        confidence = base
        reasons = [f"base {base:.2f} for {finding.category.value}"]

        if finding.in_multiline_string:
            confidence -= MULTILINE_STRING_PENALTY
            reasons.append(f"-{MULTILINE_STRING_PENALTY} inside a multi-line string")
        if finding.cross_module:
            confidence -= CROSS_MODULE_PENALTY
            reasons.append(f"-{CROSS_MODULE_PENALTY} outside the root module")
        if finding.ambiguous:
            confidence -= AMBIGUOUS_PENALTY
            reasons.append(f"-{AMBIGUOUS_PENALTY} {len(finding.replacements)} candidate rewrites")

        confidence = round(min(1.0, max(0.0, confidence)), 4)

        if fix_class is FixClass.AUTO and not finding.replacements:
            fix_class = FixClass.MANUAL
            reasons.append("no mechanical rewrite available")

        return ClassifiedFinding(
            finding=finding,
            fix_class=fix_class,
            confidence=confidence,
            reasons=tuple(reasons),
        )

    def classify_all(self, findings: list[Finding]) -> list[ClassifiedFinding]:
        return [self.classify(f) for f in findings]
