"""Credential and network-configuration signatures (SEC-001 through SEC-003).

Findings here are never fixed automatically.
"""

from __future__ import annotations

import re

from gradlefix.core.models import IssueCategory, Severity
from gradlefix.scanner.signatures.base import ScanContext, TextSignature

PLACEHOLDER_VALUES = {"changeme", "none", "null", "todo", "xxxx", "****"}


class SEC001HardcodedCredential(TextSignature):
    signature_id = "SEC-001"
    category = IssueCategory.CREDENTIAL_EXPOSURE
    severity = Severity.HIGH
    pattern = re.compile(
        r"""(?i)\b(\w*(?:password|passwd|secret|token|api_?key|access_?key))"""
        r"""\s*(?:=|:|\.set\s*\()\s*(["'])([^"'\n]{4,})\2"""
    )

    def accept(self, match: re.Match, ctx: ScanContext) -> bool:
        value = match.group(3)
        if "$" in value:
            return False
        return value.lower() not in PLACEHOLDER_VALUES

    def describe(self, match: re.Match) -> str:
        return f"Hardcoded credential in '{match.group(1)}'"


class SEC002InsecureRepositoryUrl(TextSignature):
    signature_id = "SEC-002"
    category = IssueCategory.INSECURE_REPOSITORY
    severity = Severity.HIGH
    message = "Repository URL uses plain http://"
    pattern = re.compile(r"""\burl\s*(?:=\s*|\(\s*|[ \t]+)(?:uri\s*\(\s*)?["']http://""")


class SEC003AllowInsecureProtocol(TextSignature):
    signature_id = "SEC-003"
    category = IssueCategory.INSECURE_REPOSITORY
    severity = Severity.HIGH
    message = "allowInsecureProtocol is enabled"
    pattern = re.compile(r"\b(?:isA|a)llowInsecureProtocol\s*(?:=\s*|\.set\s*\(\s*|\(\s*)true\b")
