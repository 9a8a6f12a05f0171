"""Exception types raised across gradlefix stages."""

from __future__ import annotations


class GradlefixError(Exception):
    """Base class for all gradlefix errors."""


class ProjectUnreadable(GradlefixError):
    """The project model could not be obtained. Never accompanied by a partial model."""

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic


class CheckpointFailure(GradlefixError):
    """A checkpoint could not be created, so no file may be touched."""


class StageTimeout(GradlefixError):
    """An external call exceeded its caller-supplied timeout."""

    def __init__(self, stage: str, timeout: float):
        super().__init__(f"{stage} timed out after {timeout:g}s")
        self.stage = stage
        self.timeout = timeout


class LexError(GradlefixError):
    """A script could not be split into code, comment and string regions."""


class VerificationFailure(GradlefixError):
    """A fixed category still fires at a location that was just rewritten."""

    def __init__(self, message: str, finding_ids: list[str] | None = None):
        super().__init__(message)
        self.finding_ids = finding_ids or []
