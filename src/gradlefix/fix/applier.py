"""Fix application: exact-match text edits written atomically, one file at a time."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from gradlefix.core.models import FixAction, StaleActionError
from gradlefix.fix.models import AppliedAction
from gradlefix.scanner.signatures.base import location_for

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    applied: list[AppliedAction] = field(default_factory=list)
    stale: list[StaleActionError] = field(default_factory=list)
    files_written: list[str] = field(default_factory=list)


class FixApplier:
    """Applies FixActions to source files.

    Each action must still find its ``original_text`` at its recorded offset
    (shifted by the edits applied before it in the same file). The first
    mismatch marks the action stale and leaves the rest of that file alone.
    """

    def __init__(self, project_path: Path):
        self.project_path = Path(project_path)

    def apply(self, actions: list[FixAction] | tuple[FixAction, ...]) -> ApplyResult:
        result = ApplyResult()
        by_file: dict[str, list[FixAction]] = {}
        for action in actions:
            by_file.setdefault(action.location.file, []).append(action)

        for file, file_actions in by_file.items():
            self._apply_file(file, file_actions, result)
        return result

    def _apply_file(self, file: str, actions: list[FixAction], result: ApplyResult) -> None:
        path = self.project_path / file
        if path.exists():
            try:
                content = _read(path)
            except (OSError, UnicodeDecodeError) as e:
                self._mark_stale(actions, 0, file, f"file no longer readable: {e}", result)
                return
        elif all(_is_insertion(a) for a in actions):
            content = ""
        else:
            self._mark_stale(actions, 0, file, "file not found", result)
            return

        applied: list[AppliedAction] = []
        shift = 0
        for index, action in enumerate(actions):
            loc = action.location
            start = loc.start + shift
            end = start + len(action.original_text)
            if loc.end - loc.start != len(action.original_text) or content[start:end] != action.original_text:
                self._mark_stale(actions, index, file, "original text no longer at recorded location", result)
                break

            content = content[:start] + action.replacement_text + content[end:]
            new_end = start + len(action.replacement_text)
            applied.append(AppliedAction(
                action=action,
                applied_location=location_for(file, content, start, new_end),
            ))
            shift += len(action.replacement_text) - len(action.original_text)

        if not applied:
            return

        _write_atomic(path, content)
        result.applied.extend(applied)
        result.files_written.append(file)
        logger.debug("Applied %d actions to %s", len(applied), file)

    def _mark_stale(
        self, actions: list[FixAction], index: int, file: str, reason: str, result: ApplyResult
    ) -> None:
        first = actions[index]
        logger.warning("Stale action %s in %s: %s", first.action_id, file, reason)
        result.stale.append(StaleActionError(first.action_id, file, reason))
        for action in actions[index + 1:]:
            result.stale.append(
                StaleActionError(action.action_id, file, f"not applied after stale {first.action_id}")
            )


def _is_insertion(action: FixAction) -> bool:
    return action.original_text == "" and action.location.start == action.location.end


def _read(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _write_atomic(path: Path, content: str) -> None:
    """Write via a temp file in the same directory, then os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        if path.exists():
            os.chmod(tmp, path.stat().st_mode)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
