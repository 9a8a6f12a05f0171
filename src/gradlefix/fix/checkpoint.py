"""Checkpoint providers: snapshot files before a batch is applied and restore them on rollback."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from itertools import count
from pathlib import Path
from typing import Protocol

from gradlefix.core.config import ensure_gitignore, get_gradlefix_dir
from gradlefix.core.errors import CheckpointFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    """Opaque handle returned by a provider; only that provider interprets ``data``."""

    checkpoint_id: str
    provider: str
    files: tuple[str, ...]
    data: dict = field(default_factory=dict, hash=False, compare=False)


class CheckpointProvider(Protocol):
    name: str

    def create(self, files: list[str]) -> Checkpoint:
        """Snapshot ``files`` (relative paths). Raises CheckpointFailure."""
        ...

    def restore(self, checkpoint: Checkpoint) -> bool:
        """Put every file back as it was at ``create``. Returns False if that failed."""
        ...

    def discard(self, checkpoint: Checkpoint) -> None:
        ...


class SnapshotCheckpointProvider:
    """Copies files into .gradlefix/backups/<timestamp>-<n>/ with a manifest."""

    name = "snapshot"
    _sequence = count(1)

    def __init__(self, project_path: Path):
        self.project_path = Path(project_path)

    @property
    def backup_dir(self) -> Path:
        if not (self.project_path / ".gradlefix").exists():
            ensure_gitignore(self.project_path)
        return get_gradlefix_dir(self.project_path) / "backups"

    def create(self, files: list[str]) -> Checkpoint:
        timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
        checkpoint_id = f"{timestamp}-{next(self._sequence)}"
        manifest = []
        session = None
        try:
            session = self.backup_dir / checkpoint_id
            session.mkdir(parents=True, exist_ok=False)
            for index, rel in enumerate(files):
                source = self.project_path / rel
                entry = {"file": rel, "backup": None, "existed": source.exists()}
                if entry["existed"]:
                    backup = session / f"{index:04d}.bak"
                    backup.write_bytes(source.read_bytes())
                    entry["backup"] = backup.name
                manifest.append(entry)
            (session / "manifest.json").write_text(json.dumps(manifest, indent=2))
        except OSError as e:
            if session is not None:
                shutil.rmtree(session, ignore_errors=True)
            raise CheckpointFailure(f"Could not snapshot files: {e}") from e

        logger.debug("Snapshot %s holds %d files", checkpoint_id, len(files))
        return Checkpoint(
            checkpoint_id=checkpoint_id,
            provider=self.name,
            files=tuple(files),
            data={"dir": str(session)},
        )

    def restore(self, checkpoint: Checkpoint) -> bool:
        session = Path(checkpoint.data["dir"])
        try:
            manifest = json.loads((session / "manifest.json").read_text())
            for entry in manifest:
                target = self.project_path / entry["file"]
                if entry["existed"]:
                    target.write_bytes((session / entry["backup"]).read_bytes())
                elif target.exists():
                    target.unlink()
        except (OSError, ValueError, KeyError) as e:
            logger.error("Restoring snapshot %s failed: %s", checkpoint.checkpoint_id, e)
            return False
        return True

    def discard(self, checkpoint: Checkpoint) -> None:
        shutil.rmtree(checkpoint.data["dir"], ignore_errors=True)


class GitCheckpointProvider:
    """Uses the project's own git history as the checkpoint.

    Only clean, committed files can be checkpointed this way; restore checks
    them out from the recorded HEAD.
    """

    name = "git"

    def __init__(self, project_path: Path, timeout: float = 30.0):
        self.project_path = Path(project_path)
        self.timeout = timeout

    def _git(self, *args: str) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.project_path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise CheckpointFailure(f"git {args[0]} timed out after {self.timeout:g}s") from e
        except OSError as e:
            raise CheckpointFailure(f"git could not be run: {e}") from e

    def create(self, files: list[str]) -> Checkpoint:
        if shutil.which("git") is None:
            raise CheckpointFailure("git is not installed")

        inside = self._git("rev-parse", "--is-inside-work-tree")
        if inside.returncode != 0 or inside.stdout.strip() != "true":
            raise CheckpointFailure(f"{self.project_path} is not inside a git work tree")

        head = self._git("rev-parse", "HEAD")
        if head.returncode != 0:
            raise CheckpointFailure("Repository has no commits to restore from")

        status = self._git("status", "--porcelain", "--", *files)
        dirty = [line for line in status.stdout.splitlines() if line.strip()]
        if status.returncode != 0 or dirty:
            raise CheckpointFailure(
                "Uncommitted changes in files to be fixed: " + ", ".join(d[3:] for d in dirty)
            )

        listed = self._git("ls-files", "--", *files)
        tracked = set(listed.stdout.splitlines())
        created = []
        for rel in files:
            if rel in tracked:
                continue
            if (self.project_path / rel).exists():
                raise CheckpointFailure(f"{rel} is neither tracked nor absent; git cannot restore it")
            created.append(rel)

        sha = head.stdout.strip()
        return Checkpoint(
            checkpoint_id=sha[:12],
            provider=self.name,
            files=tuple(files),
            data={"head": sha, "tracked": sorted(tracked), "created": created},
        )

    def restore(self, checkpoint: Checkpoint) -> bool:
        ok = True
        tracked = checkpoint.data["tracked"]
        try:
            if tracked:
                result = self._git("checkout", checkpoint.data["head"], "--", *tracked)
                if result.returncode != 0:
                    logger.error("git checkout failed: %s", result.stderr.strip())
                    ok = False
        except CheckpointFailure as e:
            logger.error("Restoring from git failed: %s", e)
            ok = False

        for rel in checkpoint.data["created"]:
            path = self.project_path / rel
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Could not remove %s: %s", rel, e)
                ok = False
        return ok

    def discard(self, checkpoint: Checkpoint) -> None:
        # committing is left to the user
        return None


class MemoryCheckpointProvider:
    """Keeps file bytes in memory. For tests and embedders."""

    name = "memory"

    def __init__(self, project_path: Path):
        self.project_path = Path(project_path)
        self.created: list[Checkpoint] = []
        self.restored: list[str] = []
        self.discarded: list[str] = []

    def create(self, files: list[str]) -> Checkpoint:
        snapshot: dict[str, bytes | None] = {}
        for rel in files:
            path = self.project_path / rel
            snapshot[rel] = path.read_bytes() if path.exists() else None
        checkpoint = Checkpoint(
            checkpoint_id=f"mem-{len(self.created) + 1}",
            provider=self.name,
            files=tuple(files),
            data={"snapshot": snapshot},
        )
        self.created.append(checkpoint)
        return checkpoint

    def restore(self, checkpoint: Checkpoint) -> bool:
        for rel, content in checkpoint.data["snapshot"].items():
            path = self.project_path / rel
            if content is None:
                path.unlink(missing_ok=True)
            else:
                path.write_bytes(content)
        self.restored.append(checkpoint.checkpoint_id)
        return True

    def discard(self, checkpoint: Checkpoint) -> None:
        self.discarded.append(checkpoint.checkpoint_id)


def make_checkpoint_provider(kind: str, project_path: Path, timeout: float = 30.0) -> CheckpointProvider:
    """Build the provider named by the ``[fix] checkpoint`` setting."""
    if kind == "snapshot":
        return SnapshotCheckpointProvider(project_path)
    if kind == "git":
        return GitCheckpointProvider(project_path, timeout=timeout)
    if kind == "memory":
        return MemoryCheckpointProvider(project_path)
    raise ValueError(f"Unknown checkpoint provider: {kind!r}")
