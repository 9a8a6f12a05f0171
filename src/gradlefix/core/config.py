"""Configuration management for gradlefix (gradlefix.toml parsing + defaults)."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class DetectConfig:
    workers: int = 4
    categories: list[str] = field(default_factory=list)  # empty = all
    ignore: list[str] = field(default_factory=list)


@dataclass
class FixConfig:
    auto_threshold: float = 0.75
    dry_run: bool = False
    checkpoint: str = "snapshot"


@dataclass
class ComplexityConfig:
    small_modules: int = 5
    medium_modules: int = 20
    small_files: int = 50
    medium_files: int = 400


@dataclass
class TimeoutConfig:
    model_seconds: float = 120.0
    checkpoint_seconds: float = 60.0


@dataclass
class GradlefixConfig:
    """Complete gradlefix configuration."""

    exclude: list[str] = field(
        default_factory=lambda: [
            ".gradle/",
            "build/",
            ".gradlefix/",
            ".git/",
            "node_modules/",
        ]
    )
    detect: DetectConfig = field(default_factory=DetectConfig)
    fix: FixConfig = field(default_factory=FixConfig)
    complexity: ComplexityConfig = field(default_factory=ComplexityConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)


def load_config(project_path: Path | None = None) -> GradlefixConfig:
    """Load configuration from gradlefix.toml if present, otherwise return defaults."""
    config = GradlefixConfig()

    if project_path is None:
        project_path = Path.cwd()

    config_file = project_path / "gradlefix.toml"
    if not config_file.exists():
        return config

    with open(config_file, "rb") as f:
        data = tomllib.load(f)

    if "general" in data:
        gen = data["general"]
        if "exclude" in gen:
            config.exclude = gen["exclude"]

    if "detect" in data:
        d = data["detect"]
        for attr in ("workers", "categories", "ignore"):
            if attr in d:
                setattr(config.detect, attr, d[attr])

    if "fix" in data:
        fx = data["fix"]
        if "auto_threshold" in fx:
            config.fix.auto_threshold = float(fx["auto_threshold"])
        if "dry_run" in fx:
            config.fix.dry_run = fx["dry_run"]
        if "checkpoint" in fx:
            config.fix.checkpoint = fx["checkpoint"]

    if "complexity" in data:
        c = data["complexity"]
        for attr in ("small_modules", "medium_modules", "small_files", "medium_files"):
            if attr in c:
                setattr(config.complexity, attr, c[attr])

    if "timeouts" in data:
        t = data["timeouts"]
        for attr in ("model_seconds", "checkpoint_seconds"):
            if attr in t:
                setattr(config.timeouts, attr, float(t[attr]))

    return config


def get_gradlefix_dir(project_path: Path | None = None) -> Path:
    """Get or create the .gradlefix directory."""
    if project_path is None:
        project_path = Path.cwd()
    work_dir = project_path / ".gradlefix"
    work_dir.mkdir(exist_ok=True)
    return work_dir


def ensure_gitignore(project_path: Path | None = None) -> None:
    """Add .gradlefix/ to .gitignore if not already present."""
    if project_path is None:
        project_path = Path.cwd()
    gitignore = project_path / ".gitignore"
    entry = ".gradlefix/"

    if gitignore.exists():
        content = gitignore.read_text()
        if entry in content:
            return
        if not content.endswith("\n"):
            content += "\n"
        content += f"{entry}\n"
        gitignore.write_text(content)
    else:
        gitignore.write_text(f"{entry}\n")
