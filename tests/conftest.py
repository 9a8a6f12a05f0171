"""Shared fixtures: build small Gradle projects on disk."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

WRAPPER_TEMPLATE = (
    "distributionBase=GRADLE_USER_HOME\n"
    "distributionPath=wrapper/dists\n"
    "distributionUrl=https\\://services.gradle.org/distributions/gradle-{version}-bin.zip\n"
)

ALL_SETTINGS_ON = (
    "org.gradle.parallel=true\n"
    "org.gradle.caching=true\n"
    "org.gradle.configuration-cache=true\n"
)


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory that writes ``{relative path: content}`` under a fresh directory."""
    counter = {"n": 0}

    def _make(files: dict[str, str], gradle_version: str | None = None) -> Path:
        counter["n"] += 1
        root = tmp_path / f"project{counter['n']}"
        root.mkdir()
        if gradle_version is not None:
            files = {
                **files,
                "gradle/wrapper/gradle-wrapper.properties": WRAPPER_TEMPLATE.format(
                    version=gradle_version
                ),
            }
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return root

    return _make


@pytest.fixture
def scenario_a(make_project) -> Path:
    """Single module, one System.getProperty in a task configuration block."""
    return make_project({
        "settings.gradle.kts": 'rootProject.name = "scenario-a"\n',
        "build.gradle.kts": (
            'tasks.register("printHome") {\n'
            '    val home = System.getProperty("user.home")\n'
            "    doLast {\n"
            '        println("done")\n'
            "    }\n"
            "}\n"
        ),
        "gradle.properties": ALL_SETTINGS_ON,
    })


@pytest.fixture
def two_module_project(make_project) -> Path:
    """Root and :app, one automatic fix in each."""
    return make_project({
        "settings.gradle.kts": 'rootProject.name = "demo"\ninclude(":app")\n',
        "build.gradle.kts": 'val env = System.getProperty("env")\n',
        "app/build.gradle.kts": (
            'tasks.create("hello") {\n'
            "    doLast {\n"
            '        println("hi")\n'
            "    }\n"
            "}\n"
        ),
        "gradle.properties": ALL_SETTINGS_ON,
    }, gradle_version="8.5")


def snapshot_tree(root: Path) -> dict[str, bytes]:
    """Bytes of every file under ``root``, skipping the tool's own work directory."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file() and ".gradlefix" not in p.parts and p.name != ".gitignore"
    }


@pytest.fixture
def tree_bytes() -> Callable[[Path], dict[str, bytes]]:
    return snapshot_tree


@pytest.fixture
def settings_on() -> str:
    """gradle.properties content with every recommended setting enabled."""
    return ALL_SETTINGS_ON
