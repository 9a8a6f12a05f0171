"""Project model reader: obtains a ProjectModel from a build-tool provider."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from gradlefix.core.errors import ProjectUnreadable, StageTimeout
from gradlefix.core.models import Module, ProjectModel, ToolVersion
from gradlefix.core.timeouts import call_with_timeout

logger = logging.getLogger(__name__)

MIN_SUPPORTED_VERSION = ToolVersion(4, 0, 0)

SETTINGS_SCRIPTS = ("settings.gradle.kts", "settings.gradle")
BUILD_SCRIPTS = ("build.gradle.kts", "build.gradle")
BUILD_SRC_SUFFIXES = (".gradle.kts", ".gradle", ".kt", ".groovy", ".java")

WRAPPER_PROPERTIES = "gradle/wrapper/gradle-wrapper.properties"
DISTRIBUTION_RE = re.compile(r"gradle-(\d+\.\d+(?:\.\d+)?(?:-[\w.-]+?)?)-(?:bin|all)\.zip")
INCLUDE_RE = re.compile(
    r"""^\s*include\b\s*"""
    r"""(?:\(([^)]*)\)|((?:["'][^"'\n]*["']\s*,\s*)*["'][^"'\n]*["']))""",
    re.MULTILINE,
)
QUOTED_RE = re.compile(r"""["']([^"']+)["']""")
ROOT_NAME_RE = re.compile(r"""rootProject\.name\s*=\s*["']([^"']+)["']""")
TASK_DECL_RE = re.compile(
    r"""tasks\.(?:register|create)\s*(?:<[^>]+>)?\s*\(\s*["']([^"']+)["']"""
    r"""|^\s*task\s+["']?(\w+)""",
    re.MULTILINE,
)


class ProjectModelProvider(Protocol):
    """Capability: given a path, return the module graph and declared tasks."""

    def load(self, project_path: Path) -> ProjectModel:
        ...


class ProjectModelReader:
    """Reads a ProjectModel through a provider, bounded by a timeout."""

    def __init__(self, provider: ProjectModelProvider | None = None, timeout: float | None = None):
        self.provider = provider or SettingsFileProvider()
        self.timeout = timeout

    def read(self, project_path: Path) -> ProjectModel:
        """Return the model or raise ProjectUnreadable; never a partial model."""
        project_path = Path(project_path)
        if not project_path.is_dir():
            raise ProjectUnreadable(
                f"Not a directory: {project_path}", diagnostic="path does not exist or is a file"
            )

        try:
            model = call_with_timeout(
                lambda: self.provider.load(project_path), self.timeout, "project-model"
            )
        except StageTimeout as e:
            raise ProjectUnreadable(
                "Build tool did not answer in time", diagnostic=str(e)
            ) from e
        except ProjectUnreadable:
            raise
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise ProjectUnreadable(
                f"Could not read project at {project_path}", diagnostic=f"{type(e).__name__}: {e}"
            ) from e

        logger.debug(
            "Read project %s: %d modules, tool version %s",
            model.name, model.module_count, model.tool_version or "unknown",
        )
        return model


class SettingsFileProvider:
    """Static provider that reads settings, wrapper and build scripts from disk.

    Stands in for a tooling-API connection when none is injected: it never
    evaluates the build, it only reads the descriptors.
    """

    def load(self, project_path: Path) -> ProjectModel:
        root = project_path.resolve()
        settings = _first_existing(root, SETTINGS_SCRIPTS)
        root_build = _first_existing(root, BUILD_SCRIPTS)
        if settings is None and root_build is None:
            raise ProjectUnreadable(
                f"No build descriptor in {root}",
                diagnostic="expected settings.gradle(.kts) or build.gradle(.kts)",
            )

        version = self._read_version(root)
        settings_text = settings.read_text() if settings else ""

        name_match = ROOT_NAME_RE.search(settings_text)
        name = name_match.group(1) if name_match else root.name

        modules = [self._root_module(root, settings, root_build)]
        for gradle_path in _parse_includes(settings_text):
            rel_dir = gradle_path.strip(":").replace(":", "/")
            modules.append(self._module(root, gradle_path, rel_dir))

        build_src = root / "buildSrc"
        if build_src.is_dir():
            modules.append(self._build_src_module(root, build_src))

        return ProjectModel(
            root=root,
            name=name,
            tool_version=version,
            modules=tuple(modules),
            properties=read_properties(root / "gradle.properties"),
        )

    def _read_version(self, root: Path) -> ToolVersion | None:
        wrapper = root / WRAPPER_PROPERTIES
        if not wrapper.exists():
            return None

        content = wrapper.read_text(errors="replace")
        match = DISTRIBUTION_RE.search(content)
        if not match:
            raise ProjectUnreadable(
                "Corrupted Gradle wrapper",
                diagnostic=f"no distributionUrl version in {WRAPPER_PROPERTIES}",
            )

        version = ToolVersion.parse(match.group(1))
        if version < MIN_SUPPORTED_VERSION:
            raise ProjectUnreadable(
                f"Unsupported Gradle version {version}",
                diagnostic=f"minimum supported version is {MIN_SUPPORTED_VERSION}",
            )
        return version

    def _root_module(self, root: Path, settings: Path | None, build: Path | None) -> Module:
        files = []
        if settings is not None:
            files.append(settings.name)
        if build is not None:
            files.append(build.name)
        files.append("gradle.properties")
        tasks = _declared_tasks(build) if build else ()
        return Module(name=":", path=".", source_files=tuple(sorted(files)), tasks=tasks)

    def _module(self, root: Path, gradle_path: str, rel_dir: str) -> Module:
        build = _first_existing(root / rel_dir, BUILD_SCRIPTS)
        files = (f"{rel_dir}/{build.name}",) if build else ()
        tasks = _declared_tasks(build) if build else ()
        name = gradle_path if gradle_path.startswith(":") else f":{gradle_path}"
        return Module(name=name, path=rel_dir, source_files=files, tasks=tasks)

    def _build_src_module(self, root: Path, build_src: Path) -> Module:
        files = []
        build = _first_existing(build_src, BUILD_SCRIPTS)
        if build is not None:
            files.append(build.relative_to(root).as_posix())
        main = build_src / "src" / "main"
        if main.is_dir():
            for path in main.rglob("*"):
                if path.is_file() and path.name.endswith(BUILD_SRC_SUFFIXES):
                    files.append(path.relative_to(root).as_posix())
        tasks = _declared_tasks(build) if build else ()
        return Module(name="buildSrc", path="buildSrc", source_files=tuple(sorted(files)), tasks=tasks)


def read_properties(path: Path) -> dict[str, str]:
    """Parse a Java-style properties file. Missing files yield an empty dict."""
    if not path.exists():
        return {}

    props: dict[str, str] = {}
    for raw in path.read_text(errors="replace").splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", "!")):
            continue
        key, sep, value = _split_property(line)
        if sep:
            props[key] = value
    return props


def _split_property(line: str) -> tuple[str, str, str]:
    for i, ch in enumerate(line):
        if ch in "=:":
            return line[:i].strip(), ch, line[i + 1:].strip()
    return line, "", ""


def _first_existing(directory: Path, names: tuple[str, ...]) -> Path | None:
    for name in names:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def _parse_includes(settings_text: str) -> list[str]:
    seen: dict[str, None] = {}
    for match in INCLUDE_RE.finditer(settings_text):
        for quoted in QUOTED_RE.findall(match.group(1) or match.group(2) or ""):
            path = quoted if quoted.startswith(":") else f":{quoted}"
            seen.setdefault(path, None)
    return list(seen)


def _declared_tasks(build: Path) -> tuple[str, ...]:
    text = build.read_text(errors="replace")
    names = {a or b for a, b in TASK_DECL_RE.findall(text)}
    return tuple(sorted(names))
