"""Tests for individual signatures in the catalog."""

from __future__ import annotations

from pathlib import Path

import pytest

from gradlefix.core.models import IssueCategory, Module, ProjectModel, ToolVersion
from gradlefix.scanner.lexer import lex
from gradlefix.scanner.signatures import ALL_SIGNATURES
from gradlefix.scanner.signatures.base import GROOVY, KOTLIN, PROPERTIES, ScanContext
from gradlefix.scanner.signatures.config_cache import (
    CC001SystemGetProperty,
    CC002SystemGetenv,
    CC003EagerTaskCreate,
    CC004EagerGetByName,
    CC005BuildDirTemplate,
    CC006ProjectBuildDir,
    CC007ProjectServiceAtExecution,
    CC008ProjectAccessAtExecution,
)
from gradlefix.scanner.signatures.migration import (
    MIG001ArchivesBaseName,
    MIG002MainClassName,
    MIG004EagerTaskDefinition,
    MIG005EagerTaskDependency,
    MIG006TopLevelCompatibility,
)
from gradlefix.scanner.signatures.performance import (
    PERF001TasksAll,
    PERF004ConfigurationTimeResolution,
    PERF101ParallelExecution,
    PERF102BuildCache,
    PERF103FileSystemWatching,
    PERF104ConfigurationCache,
)
from gradlefix.scanner.signatures.security import (
    SEC001HardcodedCredential,
    SEC002InsecureRepositoryUrl,
    SEC003AllowInsecureProtocol,
)


def _model(version: ToolVersion | None = ToolVersion(8, 5)) -> ProjectModel:
    return ProjectModel(
        root=Path("/work/demo"),
        name="demo",
        tool_version=version,
        modules=(Module(":", ".", ("build.gradle.kts",)),),
    )


def _scan(signature, text: str, language: str = KOTLIN, file: str = "build.gradle.kts"):
    ctx = ScanContext(
        model=_model(),
        file=file,
        text=text,
        language=language,
        lexmap=lex(text) if language != PROPERTIES else None,
    )
    return signature.scan(ctx)


EXEC_BLOCK = (
    'tasks.register("printEnv") {\n'
    "    doLast {\n"
    "        {body}\n"
    "    }\n"
    "}\n"
)


def _in_do_last(body: str) -> str:
    return EXEC_BLOCK.replace("{body}", body)


class TestCatalog:
    def test_signature_ids_are_unique(self):
        ids = [cls.signature_id for cls in ALL_SIGNATURES]
        assert len(ids) == len(set(ids))

    def test_every_category_has_a_signature(self):
        covered = {cls.category for cls in ALL_SIGNATURES}
        assert covered == set(IssueCategory)


class TestSystemPropertyAccess:
    def test_kotlin_lookup(self):
        findings = _scan(CC001SystemGetProperty(), 'val v = System.getProperty("env")\n')

        assert len(findings) == 1
        finding = findings[0]
        assert finding.matched_text == 'System.getProperty("env")'
        assert finding.replacements == ('providers.systemProperty("env").orNull',)
        assert finding.location.start_line == 1
        assert not finding.in_execution_block

    def test_groovy_lookup_with_default(self):
        findings = _scan(
            CC001SystemGetProperty(), "def v = System.getProperty('env', 'dev')\n", GROOVY, "build.gradle"
        )
        assert findings[0].replacements == ("providers.systemProperty('env').getOrElse('dev')",)

    def test_groovy_lookup_without_default(self):
        findings = _scan(CC002SystemGetenv(), "def t = System.getenv('TOKEN')\n", GROOVY, "build.gradle")
        assert findings[0].replacements == ("providers.environmentVariable('TOKEN').getOrNull()",)

    def test_commented_out_call_is_ignored(self):
        assert _scan(CC001SystemGetProperty(), '// System.getProperty("env")\n') == []

    def test_call_in_string_is_ignored(self):
        assert _scan(CC002SystemGetenv(), 'val doc = "System.getenv(\'HOME\')"\n') == []

    def test_execution_block_offers_two_rewrites(self):
        findings = _scan(CC001SystemGetProperty(), _in_do_last('println(System.getProperty("user.home"))'))

        assert len(findings) == 1
        assert findings[0].in_execution_block
        assert findings[0].ambiguous
        assert findings[0].location.start_line == 3

    def test_call_in_multiline_template_is_flagged(self):
        text = 'val banner = """\n  ${System.getenv("USER")}\n"""\n'
        findings = _scan(CC002SystemGetenv(), text)

        assert len(findings) == 1
        assert findings[0].in_multiline_string


class TestEagerTasks:
    def test_tasks_create_with_type(self):
        findings = _scan(CC003EagerTaskCreate(), 'tasks.create<Copy>("copyDocs") {\n}\n')

        assert findings[0].matched_text == 'tasks.create<Copy>("copyDocs"'
        assert findings[0].replacements == ('tasks.register<Copy>("copyDocs"',)

    def test_get_by_name(self):
        findings = _scan(CC004EagerGetByName(), 'tasks.getByName("jar").enabled = false\n')
        assert findings[0].replacements == ('tasks.named("jar"',)

    def test_groovy_task_definition(self):
        text = "task hello(type: Copy) {\n}\n    task other {\n    }\n"
        findings = _scan(MIG004EagerTaskDefinition(), text, GROOVY, "build.gradle")

        assert [f.replacements for f in findings] == [
            ("tasks.register('hello', Copy) {",),
            ("    tasks.register('other') {",),
        ]

    def test_groovy_task_definition_is_groovy_only(self):
        assert MIG004EagerTaskDefinition.languages == frozenset({GROOVY})

    def test_groovy_depends_on(self):
        findings = _scan(
            MIG005EagerTaskDependency(), "compileJava.dependsOn generateSources\n", GROOVY, "build.gradle"
        )
        assert findings[0].replacements == (
            "tasks.named('compileJava') { dependsOn 'generateSources' }",
        )

    def test_tasks_container_depends_on_is_not_matched(self):
        text = "tasks.dependsOn other\n"
        assert _scan(MIG005EagerTaskDependency(), text, GROOVY, "build.gradle") == []


class TestBuildDir:
    def test_template_reference(self):
        findings = _scan(CC005BuildDirTemplate(), 'val out = "$buildDir/reports"\n')

        assert findings[0].matched_text == "$buildDir"
        assert findings[0].replacements == ("${layout.buildDirectory.get().asFile}",)

    def test_braced_template_reference(self):
        findings = _scan(CC005BuildDirTemplate(), 'val out = "${buildDir}/reports"\n')
        assert findings[0].matched_text == "${buildDir}"

    def test_single_quoted_groovy_string_is_literal(self):
        assert _scan(CC005BuildDirTemplate(), "def out = '$buildDir'\n", GROOVY, "build.gradle") == []

    def test_project_build_dir_at_configuration_time(self):
        findings = _scan(CC006ProjectBuildDir(), "val out = project.buildDir\n")
        assert findings[0].replacements == ("layout.buildDirectory.get().asFile",)

    def test_project_build_dir_at_execution_time_is_left_to_cc008(self):
        text = _in_do_last("println(project.buildDir)")
        assert _scan(CC006ProjectBuildDir(), text) == []
        assert [f.signature_id for f in _scan(CC008ProjectAccessAtExecution(), text)] == ["CC-008"]


class TestProjectAccessAtExecution:
    def test_service_call_in_do_last(self):
        findings = _scan(CC007ProjectServiceAtExecution(), _in_do_last("project.copy { from(\"a\") }"))

        assert len(findings) == 1
        assert findings[0].replacements == ()
        assert "FileSystemOperations" in findings[0].message

    def test_service_call_is_not_double_reported(self):
        assert _scan(CC008ProjectAccessAtExecution(), _in_do_last("project.exec { }")) == []

    def test_configuration_time_access_is_fine(self):
        assert _scan(CC008ProjectAccessAtExecution(), 'val v = project.version\n') == []


class TestMigration:
    def test_archives_base_name_kotlin(self):
        findings = _scan(MIG001ArchivesBaseName(), 'archivesBaseName = "app"\n')
        assert findings[0].replacements == ('base.archivesName.set("app")',)

    def test_archives_base_name_groovy(self):
        findings = _scan(MIG001ArchivesBaseName(), "archivesBaseName = 'app'\n", GROOVY, "build.gradle")
        assert findings[0].replacements == ("base.archivesName = 'app'",)

    def test_predicate_gates_on_version(self):
        signature = MIG001ArchivesBaseName()
        assert signature.applies_to(_model(ToolVersion(8, 5)))
        assert signature.applies_to(_model(None))
        assert not signature.applies_to(_model(ToolVersion(6, 0)))

    def test_main_class_name(self):
        findings = _scan(MIG002MainClassName(), 'mainClassName = "demo.Main"\n')
        assert findings[0].replacements == ('application.mainClass.set("demo.Main")',)

    def test_top_level_compatibility(self):
        text = (
            "sourceCompatibility = 1.8\n"
            "java {\n"
            "    targetCompatibility = JavaVersion.VERSION_17\n"
            "}\n"
        )
        findings = _scan(MIG006TopLevelCompatibility(), text, GROOVY, "build.gradle")

        assert len(findings) == 1
        assert findings[0].location.start_line == 1
        assert findings[0].replacements == ()


class TestPerformance:
    def test_tasks_all(self):
        findings = _scan(PERF001TasksAll(), "tasks.all {\n}\n")
        assert findings[0].category is IssueCategory.EAGER_CONFIGURATION

    def test_configuration_time_resolution(self):
        findings = _scan(PERF004ConfigurationTimeResolution(), "val jars = configurations.runtimeClasspath.resolve()\n")
        assert "runtimeClasspath" in findings[0].message

    def test_resolution_inside_do_last_is_fine(self):
        text = _in_do_last("configurations.runtimeClasspath.resolve()")
        assert _scan(PERF004ConfigurationTimeResolution(), text) == []


class TestPropertyChecks:
    def _scan_props(self, signature, text: str):
        return _scan(signature, text, PROPERTIES, "gradle.properties")

    def test_missing_file_appends_setting(self):
        findings = self._scan_props(PERF101ParallelExecution(), "")

        assert len(findings) == 1
        loc = findings[0].location
        assert (loc.start, loc.end) == (0, 0)
        assert findings[0].replacements == ("org.gradle.parallel=true\n",)

    def test_missing_key_appends_after_unterminated_last_line(self):
        text = "org.gradle.caching=true"
        findings = self._scan_props(PERF101ParallelExecution(), text)

        assert findings[0].location.start == len(text)
        assert findings[0].replacements == ("\norg.gradle.parallel=true\n",)

    def test_wrong_value_is_replaced(self):
        text = "org.gradle.jvmargs=-Xmx2g\norg.gradle.parallel=false\n"
        findings = self._scan_props(PERF101ParallelExecution(), text)

        assert findings[0].matched_text == "org.gradle.parallel=false"
        assert findings[0].replacements == ("org.gradle.parallel=true",)
        assert findings[0].location.start_line == 2

    def test_enabled_setting_is_fine(self):
        assert self._scan_props(PERF101ParallelExecution(), "org.gradle.parallel=true\n") == []

    @pytest.mark.parametrize("signature", [
        PERF101ParallelExecution(), PERF102BuildCache(), PERF104ConfigurationCache(),
    ])
    def test_crlf_file_with_settings_enabled_is_fine(self, signature):
        text = (
            "org.gradle.parallel=true\r\n"
            "org.gradle.caching = true \r\n"
            "org.gradle.configuration-cache=true\r\n"
        )
        assert self._scan_props(signature, text) == []

    def test_crlf_wrong_value_keeps_carriage_return_outside_span(self):
        text = "org.gradle.jvmargs=-Xmx2g\r\norg.gradle.parallel=false\r\n"
        finding = self._scan_props(PERF101ParallelExecution(), text)[0]

        assert finding.matched_text == "org.gradle.parallel=false"
        assert text[finding.location.end:] == "\r\n"

    def test_crlf_missing_key_appends_crlf_line(self):
        findings = self._scan_props(PERF101ParallelExecution(), "org.gradle.caching=true\r\n")
        assert findings[0].replacements == ("org.gradle.parallel=true\r\n",)

    @pytest.mark.parametrize("version, applies", [
        (ToolVersion(6, 7), True),
        (ToolVersion(8, 5), False),
        (ToolVersion(6, 0), False),
        (None, False),
    ])
    def test_file_system_watching_window(self, version, applies):
        assert PERF103FileSystemWatching().applies_to(_model(version)) is applies

    def test_configuration_cache_needs_6_6(self):
        assert not PERF104ConfigurationCache().applies_to(_model(ToolVersion(6, 5)))
        assert PERF104ConfigurationCache().applies_to(_model(ToolVersion(7, 0)))


class TestSecurity:
    def test_hardcoded_password(self):
        findings = _scan(SEC001HardcodedCredential(), 'val password = "hunter2hunter2"\n')

        assert len(findings) == 1
        assert findings[0].category is IssueCategory.CREDENTIAL_EXPOSURE
        assert "password" in findings[0].message

    def test_api_key_in_credentials_block(self):
        findings = _scan(SEC001HardcodedCredential(), 'val apiKey = "abcd1234efgh"\n')
        assert len(findings) == 1

    def test_interpolated_value_is_not_a_literal(self):
        text = 'val token = "${findProperty("token")}"\n'
        assert _scan(SEC001HardcodedCredential(), text) == []

    def test_placeholder_value_is_ignored(self):
        assert _scan(SEC001HardcodedCredential(), 'val password = "changeme"\n') == []

    def test_http_repository(self):
        text = 'repositories {\n    maven { url = uri("http://repo.example.com/maven") }\n}\n'
        findings = _scan(SEC002InsecureRepositoryUrl(), text)
        assert findings[0].location.start_line == 2

    def test_groovy_http_repository(self):
        text = "maven { url 'http://repo.example.com' }\n"
        assert len(_scan(SEC002InsecureRepositoryUrl(), text, GROOVY, "build.gradle")) == 1

    def test_https_repository_is_fine(self):
        assert _scan(SEC002InsecureRepositoryUrl(), 'maven { url = uri("https://repo.example.com") }\n') == []

    def test_allow_insecure_protocol(self):
        findings = _scan(SEC003AllowInsecureProtocol(), "isAllowInsecureProtocol = true\n")
        assert len(findings) == 1
