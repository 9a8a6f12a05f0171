"""Issue signature catalog: every built-in signature, in a fixed order."""

from gradlefix.scanner.signatures.base import PropertyCheck, Signature, TextSignature
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
    MIG003ArchiveName,
    MIG004EagerTaskDefinition,
    MIG005EagerTaskDependency,
    MIG006TopLevelCompatibility,
)
from gradlefix.scanner.signatures.performance import (
    PERF001TasksAll,
    PERF002AfterEvaluate,
    PERF003CrossProjectConfiguration,
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

# Bump whenever a signature is added, removed or changes what it matches.
CATALOG_VERSION = "2024.3"

ALL_SIGNATURES: list[type[Signature]] = [
    # Configuration cache (CC-001 .. CC-008)
    CC001SystemGetProperty,
    CC002SystemGetenv,
    CC003EagerTaskCreate,
    CC004EagerGetByName,
    CC005BuildDirTemplate,
    CC006ProjectBuildDir,
    CC007ProjectServiceAtExecution,
    CC008ProjectAccessAtExecution,
    # Migration (MIG-001 .. MIG-006)
    MIG001ArchivesBaseName,
    MIG002MainClassName,
    MIG003ArchiveName,
    MIG004EagerTaskDefinition,
    MIG005EagerTaskDependency,
    MIG006TopLevelCompatibility,
    # Performance (PERF-001 .. PERF-004, PERF-101 .. PERF-104)
    PERF001TasksAll,
    PERF002AfterEvaluate,
    PERF003CrossProjectConfiguration,
    PERF004ConfigurationTimeResolution,
    PERF101ParallelExecution,
    PERF102BuildCache,
    PERF103FileSystemWatching,
    PERF104ConfigurationCache,
    # Security (SEC-001 .. SEC-003)
    SEC001HardcodedCredential,
    SEC002InsecureRepositoryUrl,
    SEC003AllowInsecureProtocol,
]

__all__ = ["Signature", "TextSignature", "PropertyCheck", "ALL_SIGNATURES", "CATALOG_VERSION"]
