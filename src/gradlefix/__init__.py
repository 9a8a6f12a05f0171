"""gradlefix: build-script issue detection and automated fix planning."""

from gradlefix._version import __version__
from gradlefix.fix.engine import FixEngine
from gradlefix.fix.models import RunReport, RunState

__all__ = [
    "__version__",
    "FixEngine",
    "RunReport",
    "RunState",
]
