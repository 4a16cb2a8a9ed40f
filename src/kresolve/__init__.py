"""Deployment-time configuration resolution for workload instances."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kresolve")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

# The engine is imported first: config, core and resources modules all depend
# on ``kresolve.engine.errors``.
from kresolve.engine import Reconciler, ReconcileResult, ResolutionError  # noqa: E402
from kresolve.config import EngineSettings, build_reconciler, load_settings  # noqa: E402
from kresolve.core import FileOutputStore, InMemoryOutputStore  # noqa: E402
from kresolve.log import configure_logging  # noqa: E402
from kresolve.resources import Composition, WorkloadInstance  # noqa: E402

__all__ = [
    "Composition",
    "EngineSettings",
    "FileOutputStore",
    "InMemoryOutputStore",
    "ReconcileResult",
    "Reconciler",
    "ResolutionError",
    "WorkloadInstance",
    "__version__",
    "build_reconciler",
    "configure_logging",
    "load_settings",
]
