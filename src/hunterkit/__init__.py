from __future__ import annotations

# Runtime package version from the installed distribution metadata.
from importlib.metadata import PackageNotFoundError, version as _pkg_version

try:
    __version__ = _pkg_version("hunterkit")
except PackageNotFoundError:  # pragma: no cover - running from a source tree
    __version__ = "0.0.0"

from .core.config import HunterConfig
from .protocol.records import Admission, HuntingTask
from .runtime.execution import ExecutionSubsystem, Hunter
from .runtime.pipeline import AdmissionPipeline, CycleResult, CycleState
from .runtime.scheduler import HuntingScheduler

__all__ = [
    "Admission",
    "AdmissionPipeline",
    "CycleResult",
    "CycleState",
    "ExecutionSubsystem",
    "Hunter",
    "HunterConfig",
    "HuntingScheduler",
    "HuntingTask",
    "__version__",
]
