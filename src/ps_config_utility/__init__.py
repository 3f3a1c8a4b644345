"""ps-config-utility: backup, restore and comparison of processing engine configuration.

Handles three settings per engine: assigned folders, the Address Range
attribute and the Start Time attribute.
"""
from .directory import EngineDirectory, EngineIdentity
from .errors import (
    PsConfigError,
    ConfigError,
    DirectoryError,
    NotFoundError,
    AmbiguousError,
    WrongTypeError,
    AmbiguousSourceError,
    MalformedInputError,
)
from .orchestrator import ConfigOrchestrator, PushPlan, PushResult
from .snapshot import ConfigSnapshot, SnapshotCollection, diff_snapshots

__version__ = "0.1.0"

__all__ = [
    "EngineDirectory",
    "EngineIdentity",
    "PsConfigError",
    "ConfigError",
    "DirectoryError",
    "NotFoundError",
    "AmbiguousError",
    "WrongTypeError",
    "AmbiguousSourceError",
    "MalformedInputError",
    "ConfigOrchestrator",
    "PushPlan",
    "PushResult",
    "ConfigSnapshot",
    "SnapshotCollection",
    "diff_snapshots",
]
