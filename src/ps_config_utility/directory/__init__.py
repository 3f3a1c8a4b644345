"""Engine directory: resolution, reads and updates of processing engines."""
from .base import (
    ADDRESS_RANGE,
    START_TIME,
    ENGINE_ATTRIBUTES,
    ENGINE_CLASS,
    EngineDirectory,
    EngineIdentity,
    ResolveResult,
    ResolveStatus,
)
from .websdk import WebSdkDirectory, WebSdkSession

__all__ = [
    "ADDRESS_RANGE",
    "START_TIME",
    "ENGINE_ATTRIBUTES",
    "ENGINE_CLASS",
    "EngineDirectory",
    "EngineIdentity",
    "ResolveResult",
    "ResolveStatus",
    "WebSdkDirectory",
    "WebSdkSession",
]
