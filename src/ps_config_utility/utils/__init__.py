"""Utility modules for retries, logging and audit records."""
from .connection import with_retry, RETRYABLE_EXCEPTIONS
from .logging_config import setup_logging, timed, perf_logger
from .audit_log import ChangeRecord, ChangeTracker, setup_audit_logging

__all__ = [
    "with_retry",
    "RETRYABLE_EXCEPTIONS",
    "setup_logging",
    "timed",
    "perf_logger",
    "ChangeRecord",
    "ChangeTracker",
    "setup_audit_logging",
]
