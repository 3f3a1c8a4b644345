"""Audit logging for engine configuration pushes.

Every push onto a live engine (applied, dry-run or failed) is written as
one JSON line with the target's state before the push and the state the
push is expected to leave behind.
"""
import json
import logging
import os
from datetime import datetime, timezone
from dataclasses import dataclass, asdict
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Create dedicated audit logger
audit_logger = logging.getLogger("psconfig.audit")


def get_audit_dir() -> str:
    return os.environ.get(
        "PSCONFIG_AUDIT_DIR", os.path.expanduser("~/.ps-config-utility")
    )


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to PSCONFIG_AUDIT_DIR
            or ~/.ps-config-utility/

    Returns:
        Path of the audit log file
    """
    if log_dir is None:
        log_dir = get_audit_dir()

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = Path(log_dir) / "audit.log"

    audit_logger.setLevel(logging.INFO)

    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )

    # One JSON document per line
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)

    # Don't propagate to the application loggers
    audit_logger.propagate = False
    return audit_file


@dataclass
class ChangeRecord:
    """Record of a configuration push."""
    timestamp: str
    engine: str
    operation: str
    user: str
    dry_run: bool
    success: bool
    parameters: dict
    before_state: Optional[dict] = None
    after_state: Optional[dict] = None
    error: Optional[str] = None

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        """Parse from JSON string."""
        data = json.loads(json_str)
        return cls(**data)


class ChangeTracker:
    """Track and log configuration changes for one target engine."""

    def __init__(self, engine: str, user: str = ""):
        self.engine = engine
        self.user = user or os.environ.get("USER", "unknown")

    def log_change(
        self,
        operation: str,
        parameters: dict,
        success: bool,
        error: Optional[str] = None,
        dry_run: bool = False,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None,
    ) -> ChangeRecord:
        """Log a configuration change.

        Args:
            operation: The operation performed (e.g., "restore_engine")
            parameters: Parameters passed to the operation
            success: Whether the operation succeeded
            error: Error message if failed
            dry_run: Whether this was a dry-run (no actual changes)
            before_state: State before the change
            after_state: State after the change

        Returns:
            The ChangeRecord that was logged
        """
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            engine=self.engine,
            operation=operation,
            user=self.user,
            dry_run=dry_run,
            success=success,
            parameters=parameters,
            before_state=before_state,
            after_state=after_state,
            error=error,
        )

        audit_logger.info(record.to_json())

        return record
