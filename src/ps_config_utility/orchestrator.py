"""Orchestrator - backup, restore, copy and compare of engine configurations.

Each invocation runs one mode to completion:
1. Dump all engines (one-way, not valid restore input)
2. Back up one engine to a snapshot
3. Push a snapshot onto a live engine (folders added, attributes overwritten)
4. Compare two engines or snapshot files
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .directory.base import EngineDirectory, EngineIdentity
from .errors import DirectoryError, MalformedInputError
from .snapshot.diff import DiffLine, diff_snapshots
from .snapshot.schema import ConfigSnapshot, SnapshotCollection, load_single
from .utils.audit_log import ChangeTracker

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]


@dataclass
class PushPlan:
    """Changes a push would make to the target engine."""
    source: ConfigSnapshot
    target: EngineIdentity
    current: ConfigSnapshot
    folders_to_add: list[str] = field(default_factory=list)
    attribute_changes: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = field(
        default_factory=dict
    )

    @classmethod
    def build(
        cls, source: ConfigSnapshot, target: EngineIdentity, current: ConfigSnapshot
    ) -> "PushPlan":
        # Folder paths match case-insensitively, as on the platform
        assigned = {f.casefold() for f in current.folders}
        folders_to_add = []
        for folder in source.folders:
            if folder.casefold() not in assigned:
                assigned.add(folder.casefold())
                folders_to_add.append(folder)

        changes = {
            name: (current.attributes[name], values)
            for name, values in source.attributes.items()
            if current.attributes[name] != values
        }
        return cls(
            source=source,
            target=target,
            current=current,
            folders_to_add=folders_to_add,
            attribute_changes=changes,
        )

    @property
    def no_change(self) -> bool:
        return not self.folders_to_add and not self.attribute_changes

    @property
    def expected(self) -> ConfigSnapshot:
        """Target state after the push: folder union, source attributes."""
        return self.current.with_folders(
            self.current.folders + tuple(self.folders_to_add)
        ).with_attributes(self.source.attributes)


@dataclass
class PushResult:
    """Outcome of a push."""
    plan: PushPlan
    applied: bool = False
    dry_run: bool = False


def summarize_plan(plan: PushPlan) -> str:
    """Human-readable summary of a push plan."""
    if plan.no_change:
        return f"No changes needed - {plan.target.name} already matches {plan.source.engine_name}"

    lines = [f"Changes to {plan.target.path} from {plan.source.engine_name}:"]
    for folder in plan.folders_to_add:
        lines.append(f"  [+] Folder {folder}")
    for name, (old, new) in plan.attribute_changes.items():
        lines.append(f"  [~] {name}: {list(old)} -> {list(new)}")
    return "\n".join(lines)


class ConfigOrchestrator:
    """
    Runs the backup, restore and compare modes.

    Usage:
        orchestrator = ConfigOrchestrator(lambda: WebSdkDirectory(session))
        snapshot = orchestrator.backup("ENGINE01")
        orchestrator.push(snapshot, "ENGINE02")
    """

    def __init__(
        self,
        directory_factory: Callable[[], EngineDirectory],
        confirm: Optional[ConfirmCallback] = None,
        force: bool = False,
    ):
        """
        Args:
            directory_factory: Builds the directory on first use, so modes
                that only touch files never connect
            confirm: Asked before a push mutates a live engine
            force: Push without asking
        """
        self._directory_factory = directory_factory
        self._directory: Optional[EngineDirectory] = None
        self.confirm = confirm
        self.force = force

    @property
    def directory(self) -> EngineDirectory:
        if self._directory is None:
            self._directory = self._directory_factory()
        return self._directory

    def _resolve(self, name: str, argument: str) -> EngineIdentity:
        try:
            return self.directory.resolve(name)
        except DirectoryError as e:
            e.argument = argument
            raise

    def _snapshot(self, identity: EngineIdentity, argument: str) -> ConfigSnapshot:
        try:
            return ConfigSnapshot.from_directory(self.directory, identity)
        except DirectoryError as e:
            e.argument = argument
            raise

    # === Modes ===

    def dump_all(self) -> SnapshotCollection:
        """Snapshot every engine, in path order."""
        engines = self.directory.list_all()
        logger.info(f"Dumping configuration of {len(engines)} engines")
        return SnapshotCollection(
            tuple(self._snapshot(identity, "--all") for identity in engines)
        )

    def backup(self, in_engine: str, argument: str = "--in-engine") -> ConfigSnapshot:
        """Snapshot one live engine."""
        identity = self._resolve(in_engine, argument)
        return self._snapshot(identity, argument)

    def load_file(self, path: str) -> ConfigSnapshot:
        """Load a snapshot file that must describe exactly one engine."""
        try:
            # utf-8-sig accepts files written with a byte order mark
            text = Path(path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise MalformedInputError(f"Cannot read {path}: {e}") from e
        logger.info(f"Loaded snapshot file {path}")
        return load_single(text, source=str(path))

    def source_snapshot(
        self, in_engine: Optional[str] = None, in_file: Optional[str] = None
    ) -> ConfigSnapshot:
        """Snapshot from a live engine or a file; exactly one must be given."""
        if (in_engine is None) == (in_file is None):
            raise ValueError("Exactly one of in_engine or in_file is required")
        if in_file is not None:
            return self.load_file(in_file)
        return self.backup(in_engine)

    def push(
        self, source: ConfigSnapshot, out_engine: str, dry_run: bool = False
    ) -> PushResult:
        """
        Push a snapshot onto a live engine.

        Folders are added to the target's existing assignments; Address
        Range and Start Time replace the target's values. Resolution and
        confirmation complete before the first write.
        """
        target = self._resolve(out_engine, "--out-engine")
        current = self._snapshot(target, "--out-engine")
        plan = PushPlan.build(source, target, current)
        tracker = ChangeTracker(target.name)
        parameters = {"source": source.engine_name, "target": target.path}

        logger.info(summarize_plan(plan))

        if dry_run:
            tracker.log_change(
                "restore_engine", parameters, success=True, dry_run=True,
                before_state=current.to_dict(), after_state=plan.expected.to_dict(),
            )
            return PushResult(plan=plan, dry_run=True)

        if plan.no_change:
            return PushResult(plan=plan)

        if not self.force:
            prompt = f"Push configuration of {source.engine_name} to {target.path}?\n"
            prompt += summarize_plan(plan)
            if self.confirm is None or not self.confirm(prompt):
                logger.warning(f"Push to {target.path} declined; no changes made")
                return PushResult(plan=plan)

        try:
            self.directory.add_folders(target, source.folders)
            self.directory.set_attributes(target, source.attributes)
        except DirectoryError as e:
            # Folders may already be assigned at this point
            tracker.log_change(
                "restore_engine", parameters, success=False, error=str(e),
                before_state=current.to_dict(), after_state=plan.expected.to_dict(),
            )
            raise

        tracker.log_change(
            "restore_engine", parameters, success=True,
            before_state=current.to_dict(), after_state=plan.expected.to_dict(),
        )
        logger.info(f"Pushed configuration of {source.engine_name} to {target.path}")
        return PushResult(plan=plan, applied=True)

    def compare(self, engine1: str, engine2: str) -> list[DiffLine]:
        """Compare two engines or snapshot files line by line."""
        left = self._compare_source(engine1, "ENGINE1")
        right = self._compare_source(engine2, "ENGINE2")
        return diff_snapshots(left, right)

    def _compare_source(self, name: str, argument: str) -> ConfigSnapshot:
        path = Path(name)
        if path.is_file() and os.access(path, os.R_OK):
            return self.load_file(name)
        return self.backup(name, argument)
