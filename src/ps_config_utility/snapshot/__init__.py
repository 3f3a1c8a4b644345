"""Engine configuration snapshots: model, JSON form and comparison."""
from .schema import ConfigSnapshot, SnapshotCollection, load_snapshots, load_single
from .diff import DiffLine, Side, diff_lines, diff_snapshots, render_diff

__all__ = [
    "ConfigSnapshot",
    "SnapshotCollection",
    "load_snapshots",
    "load_single",
    "DiffLine",
    "Side",
    "diff_lines",
    "diff_snapshots",
    "render_diff",
]
