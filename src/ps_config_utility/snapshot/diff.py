"""Line-level comparison of two engine snapshots.

Both snapshots are rendered to their canonical JSON form and compared line
by line. Only lines that appear on one side are reported.
"""
import difflib
from dataclasses import dataclass
from enum import Enum

from .schema import ConfigSnapshot


class Side(str, Enum):
    """Which input a differing line came from."""
    LEFT = "<="
    RIGHT = "=>"


@dataclass(frozen=True)
class DiffLine:
    """A line present in only one of the compared snapshots."""
    side: Side
    text: str

    def __str__(self) -> str:
        return f"{self.side.value} {self.text}"


def normalize_line(line: str) -> str:
    # Trailing commas depend on position within a JSON array
    return line.strip().rstrip(",").rstrip()


def _normalized(lines: list[str]) -> list[str]:
    return [n for n in (normalize_line(line) for line in lines) if n]


def diff_lines(left: list[str], right: list[str]) -> list[DiffLine]:
    """Report lines unique to either side, keeping relative order."""
    a = _normalized(left)
    b = _normalized(right)

    result: list[DiffLine] = []
    matcher = difflib.SequenceMatcher(a=a, b=b, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if tag in ("replace", "delete"):
            result.extend(DiffLine(Side.LEFT, line) for line in a[i1:i2])
        if tag in ("replace", "insert"):
            result.extend(DiffLine(Side.RIGHT, line) for line in b[j1:j2])
    return result


def diff_snapshots(left: ConfigSnapshot, right: ConfigSnapshot) -> list[DiffLine]:
    """Compare two snapshots through their canonical JSON form."""
    return diff_lines(left.to_json().splitlines(), right.to_json().splitlines())


def render_diff(lines: list[DiffLine]) -> str:
    return "\n".join(str(line) for line in lines)
