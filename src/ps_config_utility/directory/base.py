"""Engine directory abstraction.

The directory is the only path from the tool to the platform. It resolves
engine names, reads the live configuration of an engine and applies
updates. Resolution runs in two phases: an exact path lookup first, then a
pattern search when the exact lookup misses.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

from ..errors import AmbiguousError, NotFoundError, WrongTypeError

logger = logging.getLogger(__name__)

# Object class of processing engines on the platform
ENGINE_CLASS = "Venafi Platform"

ADDRESS_RANGE = "Address Range"
START_TIME = "Start Time"
ENGINE_ATTRIBUTES = (ADDRESS_RANGE, START_TIME)


def leaf_name(path: str) -> str:
    """Return the last component of a backslash-separated directory path."""
    return path.rstrip("\\").rsplit("\\", 1)[-1]


@dataclass(frozen=True)
class EngineIdentity:
    """A resolved directory object."""
    path: str
    guid: str = ""
    type_name: str = ENGINE_CLASS
    name: str = ""

    def __post_init__(self):
        if not self.name:
            object.__setattr__(self, "name", leaf_name(self.path))

    @property
    def is_engine(self) -> bool:
        return self.type_name == ENGINE_CLASS


class ResolveStatus(str, Enum):
    """Outcome of an engine lookup."""
    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    WRONG_TYPE = "wrong_type"


@dataclass
class ResolveResult:
    """Tagged result of a two-phase lookup."""
    query: str
    status: ResolveStatus
    identity: Optional[EngineIdentity] = None
    candidates: list[EngineIdentity] = field(default_factory=list)

    @classmethod
    def found(cls, query: str, identity: EngineIdentity) -> "ResolveResult":
        return cls(query=query, status=ResolveStatus.FOUND, identity=identity)

    @classmethod
    def not_found(cls, query: str) -> "ResolveResult":
        return cls(query=query, status=ResolveStatus.NOT_FOUND)

    @classmethod
    def ambiguous(cls, query: str, candidates: list[EngineIdentity]) -> "ResolveResult":
        return cls(query=query, status=ResolveStatus.AMBIGUOUS, candidates=candidates)

    @classmethod
    def wrong_type(cls, query: str, identity: EngineIdentity) -> "ResolveResult":
        return cls(query=query, status=ResolveStatus.WRONG_TYPE, identity=identity)

    def unwrap(self) -> EngineIdentity:
        """Return the identity or raise the error matching the status."""
        if self.status == ResolveStatus.FOUND and self.identity is not None:
            return self.identity
        if self.status == ResolveStatus.AMBIGUOUS:
            raise AmbiguousError(self.query, [c.path for c in self.candidates])
        if self.status == ResolveStatus.WRONG_TYPE and self.identity is not None:
            raise WrongTypeError(self.query, self.identity.type_name)
        raise NotFoundError(self.query)


class EngineDirectory(ABC):
    """Abstract interface for resolving and updating processing engines."""

    # Resolution
    def lookup(self, name_or_pattern: str) -> ResolveResult:
        """Resolve a name or pattern to exactly one engine.

        Tries an exact path lookup first and falls back to a pattern search
        restricted to engine objects.
        """
        exact = self._find_exact(name_or_pattern)
        if exact is not None:
            if not exact.is_engine:
                return ResolveResult.wrong_type(name_or_pattern, exact)
            return ResolveResult.found(name_or_pattern, exact)

        logger.debug(f"No exact match for '{name_or_pattern}', searching by pattern")
        matches = self._find_pattern(name_or_pattern)
        if not matches:
            return ResolveResult.not_found(name_or_pattern)
        if len(matches) > 1:
            return ResolveResult.ambiguous(name_or_pattern, sorted(matches, key=lambda i: i.path))
        return ResolveResult.found(name_or_pattern, matches[0])

    def resolve(self, name_or_pattern: str) -> EngineIdentity:
        """Resolve to an engine identity, raising on any other outcome."""
        return self.lookup(name_or_pattern).unwrap()

    @abstractmethod
    def _find_exact(self, name: str) -> Optional[EngineIdentity]:
        """Look up an object by path. Returns None when nothing exists there."""
        pass

    @abstractmethod
    def _find_pattern(self, pattern: str) -> list[EngineIdentity]:
        """Search engine objects by pattern."""
        pass

    # Reads
    @abstractmethod
    def list_all(self) -> list[EngineIdentity]:
        """List every engine, sorted by path."""
        pass

    @abstractmethod
    def get_attributes(
        self, identity: EngineIdentity, names: Iterable[str]
    ) -> dict[str, list[str]]:
        """Read attribute values for an engine."""
        pass

    @abstractmethod
    def get_folders(self, identity: EngineIdentity) -> list[str]:
        """Get the folder paths assigned to an engine."""
        pass

    # Writes
    @abstractmethod
    def add_folders(self, identity: EngineIdentity, folders: Iterable[str]) -> None:
        """Assign folders to an engine, keeping existing assignments."""
        pass

    @abstractmethod
    def set_attributes(
        self, identity: EngineIdentity, attributes: Mapping[str, Iterable[str]]
    ) -> None:
        """Overwrite the full value set of each named attribute."""
        pass
