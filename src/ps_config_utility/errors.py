"""Error taxonomy for engine resolution, snapshot loading and configuration."""
from typing import Optional


class PsConfigError(Exception):
    """Base class for all errors surfaced to the command line."""


class ConfigError(PsConfigError):
    """Raised when tool settings are missing or invalid."""


class DirectoryError(PsConfigError):
    """Raised when the engine directory cannot complete a request."""

    def __init__(self, message: str, target: str = "", argument: Optional[str] = None):
        self.message = message
        self.target = target
        self.argument = argument
        super().__init__(message)

    def __str__(self) -> str:
        prefix = f"{self.argument}: " if self.argument else ""
        return f"{prefix}{self.message}"


class NotFoundError(DirectoryError):
    """No engine matches the given name or pattern."""

    def __init__(self, target: str, argument: Optional[str] = None):
        super().__init__(f"No engine found matching '{target}'", target, argument)


class AmbiguousError(DirectoryError):
    """A pattern search matched more than one engine."""

    def __init__(
        self,
        target: str,
        candidates: Optional[list[str]] = None,
        argument: Optional[str] = None,
    ):
        self.candidates = list(candidates or [])
        listing = ", ".join(self.candidates)
        super().__init__(
            f"'{target}' matches {len(self.candidates)} engines: {listing}",
            target,
            argument,
        )


class WrongTypeError(DirectoryError):
    """The resolved object is not a processing engine."""

    def __init__(self, target: str, type_name: str, argument: Optional[str] = None):
        self.type_name = type_name
        super().__init__(
            f"'{target}' is a {type_name or 'unknown'} object, not a processing engine",
            target,
            argument,
        )


class AmbiguousSourceError(PsConfigError):
    """A loaded snapshot collection does not hold exactly one engine."""

    def __init__(self, source: str, count: int):
        self.source = source
        self.count = count
        super().__init__(
            f"{source} holds {count} engine configurations; exactly one is required "
            "(cannot push or compare multiple engines' config as one)"
        )


class MalformedInputError(PsConfigError):
    """Snapshot JSON could not be parsed or has the wrong shape."""
