"""Engine configuration snapshots and their JSON form."""
import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Union

from ..directory.base import ENGINE_ATTRIBUTES, EngineDirectory, EngineIdentity
from ..errors import AmbiguousSourceError, MalformedInputError, WrongTypeError

logger = logging.getLogger(__name__)


def _normalize_attributes(attributes: Mapping[str, Iterable[str]]) -> dict[str, tuple[str, ...]]:
    """Keep the recognized attributes in fixed order, values sorted."""
    unknown = sorted(set(attributes) - set(ENGINE_ATTRIBUTES))
    if unknown:
        logger.warning(f"Ignoring unsupported attributes: {', '.join(unknown)}")
    return {
        name: tuple(sorted(attributes.get(name) or ()))
        for name in ENGINE_ATTRIBUTES
    }


@dataclass(frozen=True)
class ConfigSnapshot:
    """Saved configuration of one processing engine.

    Folders are de-duplicated and sorted, attribute values are sorted, so
    two snapshots of the same state always serialize identically.
    """
    engine_name: str
    attributes: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    folders: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(
            self, "attributes", MappingProxyType(_normalize_attributes(self.attributes))
        )
        object.__setattr__(self, "folders", tuple(sorted(set(self.folders))))

    def __hash__(self) -> int:
        return hash((self.engine_name, tuple(self.attributes.items()), self.folders))

    @classmethod
    def from_directory(
        cls, directory: EngineDirectory, identity: EngineIdentity
    ) -> "ConfigSnapshot":
        """Capture the live configuration of an engine."""
        if not identity.is_engine:
            raise WrongTypeError(identity.path, identity.type_name)

        logger.info(f"Reading configuration of engine {identity.name}")
        attributes = directory.get_attributes(identity, ENGINE_ATTRIBUTES)
        folders = directory.get_folders(identity)
        logger.debug(f"{identity.name}: {len(folders)} folders assigned")
        return cls(engine_name=identity.name, attributes=attributes, folders=tuple(folders))

    def with_folders(self, folders: Iterable[str]) -> "ConfigSnapshot":
        return ConfigSnapshot(self.engine_name, self.attributes, tuple(folders))

    def with_attributes(self, attributes: Mapping[str, Iterable[str]]) -> "ConfigSnapshot":
        return ConfigSnapshot(self.engine_name, attributes, self.folders)

    def to_dict(self) -> dict:
        return {
            "Engine": self.engine_name,
            "Attributes": {name: list(values) for name, values in self.attributes.items()},
            "Folders": list(self.folders),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False) + "\n"

    @classmethod
    def from_dict(cls, data: Any) -> "ConfigSnapshot":
        if not isinstance(data, dict):
            raise MalformedInputError(
                f"Expected an engine object, got {type(data).__name__}"
            )

        engine = data.get("Engine")
        if not isinstance(engine, str) or not engine:
            raise MalformedInputError("Engine configuration is missing the 'Engine' name")

        raw_attributes = data.get("Attributes") or {}
        if not isinstance(raw_attributes, dict):
            raise MalformedInputError(f"{engine}: 'Attributes' must be an object")

        attributes = {
            name: _string_list(values, f"{engine}: attribute '{name}'")
            for name, values in raw_attributes.items()
        }
        folders = _string_list(data.get("Folders"), f"{engine}: 'Folders'")

        return cls(engine_name=engine, attributes=attributes, folders=tuple(folders))


def _string_list(value: Any, context: str) -> list[str]:
    """Read a list of strings, accepting a bare string as a single entry."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise MalformedInputError(f"{context} must be a list of strings")


@dataclass(frozen=True)
class SnapshotCollection:
    """Snapshots of several engines, in source order."""
    snapshots: tuple[ConfigSnapshot, ...] = ()

    def __iter__(self) -> Iterator[ConfigSnapshot]:
        return iter(self.snapshots)

    def __len__(self) -> int:
        return len(self.snapshots)

    def single(self, source: str = "input") -> ConfigSnapshot:
        """Return the only snapshot, or raise if there is not exactly one."""
        if len(self.snapshots) != 1:
            raise AmbiguousSourceError(source, len(self.snapshots))
        return self.snapshots[0]

    def to_json(self, indent: int = 2) -> str:
        data = [s.to_dict() for s in self.snapshots]
        return json.dumps(data, indent=indent, ensure_ascii=False) + "\n"


def load_snapshots(text: str) -> Union[ConfigSnapshot, SnapshotCollection]:
    """Parse a single-engine document or a dump-all array."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Invalid JSON: {e}") from e

    if isinstance(data, list):
        return SnapshotCollection(tuple(ConfigSnapshot.from_dict(item) for item in data))
    if isinstance(data, dict):
        return ConfigSnapshot.from_dict(data)
    raise MalformedInputError(
        f"Expected an object or an array of objects, got {type(data).__name__}"
    )


def load_single(text: str, source: str = "input") -> ConfigSnapshot:
    """Parse a document that must describe exactly one engine."""
    loaded = load_snapshots(text)
    if isinstance(loaded, SnapshotCollection):
        return loaded.single(source)
    return loaded
