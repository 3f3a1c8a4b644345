"""Shared fixtures: an in-memory engine directory and isolated log files."""
import fnmatch
import logging
from typing import Iterable, Mapping, Optional

import pytest

from ps_config_utility.directory.base import (
    ADDRESS_RANGE,
    START_TIME,
    ENGINE_CLASS,
    EngineDirectory,
    EngineIdentity,
)
from ps_config_utility.utils.audit_log import audit_logger
from ps_config_utility.utils.logging_config import LOGGER_NAMES


class FakeDirectory(EngineDirectory):
    """In-memory directory that records every write call."""

    def __init__(self):
        self.objects: dict[str, EngineIdentity] = {}
        self.folders: dict[str, set[str]] = {}
        self.attributes: dict[str, dict[str, list[str]]] = {}
        self.writes: list[tuple] = []

    def add_engine(
        self,
        name: str,
        folders: Iterable[str] = (),
        attributes: Optional[Mapping[str, list[str]]] = None,
        type_name: str = ENGINE_CLASS,
    ) -> EngineIdentity:
        path = f"\\VED\\Engines\\{name}"
        identity = EngineIdentity(path=path, guid=f"{{{name}-guid}}", type_name=type_name)
        self.objects[path] = identity
        self.folders[path] = set(folders)
        self.attributes[path] = {ADDRESS_RANGE: [], START_TIME: []}
        self.attributes[path].update(attributes or {})
        return identity

    def _find_exact(self, name: str) -> Optional[EngineIdentity]:
        path = name if name.startswith("\\") else f"\\VED\\Engines\\{name}"
        return self.objects.get(path)

    def _find_pattern(self, pattern: str) -> list[EngineIdentity]:
        return [
            i for i in self.objects.values()
            if i.is_engine and fnmatch.fnmatchcase(i.name, pattern)
        ]

    def list_all(self) -> list[EngineIdentity]:
        return sorted(self._find_pattern("*"), key=lambda i: i.path)

    def get_attributes(self, identity, names):
        return {name: list(self.attributes[identity.path].get(name, [])) for name in names}

    def get_folders(self, identity):
        # Deliberately unsorted
        return sorted(self.folders[identity.path], reverse=True)

    def add_folders(self, identity, folders):
        folders = list(folders)
        self.writes.append(("add_folders", identity.path, folders))
        self.folders[identity.path].update(folders)

    def set_attributes(self, identity, attributes):
        attributes = {k: list(v) for k, v in attributes.items()}
        self.writes.append(("set_attributes", identity.path, attributes))
        self.attributes[identity.path].update(attributes)


@pytest.fixture
def directory():
    """Directory with two engines and one non-engine object."""
    d = FakeDirectory()
    d.add_engine(
        "ENGINE-E",
        folders=["F1"],
        attributes={ADDRESS_RANGE: ["10.0.0.0/24"], START_TIME: ["02:00"]},
    )
    d.add_engine(
        "ENGINE-T",
        folders=["F9"],
        attributes={ADDRESS_RANGE: ["192.168.1.0/24"], START_TIME: ["23:00"]},
    )
    d.add_engine("Policy-Object", type_name="Policy")
    return d


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    """Keep log and audit files inside the test's temporary directory."""
    monkeypatch.setenv("PSCONFIG_LOG_FILE", str(tmp_path / "logs" / "ps-config-utility.log"))
    monkeypatch.setenv("PSCONFIG_AUDIT_DIR", str(tmp_path / "audit"))
    yield
    for name in (*LOGGER_NAMES, audit_logger.name):
        target = logging.getLogger(name)
        for handler in list(target.handlers):
            target.removeHandler(handler)
            handler.close()
        target.propagate = True
