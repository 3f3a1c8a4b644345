"""Tool settings loaded from YAML, environment and command-line overrides.

Example psconfig.yaml:

```yaml
server: tpp.example.com
username: svc-backup
password_env: PSCONFIG_PASSWORD
timeout: 30
retries: 3
verify_ssl: true
```
"""
import logging
import os
import socket
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "ps-config-utility"
DEFAULT_SCOPE = "configuration:manage"

# Environment variables that override the settings file
ENV_OVERRIDES = {
    "server": "PSCONFIG_SERVER",
    "username": "PSCONFIG_USERNAME",
}


@dataclass
class ToolSettings:
    """Connection settings for the platform API."""
    server: Optional[str] = None
    client_id: str = DEFAULT_CLIENT_ID
    username: Optional[str] = None
    password: Optional[str] = None
    password_env: str = "PSCONFIG_PASSWORD"
    scope: str = DEFAULT_SCOPE
    timeout: int = 30
    retries: int = 3
    verify_ssl: bool = True

    def get_password(self) -> str:
        """Get password from settings or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")

    @property
    def host(self) -> str:
        return server_host(self.server or "")

    @property
    def base_url(self) -> str:
        server = (self.server or "").strip().rstrip("/")
        if "://" in server:
            return server
        return f"https://{server}"


def find_config_file() -> Optional[Path]:
    """Find psconfig.yaml in the usual places. The file is optional."""
    search_paths = [
        Path.cwd() / "configs" / "psconfig.yaml",
        Path.cwd() / "psconfig.yaml",
        Path.home() / ".config" / "ps-config-utility" / "psconfig.yaml",
        Path("/etc/ps-config-utility/psconfig.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path
    return None


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid settings file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")

    known = {f.name for f in fields(ToolSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown settings in {path}: {', '.join(unknown)}")
    return data


def load_settings(
    config_path: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> ToolSettings:
    """Build settings from file, then environment, then explicit overrides.

    Args:
        config_path: Settings file. When omitted the default locations are
            searched and a missing file is not an error.
        overrides: Values from the command line; None values are ignored.
    """
    values: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Settings file not found: {path}")
    else:
        path = find_config_file()

    if path is not None:
        logger.debug(f"Loading settings from {path}")
        values.update(_read_config_file(path))

    for key, env_var in ENV_OVERRIDES.items():
        if os.environ.get(env_var):
            values[key] = os.environ[env_var]

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    return ToolSettings(**values)


def server_host(server: str) -> str:
    """Strip scheme, port and path from a server argument."""
    server = server.strip()
    if "://" not in server:
        server = f"https://{server}"
    return urlparse(server).hostname or ""


def validate_server(server: Optional[str]) -> str:
    """Check that the server name resolves in DNS.

    Returns:
        The bare host name

    Raises:
        ConfigError: If no server is set or the name does not resolve
    """
    if not server:
        raise ConfigError("No server given; use --server or set PSCONFIG_SERVER")

    host = server_host(server)
    if not host:
        raise ConfigError(f"Invalid server name: {server}")

    try:
        socket.getaddrinfo(host, None)
    except socket.gaierror as e:
        raise ConfigError(f"Server name '{host}' does not resolve: {e}") from e
    return host
