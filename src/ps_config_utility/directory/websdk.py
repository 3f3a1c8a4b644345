"""Engine directory backed by the platform's WebSDK REST API.

Authentication uses the OAuth token endpoint; every other call carries the
bearer token of the session it was made through:

    with WebSdkSession.authenticate(settings) as session:
        directory = WebSdkDirectory(session)
        engine = directory.resolve("ENGINE01")
"""
import logging
from typing import Any, Iterable, Mapping, Optional

import httpx

from ..config.settings import ToolSettings
from ..errors import ConfigError, DirectoryError
from ..utils.connection import with_retry
from ..utils.logging_config import timed
from .base import ENGINE_CLASS, EngineDirectory, EngineIdentity

logger = logging.getLogger(__name__)

ENGINES_ROOT = r"\VED\Engines"

# Config API result code for success
RESULT_SUCCESS = 1


class WebSdkSession:
    """An authenticated connection to the WebSDK.

    Created once per invocation and passed to the directory explicitly.
    """

    def __init__(self, settings: ToolSettings, client: httpx.Client):
        self.settings = settings
        self.server = settings.host
        self._client = client
        self._token: Optional[str] = None
        self._send_retrying = with_retry(max_attempts=max(1, settings.retries))(self._send_once)

    @classmethod
    def authenticate(
        cls,
        settings: ToolSettings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "WebSdkSession":
        """Open a client and obtain an access token."""
        if not settings.server:
            raise ConfigError("No server given; use --server or set PSCONFIG_SERVER")
        if not settings.username:
            raise ConfigError("No username given; use --username or set PSCONFIG_USERNAME")

        client = httpx.Client(
            base_url=settings.base_url,
            timeout=httpx.Timeout(settings.timeout),
            verify=settings.verify_ssl,
            transport=transport,
        )
        session = cls(settings, client)
        try:
            session._login()
        except Exception:
            client.close()
            raise
        return session

    @timed("authenticate")
    def _login(self) -> None:
        logger.info(f"Authenticating to {self.server} as {self.settings.username}")
        data = self._send("POST", "/vedauth/authorize/oauth", {
            "client_id": self.settings.client_id,
            "username": self.settings.username,
            "password": self.settings.get_password(),
            "scope": self.settings.scope,
        })
        token = data.get("access_token")
        if not token:
            raise DirectoryError(f"Authentication to {self.server} returned no access token")
        self._token = token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def _send(self, method: str, path: str, body: Optional[dict] = None) -> dict:
        """Send with retries; transport failures that outlast them become DirectoryError."""
        try:
            return self._send_retrying(method, path, body)
        except (httpx.HTTPError, ConnectionError, TimeoutError) as e:
            raise DirectoryError(f"{method} {path} to {self.server} failed: {e}") from e

    def _send_once(self, method: str, path: str, body: Optional[dict] = None) -> dict:
        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        response = self._client.request(method, path, json=body, headers=headers)

        if response.status_code == 401:
            raise DirectoryError(f"{method} {path}: authentication rejected by {self.server}")
        if response.is_error:
            raise DirectoryError(
                f"{method} {path} failed: HTTP {response.status_code} {_error_text(response)}"
            )
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise DirectoryError(
                f"{method} {path}: response from {self.server} is not JSON: {response.text[:200]}"
            ) from e
        if not isinstance(data, dict):
            raise DirectoryError(f"{method} {path}: unexpected response from {self.server}: {data!r}")
        return data

    def post(self, path: str, body: dict) -> dict:
        return self._send("POST", path, body)

    def get(self, path: str) -> dict:
        return self._send("GET", path)

    def close(self) -> None:
        """Revoke the token and close the client."""
        if self._token:
            try:
                self._send_once("GET", "/vedauth/revoke/token")
            except (DirectoryError, httpx.HTTPError) as e:
                logger.warning(f"Could not revoke token on {self.server}: {e}")
            self._token = None
        self._client.close()

    def __enter__(self) -> "WebSdkSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _error_text(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("Error") or data.get("error_description") or data)
    return str(data)


def _identity(obj: dict) -> EngineIdentity:
    return EngineIdentity(
        path=obj.get("DN", ""),
        guid=obj.get("GUID", ""),
        type_name=obj.get("TypeName", ""),
        name=obj.get("Name", ""),
    )


def engine_dn(name: str) -> str:
    """Full path for an engine name; full paths pass through unchanged."""
    if name.startswith("\\"):
        return name
    return f"{ENGINES_ROOT}\\{name}"


class WebSdkDirectory(EngineDirectory):
    """EngineDirectory over the WebSDK Config and ProcessingEngines APIs."""

    def __init__(self, session: WebSdkSession):
        self.session = session
        self.server = session.server

    def _is_valid(self, dn: str) -> Optional[dict]:
        data = self.session.post("/vedsdk/config/isvalid", {"ObjectDN": dn})
        if data.get("Result") != RESULT_SUCCESS:
            return None
        return data.get("Object")

    @timed("find_exact")
    def _find_exact(self, name: str) -> Optional[EngineIdentity]:
        obj = self._is_valid(engine_dn(name))
        return _identity(obj) if obj else None

    @timed("find_pattern")
    def _find_pattern(self, pattern: str) -> list[EngineIdentity]:
        data = self.session.post(
            "/vedsdk/config/findobjectsofclass",
            {"Class": ENGINE_CLASS, "Pattern": pattern},
        )
        return [_identity(obj) for obj in data.get("Objects") or []]

    @timed("list_engines")
    def list_all(self) -> list[EngineIdentity]:
        return sorted(self._find_pattern("*"), key=lambda i: i.path)

    @timed("read_attributes")
    def get_attributes(
        self, identity: EngineIdentity, names: Iterable[str]
    ) -> dict[str, list[str]]:
        attributes = {}
        for name in names:
            data = self.session.post(
                "/vedsdk/config/read",
                {"ObjectDN": identity.path, "AttributeName": name},
            )
            if data.get("Error"):
                raise DirectoryError(
                    f"Reading '{name}' of {identity.path} failed: {data['Error']}",
                    target=identity.path,
                )
            attributes[name] = list(data.get("Values") or [])
        return attributes

    @timed("get_folders")
    def get_folders(self, identity: EngineIdentity) -> list[str]:
        data = self.session.get(f"/vedsdk/processingengines/engine/{_bare_guid(identity.guid)}")
        return [f["FolderDN"] for f in data.get("Folders") or [] if f.get("FolderDN")]

    @timed("add_folders")
    def add_folders(self, identity: EngineIdentity, folders: Iterable[str]) -> None:
        assigned = {f.casefold() for f in self.get_folders(identity)}
        missing = []
        for folder in folders:
            if folder.casefold() not in assigned:
                assigned.add(folder.casefold())
                missing.append(folder)
        if not missing:
            logger.info(f"{identity.name}: all folders already assigned")
            return

        # Resolve every folder before assigning any
        guids = []
        for folder in missing:
            obj = self._is_valid(folder)
            if obj is None:
                raise DirectoryError(f"Folder does not exist: {folder}", target=folder)
            guids.append(obj["GUID"])

        logger.info(f"{identity.name}: assigning {len(guids)} folders")
        data = self.session.post(
            f"/vedsdk/processingengines/engine/{_bare_guid(identity.guid)}",
            {"FolderGuids": guids},
        )
        errors = data.get("Errors") or []
        if errors:
            raise DirectoryError(
                f"Assigning folders to {identity.path} failed: {'; '.join(map(str, errors))}",
                target=identity.path,
            )

    @timed("write_attributes")
    def set_attributes(
        self, identity: EngineIdentity, attributes: Mapping[str, Iterable[str]]
    ) -> None:
        for name, values in attributes.items():
            values = list(values)
            if values:
                data = self.session.post("/vedsdk/config/write", {
                    "ObjectDN": identity.path,
                    "AttributeData": [{"Name": name, "Value": values}],
                })
            else:
                data = self.session.post("/vedsdk/config/clearattribute", {
                    "ObjectDN": identity.path,
                    "AttributeName": name,
                })
            _check_result(data, f"Writing '{name}' of {identity.path}")
            logger.debug(f"{identity.name}: {name} = {values}")


def _bare_guid(guid: str) -> str:
    return guid.strip("{}")


def _check_result(data: dict[str, Any], action: str) -> None:
    result = data.get("Result")
    if result != RESULT_SUCCESS:
        raise DirectoryError(f"{action} failed: result code {result}")
