"""Tests for the WebSDK engine directory against a mocked HTTP transport."""
import json

import httpx
import pytest

from ps_config_utility.config.settings import ToolSettings
from ps_config_utility.directory.base import ADDRESS_RANGE, START_TIME, EngineIdentity
from ps_config_utility.directory.websdk import WebSdkDirectory, WebSdkSession, engine_dn
from ps_config_utility.errors import (
    AmbiguousError,
    ConfigError,
    DirectoryError,
    NotFoundError,
    WrongTypeError,
)
from ps_config_utility.orchestrator import ConfigOrchestrator
from ps_config_utility.snapshot import ConfigSnapshot
from ps_config_utility.utils.audit_log import ChangeRecord, setup_audit_logging

ENGINE_A = {
    "DN": "\\VED\\Engines\\ENGINE-A",
    "GUID": "{aaaa-1111}",
    "Name": "ENGINE-A",
    "TypeName": "Venafi Platform",
}
ENGINE_B = {
    "DN": "\\VED\\Engines\\ENGINE-B",
    "GUID": "{bbbb-2222}",
    "Name": "ENGINE-B",
    "TypeName": "Venafi Platform",
}
POLICY = {
    "DN": "\\VED\\Policy\\Certs",
    "GUID": "{cccc-3333}",
    "Name": "Certs",
    "TypeName": "Policy",
}


class FakeWebSdk:
    """Minimal WebSDK server behind httpx.MockTransport."""

    def __init__(self):
        self.objects = {o["DN"]: o for o in (ENGINE_A, ENGINE_B, POLICY)}
        self.attributes = {"\\VED\\Engines\\ENGINE-A": {START_TIME: ["02:00"]}}
        self.folders = {"aaaa-1111": ["\\VED\\Policy\\Certs"], "bbbb-2222": []}
        self.requests: list[httpx.Request] = []
        self.token_revoked = False
        self.write_result = 1
        self.drop_paths: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.drop_paths:
            raise httpx.ConnectError("connection reset", request=request)
        body = json.loads(request.content) if request.content else {}

        if path == "/vedauth/authorize/oauth":
            if body.get("password") != "secret":
                return httpx.Response(400, json={"error_description": "bad credentials"})
            return httpx.Response(200, json={"access_token": "tok-123"})

        if request.headers.get("Authorization") != "Bearer tok-123":
            return httpx.Response(401)

        if path == "/vedauth/revoke/token":
            self.token_revoked = True
            return httpx.Response(200)
        if path == "/vedsdk/config/isvalid":
            obj = self.objects.get(body["ObjectDN"])
            if obj is None:
                return httpx.Response(200, json={"Result": 400})
            return httpx.Response(200, json={"Result": 1, "Object": obj})
        if path == "/vedsdk/config/findobjectsofclass":
            pattern = body["Pattern"].replace("*", "")
            objects = [
                o for o in self.objects.values()
                if o["TypeName"] == body["Class"] and pattern in o["Name"]
            ]
            return httpx.Response(200, json={"Result": 1, "Objects": objects})
        if path == "/vedsdk/config/read":
            values = self.attributes.get(body["ObjectDN"], {}).get(body["AttributeName"], [])
            return httpx.Response(200, json={"Result": 1, "Values": values})
        if path == "/vedsdk/config/write":
            if self.write_result != 1:
                return httpx.Response(200, json={"Result": self.write_result})
            attrs = self.attributes.setdefault(body["ObjectDN"], {})
            for item in body["AttributeData"]:
                attrs[item["Name"]] = item["Value"]
            return httpx.Response(200, json={"Result": 1})
        if path == "/vedsdk/config/clearattribute":
            self.attributes.setdefault(body["ObjectDN"], {}).pop(body["AttributeName"], None)
            return httpx.Response(200, json={"Result": 1})
        if path.startswith("/vedsdk/processingengines/engine/"):
            guid = path.rsplit("/", 1)[-1]
            if request.method == "GET":
                folders = [{"FolderDN": dn, "FolderGuid": "{x}"} for dn in self.folders[guid]]
                return httpx.Response(200, json={"Folders": folders})
            by_guid = {o["GUID"]: o["DN"] for o in self.objects.values()}
            added = [by_guid[g] for g in body["FolderGuids"]]
            self.folders[guid].extend(added)
            return httpx.Response(200, json={"AddedCount": len(added), "Errors": []})
        return httpx.Response(404, json={"Error": f"unknown path {path}"})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def websdk():
    return FakeWebSdk()


@pytest.fixture
def settings():
    return ToolSettings(server="tpp.example.com", username="svc", password="secret", retries=1)


@pytest.fixture
def session(websdk, settings):
    session = WebSdkSession.authenticate(settings, transport=httpx.MockTransport(websdk.handler))
    yield session
    session.close()


@pytest.fixture
def sdk_directory(session):
    return WebSdkDirectory(session)


class TestWebSdkSession:
    """Tests for authentication and the session lifecycle."""

    def test_authenticate(self, websdk, session, settings):
        """Login posts the OAuth request and keeps the token."""
        assert session.is_authenticated
        login = json.loads(websdk.requests[0].content)
        assert login == {
            "client_id": "ps-config-utility",
            "username": "svc",
            "password": "secret",
            "scope": "configuration:manage",
        }
        assert websdk.requests[0].url.host == "tpp.example.com"

    def test_bad_credentials(self, websdk, settings):
        """Rejected login raises DirectoryError."""
        settings.password = "wrong"
        with pytest.raises(DirectoryError) as exc:
            WebSdkSession.authenticate(settings, transport=httpx.MockTransport(websdk.handler))
        assert "bad credentials" in str(exc.value)

    def test_missing_username(self, websdk):
        """A username is required before any request."""
        settings = ToolSettings(server="tpp.example.com")
        with pytest.raises(ConfigError):
            WebSdkSession.authenticate(settings, transport=httpx.MockTransport(websdk.handler))
        assert websdk.requests == []

    def test_close_revokes_token(self, websdk, settings):
        """Closing the session revokes the token."""
        with WebSdkSession.authenticate(
            settings, transport=httpx.MockTransport(websdk.handler)
        ) as session:
            assert session.is_authenticated
        assert websdk.token_revoked
        assert not session.is_authenticated

    def test_transport_errors_retried(self, settings):
        """Transport failures are retried up to the configured attempts."""
        calls = []

        def flaky(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json={"access_token": "tok-123"})

        settings.retries = 2
        session = WebSdkSession.authenticate(settings, transport=httpx.MockTransport(flaky))
        assert session.is_authenticated
        assert len(calls) == 2

    def test_unreachable_server(self, settings):
        """Transport failures that outlast the retries raise DirectoryError."""
        calls = []

        def refuse(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DirectoryError) as exc:
            WebSdkSession.authenticate(settings, transport=httpx.MockTransport(refuse))
        assert "connection refused" in str(exc.value)
        assert isinstance(exc.value.__cause__, httpx.ConnectError)
        assert len(calls) == settings.retries

    def test_non_json_response(self, settings):
        """A success status with an HTML body raises DirectoryError."""
        def login_page(request):
            return httpx.Response(200, text="<html><body>Sign in</body></html>")

        with pytest.raises(DirectoryError) as exc:
            WebSdkSession.authenticate(settings, transport=httpx.MockTransport(login_page))
        assert "not JSON" in str(exc.value)


class TestWebSdkResolution:
    """Tests for lookup through the Config API."""

    def test_engine_dn(self):
        """Plain names live under the engines root."""
        assert engine_dn("E1") == "\\VED\\Engines\\E1"
        assert engine_dn("\\VED\\Engines\\E1") == "\\VED\\Engines\\E1"

    def test_resolve_exact(self, sdk_directory, websdk):
        """Exact names resolve with a single isvalid call."""
        identity = sdk_directory.resolve("ENGINE-A")
        assert identity == EngineIdentity(
            path="\\VED\\Engines\\ENGINE-A",
            guid="{aaaa-1111}",
            type_name="Venafi Platform",
            name="ENGINE-A",
        )
        assert websdk.paths()[-1] == "/vedsdk/config/isvalid"

    def test_resolve_pattern(self, sdk_directory, websdk):
        """A miss falls back to the class search."""
        identity = sdk_directory.resolve("*-B")
        assert identity.name == "ENGINE-B"
        search = json.loads(websdk.requests[-1].content)
        assert search == {"Class": "Venafi Platform", "Pattern": "*-B"}

    def test_resolve_ambiguous(self, sdk_directory):
        """Several search hits are ambiguous."""
        with pytest.raises(AmbiguousError):
            sdk_directory.resolve("ENGINE-*")

    def test_resolve_not_found(self, sdk_directory):
        """No hit raises NotFoundError."""
        with pytest.raises(NotFoundError):
            sdk_directory.resolve("nothing")

    def test_resolve_wrong_type(self, sdk_directory):
        """A non-engine path raises WrongTypeError."""
        with pytest.raises(WrongTypeError):
            sdk_directory.resolve("\\VED\\Policy\\Certs")

    def test_list_all(self, sdk_directory):
        """All engines, sorted by path."""
        assert [i.name for i in sdk_directory.list_all()] == ["ENGINE-A", "ENGINE-B"]


class TestWebSdkReadWrite:
    """Tests for attribute and folder calls."""

    def test_get_attributes(self, sdk_directory):
        """Unset attributes read as empty lists."""
        identity = sdk_directory.resolve("ENGINE-A")
        attrs = sdk_directory.get_attributes(identity, [ADDRESS_RANGE, START_TIME])
        assert attrs == {ADDRESS_RANGE: [], START_TIME: ["02:00"]}

    def test_get_folders(self, sdk_directory, websdk):
        """Folders come from the processing engines API by bare GUID."""
        identity = sdk_directory.resolve("ENGINE-A")
        assert sdk_directory.get_folders(identity) == ["\\VED\\Policy\\Certs"]
        assert websdk.paths()[-1] == "/vedsdk/processingengines/engine/aaaa-1111"

    def test_add_folders_skips_assigned(self, sdk_directory, websdk):
        """Already-assigned folders are not posted again."""
        identity = sdk_directory.resolve("ENGINE-A")
        sdk_directory.add_folders(identity, ["\\VED\\Policy\\Certs"])
        assert websdk.requests[-1].method == "GET"
        assert websdk.folders["aaaa-1111"] == ["\\VED\\Policy\\Certs"]

    def test_add_folders_posts_guids(self, sdk_directory, websdk):
        """New folders are posted by GUID."""
        identity = sdk_directory.resolve("ENGINE-B")
        sdk_directory.add_folders(identity, ["\\VED\\Policy\\Certs"])

        post = websdk.requests[-1]
        assert post.method == "POST"
        assert json.loads(post.content) == {"FolderGuids": ["{cccc-3333}"]}
        assert websdk.folders["bbbb-2222"] == ["\\VED\\Policy\\Certs"]

    def test_add_folders_ignores_case(self, sdk_directory, websdk):
        """Folders matching an assigned one except for case are skipped."""
        identity = sdk_directory.resolve("ENGINE-A")
        sdk_directory.add_folders(identity, ["\\ved\\policy\\certs"])
        assert websdk.requests[-1].method == "GET"

    def test_add_missing_folder_fails_before_write(self, sdk_directory, websdk):
        """Unknown folders abort before anything is assigned."""
        identity = sdk_directory.resolve("ENGINE-B")
        with pytest.raises(DirectoryError) as exc:
            sdk_directory.add_folders(identity, ["\\VED\\Policy\\Certs", "\\VED\\Policy\\Gone"])
        assert "Gone" in str(exc.value)
        assert websdk.folders["bbbb-2222"] == []

    def test_set_attributes(self, sdk_directory, websdk):
        """Values are written; empty lists clear the attribute."""
        identity = sdk_directory.resolve("ENGINE-A")
        sdk_directory.set_attributes(identity, {ADDRESS_RANGE: ("10.0.0.0/24",), START_TIME: ()})

        assert websdk.attributes["\\VED\\Engines\\ENGINE-A"] == {ADDRESS_RANGE: ["10.0.0.0/24"]}
        assert "/vedsdk/config/clearattribute" in websdk.paths()

    def test_write_failure(self, sdk_directory, websdk):
        """A non-success result code raises DirectoryError."""
        identity = sdk_directory.resolve("ENGINE-A")
        websdk.write_result = 401

        with pytest.raises(DirectoryError):
            sdk_directory.set_attributes(identity, {START_TIME: ["01:00"]})

    def test_dropped_connection_during_push_is_audited(self, sdk_directory, websdk, tmp_path):
        """A connection lost after folders were assigned is recorded as a failed push."""
        audit_file = setup_audit_logging(str(tmp_path / "audit-log"))
        websdk.drop_paths.add("/vedsdk/config/write")
        orchestrator = ConfigOrchestrator(lambda: sdk_directory, force=True)
        source = ConfigSnapshot(
            "S", attributes={START_TIME: ["05:00"]}, folders=("\\VED\\Policy\\Certs",)
        )

        with pytest.raises(DirectoryError):
            orchestrator.push(source, "ENGINE-B")

        assert websdk.folders["bbbb-2222"] == ["\\VED\\Policy\\Certs"]
        record = ChangeRecord.from_json(audit_file.read_text().strip().splitlines()[-1])
        assert not record.success
        assert "connection reset" in record.error
