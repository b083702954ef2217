from __future__ import annotations

import io
import json
import types

import pytest

from tenantctl.client import PlatformClient
from tenantctl.console import Printer
from tenantctl.errors import AuthenticationError, PlatformRequestError
from tenantctl.session import SessionContext

HOST = "https://openam-tenant.forgeblocks.com/am"


def _response(status_code: int = 200, payload: object | None = None, *, headers=None):
    content = b"" if payload is None else json.dumps(payload).encode("utf-8")
    return types.SimpleNamespace(
        status_code=status_code,
        content=content,
        text=content.decode("utf-8"),
        headers=headers or {},
        json=lambda: json.loads(content),
    )


def _client(**session_overrides) -> PlatformClient:
    values = {"host": HOST, "realm": "alpha"}
    values.update(session_overrides)
    return PlatformClient(session=SessionContext(**values), timeout=0.1, retries=0)


def _capture(monkeypatch, client: PlatformClient, response) -> list[dict]:
    captured: list[dict] = []

    def fake_request(method, url, **kwargs):  # noqa: ANN001
        captured.append({"method": method, "url": url, **kwargs})
        return response

    monkeypatch.setattr(client._session, "request", fake_request)
    return captured


def test_insecure_session_disables_tls_verification() -> None:
    assert _client()._session.verify is True
    assert _client(allow_insecure_connection=True)._session.verify is False


def test_session_token_is_sent_as_cookie(monkeypatch) -> None:
    client = _client()
    client.session_token = "tok"
    client.cookie_name = "6ac6499e9da2071"
    captured = _capture(monkeypatch, client, _response(payload={"result": [{"_id": "Login"}]}))

    assert client.get_trees() == [{"_id": "Login"}]
    call = captured[0]
    assert call["method"] == "GET"
    assert call["url"] == (
        f"{HOST}/json/realms/root/realms/alpha/realm-config/authentication/authenticationtrees/trees"
    )
    assert call["params"] == {"_queryFilter": "true"}
    assert call["cookies"] == {"6ac6499e9da2071": "tok"}
    assert call["headers"]["Accept-API-Version"] == "protocol=2.1,resource=1.0"
    assert "Authorization" not in call["headers"]


def test_idm_calls_prefer_bearer_token(monkeypatch) -> None:
    client = _client()
    client.session_token = "tok"
    client.bearer_token = "bearer"
    captured = _capture(monkeypatch, client, _response(payload={"result": []}))

    client.get_email_templates()
    call = captured[0]
    assert call["url"] == "https://openam-tenant.forgeblocks.com/openidm/config"
    assert call["params"] == {"_queryFilter": '_id sw "emailTemplate"'}
    assert call["headers"]["Authorization"] == "Bearer bearer"


def test_put_variable_payload(monkeypatch) -> None:
    client = _client()
    client.bearer_token = "bearer"
    captured = _capture(monkeypatch, client, _response(payload={"_id": "esv-foo"}))

    client.put_variable("esv-foo", value_base64="YmFy", description="desc")
    call = captured[0]
    assert call["method"] == "PUT"
    assert call["url"] == "https://openam-tenant.forgeblocks.com/environment/variables/esv-foo"
    assert call["json"] == {"valueBase64": "YmFy", "description": "desc"}


def test_set_variable_description_uses_action(monkeypatch) -> None:
    client = _client()
    client.bearer_token = "bearer"
    captured = _capture(monkeypatch, client, _response(payload={}))

    client.set_variable_description("esv-foo", "new description")
    call = captured[0]
    assert call["method"] == "POST"
    assert call["params"] == {"_action": "setDescription"}
    assert call["json"] == {"description": "new description"}


def test_error_status_raises_platform_request_error(monkeypatch) -> None:
    client = _client()
    _capture(monkeypatch, client, _response(404, {"code": 404, "message": "Not Found"}))

    with pytest.raises(PlatformRequestError) as excinfo:
        client.get_tree("Missing")
    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "Not Found"


def test_authenticate_maps_401_to_authentication_error(monkeypatch) -> None:
    client = _client()
    captured = _capture(monkeypatch, client, _response(401, {"code": 401, "message": "Unauthorized"}))

    with pytest.raises(AuthenticationError):
        client.authenticate("admin", "wrong")
    assert captured[0]["headers"]["X-OpenAM-Username"] == "admin"


def test_authorize_requires_redirect(monkeypatch) -> None:
    client = _client()
    _capture(monkeypatch, client, _response(200, {}))
    with pytest.raises(AuthenticationError):
        client.authorize({"client_id": "idmAdminClient"})


def test_get_tokens_reports_authentication_failure(monkeypatch) -> None:
    err = io.StringIO()
    client = PlatformClient(
        session=SessionContext(host=HOST),
        printer=Printer(stdout=io.StringIO(), stderr=err),
        retries=0,
    )
    assert client.get_tokens() is False
    assert err.getvalue().startswith("authentication error:")


def test_curlirize_redacts_credentials(monkeypatch) -> None:
    err = io.StringIO()
    client = PlatformClient(
        session=SessionContext(host=HOST, curlirize=True),
        printer=Printer(stdout=io.StringIO(), stderr=err, curlirize=True),
        retries=0,
    )
    _capture(monkeypatch, client, _response(200, {"tokenId": "abc"}))
    client.authenticate("admin", "S3cret!")
    assert "curl -X POST" in err.getvalue()
    assert "S3cret!" not in err.getvalue()


def test_non_json_success_body_raises_platform_request_error(monkeypatch) -> None:
    client = _client()
    html = types.SimpleNamespace(
        status_code=200,
        content=b"<html>login</html>",
        text="<html>login</html>",
        headers={},
        json=lambda: json.loads("<html>login</html>"),
    )
    _capture(monkeypatch, client, html)

    with pytest.raises(PlatformRequestError, match="returned invalid JSON") as excinfo:
        client.get_server_info()
    assert excinfo.value.status_code == 200
    assert excinfo.value.body == "<html>login</html>"
