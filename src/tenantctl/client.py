"""Typed client for platform management endpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from tenantctl.console import Printer
from tenantctl.errors import (
    AuthenticationError,
    PlatformRequestError,
    PlatformUnavailableError,
    TenantCtlError,
)
from tenantctl.session import SessionContext, realm_path

AM_TREE_API_VERSION = "protocol=2.1,resource=1.0"
AM_SCRIPT_API_VERSION = "protocol=2.0,resource=1.0"
AM_SERVICE_API_VERSION = "protocol=2.1,resource=1.0"
AM_SERVER_INFO_API_VERSION = "resource=1.1"
AM_VERSION_API_VERSION = "resource=1.0"
AM_AUTHENTICATE_API_VERSION = "resource=2.0, protocol=1.0"
ENVIRONMENT_API_VERSION = "resource=1.0"
DEFAULT_COOKIE_NAME = "iPlanetDirectoryPro"


@dataclass
class PlatformClient:
    session: SessionContext
    printer: Printer | None = None
    timeout: float = 30.0
    retries: int = 2
    session_token: str | None = field(default=None, init=False)
    cookie_name: str = field(default=DEFAULT_COOKIE_NAME, init=False)
    bearer_token: str | None = field(default=None, init=False)
    am_version: str | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        import requests
        from requests.adapters import HTTPAdapter
        from urllib3.util.retry import Retry

        self._session = requests.Session()
        retry = Retry(
            total=max(0, int(self.retries)),
            connect=max(0, int(self.retries)),
            read=max(0, int(self.retries)),
            status=max(0, int(self.retries)),
            status_forcelist=(429, 502, 503, 504),
            backoff_factor=0.2,
            allowed_methods=("GET", "PUT"),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)
        self._session.verify = not self.session.allow_insecure_connection
        self.am_version = self.session.am_version

    # -- transport ---------------------------------------------------------

    def _am_url(self, path: str) -> str:
        return f"{self.session.am_base_url}/{path.lstrip('/')}"

    def _realm_url(self, path: str) -> str:
        return self._am_url(f"json{realm_path(self.session.realm)}/{path.lstrip('/')}")

    def _auth_headers(self, *, prefer_bearer: bool) -> dict[str, str]:
        if prefer_bearer and self.bearer_token:
            return {"Authorization": f"Bearer {self.bearer_token}"}
        if self.session_token:
            return {}
        if self.bearer_token:
            return {"Authorization": f"Bearer {self.bearer_token}"}
        return {}

    def _cookies(self) -> dict[str, str] | None:
        if self.session_token:
            return {self.cookie_name: self.session_token}
        return None

    def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json_payload: object | None = None,
        form: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        allow_redirects: bool = True,
    ):
        if self.printer is not None:
            self.printer.debug(f"{method} {url}")
            self.printer.curl(method, url, headers=headers, json_payload=json_payload, form=form)
        try:
            return self._session.request(
                method,
                url,
                headers=headers,
                json=json_payload,
                data=form,
                params=params,
                cookies=self._cookies(),
                timeout=self.timeout,
                allow_redirects=allow_redirects,
            )
        except Exception as exc:  # pragma: no cover
            raise PlatformUnavailableError(str(exc)) from exc

    def _request(
        self,
        method: str,
        url: str,
        *,
        api_version: str | None = None,
        json_payload: object | None = None,
        form: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        extra_headers: dict[str, str] | None = None,
        prefer_bearer: bool = False,
    ) -> dict:
        headers = self._auth_headers(prefer_bearer=prefer_bearer)
        if api_version:
            headers["Accept-API-Version"] = api_version
        if extra_headers:
            headers.update(extra_headers)
        response = self._send(
            method,
            url,
            headers=headers or None,
            json_payload=json_payload,
            form=form,
            params=params,
        )
        if response.status_code >= 400:
            body: object | None = None
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("message") if isinstance(body, dict) else None
            if isinstance(detail, str):
                message = f"{method} {url} failed: {response.status_code} {detail}"
            else:
                message = f"{method} {url} failed: {response.status_code} {response.text}"
            raise PlatformRequestError(
                message,
                status_code=response.status_code,
                detail=detail,
                body=body,
            )
        if self.printer is not None:
            self.printer.debug(f"{method} {url} -> {response.status_code}")
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise PlatformRequestError(
                f"{method} {url} returned invalid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    # -- authentication ------------------------------------------------------

    def get_tokens(self) -> bool:
        from tenantctl.auth import get_tokens

        try:
            return get_tokens(self)
        except TenantCtlError as exc:
            if self.printer is not None:
                self.printer.error("authentication error", str(exc))
            return False

    def get_server_info(self) -> dict:
        return self._request(
            "GET",
            self._am_url("json/serverinfo/*"),
            api_version=AM_SERVER_INFO_API_VERSION,
        )

    def get_server_version(self) -> dict:
        return self._request(
            "GET",
            self._am_url("json/serverinfo/version"),
            api_version=AM_VERSION_API_VERSION,
        )

    def authenticate(self, username: str, password: str) -> dict:
        try:
            return self._request(
                "POST",
                self._am_url("json/realms/root/authenticate"),
                api_version=AM_AUTHENTICATE_API_VERSION,
                json_payload={},
                extra_headers={
                    "X-OpenAM-Username": username,
                    "X-OpenAM-Password": password,
                },
            )
        except PlatformRequestError as exc:
            if exc.status_code == 401:
                raise AuthenticationError(f"invalid credentials for {username}") from exc
            raise

    def authorize(self, form: dict[str, str]) -> str:
        """Post an authorization decision and return the redirect location."""
        response = self._send(
            "POST",
            self._am_url("oauth2/realms/root/authorize"),
            form=form,
            allow_redirects=False,
        )
        location = response.headers.get("Location")
        if response.status_code not in (302, 303) or not location:
            raise AuthenticationError(
                f"authorization request failed: {response.status_code} (no redirect)"
            )
        return location

    def access_token(self, form: dict[str, str]) -> dict:
        return self._request("POST", self._am_url("oauth2/access_token"), form=form)

    # -- email templates -------------------------------------------------------

    def get_email_templates(self) -> list[dict]:
        response = self._request(
            "GET",
            f"{self.session.idm_base_url}/config",
            params={"_queryFilter": '_id sw "emailTemplate"'},
            prefer_bearer=True,
        )
        return list(response.get("result", []))

    def get_email_template(self, template_id: str) -> dict:
        return self._request(
            "GET",
            f"{self.session.idm_base_url}/config/emailTemplate/{quote(template_id, safe='')}",
            prefer_bearer=True,
        )

    # -- environment variables ---------------------------------------------

    def _variable_url(self, variable_id: str) -> str:
        return f"{self.session.tenant_origin}/environment/variables/{quote(variable_id, safe='')}"

    def get_variables(self) -> list[dict]:
        response = self._request(
            "GET",
            f"{self.session.tenant_origin}/environment/variables",
            api_version=ENVIRONMENT_API_VERSION,
            prefer_bearer=True,
        )
        return list(response.get("result", []))

    def put_variable(self, variable_id: str, *, value_base64: str, description: str | None) -> dict:
        payload: dict[str, Any] = {"valueBase64": value_base64}
        if description is not None:
            payload["description"] = description
        return self._request(
            "PUT",
            self._variable_url(variable_id),
            api_version=ENVIRONMENT_API_VERSION,
            json_payload=payload,
            prefer_bearer=True,
        )

    def set_variable_description(self, variable_id: str, description: str) -> dict:
        return self._request(
            "POST",
            self._variable_url(variable_id),
            api_version=ENVIRONMENT_API_VERSION,
            params={"_action": "setDescription"},
            json_payload={"description": description},
            prefer_bearer=True,
        )

    # -- social identity providers ------------------------------------------

    def get_social_identity_providers(self) -> list[dict]:
        response = self._request(
            "POST",
            self._realm_url("realm-config/services/SocialIdentityProviders"),
            api_version=AM_SERVICE_API_VERSION,
            params={"_action": "nextdescendents"},
            json_payload={},
        )
        return list(response.get("result", []))

    def get_script(self, script_id: str) -> dict:
        return self._request(
            "GET",
            self._realm_url(f"scripts/{quote(script_id, safe='')}"),
            api_version=AM_SCRIPT_API_VERSION,
        )

    # -- journeys ------------------------------------------------------------

    def get_trees(self) -> list[dict]:
        response = self._request(
            "GET",
            self._realm_url("realm-config/authentication/authenticationtrees/trees"),
            api_version=AM_TREE_API_VERSION,
            params={"_queryFilter": "true"},
        )
        return list(response.get("result", []))

    def get_tree(self, tree_id: str) -> dict:
        return self._request(
            "GET",
            self._realm_url(
                f"realm-config/authentication/authenticationtrees/trees/{quote(tree_id, safe='')}"
            ),
            api_version=AM_TREE_API_VERSION,
        )

    def get_node(self, node_type: str, node_id: str) -> dict:
        return self._request(
            "GET",
            self._realm_url(
                "realm-config/authentication/authenticationtrees/nodes/"
                f"{quote(node_type, safe='')}/{quote(node_id, safe='')}"
            ),
            api_version=AM_TREE_API_VERSION,
        )


__all__ = ["PlatformClient"]
