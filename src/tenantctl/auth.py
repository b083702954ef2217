"""Token acquisition for platform sessions.

Classic deployments authenticate with a username/password session token sent
as the tenant cookie. Cloud and ForgeOps deployments additionally exchange
the session for an admin bearer token through an authorization-code grant
with PKCE. Cloud service accounts skip the session entirely and trade a
signed JWT assertion for a bearer token.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import time
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlsplit

from tenantctl.crypto.jwk import build_service_account_claims, sign_rs256_jwt
from tenantctl.errors import AuthenticationError

if TYPE_CHECKING:
    from tenantctl.client import PlatformClient

ADMIN_CLIENT_ID = "idmAdminClient"
ADMIN_REDIRECT_PATH = "/platform/appAuthHelperRedirect.html"
CLOUD_ADMIN_SCOPE = "fr:idm:* fr:idc:esv:* openid"
FORGEOPS_ADMIN_SCOPE = "fr:idm:* openid"
SERVICE_ACCOUNT_CLIENT_ID = "service-account"
SERVICE_ACCOUNT_SCOPE = "fr:am:* fr:idm:* fr:idc:esv:*"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


def build_pkce_pair() -> tuple[str, str]:
    verifier = secrets.token_urlsafe(48)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return verifier, challenge


def _extract_code(location: str) -> str:
    values = parse_qs(urlsplit(location).query).get("code")
    if not values or not values[0]:
        raise AuthenticationError("authorization redirect did not include a code")
    return values[0]


def get_session_token(client: PlatformClient) -> str:
    session = client.session
    if not session.username or not session.password:
        raise AuthenticationError("username and password are required to authenticate")
    server_info = client.get_server_info()
    cookie_name = server_info.get("cookieName")
    if isinstance(cookie_name, str) and cookie_name:
        client.cookie_name = cookie_name
    response = client.authenticate(session.username, session.password)
    token = response.get("tokenId")
    if not isinstance(token, str) or not token:
        raise AuthenticationError("authentication response did not include a session token")
    return token


def get_admin_bearer_token(client: PlatformClient, session_token: str) -> str:
    session = client.session
    redirect_uri = f"{session.tenant_origin}{ADMIN_REDIRECT_PATH}"
    scope = CLOUD_ADMIN_SCOPE if session.resolved_deployment_type == "cloud" else FORGEOPS_ADMIN_SCOPE
    verifier, challenge = build_pkce_pair()
    location = client.authorize(
        {
            "redirect_uri": redirect_uri,
            "scope": scope,
            "response_type": "code",
            "client_id": ADMIN_CLIENT_ID,
            "csrf": session_token,
            "decision": "allow",
            "code_challenge": challenge,
            "code_challenge_method": "S256",
        }
    )
    response = client.access_token(
        {
            "client_id": ADMIN_CLIENT_ID,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
            "code": _extract_code(location),
            "code_verifier": verifier,
        }
    )
    token = response.get("access_token")
    if not isinstance(token, str) or not token:
        raise AuthenticationError("token response did not include an access token")
    return token


def get_service_account_token(client: PlatformClient, *, now: float | None = None) -> str:
    session = client.session
    if not session.service_account_id or not session.service_account_jwk:
        raise AuthenticationError("service account id and JWK are both required")
    audience = f"{session.am_base_url}/oauth2/access_token"
    claims = build_service_account_claims(
        service_account_id=session.service_account_id,
        audience=audience,
        now=time.time() if now is None else now,
    )
    response = client.access_token(
        {
            "client_id": SERVICE_ACCOUNT_CLIENT_ID,
            "grant_type": JWT_BEARER_GRANT,
            "assertion": sign_rs256_jwt(claims, session.service_account_jwk),
            "scope": SERVICE_ACCOUNT_SCOPE,
        }
    )
    token = response.get("access_token")
    if not isinstance(token, str) or not token:
        raise AuthenticationError("service account token response did not include an access token")
    return token


def get_tokens(client: PlatformClient) -> bool:
    session = client.session
    if not session.host:
        raise AuthenticationError("no host to authenticate against")

    deployment_type = session.resolved_deployment_type
    if session.has_service_account and deployment_type == "cloud":
        client.bearer_token = get_service_account_token(client)
        principal = f"service account {session.service_account_id}"
    else:
        client.session_token = get_session_token(client)
        if deployment_type in ("cloud", "forgeops"):
            client.bearer_token = get_admin_bearer_token(client, client.session_token)
        principal = session.username

    if client.am_version is None:
        version = client.get_server_version().get("version")
        client.am_version = version if isinstance(version, str) else None

    if client.printer is not None:
        client.printer.verbose(
            f"Connected to {session.host} [{session.realm}] as {principal}"
            f" ({deployment_type}, AM {client.am_version or 'unknown'})"
        )
    return True
