"""Per-invocation session context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

DeploymentType = Literal["classic", "cloud", "forgeops"]

DEPLOYMENT_TYPES: tuple[str, ...] = ("classic", "cloud", "forgeops")
CLOUD_HOST_SUFFIXES = (".forgeblocks.com", ".id.forgerock.io")
DEFAULT_REALM = "alpha"


@dataclass(frozen=True)
class SessionContext:
    host: str | None = None
    realm: str = DEFAULT_REALM
    username: str | None = None
    password: str | None = None
    deployment_type: DeploymentType | None = None
    allow_insecure_connection: bool = False
    verbose: bool = False
    debug: bool = False
    curlirize: bool = False
    am_version: str | None = None
    output_file: str | None = None
    service_account_id: str | None = None
    service_account_jwk: dict | None = None

    @property
    def tenant_origin(self) -> str:
        if not self.host:
            raise ValueError("session has no host")
        parts = urlsplit(self.host)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def am_base_url(self) -> str:
        if not self.host:
            raise ValueError("session has no host")
        return self.host.rstrip("/")

    @property
    def idm_base_url(self) -> str:
        return f"{self.tenant_origin}/openidm"

    @property
    def resolved_deployment_type(self) -> DeploymentType:
        if self.deployment_type:
            return self.deployment_type
        return infer_deployment_type(self.host)

    @property
    def has_service_account(self) -> bool:
        return bool(self.service_account_id and self.service_account_jwk)


def infer_deployment_type(host: str | None) -> DeploymentType:
    if not host:
        return "classic"
    hostname = urlsplit(host).hostname or ""
    if hostname.endswith(CLOUD_HOST_SUFFIXES):
        return "cloud"
    return "classic"


def realm_path(realm: str) -> str:
    """Return the AM URL path segment for ``realm``.

    ``alpha`` -> ``/realms/root/realms/alpha``; ``/`` and ``root`` map to the
    top-level realm; nested realms (``/parent/child``) are expanded.
    """
    cleaned = realm.strip().strip("/")
    if cleaned in ("", "root"):
        return "/realms/root"
    segments = [segment for segment in cleaned.split("/") if segment]
    if segments and segments[0] == "root":
        segments = segments[1:]
    return "/realms/root" + "".join(f"/realms/{segment}" for segment in segments)


def realm_display_name(realm: str) -> str:
    cleaned = realm.strip().strip("/")
    if cleaned in ("", "root"):
        return "Root"
    last = cleaned.split("/")[-1]
    return last[:1].upper() + last[1:]
