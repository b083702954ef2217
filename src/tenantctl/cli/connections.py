"""Saved connection profiles for the tenantctl CLI.

Profiles are keyed by tenant URL. Passwords are stored encrypted with the
per-user master key; everything else is stored in clear text.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tenantctl.crypto.masterkey import (
    MasterKeyError,
    decrypt_secret,
    encrypt_secret,
    load_or_create_master_key,
)


class ConnectionProfileError(ValueError):
    """Raised when connection profiles cannot be read, written or matched."""


@dataclass(frozen=True)
class ConnectionProfile:
    host: str
    username: str | None = None
    password: str | None = None
    deployment_type: str | None = None
    service_account_id: str | None = None
    service_account_jwk_file: str | None = None


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


def load_connections(path: str | Path) -> dict[str, dict[str, Any]]:
    connections_path = Path(path)
    if not connections_path.exists():
        return {}
    try:
        payload = json.loads(connections_path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise ConnectionProfileError(f"invalid connections file: {connections_path}") from exc
    if not isinstance(payload, dict):
        raise ConnectionProfileError("connections file must contain a JSON object")
    return {str(host): entry for host, entry in payload.items() if isinstance(entry, dict)}


def _write_connections(path: Path, connections: dict[str, dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(connections, sort_keys=True, indent=2) + "\n", encoding="utf-8")
    _chmod_owner_only(path)


def match_connection_key(host: str, hosts: list[str]) -> str | None:
    """Return the saved key for ``host``: exact match first, else a unique substring."""
    if host in hosts:
        return host
    candidates = [key for key in hosts if host in key]
    if len(candidates) > 1:
        raise ConnectionProfileError(
            f"'{host}' matches multiple saved connections: {', '.join(sorted(candidates))}"
        )
    return candidates[0] if candidates else None


def resolve_connection(
    host: str,
    *,
    connections_file: str | Path,
    master_key_file: str | Path,
) -> ConnectionProfile | None:
    connections = load_connections(connections_file)
    key = match_connection_key(host, sorted(connections))
    if key is None:
        return None
    entry = connections[key]

    password = None
    encoded_password = entry.get("encodedPassword")
    if isinstance(encoded_password, str) and encoded_password:
        try:
            password = decrypt_secret(encoded_password, load_or_create_master_key(Path(master_key_file)))
        except MasterKeyError as exc:
            raise ConnectionProfileError(f"cannot decrypt password for {key}: {exc}") from exc

    return ConnectionProfile(
        host=key,
        username=entry.get("username"),
        password=password,
        deployment_type=entry.get("deploymentType"),
        service_account_id=entry.get("svcacctId"),
        service_account_jwk_file=entry.get("svcacctJwkFile"),
    )


def save_connection(
    profile: ConnectionProfile,
    *,
    connections_file: str | Path,
    master_key_file: str | Path,
) -> Path:
    path = Path(connections_file)
    connections = load_connections(path)
    entry: dict[str, Any] = dict(connections.get(profile.host, {}))
    if profile.username is not None:
        entry["username"] = profile.username
    if profile.password is not None:
        try:
            key = load_or_create_master_key(Path(master_key_file))
        except MasterKeyError as exc:
            raise ConnectionProfileError(str(exc)) from exc
        entry["encodedPassword"] = encrypt_secret(profile.password, key)
    if profile.deployment_type is not None:
        entry["deploymentType"] = profile.deployment_type
    if profile.service_account_id is not None:
        entry["svcacctId"] = profile.service_account_id
    if profile.service_account_jwk_file is not None:
        entry["svcacctJwkFile"] = profile.service_account_jwk_file
    connections[profile.host] = entry
    try:
        _write_connections(path, connections)
    except OSError as exc:
        raise ConnectionProfileError(f"failed to write connections file: {path}") from exc
    return path


def delete_connection(host: str, *, connections_file: str | Path) -> str | None:
    path = Path(connections_file)
    connections = load_connections(path)
    key = match_connection_key(host, sorted(connections))
    if key is None:
        return None
    del connections[key]
    try:
        _write_connections(path, connections)
    except OSError as exc:
        raise ConnectionProfileError(f"failed to write connections file: {path}") from exc
    return key
