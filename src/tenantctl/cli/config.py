"""Configuration helpers for the tenantctl CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tenantctl.session import DEFAULT_REALM, DEPLOYMENT_TYPES

HOME_ENV_VAR = "TENANTCTL_HOME"


def tenantctl_home() -> Path:
    override = os.getenv(HOME_ENV_VAR)
    if override and override.strip():
        return Path(override.strip()).expanduser()
    return Path.home() / ".tenantctl"


@dataclass(frozen=True)
class CLIConfig:
    connections_file: str
    master_key_file: str
    default_realm: str = DEFAULT_REALM
    deployment_type: str | None = None
    timeout: float = 30.0
    retries: int = 2


class ConfigError(ValueError):
    """Raised when CLI config is invalid."""


def default_cli_config() -> CLIConfig:
    home = tenantctl_home()
    return CLIConfig(
        connections_file=str(home / "connections.json"),
        master_key_file=str(home / "masterkey.key"),
    )


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")

    try:  # Python 3.11+
        import tomllib  # type: ignore[attr-defined]
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    except ModuleNotFoundError:
        try:
            import tomli
        except ModuleNotFoundError as exc:
            raise ConfigError("toml parser unavailable; install tomli for Python < 3.11") from exc
        try:
            return tomli.loads(raw)
        except tomli.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def _to_number(value: Any, field_name: str, *, kind: type) -> Any:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a number")
    try:
        number = kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be a number") from exc
    if number < 0:
        raise ConfigError(f"{field_name} must not be negative")
    return number


def _non_empty(source: dict[str, Any], key: str, default: str) -> str:
    value = str(source.get(key, default)).strip()
    if not value:
        raise ConfigError(f"{key} must not be empty")
    return value


def load_cli_config(path: str | Path | None = None) -> CLIConfig:
    config_path = Path(path) if path else tenantctl_home() / "config.toml"
    defaults = default_cli_config()
    if not config_path.exists():
        return defaults

    parsed = _load_toml(config_path)
    section = parsed.get("cli")
    if isinstance(section, dict):
        source = section
    elif section is None:
        source = parsed
    else:
        raise ConfigError("[cli] must be a table")

    deployment_type_raw = source.get("deployment_type")
    if deployment_type_raw is None:
        deployment_type = None
    else:
        deployment_type = str(deployment_type_raw).strip().lower()
        if deployment_type not in DEPLOYMENT_TYPES:
            raise ConfigError(f"deployment_type must be one of: {', '.join(DEPLOYMENT_TYPES)}")

    return CLIConfig(
        connections_file=_non_empty(source, "connections_file", defaults.connections_file),
        master_key_file=_non_empty(source, "master_key_file", defaults.master_key_file),
        default_realm=_non_empty(source, "default_realm", defaults.default_realm),
        deployment_type=deployment_type,
        timeout=_to_number(source.get("timeout", defaults.timeout), "timeout", kind=float),
        retries=_to_number(source.get("retries", defaults.retries), "retries", kind=int),
    )
