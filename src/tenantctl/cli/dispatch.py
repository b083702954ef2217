"""Session resolution, mode selection and route dispatch for CLI commands.

Every platform command follows the same sequence:

1. option defaults (argparse defaults, option models, config file);
2. session context from positionals, global flags, environment and saved
   connection profiles;
3. per-command overrides such as the AM version;
4. mode selection (local file vs. live session) where a command supports both;
5. route selection over an ordered ``(predicate, action)`` list;
6. authentication, then exactly one delegated operation.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Generic, Mapping, Optional, Sequence, TypeVar

from tenantctl.cli.config import CLIConfig
from tenantctl.cli.connections import ConnectionProfileError, resolve_connection
from tenantctl.client import PlatformClient
from tenantctl.console import Printer
from tenantctl.errors import Failure, FailureKind
from tenantctl.session import DEPLOYMENT_TYPES, SessionContext

HOST_ENV_VAR = "TENANTCTL_HOST"
REALM_ENV_VAR = "TENANTCTL_REALM"
USERNAME_ENV_VAR = "TENANTCTL_USERNAME"
PASSWORD_ENV_VAR = "TENANTCTL_PASSWORD"
SA_ID_ENV_VAR = "TENANTCTL_SA_ID"
SA_JWK_FILE_ENV_VAR = "TENANTCTL_SA_JWK_FILE"

OptionsT = TypeVar("OptionsT")


class Mode(str, Enum):
    LOCAL_FILE = "local-file"
    LIVE_SESSION = "live-session"


@dataclass(frozen=True)
class CommandContext:
    session: SessionContext
    client: PlatformClient
    printer: Printer


@dataclass(frozen=True)
class Route(Generic[OptionsT]):
    name: str
    predicate: Callable[[OptionsT], bool]
    action: Callable[[CommandContext, OptionsT], object]
    progress: Optional[Callable[[CommandContext, OptionsT], str]] = None


def select_route(routes: Sequence[Route[OptionsT]], options: OptionsT) -> Route[OptionsT] | None:
    for route in routes:
        if route.predicate(options):
            return route
    return None


def resolve_mode(*, host: str | None, file: str | None) -> Mode | Failure:
    if file is not None:
        return Mode.LOCAL_FILE
    if host:
        return Mode.LIVE_SESSION
    return Failure(FailureKind.USAGE, "Need either [host] or -f.")


def run_operation(operation: Callable[[], object], *, name: str) -> Failure | None:
    """Invoke a delegated operation, mapping errors and falsy results to a failure."""
    try:
        result = operation()
    except Exception as exc:
        message = str(exc) or exc.__class__.__name__
        return Failure(FailureKind.OPERATION, message)
    if not result:
        return Failure(FailureKind.OPERATION, f"{name} did not complete successfully")
    return None


def _first(*values: str | None) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _load_jwk(path: str) -> dict[str, Any] | Failure:
    try:
        payload = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
    except OSError as exc:
        return Failure(FailureKind.USAGE, f"cannot read service account JWK file {path}: {exc}")
    except json.JSONDecodeError as exc:
        return Failure(FailureKind.USAGE, f"invalid JSON in service account JWK file {path}: {exc}")
    if not isinstance(payload, dict):
        return Failure(FailureKind.USAGE, f"service account JWK file {path} must contain an object")
    return payload


def build_session(
    args: Any,
    config: CLIConfig,
    *,
    env: Mapping[str, str] | None = None,
) -> SessionContext | Failure:
    environ = os.environ if env is None else env
    host = _first(getattr(args, "host", None), environ.get(HOST_ENV_VAR))
    username = _first(getattr(args, "user", None), environ.get(USERNAME_ENV_VAR))
    password = _first(getattr(args, "password", None), environ.get(PASSWORD_ENV_VAR))
    deployment_type = _first(getattr(args, "type", None), config.deployment_type)
    sa_id = _first(getattr(args, "sa_id", None), environ.get(SA_ID_ENV_VAR))
    sa_jwk_file = _first(getattr(args, "sa_jwk_file", None), environ.get(SA_JWK_FILE_ENV_VAR))

    if host:
        try:
            profile = resolve_connection(
                host,
                connections_file=config.connections_file,
                master_key_file=config.master_key_file,
            )
        except ConnectionProfileError as exc:
            return Failure(FailureKind.USAGE, str(exc))
        if profile is not None:
            host = profile.host
            username = username or profile.username
            password = password or profile.password
            deployment_type = deployment_type or profile.deployment_type
            sa_id = sa_id or profile.service_account_id
            sa_jwk_file = sa_jwk_file or profile.service_account_jwk_file

    if deployment_type is not None and deployment_type not in DEPLOYMENT_TYPES:
        return Failure(
            FailureKind.USAGE,
            f"deployment type must be one of: {', '.join(DEPLOYMENT_TYPES)} (got {deployment_type})",
        )

    jwk = None
    if sa_jwk_file:
        loaded = _load_jwk(sa_jwk_file)
        if isinstance(loaded, Failure):
            return loaded
        jwk = loaded

    return SessionContext(
        host=host,
        realm=_first(getattr(args, "realm", None), environ.get(REALM_ENV_VAR)) or config.default_realm,
        username=username,
        password=password,
        deployment_type=deployment_type,  # type: ignore[arg-type]
        allow_insecure_connection=bool(getattr(args, "insecure", False)),
        verbose=bool(getattr(args, "verbose", False)),
        debug=bool(getattr(args, "debug", False)),
        curlirize=bool(getattr(args, "curlirize", False)),
        service_account_id=sa_id,
        service_account_jwk=jwk,
    )


def apply_overrides(
    session: SessionContext,
    *,
    am_version: str | None = None,
    output_file: str | None = None,
) -> SessionContext:
    changes: dict[str, Any] = {}
    if am_version:
        changes["am_version"] = am_version
    if output_file:
        changes["output_file"] = output_file
    return replace(session, **changes) if changes else session
