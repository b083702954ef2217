"""Environment variable (ESV) operations."""

from __future__ import annotations

import base64

from rich.markup import escape

from tenantctl.client import PlatformClient
from tenantctl.console import Printer, new_table
from tenantctl.errors import UnsupportedDeploymentError


def _require_cloud(client: PlatformClient) -> None:
    deployment_type = client.session.resolved_deployment_type
    if deployment_type != "cloud":
        raise UnsupportedDeploymentError(
            f"environment variables are only available in cloud deployments (got {deployment_type})"
        )


def decode_variable_value(variable: dict) -> str:
    value_b64 = variable.get("valueBase64")
    if not isinstance(value_b64, str):
        return ""
    try:
        return base64.b64decode(value_b64).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return value_b64


def update_variable(
    client: PlatformClient,
    printer: Printer,
    variable_id: str,
    value: str,
    description: str | None = None,
) -> bool:
    _require_cloud(client)
    value_base64 = base64.b64encode(value.encode("utf-8")).decode("ascii")
    client.put_variable(variable_id, value_base64=value_base64, description=description)
    printer.message(f"Updated variable {variable_id}.")
    return True


def set_variable_description(
    client: PlatformClient,
    printer: Printer,
    variable_id: str,
    description: str,
) -> bool:
    _require_cloud(client)
    client.set_variable_description(variable_id, description)
    printer.message(f"Set description of variable {variable_id}.")
    return True


def list_variables(client: PlatformClient, printer: Printer, long: bool = False) -> bool:
    _require_cloud(client)
    variables = sorted(client.get_variables(), key=lambda item: str(item.get("_id", "")))
    if not long:
        for variable in variables:
            printer.message(str(variable.get("_id", "")))
        return True

    table = new_table("Id", "Value", "Status", "Description", "Modifier", "Modified")
    for variable in variables:
        status = "loaded" if variable.get("loaded") else "unloaded"
        table.add_row(
            escape(str(variable.get("_id", ""))),
            escape(decode_variable_value(variable)),
            status,
            escape(str(variable.get("description") or "")),
            escape(str(variable.get("lastChangedBy") or "")),
            escape(str(variable.get("lastChangeDate") or "")),
        )
    printer.table(table)
    return True
