"""Social identity provider operations.

Export document shape::

    {
        "meta": {...},
        "script": {"<script id>": {...}},
        "idp": {"<provider id>": {...}}
    }

Each provider's ``transform`` script is exported alongside it so the file can
be imported into another realm without dangling references.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from rich.markup import escape

from tenantctl.client import PlatformClient
from tenantctl.console import Printer, new_table
from tenantctl.errors import PlatformRequestError, TenantCtlError
from tenantctl.exports import build_metadata, save_json_to_file, typed_filename
from tenantctl.session import realm_display_name


class ProviderNotFoundError(TenantCtlError):
    """Requested social identity provider does not exist in the realm."""


def get_social_identity_providers(client: PlatformClient) -> list[dict]:
    providers = client.get_social_identity_providers()
    return sorted(providers, key=lambda item: str(item.get("_id", "")))


def get_social_identity_provider(client: PlatformClient, idp_id: str) -> dict:
    for provider in get_social_identity_providers(client):
        if provider.get("_id") == idp_id:
            return provider
    raise ProviderNotFoundError(
        f"provider '{idp_id}' not found in realm '{client.session.realm}'"
    )


def _strip_revision(item: dict) -> dict:
    return {key: value for key, value in item.items() if key != "_rev"}


def _add_provider(client: PlatformClient, export: dict[str, Any], provider: dict) -> None:
    provider_id = str(provider.get("_id"))
    export["idp"][provider_id] = _strip_revision(provider)
    script_id = provider.get("transform")
    if isinstance(script_id, str) and script_id and script_id not in export["script"]:
        try:
            export["script"][script_id] = _strip_revision(client.get_script(script_id))
        except PlatformRequestError as exc:
            if exc.status_code != 404:
                raise
            if client.printer is not None:
                client.printer.verbose(
                    f"Transform script {script_id} of provider {provider_id} not found; skipped."
                )


def _new_export(client: PlatformClient) -> dict[str, Any]:
    return {
        "meta": build_metadata(client.session, am_version=client.am_version),
        "script": {},
        "idp": {},
    }


def export_social_identity_provider(client: PlatformClient, idp_id: str) -> dict[str, Any]:
    export = _new_export(client)
    _add_provider(client, export, get_social_identity_provider(client, idp_id))
    return export


def export_social_identity_providers(client: PlatformClient) -> dict[str, Any]:
    export = _new_export(client)
    for provider in get_social_identity_providers(client):
        _add_provider(client, export, provider)
    return export


def export_social_identity_provider_to_file(
    client: PlatformClient,
    printer: Printer,
    idp_id: str,
    file: str | None = None,
    include_meta: bool = True,
) -> bool:
    path = file or typed_filename(idp_id, "idp")
    export = export_social_identity_provider(client, idp_id)
    written = save_json_to_file(export, path, include_meta=include_meta)
    printer.message(f"Exported provider {idp_id} to {written}.")
    return True


def export_social_identity_providers_to_file(
    client: PlatformClient,
    printer: Printer,
    file: str | None = None,
    include_meta: bool = True,
) -> bool:
    path = file or typed_filename(f"all{realm_display_name(client.session.realm)}Providers", "idp")
    export = export_social_identity_providers(client)
    written = save_json_to_file(export, path, include_meta=include_meta)
    printer.message(f"Exported {len(export['idp'])} provider(s) to {written}.")
    return True


def export_social_identity_providers_to_files(
    client: PlatformClient,
    printer: Printer,
    include_meta: bool = True,
    directory: str | Path = ".",
) -> bool:
    ok = True
    written_count = 0
    providers = get_social_identity_providers(client)
    for provider in providers:
        provider_id = str(provider.get("_id"))
        try:
            export = _new_export(client)
            _add_provider(client, export, provider)
            written = save_json_to_file(
                export,
                Path(directory) / typed_filename(provider_id, "idp"),
                include_meta=include_meta,
            )
        except TenantCtlError as exc:
            printer.error("export error", f"{provider_id}: {exc}")
            ok = False
            continue
        written_count += 1
        printer.verbose(f"Exported provider {provider_id} to {written}.")
    printer.message(f"Exported {written_count} of {len(providers)} provider(s) to separate files.")
    return ok


def list_social_identity_providers(
    client: PlatformClient,
    printer: Printer,
    long: bool = False,
) -> bool:
    providers = get_social_identity_providers(client)
    if not long:
        for provider in providers:
            printer.message(str(provider.get("_id", "")))
        return True

    table = new_table("Id", "Type", "Enabled", "Transform")
    for provider in providers:
        provider_type = provider.get("_type")
        type_name = provider_type.get("name") if isinstance(provider_type, dict) else None
        table.add_row(
            escape(str(provider.get("_id", ""))),
            escape(str(type_name or "")),
            "true" if provider.get("enabled") else "false",
            escape(str(provider.get("transform") or "")),
        )
    printer.table(table)
    return True
