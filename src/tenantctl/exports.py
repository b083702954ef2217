"""Export file naming, metadata and persistence."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Any

from tenantctl.errors import ExportError
from tenantctl.session import SessionContext

EXPORT_TOOL = "tenantctl"


def tool_version() -> str:
    try:
        return pkg_version("tenantctl")
    except PackageNotFoundError:
        return "0.0.0+local"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_metadata(session: SessionContext, *, am_version: str | None) -> dict[str, Any]:
    return {
        "origin": session.host,
        "originAmVersion": am_version or session.am_version,
        "exportedBy": session.service_account_id or session.username,
        "exportDate": _utc_now_iso(),
        "exportTool": EXPORT_TOOL,
        "exportToolVersion": tool_version(),
    }


def sanitize_filename(name: str) -> str:
    cleaned = re.sub(r"[^\w.\- ]+", "_", name).strip()
    return cleaned or "unnamed"


def typed_filename(name: str, kind: str, suffix: str = "json") -> str:
    return f"{sanitize_filename(name)}.{kind}.{suffix}"


def save_json_to_file(payload: dict[str, Any], path: str | Path, *, include_meta: bool = True) -> Path:
    target = Path(path)
    data = dict(payload)
    if not include_meta:
        data.pop("meta", None)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise ExportError(f"failed to write export file: {target}: {exc}") from exc
    return target


def save_text_to_file(text: str, path: str | Path) -> Path:
    target = Path(path)
    try:
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ExportError(f"failed to write file: {target}: {exc}") from exc
    return target


def load_json_file(path: str | Path) -> Any:
    source = Path(path)
    try:
        raw = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise ExportError(f"cannot read {source}: {exc.strerror or exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ExportError(f"invalid JSON in {source}: {exc}") from exc
