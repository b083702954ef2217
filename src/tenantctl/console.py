"""Console output for tenantctl commands."""

from __future__ import annotations

import json
import re
import shlex
from pathlib import Path
from typing import Mapping

from rich.console import Console
from rich.table import Table
from rich.text import Text

from tenantctl.exports import save_text_to_file
from tenantctl.session import SessionContext

_SENSITIVE_FIELDS = (
    "password",
    "access_token",
    "id_token",
    "tokenId",
    "assertion",
    "secret",
    "token",
    "authorization",
    "code_verifier",
    "csrf",
)
_SENSITIVE_HEADERS = ("authorization", "cookie", "x-openam-password")


def sanitize_text(value: str) -> str:
    redacted = value
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)(\b{field}\"?\s*[=:]\s*\"?)([^,\s&\"]+)",
            r"\1[REDACTED]",
            redacted,
        )
    redacted = re.sub(r"(?i)([?&](?:secret|token|code)=)([^&\s]+)", r"\1[REDACTED]", redacted)
    return redacted


class Printer:
    """Routes result, progress and error messages for one invocation.

    Results go to stdout, or are appended to ``output_file`` when one is set.
    Verbose, debug and curl output is gated on the matching session flag and
    always goes to stderr so results stay machine-readable.
    """

    def __init__(
        self,
        *,
        stdout,
        stderr,
        verbose: bool = False,
        debug: bool = False,
        curlirize: bool = False,
        output_file: str | None = None,
    ) -> None:
        self.stdout = stdout
        self.stderr = stderr
        self.verbose_enabled = verbose
        self.debug_enabled = debug
        self.curlirize_enabled = curlirize
        self.output_file = output_file
        self._console = Console(file=stdout, highlight=False, soft_wrap=True)

    @classmethod
    def for_session(cls, session: SessionContext, *, stdout, stderr) -> "Printer":
        return cls(
            stdout=stdout,
            stderr=stderr,
            verbose=session.verbose,
            debug=session.debug,
            curlirize=session.curlirize,
            output_file=session.output_file,
        )

    def message(self, text: str) -> None:
        print(text, file=self.stdout)

    def result(self, text: str) -> None:
        if self.output_file:
            with Path(self.output_file).open("a", encoding="utf-8") as handle:
                handle.write(text + "\n")
            return
        print(text, file=self.stdout)

    def styled(self, markup: str) -> None:
        if self.output_file:
            self.result(Text.from_markup(markup).plain)
            return
        self._console.print(markup)

    def table(self, table: Table) -> None:
        self._console.print(table)

    def verbose(self, text: str) -> None:
        if self.verbose_enabled:
            print(text, file=self.stderr)

    def debug(self, text: str) -> None:
        if self.debug_enabled:
            print(f"debug: {sanitize_text(text)}", file=self.stderr)

    def error(self, prefix: str, message: str) -> None:
        print(f"{prefix}: {sanitize_text(message)}", file=self.stderr)

    def reset_output_file(self) -> None:
        if self.output_file:
            save_text_to_file("", self.output_file)

    def curl(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json_payload: object | None = None,
        form: Mapping[str, str] | None = None,
    ) -> None:
        if not self.curlirize_enabled:
            return
        parts = ["curl", "-X", method.upper()]
        for name, value in (headers or {}).items():
            shown = "[REDACTED]" if name.lower() in _SENSITIVE_HEADERS else value
            parts.extend(["-H", f"{name}: {shown}"])
        if json_payload is not None:
            parts.extend(["-H", "Content-Type: application/json"])
            parts.extend(["--data-raw", sanitize_text(json.dumps(json_payload, sort_keys=True))])
        for name, value in (form or {}).items():
            parts.extend(["--data-urlencode", sanitize_text(f"{name}={value}")])
        parts.append(url)
        print(" ".join(shlex.quote(part) for part in parts), file=self.stderr)


def new_table(*columns: str) -> Table:
    table = Table(show_header=True, header_style="bold")
    for column in columns:
        table.add_column(column, overflow="fold")
    return table
