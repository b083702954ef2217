from __future__ import annotations

import io

from tenantctl.console import Printer, sanitize_text


def test_sanitize_text_redacts_secrets() -> None:
    assert "S3cret" not in sanitize_text("password=S3cret")
    assert "abc.def" not in sanitize_text('{"access_token": "abc.def"}')
    assert "xyz" not in sanitize_text("https://am/callback?code=xyz&state=1")
    assert sanitize_text("journey Login not found") == "journey Login not found"


def test_verbose_and_debug_are_gated() -> None:
    err = io.StringIO()
    quiet = Printer(stdout=io.StringIO(), stderr=err)
    quiet.verbose("progress")
    quiet.debug("GET /json")
    assert err.getvalue() == ""

    loud = Printer(stdout=io.StringIO(), stderr=err, verbose=True, debug=True)
    loud.verbose("progress")
    loud.debug("GET /json")
    assert err.getvalue().splitlines() == ["progress", "debug: GET /json"]


def test_results_append_to_output_file(tmp_path) -> None:
    target = tmp_path / "out.md"
    target.write_text("old\n", encoding="utf-8")
    out = io.StringIO()
    printer = Printer(stdout=out, stderr=io.StringIO(), output_file=str(target))
    printer.reset_output_file()
    printer.result("line one")
    printer.styled("[bold]line two[/bold]")
    assert target.read_text(encoding="utf-8") == "line one\nline two\n"
    assert out.getvalue() == ""


def test_styled_text_to_stream_has_no_markup() -> None:
    out = io.StringIO()
    Printer(stdout=out, stderr=io.StringIO()).styled("[bold]Journey Name:[/bold] Login")
    assert out.getvalue() == "Journey Name: Login\n"
