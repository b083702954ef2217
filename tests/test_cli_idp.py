from __future__ import annotations

import io

from tenantctl.cli.main import main

HOST = "https://am.example.com/am"


def _record(monkeypatch) -> list[tuple]:
    calls: list[tuple] = []

    def by_id(client, printer, idp_id, file=None, include_meta=True):
        calls.append(("one", idp_id, file, include_meta))
        return True

    def all_in_one(client, printer, file=None, include_meta=True):
        calls.append(("all", file, include_meta))
        return True

    def all_separate(client, printer, include_meta=True):
        calls.append(("separate", include_meta))
        return True

    monkeypatch.setattr("tenantctl.cli.main.export_social_identity_provider_to_file", by_id)
    monkeypatch.setattr("tenantctl.cli.main.export_social_identity_providers_to_file", all_in_one)
    monkeypatch.setattr("tenantctl.cli.main.export_social_identity_providers_to_files", all_separate)
    return calls


def test_idp_export_id_takes_priority_over_all(monkeypatch, fake_client) -> None:
    calls = _record(monkeypatch)
    rc = main(
        ["idp", "export", HOST, "alpha", "admin", "pw", "-i", "google", "-a", "-A", "-f", "g.json"],
        stdout=io.StringIO(),
        stderr=io.StringIO(),
    )
    assert rc == 0
    assert calls == [("one", "google", "g.json", True)]


def test_idp_export_all_takes_priority_over_all_separate(monkeypatch, fake_client) -> None:
    calls = _record(monkeypatch)
    rc = main(
        ["idp", "export", HOST, "-a", "-A", "--no-metadata"],
        stdout=io.StringIO(),
        stderr=io.StringIO(),
    )
    assert rc == 0
    assert calls == [("all", None, False)]


def test_idp_export_all_separate(monkeypatch, fake_client) -> None:
    calls = _record(monkeypatch)
    rc = main(["idp", "export", HOST, "--all-separate"], stdout=io.StringIO(), stderr=io.StringIO())
    assert rc == 0
    assert calls == [("separate", True)]


def test_idp_export_without_selection_prints_help(monkeypatch, fake_client) -> None:
    calls = _record(monkeypatch)
    err = io.StringIO()
    rc = main(["idp", "export", HOST, "-f", "out.json"], stdout=io.StringIO(), stderr=err)
    assert rc == 1
    assert calls == []
    assert "usage error:" in err.getvalue()
    assert "--all-separate" in err.getvalue()
    assert fake_client.instances == []


def test_idp_export_reports_operation_error(monkeypatch, fake_client) -> None:
    err = io.StringIO()

    def missing(client, printer, idp_id, file=None, include_meta=True):
        raise LookupError("provider 'nope' not found in realm 'alpha'")

    monkeypatch.setattr("tenantctl.cli.main.export_social_identity_provider_to_file", missing)
    rc = main(["idp", "export", HOST, "-i", "nope"], stdout=io.StringIO(), stderr=err)
    assert rc == 1
    assert "provider 'nope' not found" in err.getvalue()


def test_idp_list(monkeypatch, fake_client) -> None:
    calls: list[bool] = []
    monkeypatch.setattr(
        "tenantctl.cli.main.list_social_identity_providers",
        lambda client, printer, long=False: calls.append(long) or True,
    )
    rc = main(["idp", "list", HOST, "bravo"], stdout=io.StringIO(), stderr=io.StringIO())
    assert rc == 0
    assert calls == [False]
    assert fake_client.instances[0].session.realm == "bravo"
