from __future__ import annotations

import io
import json
import os

import pytest

from tenantctl.cli.config import default_cli_config
from tenantctl.cli.connections import (
    ConnectionProfile,
    ConnectionProfileError,
    delete_connection,
    match_connection_key,
    resolve_connection,
    save_connection,
)
from tenantctl.cli.main import main

HOST = "https://openam-tenant.forgeblocks.com/am"


def test_match_connection_key_prefers_exact_then_unique_substring() -> None:
    hosts = ["https://a.example.com/am", "https://a.example.com/am2"]
    assert match_connection_key("https://a.example.com/am", hosts) == "https://a.example.com/am"
    assert match_connection_key("am2", hosts) == "https://a.example.com/am2"
    assert match_connection_key("b.example", hosts) is None
    with pytest.raises(ConnectionProfileError):
        match_connection_key("example", hosts)


def test_password_is_stored_encrypted(tmp_path) -> None:
    connections_file = tmp_path / "connections.json"
    master_key_file = tmp_path / "masterkey.key"
    save_connection(
        ConnectionProfile(host=HOST, username="admin", password="S3cret!", deployment_type="cloud"),
        connections_file=connections_file,
        master_key_file=master_key_file,
    )
    stored = json.loads(connections_file.read_text(encoding="utf-8"))
    assert "S3cret!" not in connections_file.read_text(encoding="utf-8")
    assert stored[HOST]["username"] == "admin"
    assert stored[HOST]["deploymentType"] == "cloud"
    if os.name == "posix":
        assert oct(connections_file.stat().st_mode & 0o777) == "0o600"
        assert oct(master_key_file.stat().st_mode & 0o777) == "0o600"

    profile = resolve_connection(
        "openam-tenant",
        connections_file=connections_file,
        master_key_file=master_key_file,
    )
    assert profile is not None
    assert profile.password == "S3cret!"


def test_wrong_master_key_is_reported(tmp_path) -> None:
    connections_file = tmp_path / "connections.json"
    save_connection(
        ConnectionProfile(host=HOST, password="pw"),
        connections_file=connections_file,
        master_key_file=tmp_path / "first.key",
    )
    with pytest.raises(ConnectionProfileError, match="cannot decrypt"):
        resolve_connection(HOST, connections_file=connections_file, master_key_file=tmp_path / "second.key")


def test_save_merges_with_existing_entry(tmp_path) -> None:
    connections_file = tmp_path / "connections.json"
    master_key_file = tmp_path / "masterkey.key"
    save_connection(
        ConnectionProfile(host=HOST, username="admin", password="pw"),
        connections_file=connections_file,
        master_key_file=master_key_file,
    )
    save_connection(
        ConnectionProfile(host=HOST, service_account_id="sa-1"),
        connections_file=connections_file,
        master_key_file=master_key_file,
    )
    profile = resolve_connection(HOST, connections_file=connections_file, master_key_file=master_key_file)
    assert profile.username == "admin"
    assert profile.password == "pw"
    assert profile.service_account_id == "sa-1"


def test_delete_connection(tmp_path) -> None:
    connections_file = tmp_path / "connections.json"
    save_connection(
        ConnectionProfile(host=HOST, username="admin"),
        connections_file=connections_file,
        master_key_file=tmp_path / "masterkey.key",
    )
    assert delete_connection("openam", connections_file=connections_file) == HOST
    assert delete_connection("openam", connections_file=connections_file) is None


def test_invalid_connections_file(tmp_path) -> None:
    connections_file = tmp_path / "connections.json"
    connections_file.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConnectionProfileError):
        resolve_connection(HOST, connections_file=connections_file, master_key_file=tmp_path / "k")


def test_conn_add_list_delete_round_trip(fake_client) -> None:
    out = io.StringIO()
    err = io.StringIO()
    rc = main(
        ["conn", "add", HOST, "admin", "S3cret!", "--no-validate"],
        stdout=out,
        stderr=err,
    )
    assert rc == 0, err.getvalue()
    assert fake_client.instances == []
    assert "Saved connection profile" in out.getvalue()

    out = io.StringIO()
    rc = main(["conn", "list"], stdout=out, stderr=io.StringIO())
    assert rc == 0
    assert out.getvalue().strip() == HOST

    out = io.StringIO()
    rc = main(["conn", "list", "--long"], stdout=out, stderr=io.StringIO())
    assert rc == 0
    assert "admin" in out.getvalue()
    assert "S3cret!" not in out.getvalue()

    out = io.StringIO()
    rc = main(["conn", "delete", "openam-tenant"], stdout=out, stderr=io.StringIO())
    assert rc == 0
    assert HOST in out.getvalue()

    err = io.StringIO()
    rc = main(["conn", "delete", "openam-tenant"], stdout=io.StringIO(), stderr=err)
    assert rc == 1
    assert err.getvalue().startswith("not found:")


def test_conn_add_validates_by_default(fake_client) -> None:
    fake_client.authenticate_ok = False
    rc = main(["conn", "add", HOST, "admin", "wrong"], stdout=io.StringIO(), stderr=io.StringIO())
    assert rc == 1
    assert fake_client.instances[0].token_calls == 1
    config = default_cli_config()
    assert not os.path.exists(config.connections_file)


def test_saved_profile_supplies_credentials(monkeypatch, fake_client) -> None:
    main(["conn", "add", HOST, "admin", "S3cret!", "--no-validate"], stdout=io.StringIO(), stderr=io.StringIO())
    monkeypatch.setattr("tenantctl.cli.main.list_journeys", lambda client, printer, long=False: True)

    rc = main(["journey", "list", "openam-tenant"], stdout=io.StringIO(), stderr=io.StringIO())
    assert rc == 0
    session = fake_client.instances[0].session
    assert session.host == HOST
    assert session.username == "admin"
    assert session.password == "S3cret!"
