from __future__ import annotations

import pytest

from tenantctl.session import SessionContext


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    home = tmp_path / "tenantctl-home"
    monkeypatch.setenv("TENANTCTL_HOME", str(home))
    for name in (
        "TENANTCTL_HOST",
        "TENANTCTL_REALM",
        "TENANTCTL_USERNAME",
        "TENANTCTL_PASSWORD",
        "TENANTCTL_SA_ID",
        "TENANTCTL_SA_JWK_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return home


class FakeClient:
    """Stands in for PlatformClient in CLI tests; records authentication calls."""

    instances: list["FakeClient"] = []
    authenticate_ok = True

    def __init__(self, session: SessionContext, printer=None, timeout=30.0, retries=2) -> None:
        self.session = session
        self.printer = printer
        self.timeout = timeout
        self.retries = retries
        self.am_version = session.am_version
        self.token_calls = 0
        FakeClient.instances.append(self)

    def get_tokens(self) -> bool:
        self.token_calls += 1
        if not self.authenticate_ok and self.printer is not None:
            self.printer.error("authentication error", "invalid credentials for admin")
        return self.authenticate_ok


@pytest.fixture
def fake_client(monkeypatch):
    FakeClient.instances = []
    FakeClient.authenticate_ok = True
    monkeypatch.setattr("tenantctl.cli.main.PlatformClient", FakeClient)
    return FakeClient
