"""Unit tests for the connection report."""

import pytest

from pgvp.core.config import AccessConfig
from pgvp.core.output import Console
from pgvp.services.credentials import AppCredential
from pgvp.services.report import print_connection_report


@pytest.fixture
def credential():
    return AppCredential(
        username="webui_user",
        database="open_webui_db",
        password="Ab3dEf6hIj9kLm2nOp5qRs8t",
        host="10.0.0.5",
        port=5432,
    )


def _render(capsys, credential, access, quiet=False) -> str:
    console = Console()
    console.configure(verbosity=0 if quiet else 1, no_color=True)
    print_connection_report(console, credential, access)
    return capsys.readouterr().out


class TestConnectionReport:
    """Tests for print_connection_report."""

    def test_shows_all_fields(self, capsys, credential):
        out = _render(capsys, credential, AccessConfig(external_cidr="10.0.0.0/24"))

        for value in ["10.0.0.5", "5432", "webui_user", "open_webui_db",
                      "Ab3dEf6hIj9kLm2nOp5qRs8t"]:
            assert value in out
        assert "will not be shown again" in out

    def test_dsn_line(self, capsys, credential):
        out = _render(capsys, credential, AccessConfig(external_cidr="10.0.0.0/24"))
        assert credential.dsn in out

    def test_open_cidr_warning(self, capsys, credential):
        out = _render(capsys, credential, AccessConfig())
        assert "0.0.0.0/0" in out

    def test_narrow_cidr_no_warning(self, capsys, credential):
        out = _render(capsys, credential, AccessConfig(external_cidr="10.0.0.0/24"))
        assert "Restrict access.external_cidr" not in out

    def test_shown_in_quiet_mode(self, capsys, credential):
        out = _render(capsys, credential, AccessConfig(), quiet=True)
        assert "Ab3dEf6hIj9kLm2nOp5qRs8t" in out
