"""Tests for the CLI."""

from typer.testing import CliRunner

from meez import __version__
from meez.main import _to_raw_input, app
from meez.models import InputKind

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_health_reports_optional_integrations():
    result = runner.invoke(app, ["health"])
    assert result.exit_code == 0
    assert "Configuration loaded" in result.output


class TestToRawInput:
    def test_url(self):
        raw = _to_raw_input("https://example.com/soup")
        assert raw.kind is InputKind.URL

    def test_bare_domain_gets_scheme(self):
        raw = _to_raw_input("example.com/soup")
        assert raw.payload == "https://example.com/soup"

    def test_text(self):
        raw = _to_raw_input("Ingredients:\n- 2 eggs\nInstructions:\n1. Whisk.")
        assert raw.kind is InputKind.RAW_TEXT
