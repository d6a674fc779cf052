"""Tests for the command-line interface."""

from unittest.mock import patch

import pytest
import typer
from typer.testing import CliRunner

from orchestrator import __version__
from orchestrator.cli.main import app, format_units, to_base_units

runner = CliRunner()


class TestAmounts:
    """Tests for amount conversion helpers."""

    def test_to_base_units(self):
        assert to_base_units("5", 6) == 5_000000
        assert to_base_units("2.5", 6) == 2_500000
        assert to_base_units("0.000001", 6) == 1

    @pytest.mark.parametrize("amount", ["0", "-1", "abc", "0.0000001"])
    def test_rejects_bad_amounts(self, amount):
        with pytest.raises(typer.BadParameter):
            to_base_units(amount, 6)

    def test_format_units(self):
        assert format_units(2_500000, 6) == "2.5"
        assert format_units(1, 6) == "0.000001"


class TestCommands:
    """Tests for CLI commands against a temporary ledger."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_init_db_and_pending(self, settings):
        with patch("orchestrator.cli.main.get_settings", return_value=settings):
            init = runner.invoke(app, ["init-db"])
            pending = runner.invoke(app, ["pending"])

        assert init.exit_code == 0
        assert pending.exit_code == 0
        assert "Nothing to show" in pending.stdout

    def test_status_unknown_request(self, settings):
        with patch("orchestrator.cli.main.get_settings", return_value=settings):
            result = runner.invoke(app, ["status", "0xaa"])

        assert result.exit_code == 1
        assert "No ledger entries" in result.stdout

    def test_bridge_rejects_bad_amount(self, settings):
        with patch("orchestrator.cli.main.get_settings", return_value=settings):
            result = runner.invoke(app, ["bridge", "abc"])

        assert result.exit_code == 2

    def test_bridge_needs_operator_key(self, settings):
        with patch("orchestrator.cli.main.get_settings", return_value=settings), patch(
            "orchestrator.cli.main.setup_logging"
        ):
            result = runner.invoke(app, ["bridge", "1"])

        assert result.exit_code == 1
        assert "OPERATOR_PRIVATE_KEY" in result.stdout
