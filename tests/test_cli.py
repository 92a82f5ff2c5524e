"""Tests for the command-line interface."""

import json
from decimal import Decimal
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from fromto_calc.main import cli, parse_amount
from fromto_calc.decimals import LOCALES


@pytest.fixture
def runner(monkeypatch):
    for key in ("FROMTO_BASE_CURRENCY", "FROMTO_TRANSACTION_CURRENCY", "FROMTO_CURRENCY_RATE",
                "FROMTO_DOUBLE_CURRENCY", "FROMTO_APPLY_COST", "FROMTO_LOCALE",
                "FROMTO_LEGACY_MINIMUM_COST", "FROMTO_DEFAULT_FIXED_COST", "FROMTO_DEFAULT_VARIABLE_COST"):
        monkeypatch.delenv(key, raising=False)
    return CliRunner()


@pytest.fixture
def providers_file(tmp_path, provider_payload):
    path = tmp_path / "providers.json"
    path.write_text(json.dumps({"providers": [provider_payload]}), encoding="utf-8")
    return str(path)


class TestParseAmount:
    def test_suffixes(self):
        assert parse_amount("10k") == Decimal("10000")
        assert parse_amount("1,5m", LOCALES["nl_NL"]) == Decimal("1500000")
        assert parse_amount("2,500") == Decimal("2500")


class TestSizeCommand:
    def test_prints_plan(self, runner):
        result = runner.invoke(cli, ["size", "-a", "10000", "-p", "150", "--single-currency"])
        assert result.exit_code == 0, result.output
        assert "Units purchasable  : 66" in result.output
        assert "Remaining          : 100.00 USD" in result.output

    def test_json_export(self, runner, tmp_path, providers_file):
        out = tmp_path / "plan.json"
        result = runner.invoke(cli, [
            "size", "-a", "1000", "-p", "100", "--single-currency",
            "--providers", providers_file, "--date", "2024-05-01",
            "--legacy-minimum", "none", "--output", str(out),
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert Decimal(data["net_cost"]) == Decimal("6")
        assert data["units_purchasable"] == 9
        assert data["provider"] == "Broker - Basic"

    def test_units_option(self, runner, tmp_path):
        out = tmp_path / "plan.json"
        result = runner.invoke(cli, [
            "size", "-a", "1000", "-p", "100", "--single-currency", "--units", "3", "--output", str(out),
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["units"] == 3
        assert Decimal(data["remaining_amount"]) == Decimal("700")

    def test_locale_amounts(self, runner):
        result = runner.invoke(cli, [
            "size", "-a", "1.000,50", "-p", "0,5", "--single-currency", "--locale", "nl_NL",
        ])
        assert result.exit_code == 0, result.output
        assert "Units purchasable  : 2001" in result.output

    def test_invalid_amount(self, runner):
        result = runner.invoke(cli, ["size", "-a", "lots", "-p", "1"])
        assert result.exit_code != 0
        assert "Invalid amount" in result.output

    def test_invalid_currency(self, runner):
        result = runner.invoke(cli, ["size", "-a", "1", "-p", "1", "--base", "EURO"])
        assert result.exit_code != 0

    def test_bad_environment(self, runner, monkeypatch):
        monkeypatch.setenv("FROMTO_APPLY_COST", "perhaps")
        result = runner.invoke(cli, ["size", "-a", "1", "-p", "1"])
        assert result.exit_code != 0
        assert "FROMTO_APPLY_COST" in result.output


class TestCostsCommand:
    def test_breakdown(self, runner, providers_file):
        result = runner.invoke(cli, [
            "costs", "--providers", providers_file, "--amount", "1000", "--date", "2024-05-01",
        ])
        assert result.exit_code == 0, result.output
        assert "Transaction Commission" in result.output
        assert "Adjusted cost (minimum)" in result.output

    def test_no_active_provider(self, runner, providers_file):
        result = runner.invoke(cli, [
            "costs", "--providers", providers_file, "--amount", "1000", "--date", "2020-01-01",
        ])
        assert result.exit_code != 0
        assert "No provider active on 2020-01-01" in result.output

    def test_malformed_providers_file(self, runner, tmp_path):
        path = tmp_path / "providers.json"
        path.write_text(json.dumps(["Broker"]), encoding="utf-8")
        result = runner.invoke(cli, ["costs", "--providers", str(path), "--amount", "1000"])
        assert result.exit_code == 2
        assert "must be an object" in result.output
        assert "Traceback" not in result.output


class TestDifferenceCommand:
    def test_absolute(self, runner):
        result = runner.invoke(cli, ["difference", "1", "2.5"])
        assert result.exit_code == 0, result.output
        assert "Relative difference: 150%" in result.output

    def test_zero_from(self, runner):
        result = runner.invoke(cli, ["difference", "0", "2"])
        assert "N/A (division by zero)" in result.output

    def test_relative_percent(self, runner, tmp_path):
        out = tmp_path / "diff.json"
        result = runner.invoke(cli, ["difference", "200", "5%", "--relative", "--output", str(out)])
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert Decimal(data["cumulative"]) == Decimal("210")

    def test_export_needs_json(self, runner, tmp_path):
        result = runner.invoke(cli, ["difference", "1", "2", "--output", str(tmp_path / "diff.csv")])
        assert result.exit_code != 0


class TestRateCommand:
    def test_same_currency(self, runner):
        result = runner.invoke(cli, ["rate", "EUR", "EUR"])
        assert result.exit_code == 0
        assert result.output.strip() == "1.0"

    @patch('fromto_calc.rates.requests.Session.get')
    def test_lookup(self, mock_get, runner):
        mock_get.return_value.json.return_value = {"rates": {"EUR": Decimal("0.92")}}
        result = runner.invoke(cli, ["rate", "USD", "EUR", "--date", "2024-03-01"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "0.92"
