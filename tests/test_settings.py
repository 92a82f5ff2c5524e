"""Tests for settings derivation and environment loading."""

from decimal import Decimal

import pytest

from fromto_calc.decimals import LOCALES
from fromto_calc.settings import ConfigError, Settings, calculation_defaults, effective_settings, load_settings

D = Decimal


class TestEffectiveSettings:
    def test_single_currency_follows_base(self):
        settings = effective_settings(
            Settings(base_currency="USD", transaction_currency="EUR", double_currency=False, currency_rate=D("0.9"))
        )
        assert settings.transaction_currency == "USD"
        assert settings.currency_rate == D("1.0")

    def test_same_currency_rate_is_one(self):
        settings = effective_settings(Settings(base_currency="EUR", transaction_currency="EUR", currency_rate=D("3")))
        assert settings.currency_rate == D("1.0")

    def test_double_currency_keeps_rate(self):
        settings = effective_settings(Settings(currency_rate=D("0.92")))
        assert settings.currency_rate == D("0.92")
        assert settings.transaction_currency == "EUR"

    def test_apply_cost_off_clears_defaults(self):
        settings = effective_settings(
            Settings(apply_cost=False, default_fixed_cost=D("5"), default_maximum_cost=D("50"))
        )
        assert settings.default_fixed_cost == D("0")
        assert settings.default_maximum_cost is None

    def test_raw_settings_untouched(self):
        raw = Settings(double_currency=False)
        effective_settings(raw)
        assert raw.transaction_currency == "EUR"

    def test_calculation_defaults(self):
        defaults = calculation_defaults(
            Settings(double_currency=False, bank_broker_name="Broker", default_variable_cost=D("0.001"))
        )
        assert defaults == {
            "base_currency": "USD",
            "transaction_currency": "USD",
            "currency_rate": D("1.0"),
            "bank_broker_name": "Broker",
            "fixed_cost": D("0"),
            "variable_cost": D("0.001"),
            "maximum_cost": None,
        }


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings({})
        assert settings == Settings()
        assert settings.legacy_minimum_cost == D("150")
        assert settings.number_locale is LOCALES["en_US"]

    def test_reads_variables(self):
        settings = load_settings({
            "FROMTO_BASE_CURRENCY": "eur",
            "FROMTO_TRANSACTION_CURRENCY": "GBP",
            "FROMTO_DOUBLE_CURRENCY": "yes",
            "FROMTO_CURRENCY_RATE": "0.85",
            "FROMTO_APPLY_COST": "off",
            "FROMTO_BANK_BROKER": " Broker ",
            "FROMTO_DEFAULT_FIXED_COST": "2.50",
            "FROMTO_DEFAULT_MAXIMUM_COST": "none",
            "FROMTO_LEGACY_MINIMUM_COST": "none",
            "FROMTO_LOCALE": "nl_NL",
        })
        assert settings.base_currency == "EUR"
        assert settings.transaction_currency == "GBP"
        assert settings.currency_rate == D("0.85")
        assert settings.apply_cost is False
        assert settings.bank_broker_name == "Broker"
        assert settings.default_fixed_cost == D("2.50")
        assert settings.default_maximum_cost is None
        assert settings.legacy_minimum_cost is None
        assert settings.number_locale is LOCALES["nl_NL"]

    @pytest.mark.parametrize("env", [
        {"FROMTO_DOUBLE_CURRENCY": "maybe"},
        {"FROMTO_CURRENCY_RATE": "1,5"},
        {"FROMTO_BASE_CURRENCY": "EURO"},
    ])
    def test_invalid_values(self, env):
        with pytest.raises(ConfigError):
            load_settings(env)
