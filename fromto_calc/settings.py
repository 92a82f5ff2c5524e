"""User settings that pre-populate calculations.

Settings arrive as plain values (from the environment, a form or a store) and
are never fetched by the calculation code itself. After any change the caller
runs :func:`effective_settings` to derive the values actually used: the
transaction currency and rate follow the double-currency flag, and the
default costs follow the apply-cost flag.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from .costs import LEGACY_MINIMUM_COST
from .decimals import ZERO, NumberLocale, ParseError, from_canonical
from .money import effective_rate, normalize_currency

ENV_PREFIX = "FROMTO_"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    base_currency: str = "USD"
    transaction_currency: str = "EUR"
    double_currency: bool = True
    currency_rate: Decimal = Decimal("1.0")
    apply_cost: bool = True
    bank_broker_name: str = ""
    default_fixed_cost: Decimal = ZERO
    default_variable_cost: Decimal = ZERO
    default_maximum_cost: Optional[Decimal] = None
    legacy_minimum_cost: Optional[Decimal] = LEGACY_MINIMUM_COST
    locale: str = "en_US"

    @property
    def effective_currency_rate(self) -> Decimal:
        return effective_rate(
            self.base_currency, self.transaction_currency, self.double_currency, self.currency_rate
        )

    @property
    def number_locale(self) -> NumberLocale:
        return NumberLocale.named(self.locale)


def effective_settings(raw: Settings) -> Settings:
    """Return ``raw`` with the derived fields brought in line with the flags.

    * double currency off: the transaction currency is the base currency and
      the rate is 1;
    * same currency on both sides: the rate is 1;
    * apply cost off: default costs are zero and no maximum is set.
    """
    settings = raw
    if not settings.double_currency:
        settings = replace(settings, transaction_currency=settings.base_currency)
    settings = replace(settings, currency_rate=settings.effective_currency_rate)
    if not settings.apply_cost:
        settings = replace(
            settings,
            default_fixed_cost=ZERO,
            default_variable_cost=ZERO,
            default_maximum_cost=None,
        )
    return settings


def calculation_defaults(settings: Settings) -> Dict[str, Any]:
    """Values a new calculation starts from."""
    settings = effective_settings(settings)
    return {
        "base_currency": settings.base_currency,
        "transaction_currency": settings.transaction_currency,
        "currency_rate": settings.currency_rate,
        "bank_broker_name": settings.bank_broker_name,
        "fixed_cost": settings.default_fixed_cost,
        "variable_cost": settings.default_variable_cost,
        "maximum_cost": settings.default_maximum_cost,
    }


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    value = env.get(key)
    if _is_blank(value):
        return default
    normalized = str(value).strip().lower()
    if normalized in {"true", "1", "yes", "y", "on"}:
        return True
    if normalized in {"false", "0", "no", "n", "off"}:
        return False
    raise ConfigError(f"Config key {key} must be a boolean, got {value!r}")


def _env_decimal(env: Mapping[str, str], key: str, default: Optional[Decimal]) -> Optional[Decimal]:
    value = env.get(key)
    if _is_blank(value):
        return default
    if str(value).strip().lower() == "none":
        return None
    try:
        return from_canonical(str(value))
    except ParseError as e:
        raise ConfigError(f"Config key {key} must be a decimal, got {value!r}") from e


def _env_currency(env: Mapping[str, str], key: str, default: str) -> str:
    value = env.get(key)
    if _is_blank(value):
        return default
    try:
        return normalize_currency(str(value).strip())
    except ValueError as e:
        raise ConfigError(f"Config key {key} must be an ISO 4217 code, got {value!r}") from e


def load_settings(env: Mapping[str, str]) -> Settings:
    """Read settings from ``FROMTO_*`` variables in ``env`` (usually ``os.environ``).

    Unset variables keep their defaults; ``FROMTO_DEFAULT_MAXIMUM_COST`` and
    ``FROMTO_LEGACY_MINIMUM_COST`` accept ``none`` to mean "no value".
    """
    p = ENV_PREFIX
    defaults = Settings()
    rate = _env_decimal(env, p + "CURRENCY_RATE", defaults.currency_rate)
    return Settings(
        base_currency=_env_currency(env, p + "BASE_CURRENCY", defaults.base_currency),
        transaction_currency=_env_currency(env, p + "TRANSACTION_CURRENCY", defaults.transaction_currency),
        double_currency=_env_bool(env, p + "DOUBLE_CURRENCY", defaults.double_currency),
        currency_rate=defaults.currency_rate if rate is None else rate,
        apply_cost=_env_bool(env, p + "APPLY_COST", defaults.apply_cost),
        bank_broker_name=(env.get(p + "BANK_BROKER") or "").strip(),
        default_fixed_cost=_env_decimal(env, p + "DEFAULT_FIXED_COST", ZERO) or ZERO,
        default_variable_cost=_env_decimal(env, p + "DEFAULT_VARIABLE_COST", ZERO) or ZERO,
        default_maximum_cost=_env_decimal(env, p + "DEFAULT_MAXIMUM_COST", None),
        legacy_minimum_cost=_env_decimal(env, p + "LEGACY_MINIMUM_COST", LEGACY_MINIMUM_COST),
        locale=(env.get(p + "LOCALE") or defaults.locale).strip(),
    )
