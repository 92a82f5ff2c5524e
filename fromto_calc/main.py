"""Command-line interface for the FromTo calculator.

This module uses the ``click`` library to implement a multi-command
interface. Users can size a purchase, inspect a provider's costs, compare two
values and look up a currency rate. Results are printed to the terminal or
exported to JSON files; decimals are written as canonical strings so nothing
is lost in the export.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import replace
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import click

from .costs import aggregate_costs, calculate_portfolio_fees, select_active_provider
from .data_models import (
    CostCalculationResult,
    DifferenceResult,
    Provider,
    PurchasePlan,
    RelativeDifferenceResult,
    TransactionType,
)
from .decimals import NumberLocale, ParseError, parse_decimal, to_canonical
from .difference import compare, format_relative, relative_mode, swap
from .engine import plan_purchase
from .formatter import print_cost_breakdown, print_difference, print_plan, print_relative
from .money import normalize_currency
from .rates import DEFAULT_RATE_API_URL, CurrencyRateError, CurrencyRateService
from .settings import ConfigError, Settings, effective_settings, load_settings
from .utils import parse_iso_date, split_amount_suffix

logger = logging.getLogger(__name__)


def parse_amount(value: str, locale: Optional[NumberLocale] = None) -> Decimal:
    """Parse an amount with optional ``k``/``m`` suffix in the given locale.

    ``"10k"`` is 10 000 and ``"1,5m"`` is 1 500 000 in a comma-decimal locale.
    """
    text, factor = split_amount_suffix(value)
    try:
        return parse_decimal(text, locale) * factor
    except ParseError:
        raise click.BadParameter(f"Invalid amount: {value}")


def parse_minimum(value: Optional[str], settings: Settings):
    """Legacy minimum option: empty keeps the setting, ``none`` disables it."""
    if value is None:
        return settings.legacy_minimum_cost
    if value.strip().lower() == "none":
        return None
    return parse_amount(value, settings.number_locale)


def parse_date_option(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def parse_currency(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return normalize_currency(value.strip())
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def settings_from_env(**overrides: Any) -> Settings:
    try:
        settings = load_settings(os.environ)
    except ConfigError as exc:
        raise click.ClickException(str(exc))
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return replace(settings, **overrides)


def load_providers(path: str) -> List[Provider]:
    """Read providers from a JSON file holding a list or ``{"providers": [...]}``."""
    try:
        with Path(path).open(encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise click.BadParameter(f"Cannot read providers file {path}: {exc}")
    if isinstance(data, dict):
        data = data.get("providers", [])
    try:
        return [Provider.from_dict(item) for item in data]
    except (ValueError, TypeError) as exc:
        raise click.BadParameter(f"Invalid provider in {path}: {exc}")


def choose_provider(path: Optional[str], name: Optional[str], on_date: date) -> Optional[Provider]:
    if not path:
        if name:
            raise click.BadParameter("--provider needs --providers")
        return None
    provider = select_active_provider(load_providers(path), on_date, name)
    if provider is None:
        raise click.BadParameter(
            f"No provider{' named ' + repr(name) if name else ''} active on {on_date.isoformat()}"
        )
    return provider


def cost_result_to_dict(result: CostCalculationResult) -> Dict[str, Any]:
    return {
        "currency": result.currency,
        "calculation_amount": to_canonical(result.calculation_amount),
        "total_cost": to_canonical(result.total_cost),
        "adjusted_cost": to_canonical(result.adjusted_cost),
        "total_credits": to_canonical(result.total_credits),
        "net_cost": to_canonical(result.net_cost),
        "breakdown": [
            {
                "component_id": entry.component.id,
                "name": entry.display_name,
                "amount": to_canonical(entry.calculated_amount),
                "is_credit": entry.is_credit,
            }
            for entry in result.breakdown
        ],
    }


def plan_to_dict(plan: PurchasePlan) -> Dict[str, Any]:
    sizing = plan.sizing
    return {
        "base_currency": plan.base_currency,
        "transaction_currency": plan.transaction_currency,
        "currency_rate": to_canonical(plan.currency_rate),
        "transaction_amount": to_canonical(plan.transaction_amount),
        "provider": plan.provider_name,
        "net_cost": to_canonical(plan.net_cost),
        "investable_amount_base": to_canonical(sizing.investable_amount_base),
        "investable_amount": to_canonical(sizing.investable_amount),
        "units_purchasable": sizing.units_purchasable,
        "units": sizing.units,
        "invested_amount": to_canonical(sizing.invested_amount),
        "remaining_amount": to_canonical(sizing.remaining_amount),
        "cost": cost_result_to_dict(plan.cost) if plan.cost is not None else None,
        "warnings": list(plan.warnings),
    }


def difference_to_dict(result: DifferenceResult) -> Dict[str, Any]:
    relative = result.relative_difference
    return {
        "absolute_difference": to_canonical(result.absolute_difference),
        "relative_difference": to_canonical(relative) if relative is not None else None,
        "relative_display": format_relative(relative),
    }


def relative_to_dict(result: RelativeDifferenceResult) -> Dict[str, Any]:
    return {
        "cumulative": to_canonical(result.cumulative),
        "product_difference": to_canonical(result.product_difference),
    }


def export_to_json(path: Path, data: Dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _write_output(output: str, data: Dict[str, Any], what: str) -> None:
    path = Path(output)
    if path.suffix.lower() != ".json":
        raise click.BadParameter("Export must use .json extension")
    export_to_json(path, data)
    click.echo(f"{what} exported to {path}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose: bool) -> None:
    """Size investments, compare values and calculate broker costs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--available", "-a", "available", required=True, help="Available amount in base currency")
@click.option("--price", "-p", "price", required=True, help="Unit price in transaction currency")
@click.option("--base", "base_currency", help="Base currency code")
@click.option("--transaction", "transaction_currency", help="Transaction currency code")
@click.option("--rate", "-r", "rate", help="Currency rate (transaction units per base unit)")
@click.option("--single-currency", is_flag=True, help="Use the base currency for the transaction")
@click.option("--no-cost", is_flag=True, help="Ignore transaction costs")
@click.option("--providers", "providers_path", type=click.Path(exists=True, dir_okay=False), help="Providers JSON file")
@click.option("--provider", "provider_name", help="Provider name to use from the providers file")
@click.option("--date", "on_date", help="Transaction date (YYYY-MM-DD), default today")
@click.option("--legacy-minimum", "legacy_minimum", help="Minimum provider cost, or 'none'")
@click.option("--units", "units", type=click.IntRange(min=0), help="Number of units to buy")
@click.option(
    "--type",
    "transaction_type",
    type=click.Choice([t.value for t in TransactionType], case_sensitive=False),
    default=TransactionType.BUY.value,
    help="Transaction type",
)
@click.option("--locale", "locale_name", help="Number locale, e.g. nl_NL")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def size(
    available: str,
    price: str,
    base_currency: Optional[str],
    transaction_currency: Optional[str],
    rate: Optional[str],
    single_currency: bool,
    no_cost: bool,
    providers_path: Optional[str],
    provider_name: Optional[str],
    on_date: Optional[str],
    legacy_minimum: Optional[str],
    units: Optional[int],
    transaction_type: str,
    locale_name: Optional[str],
    output: Optional[str],
) -> None:
    """Work out how many whole units the available amount buys."""
    settings = settings_from_env(
        base_currency=parse_currency(base_currency),
        transaction_currency=parse_currency(transaction_currency),
        double_currency=False if single_currency else None,
        apply_cost=False if no_cost else None,
        locale=locale_name,
    )
    locale = settings.number_locale
    if rate is not None:
        settings = replace(settings, currency_rate=parse_amount(rate, locale))
    provider = choose_provider(providers_path, provider_name, parse_date_option(on_date))
    kind = next(t for t in TransactionType if t.value.lower() == transaction_type.lower())

    plan = plan_purchase(
        parse_amount(available, locale),
        parse_amount(price, locale),
        settings,
        provider=provider,
        transaction_type=kind,
        legacy_minimum=parse_minimum(legacy_minimum, settings),
        actual_units=units,
    )

    if output:
        _write_output(output, plan_to_dict(plan), "Plan")
    else:
        print_plan(plan, locale)


@cli.command()
@click.option("--providers", "providers_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Providers JSON file")
@click.option("--provider", "provider_name", help="Provider name")
@click.option("--amount", "amount", required=True, help="Transaction amount, or portfolio value with --portfolio")
@click.option("--rate", "-r", "rate", help="Currency rate for base-currency providers")
@click.option("--date", "on_date", help="Transaction date (YYYY-MM-DD), default today")
@click.option("--legacy-minimum", "legacy_minimum", help="Minimum cost, or 'none'")
@click.option("--portfolio", is_flag=True, help="Calculate monthly portfolio fees instead")
@click.option("--locale", "locale_name", help="Number locale, e.g. nl_NL")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def costs(
    providers_path: str,
    provider_name: Optional[str],
    amount: str,
    rate: Optional[str],
    on_date: Optional[str],
    legacy_minimum: Optional[str],
    portfolio: bool,
    locale_name: Optional[str],
    output: Optional[str],
) -> None:
    """Show the cost breakdown of a provider for one transaction."""
    settings = effective_settings(settings_from_env(locale=locale_name))
    locale = settings.number_locale
    provider = choose_provider(providers_path, provider_name, parse_date_option(on_date))
    value = parse_amount(amount, locale)
    if portfolio:
        result = calculate_portfolio_fees(provider, value)
    else:
        result = aggregate_costs(
            provider,
            value,
            settings.base_currency,
            settings.transaction_currency,
            parse_amount(rate, locale) if rate else settings.currency_rate,
            legacy_minimum=parse_minimum(legacy_minimum, settings),
        )
    for problem in provider.validation_errors:
        logger.warning("Provider %s: %s", provider.display_name, problem)

    if output:
        _write_output(output, cost_result_to_dict(result), "Costs")
    else:
        click.echo(provider.display_name)
        print_cost_breakdown(result, locale)


@cli.command()
@click.argument("from_value")
@click.argument("to_value")
@click.option("--relative", is_flag=True, help="Treat TO_VALUE as a relative change (0.05 or 5%)")
@click.option("--swap", "swap_values", is_flag=True, help="Swap the two values first")
@click.option("--locale", "locale_name", help="Number locale, e.g. nl_NL")
@click.option("--output", "output", type=str, help="Output file path (.json)")
def difference(
    from_value: str,
    to_value: str,
    relative: bool,
    swap_values: bool,
    locale_name: Optional[str],
    output: Optional[str],
) -> None:
    """Compare FROM_VALUE with TO_VALUE."""
    locale = NumberLocale.named(locale_name or os.environ.get("FROMTO_LOCALE"))
    start = parse_amount(from_value, locale)
    if relative and to_value.strip().endswith("%"):
        change = parse_amount(to_value.strip()[:-1], locale) / 100
    else:
        change = parse_amount(to_value, locale)
    if swap_values:
        start, change = swap(start, change)

    if relative:
        result = relative_mode(start, change)
        if output:
            _write_output(output, relative_to_dict(result), "Difference")
        else:
            print_relative(result, locale)
        return

    result = compare(start, change)
    if output:
        _write_output(output, difference_to_dict(result), "Difference")
    else:
        print_difference(result, locale)


@cli.command()
@click.argument("from_currency")
@click.argument("to_currency")
@click.option("--date", "on_date", help="Rate date (YYYY-MM-DD), default today")
def rate(from_currency: str, to_currency: str, on_date: Optional[str]) -> None:
    """Look up the exchange rate from FROM_CURRENCY to TO_CURRENCY."""
    service = CurrencyRateService(os.environ.get("FROMTO_RATE_API_URL") or DEFAULT_RATE_API_URL)
    try:
        value = service.fetch_rate(from_currency, to_currency, parse_date_option(on_date))
    except ValueError as exc:
        raise click.BadParameter(str(exc))
    except CurrencyRateError as exc:
        raise click.ClickException(str(exc))
    click.echo(to_canonical(value))


if __name__ == "__main__":
    cli()
