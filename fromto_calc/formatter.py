"""Output helpers for the FromTo calculator.

Plain ``print`` rendering of sizing results, cost breakdowns and differences
for the command line. Numbers go through :func:`format_decimal` so they follow
the configured locale.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from .data_models import CostCalculationResult, DifferenceResult, PurchasePlan, RelativeDifferenceResult
from .decimals import NumberLocale, format_decimal
from .difference import format_relative


def _fmt(value: Decimal, locale: Optional[NumberLocale], digits: int = 2) -> str:
    return format_decimal(value, fraction_digits=digits, locale=locale, min_fraction_digits=2)


def print_plan(plan: PurchasePlan, locale: Optional[NumberLocale] = None) -> None:
    """Print a purchase plan in a human-readable format."""
    sizing = plan.sizing
    base, txn = plan.base_currency, plan.transaction_currency
    print("Purchase")
    print("-" * 60)
    if plan.provider_name:
        print(f"Provider           : {plan.provider_name}")
    print(f"Currency rate      : {format_decimal(plan.currency_rate, fraction_digits=6, locale=locale)}")
    print(f"Net cost           : {_fmt(plan.net_cost, locale)} {base}")
    print(f"Investable ({base})   : {_fmt(sizing.investable_amount_base, locale)}")
    print(f"Investable ({txn})   : {_fmt(sizing.investable_amount, locale)}")
    print(f"Units purchasable  : {sizing.units_purchasable}")
    if sizing.units != sizing.units_purchasable:
        print(f"Units chosen       : {sizing.units}")
    print(f"Invested           : {_fmt(sizing.invested_amount, locale)} {txn}")
    print(f"Remaining          : {_fmt(sizing.remaining_amount, locale)} {txn}")
    print("-" * 60)
    for warning in plan.warnings:
        print(f"Warning: {warning}")


def print_cost_breakdown(result: CostCalculationResult, locale: Optional[NumberLocale] = None) -> None:
    """Print each component's amount followed by the totals.

    Credits are listed after the costs and marked with ``(credit)``.
    """
    currency = result.currency or ""
    print(f"{'Component':32s} {'Amount':>15s}")
    for entry in result.breakdown:
        label = entry.display_name + (" (credit)" if entry.is_credit else "")
        print(f"{label:32s} {_fmt(entry.calculated_amount, locale):>15s}")
    print("=" * 48)
    print(f"{'Total cost':32s} {_fmt(result.total_cost, locale):>15s}")
    if result.adjusted_cost != result.total_cost:
        print(f"{'Adjusted cost (minimum)':32s} {_fmt(result.adjusted_cost, locale):>15s}")
    if result.has_credits:
        print(f"{'Credits':32s} {_fmt(result.total_credits, locale):>15s}")
    print(f"{'Net cost':32s} {_fmt(result.net_cost, locale):>15s} {currency}".rstrip())


def print_difference(result: DifferenceResult, locale: Optional[NumberLocale] = None) -> None:
    print(f"Absolute difference: {_fmt(result.absolute_difference, locale)}")
    print(f"Relative difference: {format_relative(result.relative_difference, locale=locale)}")


def print_relative(result: RelativeDifferenceResult, locale: Optional[NumberLocale] = None) -> None:
    print(f"Cumulative         : {_fmt(result.cumulative, locale)}")
    print(f"Product difference : {_fmt(result.product_difference, locale)}")
