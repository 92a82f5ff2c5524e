"""Transaction cost calculation.

A provider's fee schedule is a list of :class:`CostComponent` rules. Each rule
is evaluated on its own (fixed fee, percentage, both, percentage with bounds,
or a percentage of portfolio value) and the provider aggregation sums costs
and credits into a single net cost.

The older, single-provider model of the application charged
``fixed + amount * variable`` with a hard minimum of 150. That minimum still
exists as :data:`LEGACY_MINIMUM_COST`, but every function that applies it
takes it as a parameter so callers can change or disable it.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .data_models import (
    CalculationMethod,
    ComponentCostBreakdown,
    CostCalculationResult,
    CostComponent,
    CurrencyBasis,
    Provider,
)
from .decimals import ZERO, safe_divide

logger = logging.getLogger(__name__)

LEGACY_MINIMUM_COST = Decimal("150")


def _base_cost(component: CostComponent, amount: Decimal) -> Decimal:
    method = component.calculation_method
    if method == CalculationMethod.FIXED_ONLY:
        return component.fixed_amount
    if method == CalculationMethod.FIXED_PLUS_PERCENTAGE:
        return component.fixed_amount + amount * component.percentage_rate
    # Percentage only, percentage with bounds and portfolio percentage all
    # charge a share of the amount; for portfolio fees the amount is the
    # portfolio value.
    return amount * component.percentage_rate


def apply_bounds(cost: Decimal, minimum: Decimal, maximum: Decimal) -> Decimal:
    """Clamp ``cost`` to ``[minimum, maximum]``; a bound of zero is no bound."""
    result = cost
    if minimum > 0:
        result = max(result, minimum)
    if maximum > 0:
        result = min(result, maximum)
    return result


def evaluate_component(component: CostComponent, transaction_amount: Decimal) -> Decimal:
    """Return the fee (or credit) ``component`` charges on ``transaction_amount``.

    The minimum and maximum bounds apply whatever the calculation method.
    """
    return apply_bounds(
        _base_cost(component, transaction_amount),
        component.minimum_amount,
        component.maximum_amount,
    )


def validate_component(component: CostComponent) -> List[str]:
    """Return human-readable problems with ``component``; empty when valid."""
    errors: List[str] = []
    if not component.display_name.strip():
        errors.append("Component name is required")

    method = component.calculation_method
    if method == CalculationMethod.FIXED_ONLY:
        if component.fixed_amount <= 0:
            errors.append("Fixed amount must be greater than 0")
    elif method == CalculationMethod.FIXED_PLUS_PERCENTAGE:
        if component.fixed_amount <= 0 and component.percentage_rate <= 0:
            errors.append("Either fixed amount or percentage rate must be greater than 0")
    elif method == CalculationMethod.PERCENTAGE_WITH_MIN_MAX:
        if component.percentage_rate <= 0:
            errors.append("Percentage rate must be greater than 0")
        if component.minimum_amount <= 0:
            errors.append("Minimum amount must be greater than 0")
    elif component.percentage_rate <= 0:
        errors.append("Percentage rate must be greater than 0")

    if component.is_refundable and component.credit_amount <= 0:
        errors.append("Credit amount must be greater than 0 for refundable components")
    return errors


def _evaluate_all(
    components: Iterable[CostComponent], amount: Decimal
) -> Tuple[List[ComponentCostBreakdown], List[ComponentCostBreakdown]]:
    costs: List[ComponentCostBreakdown] = []
    credits: List[ComponentCostBreakdown] = []
    for component in components:
        breakdown = ComponentCostBreakdown(
            component=component,
            calculated_amount=evaluate_component(component, amount),
            is_credit=component.is_credit,
        )
        if breakdown.is_credit:
            credits.append(breakdown)
        else:
            costs.append(breakdown)
    return costs, credits


def _total(entries: Iterable[ComponentCostBreakdown]) -> Decimal:
    return sum((e.calculated_amount for e in entries), ZERO)


def aggregate_costs(
    provider: Provider,
    transaction_amount: Decimal,
    base_currency: str,
    transaction_currency: str,
    currency_rate: Decimal,
    legacy_minimum: Optional[Decimal] = LEGACY_MINIMUM_COST,
) -> CostCalculationResult:
    """Reduce the components of ``provider`` to a net transaction cost.

    Parameters
    ----------
    provider: Provider
        The fee profile to evaluate.
    transaction_amount: Decimal
        Amount of the transaction in transaction currency.
    base_currency, transaction_currency: str
        Currency codes; they determine the currency of the result.
    currency_rate: Decimal
        Rate used for providers whose fees are computed on a base-currency
        amount: the transaction amount is multiplied by it.
    legacy_minimum: Decimal, optional
        Floor for the total cost before credits. ``None`` disables it.

    Returns
    -------
    CostCalculationResult
        Raw and adjusted totals, credits, net cost (never negative) and the
        per-component breakdown.
    """
    if provider.calculation_currency_basis == CurrencyBasis.BASE:
        calculation_amount = transaction_amount * currency_rate
        currency = base_currency
    else:
        calculation_amount = transaction_amount
        currency = transaction_currency

    costs, credits = _evaluate_all(provider.components, calculation_amount)
    total_cost = _total(costs)
    total_credits = _total(credits)

    adjusted_cost = total_cost
    if legacy_minimum is not None:
        adjusted_cost = max(total_cost, legacy_minimum)
    net_cost = max(ZERO, adjusted_cost - total_credits)

    logger.debug(
        "Provider %s: cost %s (adjusted %s), credits %s, net %s %s",
        provider.display_name,
        total_cost,
        adjusted_cost,
        total_credits,
        net_cost,
        currency,
    )
    return CostCalculationResult(
        total_cost=total_cost,
        adjusted_cost=adjusted_cost,
        total_credits=total_credits,
        net_cost=net_cost,
        breakdown=costs + credits,
        calculation_amount=calculation_amount,
        currency=currency,
    )


def calculate_portfolio_fees(provider: Provider, portfolio_value: Decimal) -> CostCalculationResult:
    """Evaluate only the monthly portfolio-percentage components of ``provider``.

    Portfolio fees are periodic rather than per transaction, so no legacy
    minimum applies.
    """
    components = [
        c for c in provider.components
        if c.calculation_method == CalculationMethod.MONTHLY_PERCENTAGE_OF_PORTFOLIO
    ]
    costs, credits = _evaluate_all(components, portfolio_value)
    total_cost = _total(costs)
    total_credits = _total(credits)
    return CostCalculationResult(
        total_cost=total_cost,
        adjusted_cost=total_cost,
        total_credits=total_credits,
        net_cost=max(ZERO, total_cost - total_credits),
        breakdown=costs + credits,
        calculation_amount=portfolio_value,
    )


def legacy_total_cost(
    invested_amount: Decimal,
    currency_rate: Decimal,
    fixed_cost: Decimal,
    variable_cost: Decimal,
    maximum_cost: Optional[Decimal] = None,
    minimum_cost: Optional[Decimal] = LEGACY_MINIMUM_COST,
) -> Decimal:
    """Cost under the flat ``fixed + variable`` model of saved investments.

    The variable rate applies to the invested amount converted back to base
    currency (``invested_amount / currency_rate``; nothing when the rate is
    zero). The sum is raised to ``minimum_cost`` and then capped by
    ``maximum_cost`` when that is positive.
    """
    invested_base = safe_divide(invested_amount, currency_rate)
    cost = fixed_cost + invested_base * variable_cost
    if minimum_cost is not None:
        cost = max(minimum_cost, cost)
    if maximum_cost is not None and maximum_cost > 0:
        cost = min(cost, maximum_cost)
    return cost


def select_active_provider(
    providers: Iterable[Provider], on_date: date, name: Optional[str] = None
) -> Optional[Provider]:
    """Return the first provider active on ``on_date``, optionally by name."""
    for provider in providers:
        if name is not None and provider.name != name:
            continue
        if provider.is_active(on_date):
            return provider
    return None


def _periods_overlap(a: Provider, b: Provider) -> bool:
    a_end = a.active_to or date.max
    b_end = b.active_to or date.max
    return a.active_from <= b_end and b.active_from <= a_end


def find_conflicts(candidate: Provider, existing: Iterable[Provider]) -> List[Provider]:
    """Providers with the same name whose active period overlaps ``candidate``."""
    return [
        p for p in existing
        if p.id != candidate.id and p.name == candidate.name and _periods_overlap(p, candidate)
    ]
