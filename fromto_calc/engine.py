"""Investment sizing engine for the FromTo calculator.

Turns an amount of capital into a number of whole units of an asset. The
capital is reduced by the transaction cost, converted into the transaction
currency and divided by the unit price; whatever does not buy a whole unit is
reported as the remaining amount. :func:`plan_purchase` wires the currency
settings and the cost calculation in front of the sizing step.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from .costs import aggregate_costs, legacy_total_cost, validate_component
from .data_models import (
    CostCalculationResult,
    CurrencyBasis,
    Provider,
    PurchasePlan,
    SizingResult,
    TransactionType,
)
from .decimals import ZERO, exact_difference, exact_product, floor_divide, safe_divide
from .money import convert
from .settings import Settings, effective_settings

logger = logging.getLogger(__name__)

# Marker for "take the legacy minimum from the settings".
_FROM_SETTINGS = object()


def _clamp_units(actual_units: Optional[int], units_purchasable: int) -> int:
    if actual_units is None:
        return units_purchasable
    return max(0, min(int(actual_units), units_purchasable))


def size(
    available_amount: Decimal,
    net_cost: Decimal,
    currency_rate: Decimal,
    unit_price: Decimal,
    actual_units: Optional[int] = None,
) -> SizingResult:
    """Size a purchase of whole units.

    Parameters
    ----------
    available_amount: Decimal
        Capital in base currency.
    net_cost: Decimal
        Transaction cost in base currency, subtracted before conversion.
    currency_rate: Decimal
        Transaction-currency units per base unit. A zero rate means no
        conversion is possible and the investable amount is zero.
    unit_price: Decimal
        Price of one unit in transaction currency. A price of zero or below
        buys nothing.
    actual_units: int, optional
        Number of units the caller intends to buy. It is clamped to
        ``[0, units_purchasable]`` and used for the invested and remaining
        amounts.

    Returns
    -------
    SizingResult
        The investable amount may be negative when the cost exceeds the
        capital; no units are bought in that case.
    """
    investable_base = available_amount - net_cost
    investable = investable_base * currency_rate if currency_rate != 0 else ZERO

    if unit_price > 0:
        units_purchasable = max(0, floor_divide(investable, unit_price))
    else:
        units_purchasable = 0

    units = _clamp_units(actual_units, units_purchasable)
    invested = exact_product(Decimal(units), unit_price) if unit_price > 0 else ZERO
    return SizingResult(
        investable_amount_base=investable_base,
        investable_amount=investable,
        units_purchasable=units_purchasable,
        units=units,
        invested_amount=invested,
        remaining_amount=exact_difference(investable, invested),
    )


def signed_amount(transaction_type: TransactionType, units: int, unit_price: Decimal) -> Decimal:
    """Cash effect of a transaction: negative when money leaves the account."""
    amount = Decimal(units) * unit_price
    return -amount if transaction_type.is_outflow else amount


def investment_totals(
    units: int, unit_price: Decimal, currency_rate: Decimal, total_cost: Decimal
) -> Dict[str, Decimal]:
    """Totals of a recorded investment.

    ``total_amount`` is the invested amount plus the cost, both in transaction
    currency; ``total_amount_base`` converts it back to base currency and is
    zero when the rate is zero.
    """
    invested = Decimal(units) * unit_price
    total = invested + total_cost
    return {
        "total_invested": invested,
        "total_amount": total,
        "total_amount_base": safe_divide(total, currency_rate),
    }


def validate_sizing(
    available_amount: Decimal,
    unit_price: Decimal,
    actual_units: Optional[int] = None,
    units_purchasable: Optional[int] = None,
) -> List[str]:
    errors: List[str] = []
    if available_amount <= 0:
        errors.append("Base amount must be greater than 0")
    if unit_price <= 0:
        errors.append("Stock price must be greater than 0")
    if actual_units is not None and units_purchasable is not None and actual_units > units_purchasable:
        errors.append(f"Actual number of units cannot exceed {units_purchasable}")
    return errors


def _cost_in_base(result: CostCalculationResult, provider: Provider, currency_rate: Decimal) -> Decimal:
    if provider.calculation_currency_basis == CurrencyBasis.BASE:
        return result.net_cost
    return convert(result.net_cost, CurrencyBasis.TRANSACTION, CurrencyBasis.BASE, currency_rate)


def plan_purchase(
    available_amount: Decimal,
    unit_price: Decimal,
    settings: Settings,
    provider: Optional[Provider] = None,
    transaction_type: TransactionType = TransactionType.BUY,
    legacy_minimum=_FROM_SETTINGS,
    actual_units: Optional[int] = None,
) -> PurchasePlan:
    """Size a purchase with costs and currency taken from ``settings``.

    With a provider, its components are evaluated on the available amount
    expressed in transaction currency. Without one, the settings' flat
    default costs apply (no legacy minimum). Deposits, withdrawals and
    ``apply_cost`` switched off carry no cost at all.

    ``legacy_minimum`` defaults to the value in ``settings``; pass ``None``
    to calculate without the floor.
    """
    settings = effective_settings(settings)
    if legacy_minimum is _FROM_SETTINGS:
        legacy_minimum = settings.legacy_minimum_cost
    rate = settings.currency_rate
    transaction_amount = convert(available_amount, CurrencyBasis.BASE, CurrencyBasis.TRANSACTION, rate)

    cost: Optional[CostCalculationResult] = None
    net_cost = ZERO
    warnings = validate_sizing(available_amount, unit_price)

    if settings.apply_cost and transaction_type.carries_costs:
        if provider is not None:
            cost = aggregate_costs(
                provider,
                transaction_amount,
                settings.base_currency,
                settings.transaction_currency,
                rate,
                legacy_minimum=legacy_minimum,
            )
            net_cost = _cost_in_base(cost, provider, rate)
            for component in provider.components:
                warnings.extend(
                    f"{component.display_name}: {message}"
                    for message in validate_component(component)
                )
        else:
            net_cost = legacy_total_cost(
                transaction_amount,
                rate,
                settings.default_fixed_cost,
                settings.default_variable_cost,
                maximum_cost=settings.default_maximum_cost,
                minimum_cost=None,
            )

    sizing = size(available_amount, net_cost, rate, unit_price, actual_units=actual_units)
    if actual_units is not None and actual_units > sizing.units_purchasable:
        warnings.append(f"Actual number of units cannot exceed {sizing.units_purchasable}")

    logger.info(
        "Planned %s of %s units at %s %s (cost %s %s)",
        transaction_type.value,
        sizing.units,
        unit_price,
        settings.transaction_currency,
        net_cost,
        settings.base_currency,
    )
    return PurchasePlan(
        currency_rate=rate,
        transaction_amount=transaction_amount,
        net_cost=net_cost,
        sizing=sizing,
        base_currency=settings.base_currency,
        transaction_currency=settings.transaction_currency,
        cost=cost,
        provider_name=provider.display_name if provider is not None else None,
        warnings=warnings,
    )
