"""Data models for the FromTo calculator.

This module defines the enums and dataclasses passed between the calculation
modules: bank/broker providers and the cost components they own, and the
result objects produced by cost aggregation, unit sizing and value
comparison. Every monetary field is a ``Decimal``; ``to_dict``/``from_dict``
write and read decimals through the canonical string form of
:mod:`fromto_calc.decimals` so nothing drifts across a store/reload cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from .decimals import ZERO, from_canonical, to_canonical
from .utils import parse_iso_date


class ComponentType(str, Enum):
    """Kind of fee (or credit) a cost component represents."""

    TRANSACTION_COMMISSION = "transactionCommission"
    SERVICE_FEE = "serviceFee"
    CURRENCY_CONVERSION = "currencyConversion"
    ACCOUNT_CREDIT = "accountCredit"
    REGULATORY_FEE = "regulatoryFee"
    EXCHANGE_FEE = "exchangeFee"

    @property
    def default_name(self) -> str:
        return _COMPONENT_NAMES[self]

    @property
    def is_credit(self) -> bool:
        return self is ComponentType.ACCOUNT_CREDIT


_COMPONENT_NAMES = {
    ComponentType.TRANSACTION_COMMISSION: "Transaction Commission",
    ComponentType.SERVICE_FEE: "Service Fee",
    ComponentType.CURRENCY_CONVERSION: "Currency Conversion Fee",
    ComponentType.ACCOUNT_CREDIT: "Account Credit",
    ComponentType.REGULATORY_FEE: "Regulatory Fee",
    ComponentType.EXCHANGE_FEE: "Exchange Fee",
}


class CalculationMethod(str, Enum):
    """How a cost component turns a transaction amount into a fee."""

    FIXED_ONLY = "fixedOnly"
    PERCENTAGE_ONLY = "percentageOnly"
    FIXED_PLUS_PERCENTAGE = "fixedPlusPercentage"
    PERCENTAGE_WITH_MIN_MAX = "percentageWithMinMax"
    MONTHLY_PERCENTAGE_OF_PORTFOLIO = "monthlyPercentageOfPortfolio"

    @property
    def display_name(self) -> str:
        return _METHOD_NAMES[self]


_METHOD_NAMES = {
    CalculationMethod.FIXED_ONLY: "Fixed Amount",
    CalculationMethod.PERCENTAGE_ONLY: "Percentage Only",
    CalculationMethod.FIXED_PLUS_PERCENTAGE: "Fixed + Percentage",
    CalculationMethod.PERCENTAGE_WITH_MIN_MAX: "Percentage with Min/Max",
    CalculationMethod.MONTHLY_PERCENTAGE_OF_PORTFOLIO: "Monthly % of Portfolio",
}


class CurrencyBasis(str, Enum):
    """Currency a provider computes its percentage fees against."""

    TRANSACTION = "transaction"
    BASE = "base"


class TransactionType(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"

    @property
    def is_outflow(self) -> bool:
        """Money leaves the account for buys and withdrawals."""
        return self in (TransactionType.BUY, TransactionType.WITHDRAWAL)

    @property
    def carries_costs(self) -> bool:
        """Only trades pay broker costs; cash movements do not."""
        return self in (TransactionType.BUY, TransactionType.SELL)


@dataclass
class CostComponent:
    """One fee or credit rule inside a provider.

    Attributes
    ----------
    component_type: ComponentType
        What the fee is for. ``ACCOUNT_CREDIT`` components are credits.
    calculation_method: CalculationMethod
        Selects which of the amount fields below take part in the fee.
    fixed_amount, percentage_rate: Decimal
        Fixed fee and rate. The rate is a fraction: ``Decimal("0.001")`` is
        0.1 %.
    minimum_amount, maximum_amount: Decimal
        Bounds applied to the calculated fee. Zero means "no bound".
    is_refundable: bool
        Refundable components count as credits.
    credit_amount: Decimal
        Amount credited back for refundable components.
    credit_valid_days: int
        Number of days after the transaction during which the credit applies.
    """

    component_type: ComponentType = ComponentType.TRANSACTION_COMMISSION
    calculation_method: CalculationMethod = CalculationMethod.FIXED_ONLY
    display_name: str = ""
    fixed_amount: Decimal = ZERO
    percentage_rate: Decimal = ZERO
    minimum_amount: Decimal = ZERO
    maximum_amount: Decimal = ZERO
    is_refundable: bool = False
    credit_amount: Decimal = ZERO
    credit_valid_days: int = 0
    id: str = field(default_factory=lambda: uuid4().hex)

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.component_type.default_name

    @property
    def is_credit(self) -> bool:
        return self.component_type.is_credit or self.is_refundable

    def credit_expires_on(self, transaction_date: date) -> Optional[date]:
        """Last day the credit of a refundable component can be used."""
        if not self.is_refundable:
            return None
        return transaction_date + timedelta(days=self.credit_valid_days)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "component_type": self.component_type.value,
            "calculation_method": self.calculation_method.value,
            "display_name": self.display_name,
            "fixed_amount": to_canonical(self.fixed_amount),
            "percentage_rate": to_canonical(self.percentage_rate),
            "minimum_amount": to_canonical(self.minimum_amount),
            "maximum_amount": to_canonical(self.maximum_amount),
            "is_refundable": self.is_refundable,
            "credit_amount": to_canonical(self.credit_amount),
            "credit_valid_days": self.credit_valid_days,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CostComponent":
        """Build a component from a dict written by :meth:`to_dict`.

        Missing amounts default to zero; missing enums to the defaults of the
        dataclass.
        """
        if not isinstance(data, Mapping):
            raise ValueError("Cost component entry must be an object")
        kwargs: Dict[str, Any] = {
            "component_type": ComponentType(data.get("component_type", ComponentType.TRANSACTION_COMMISSION.value)),
            "calculation_method": CalculationMethod(
                data.get("calculation_method", CalculationMethod.FIXED_ONLY.value)
            ),
            "display_name": data.get("display_name", ""),
            "fixed_amount": _decimal_field(data, "fixed_amount"),
            "percentage_rate": _decimal_field(data, "percentage_rate"),
            "minimum_amount": _decimal_field(data, "minimum_amount"),
            "maximum_amount": _decimal_field(data, "maximum_amount"),
            "is_refundable": bool(data.get("is_refundable", False)),
            "credit_amount": _decimal_field(data, "credit_amount"),
            "credit_valid_days": int(data.get("credit_valid_days", 0)),
        }
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)


@dataclass
class Provider:
    """A bank/broker fee profile, active over a date range.

    The provider owns its ``components``; they are added and removed only
    through the provider and are not shared between providers.
    """

    name: str
    active_from: date
    active_to: Optional[date] = None
    account_tier: str = ""
    calculation_currency_basis: CurrencyBasis = CurrencyBasis.TRANSACTION
    components: List[CostComponent] = field(default_factory=list)
    minimum_balance_for_tier: Decimal = ZERO
    starting_balance: Decimal = ZERO
    id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def display_name(self) -> str:
        if not self.account_tier:
            return self.name
        return f"{self.name} - {self.account_tier}"

    @property
    def has_components(self) -> bool:
        return bool(self.components)

    def is_active(self, on_date: date) -> bool:
        if on_date < self.active_from:
            return False
        return self.active_to is None or on_date <= self.active_to

    def add_component(self, component: CostComponent) -> None:
        self.components.append(component)

    def remove_component(self, component_id: str) -> None:
        self.components = [c for c in self.components if c.id != component_id]

    @property
    def validation_errors(self) -> List[str]:
        errors: List[str] = []
        if not self.name.strip():
            errors.append("Provider name is required")
        if self.starting_balance <= 0:
            errors.append("Starting balance must be greater than 0")
        if not self.components:
            errors.append("At least one cost component is required")
        if self.active_to is not None and self.active_to <= self.active_from:
            errors.append("End date must be after start date")
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "account_tier": self.account_tier,
            "active_from": self.active_from.isoformat(),
            "active_to": self.active_to.isoformat() if self.active_to else None,
            "calculation_currency_basis": self.calculation_currency_basis.value,
            "minimum_balance_for_tier": to_canonical(self.minimum_balance_for_tier),
            "starting_balance": to_canonical(self.starting_balance),
            "components": [c.to_dict() for c in self.components],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Provider":
        if not isinstance(data, Mapping):
            raise ValueError("Provider entry must be an object")
        if not data.get("name"):
            raise ValueError("Provider entry is missing a name")
        if not data.get("active_from"):
            raise ValueError(f"Provider {data['name']!r} is missing active_from")
        kwargs: Dict[str, Any] = {
            "name": data["name"],
            "account_tier": data.get("account_tier", ""),
            "active_from": parse_iso_date(data["active_from"]),
            "active_to": parse_iso_date(data["active_to"]) if data.get("active_to") else None,
            "calculation_currency_basis": CurrencyBasis(
                data.get("calculation_currency_basis", CurrencyBasis.TRANSACTION.value)
            ),
            "minimum_balance_for_tier": _decimal_field(data, "minimum_balance_for_tier"),
            "starting_balance": _decimal_field(data, "starting_balance"),
            "components": [CostComponent.from_dict(c) for c in _component_entries(data)],
        }
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)


def _decimal_field(data: Dict[str, Any], key: str) -> Decimal:
    value = data.get(key)
    if value is None or value == "":
        return ZERO
    return from_canonical(str(value))


def _component_entries(data: Mapping[str, Any]) -> List[Any]:
    entries = data.get("components") or []
    if not isinstance(entries, list):
        raise ValueError("components must be a list")
    return entries


@dataclass
class ComponentCostBreakdown:
    """Calculated amount of one component within an aggregation."""

    component: CostComponent
    calculated_amount: Decimal
    is_credit: bool

    @property
    def display_name(self) -> str:
        return self.component.display_name


@dataclass
class CostCalculationResult:
    """Outcome of reducing a provider's components to one net cost.

    ``total_cost`` is the raw sum of the cost components, ``adjusted_cost``
    the same sum after the legacy minimum (if any) was applied, and
    ``net_cost`` the adjusted cost minus credits, never below zero. The
    breakdown lists cost components first, then credits, each in provider
    order.
    """

    total_cost: Decimal
    adjusted_cost: Decimal
    total_credits: Decimal
    net_cost: Decimal
    breakdown: List[ComponentCostBreakdown]
    calculation_amount: Decimal = ZERO
    currency: Optional[str] = None

    @property
    def has_costs(self) -> bool:
        return self.total_cost > 0

    @property
    def has_credits(self) -> bool:
        return self.total_credits > 0


@dataclass
class SizingResult:
    """How much of the capital buys whole units, and what is left.

    ``investable_amount`` and the amounts derived from it are in transaction
    currency; ``investable_amount_base`` is the same capital before
    conversion. ``units`` is the unit count actually used for the invested
    amount: ``units_purchasable`` unless the caller chose fewer.
    """

    investable_amount_base: Decimal
    investable_amount: Decimal
    units_purchasable: int
    units: int
    invested_amount: Decimal
    remaining_amount: Decimal


@dataclass
class DifferenceResult:
    """Absolute and relative change from one value to another.

    ``relative_difference`` is a fraction (``1.5`` means +150 %) and is
    ``None`` when the starting value is zero.
    """

    absolute_difference: Decimal
    relative_difference: Optional[Decimal]


@dataclass
class RelativeDifferenceResult:
    """Result of applying a relative change to a value.

    ``cumulative`` is the value after the change, ``from * (1 + change)``;
    ``product_difference`` is the change itself, ``from * change``.
    """

    cumulative: Decimal
    product_difference: Decimal


@dataclass
class PurchasePlan:
    """End-to-end result of sizing a purchase against a provider or defaults."""

    currency_rate: Decimal
    transaction_amount: Decimal
    net_cost: Decimal
    sizing: SizingResult
    base_currency: str
    transaction_currency: str
    cost: Optional[CostCalculationResult] = None
    provider_name: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
