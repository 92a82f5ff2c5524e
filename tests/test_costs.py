"""Tests for component evaluation and provider cost aggregation."""

from datetime import date
from decimal import Decimal

import pytest

from fromto_calc.costs import (
    LEGACY_MINIMUM_COST,
    aggregate_costs,
    apply_bounds,
    calculate_portfolio_fees,
    evaluate_component,
    find_conflicts,
    legacy_total_cost,
    select_active_provider,
    validate_component,
)
from fromto_calc.data_models import (
    CalculationMethod,
    ComponentType,
    CostComponent,
    CurrencyBasis,
    Provider,
)

D = Decimal


def fixed(amount, **kwargs):
    return CostComponent(calculation_method=CalculationMethod.FIXED_ONLY, fixed_amount=D(amount), **kwargs)


def percentage(rate, **kwargs):
    return CostComponent(calculation_method=CalculationMethod.PERCENTAGE_ONLY, percentage_rate=D(rate), **kwargs)


def make_provider(*components, **kwargs):
    kwargs.setdefault("name", "Broker")
    kwargs.setdefault("active_from", date(2024, 1, 1))
    return Provider(components=list(components), **kwargs)


class TestEvaluateComponent:
    """Base cost per method and min/max clamping."""

    def test_fixed_only(self):
        assert evaluate_component(fixed("5"), D("1000")) == D("5")

    def test_percentage_only(self):
        assert evaluate_component(percentage("0.001"), D("1000")) == D("1")

    def test_fixed_plus_percentage(self):
        component = CostComponent(
            calculation_method=CalculationMethod.FIXED_PLUS_PERCENTAGE,
            fixed_amount=D("2"),
            percentage_rate=D("0.005"),
        )
        assert evaluate_component(component, D("1000")) == D("7")

    @pytest.mark.parametrize("amount, expected", [("100", "5"), ("1000", "10"), ("5000", "20")])
    def test_percentage_with_min_max(self, amount, expected):
        component = CostComponent(
            calculation_method=CalculationMethod.PERCENTAGE_WITH_MIN_MAX,
            percentage_rate=D("0.01"),
            minimum_amount=D("5"),
            maximum_amount=D("20"),
        )
        assert evaluate_component(component, D(amount)) == D(expected)

    def test_bounds_apply_to_every_method(self):
        assert evaluate_component(fixed("10", maximum_amount=D("8")), D("0")) == D("8")
        assert evaluate_component(percentage("0.001", minimum_amount=D("3")), D("1000")) == D("3")

    def test_zero_bounds_are_unset(self):
        assert apply_bounds(D("0.5"), D("0"), D("0")) == D("0.5")
        assert apply_bounds(D("500"), D("0"), D("100")) == D("100")

    def test_monthly_portfolio_percentage(self):
        component = CostComponent(
            component_type=ComponentType.SERVICE_FEE,
            calculation_method=CalculationMethod.MONTHLY_PERCENTAGE_OF_PORTFOLIO,
            percentage_rate=D("0.0002"),
        )
        assert evaluate_component(component, D("50000")) == D("10")

    def test_evaluation_is_pure(self):
        component = percentage("0.003", minimum_amount=D("1"), maximum_amount=D("2"))
        first = evaluate_component(component, D("450"))
        assert evaluate_component(component, D("450")) == first
        assert component.percentage_rate == D("0.003")


class TestValidateComponent:
    def test_valid_component(self):
        assert validate_component(fixed("1")) == []

    def test_fixed_only_needs_amount(self):
        assert validate_component(fixed("0")) == ["Fixed amount must be greater than 0"]

    def test_fixed_plus_percentage_needs_one(self):
        component = CostComponent(calculation_method=CalculationMethod.FIXED_PLUS_PERCENTAGE)
        assert validate_component(component) == ["Either fixed amount or percentage rate must be greater than 0"]
        component.percentage_rate = D("0.01")
        assert validate_component(component) == []

    def test_min_max_reports_each_problem(self):
        component = CostComponent(calculation_method=CalculationMethod.PERCENTAGE_WITH_MIN_MAX)
        assert validate_component(component) == [
            "Percentage rate must be greater than 0",
            "Minimum amount must be greater than 0",
        ]

    def test_blank_name(self):
        component = fixed("1")
        component.display_name = "  "
        assert "Component name is required" in validate_component(component)

    def test_refundable_needs_credit(self):
        component = fixed("1", is_refundable=True)
        assert validate_component(component) == ["Credit amount must be greater than 0 for refundable components"]

    def test_default_name_from_type(self):
        assert CostComponent(component_type=ComponentType.EXCHANGE_FEE).display_name == "Exchange Fee"


class TestAggregateCosts:
    """Reduction of a provider to one net cost."""

    def test_legacy_minimum_applies_to_total(self):
        provider = make_provider(fixed("5"), percentage("0.001"))
        result = aggregate_costs(provider, D("1000"), "EUR", "EUR", D("1"))
        assert result.total_cost == D("6")
        assert result.adjusted_cost == LEGACY_MINIMUM_COST == D("150")
        assert result.net_cost == D("150")
        assert result.currency == "EUR"

    def test_legacy_minimum_can_be_disabled(self):
        provider = make_provider(fixed("5"), percentage("0.001"))
        result = aggregate_costs(provider, D("1000"), "EUR", "EUR", D("1"), legacy_minimum=None)
        assert result.adjusted_cost == D("6")
        assert result.net_cost == D("6")

    def test_credits_reduce_net_cost_but_never_below_zero(self):
        credit = CostComponent(component_type=ComponentType.ACCOUNT_CREDIT, fixed_amount=D("200"))
        provider = make_provider(fixed("5"), credit)
        result = aggregate_costs(provider, D("1000"), "EUR", "EUR", D("1"))
        assert result.total_credits == D("200")
        assert result.net_cost == D("0")
        assert result.has_credits

    def test_breakdown_lists_costs_before_credits(self):
        credit = CostComponent(component_type=ComponentType.ACCOUNT_CREDIT, fixed_amount=D("1"))
        first, second = fixed("2", display_name="First"), fixed("3", display_name="Second")
        provider = make_provider(credit, first, second)
        result = aggregate_costs(provider, D("100"), "EUR", "EUR", D("1"), legacy_minimum=None)
        assert [b.display_name for b in result.breakdown] == ["First", "Second", "Account Credit"]
        assert [b.is_credit for b in result.breakdown] == [False, False, True]
        assert result.net_cost == D("4")

    def test_base_basis_multiplies_by_rate(self):
        provider = make_provider(percentage("0.01"), calculation_currency_basis=CurrencyBasis.BASE)
        result = aggregate_costs(provider, D("1000"), "USD", "EUR", D("2"), legacy_minimum=None)
        assert result.calculation_amount == D("2000")
        assert result.total_cost == D("20")
        assert result.currency == "USD"

    def test_transaction_basis_ignores_rate(self):
        provider = make_provider(percentage("0.01"))
        result = aggregate_costs(provider, D("1000"), "USD", "EUR", D("2"), legacy_minimum=None)
        assert result.total_cost == D("10")
        assert result.currency == "EUR"

    def test_provider_without_components(self):
        result = aggregate_costs(make_provider(), D("1000"), "EUR", "EUR", D("1"), legacy_minimum=None)
        assert result.net_cost == D("0")
        assert not result.has_costs
        assert result.breakdown == []


class TestPortfolioFees:
    def test_only_portfolio_components_count(self):
        monthly = CostComponent(
            component_type=ComponentType.SERVICE_FEE,
            calculation_method=CalculationMethod.MONTHLY_PERCENTAGE_OF_PORTFOLIO,
            percentage_rate=D("0.001"),
        )
        provider = make_provider(fixed("5"), monthly)
        result = calculate_portfolio_fees(provider, D("20000"))
        assert result.total_cost == D("20")
        assert result.net_cost == D("20")
        assert len(result.breakdown) == 1


class TestLegacyTotalCost:
    def test_floor_and_cap(self):
        args = (D("920"), D("0.92"), D("10"), D("0.01"))
        assert legacy_total_cost(*args) == D("150")
        assert legacy_total_cost(*args, minimum_cost=None) == D("20")
        assert legacy_total_cost(*args, maximum_cost=D("100")) == D("100")
        assert legacy_total_cost(*args, maximum_cost=D("15"), minimum_cost=None) == D("15")

    def test_zero_rate_keeps_fixed_part(self):
        assert legacy_total_cost(D("920"), D("0"), D("10"), D("0.01"), minimum_cost=None) == D("10")


class TestProviderSelection:
    def test_is_active_bounds(self):
        provider = make_provider(active_to=date(2024, 12, 31))
        assert provider.is_active(date(2024, 1, 1))
        assert provider.is_active(date(2024, 12, 31))
        assert not provider.is_active(date(2023, 12, 31))
        assert not provider.is_active(date(2025, 1, 1))

    def test_select_active_provider(self):
        old = make_provider(active_to=date(2023, 12, 31), active_from=date(2023, 1, 1))
        new = make_provider(active_from=date(2024, 1, 1))
        other = make_provider(name="Bank", active_from=date(2020, 1, 1))
        providers = [old, new, other]
        assert select_active_provider(providers, date(2023, 6, 1)) is old
        assert select_active_provider(providers, date(2024, 6, 1), name="Broker") is new
        assert select_active_provider(providers, date(2019, 6, 1)) is None

    def test_find_conflicts(self):
        existing = make_provider(active_from=date(2024, 1, 1), active_to=date(2024, 6, 30))
        overlapping = make_provider(active_from=date(2024, 6, 1))
        later = make_provider(active_from=date(2024, 7, 1))
        renamed = make_provider(name="Other", active_from=date(2024, 1, 1))
        assert find_conflicts(overlapping, [existing]) == [existing]
        assert find_conflicts(later, [existing]) == []
        assert find_conflicts(renamed, [existing]) == []
        assert find_conflicts(existing, [existing]) == []


class TestProviderModel:
    def test_display_name_and_components(self):
        provider = make_provider(account_tier="Gold")
        assert provider.display_name == "Broker - Gold"
        component = fixed("1")
        provider.add_component(component)
        assert provider.has_components
        provider.remove_component(component.id)
        assert not provider.has_components

    def test_validation_errors(self):
        provider = make_provider(name="", active_to=date(2023, 1, 1))
        assert provider.validation_errors == [
            "Provider name is required",
            "Starting balance must be greater than 0",
            "At least one cost component is required",
            "End date must be after start date",
        ]

    def test_dict_round_trip_keeps_decimals(self):
        provider = make_provider(
            percentage("0.00150", minimum_amount=D("1.00")),
            calculation_currency_basis=CurrencyBasis.BASE,
            starting_balance=D("2500.50"),
        )
        restored = Provider.from_dict(provider.to_dict())
        assert restored == provider
        assert str(restored.components[0].percentage_rate) == "0.00150"

    def test_from_dict_requires_name(self):
        with pytest.raises(ValueError):
            Provider.from_dict({"active_from": "2024-01-01"})

    @pytest.mark.parametrize("data", [
        "Broker",
        {"name": "B", "active_from": "2024-01-01", "components": ["x"]},
        {"name": "B", "active_from": "2024-01-01", "components": {"fixed_amount": "1"}},
    ])
    def test_from_dict_rejects_non_objects(self, data):
        with pytest.raises(ValueError, match="must be"):
            Provider.from_dict(data)

    def test_credit_window(self):
        component = fixed("1", is_refundable=True, credit_amount=D("5"), credit_valid_days=30)
        assert component.credit_expires_on(date(2024, 1, 1)) == date(2024, 1, 31)
        assert fixed("1").credit_expires_on(date(2024, 1, 1)) is None


class TestEnumNames:
    def test_names(self):
        assert CalculationMethod.FIXED_PLUS_PERCENTAGE.display_name == "Fixed + Percentage"
        assert ComponentType.ACCOUNT_CREDIT.is_credit
        assert not ComponentType.SERVICE_FEE.is_credit
