"""Tests for the SQLAlchemy provider store."""

from datetime import date
from decimal import Decimal

import pytest

from fromto_calc.data_models import CalculationMethod, CostComponent, Provider
from fromto_web.provider_store import CostComponentModel, ProviderConflictError, create_store_from_env


def make_provider(name="Broker", active_from=date(2024, 1, 1), active_to=None, components=None):
    return Provider(
        name=name,
        active_from=active_from,
        active_to=active_to,
        starting_balance=Decimal("1000.00"),
        components=components if components is not None else [
            CostComponent(fixed_amount=Decimal("4.50")),
            CostComponent(
                calculation_method=CalculationMethod.PERCENTAGE_WITH_MIN_MAX,
                percentage_rate=Decimal("0.0025"),
                minimum_amount=Decimal("1"),
                maximum_amount=Decimal("25"),
            ),
        ],
    )


class TestProviderStore:
    def test_save_and_get_keeps_exact_decimals(self, store):
        provider = make_provider()
        store.save_provider(provider)
        loaded = store.get_provider(provider.id)
        assert loaded == provider
        assert str(loaded.starting_balance) == "1000.00"
        assert str(loaded.components[1].percentage_rate) == "0.0025"

    def test_component_order_is_kept(self, store):
        provider = make_provider()
        store.save_provider(provider)
        loaded = store.get_provider(provider.id)
        assert [c.id for c in loaded.components] == [c.id for c in provider.components]

    def test_get_missing(self, store):
        assert store.get_provider("missing") is None

    def test_update_replaces_components(self, store):
        provider = make_provider()
        store.save_provider(provider)
        provider.remove_component(provider.components[0].id)
        provider.account_tier = "Gold"
        store.save_provider(provider)
        loaded = store.get_provider(provider.id)
        assert loaded.account_tier == "Gold"
        assert len(loaded.components) == 1

    def test_remove_deletes_components(self, store):
        provider = make_provider()
        store.save_provider(provider)
        assert store.remove_provider(provider.id) is True
        assert store.get_provider(provider.id) is None
        assert store.remove_provider(provider.id) is False
        with store._session_factory() as session:
            assert session.query(CostComponentModel).count() == 0

    def test_active_providers(self, store):
        old = make_provider(active_from=date(2023, 1, 1), active_to=date(2023, 12, 31))
        new = make_provider(active_from=date(2024, 1, 1))
        store.save_provider(old)
        store.save_provider(new)
        assert [p.id for p in store.active_providers(date(2023, 6, 1))] == [old.id]
        assert [p.id for p in store.active_providers(date(2024, 6, 1))] == [new.id]
        assert len(store.list_providers()) == 2

    def test_overlapping_provider_is_rejected(self, store):
        store.save_provider(make_provider(active_to=date(2024, 12, 31)))
        clash = make_provider(active_from=date(2024, 6, 1))
        assert len(store.find_conflicts(clash)) == 1
        with pytest.raises(ProviderConflictError):
            store.save_provider(clash)
        store.save_provider(make_provider(name="Other", active_from=date(2024, 6, 1)))

    def test_create_store_from_env(self):
        store = create_store_from_env("sqlite://")
        assert store.list_providers() == []
