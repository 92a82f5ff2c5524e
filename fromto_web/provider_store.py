"""Persistence layer for bank/broker providers.

Providers and their cost components are kept in any SQLAlchemy-compatible
database; SQLite is the default for local use. A provider owns its
components: they are written and deleted together with it. Every decimal is
stored as its canonical string so values come back exactly as they were
saved.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String, create_engine, select
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from fromto_calc.costs import find_conflicts
from fromto_calc.data_models import CalculationMethod, ComponentType, CostComponent, CurrencyBasis, Provider
from fromto_calc.decimals import from_canonical, to_canonical

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///fromto_data.sqlite3"

Base = declarative_base()


class ProviderConflictError(ValueError):
    """Raised when a provider overlaps another one with the same name."""

    def __init__(self, provider: Provider, conflicts: List[Provider]):
        self.provider = provider
        self.conflicts = conflicts
        names = ", ".join(
            f"{c.display_name} ({c.active_from.isoformat()} - {c.active_to.isoformat() if c.active_to else 'open'})"
            for c in conflicts
        )
        super().__init__(f"Provider {provider.name!r} overlaps an existing active period: {names}")


class ProviderModel(Base):
    __tablename__ = "providers"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), index=True, nullable=False)
    account_tier = Column(String(255), nullable=False, default="")
    active_from = Column(Date, nullable=False)
    active_to = Column(Date, nullable=True)
    calculation_currency_basis = Column(String(16), nullable=False)
    minimum_balance_for_tier = Column(String(64), nullable=False, default="0")
    starting_balance = Column(String(64), nullable=False, default="0")
    components = relationship(
        "CostComponentModel",
        order_by="CostComponentModel.position",
        cascade="all, delete-orphan",
    )


class CostComponentModel(Base):
    __tablename__ = "cost_components"

    id = Column(String(64), primary_key=True)
    provider_id = Column(String(64), ForeignKey("providers.id", ondelete="CASCADE"), index=True, nullable=False)
    position = Column(Integer, nullable=False)
    component_type = Column(String(64), nullable=False)
    calculation_method = Column(String(64), nullable=False)
    display_name = Column(String(255), nullable=False)
    fixed_amount = Column(String(64), nullable=False)
    percentage_rate = Column(String(64), nullable=False)
    minimum_amount = Column(String(64), nullable=False)
    maximum_amount = Column(String(64), nullable=False)
    is_refundable = Column(Boolean, nullable=False, default=False)
    credit_amount = Column(String(64), nullable=False)
    credit_valid_days = Column(Integer, nullable=False, default=0)


class ProviderStore:
    """Database-backed provider store."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def list_providers(self) -> List[Provider]:
        with self._session_factory() as session:
            rows = session.execute(
                select(ProviderModel).order_by(ProviderModel.name.asc(), ProviderModel.active_from.asc())
            ).scalars()
            return [self._to_provider(row) for row in rows]

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        with self._session_factory() as session:
            row = session.get(ProviderModel, provider_id)
            return self._to_provider(row) if row is not None else None

    def active_providers(self, on_date: date) -> List[Provider]:
        return [p for p in self.list_providers() if p.is_active(on_date)]

    def find_conflicts(self, provider: Provider) -> List[Provider]:
        return find_conflicts(provider, self.list_providers())

    def save_provider(self, provider: Provider) -> Provider:
        """Insert or replace ``provider`` together with its components.

        Raises
        ------
        ProviderConflictError
            If another provider with the same name is active during an
            overlapping period.
        """
        conflicts = self.find_conflicts(provider)
        if conflicts:
            raise ProviderConflictError(provider, conflicts)
        with self._session_factory() as session:
            row = session.get(ProviderModel, provider.id)
            if row is None:
                row = ProviderModel(id=provider.id)
                session.add(row)
            else:
                row.components.clear()
                session.flush()
            self._fill_row(row, provider)
            session.commit()
        logger.info("Saved provider %s with %d components", provider.display_name, len(provider.components))
        return provider

    def remove_provider(self, provider_id: str) -> bool:
        with self._session_factory() as session:
            row = session.get(ProviderModel, provider_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
        logger.info("Removed provider %s", provider_id)
        return True

    @staticmethod
    def _fill_row(row: ProviderModel, provider: Provider) -> None:
        row.name = provider.name
        row.account_tier = provider.account_tier
        row.active_from = provider.active_from
        row.active_to = provider.active_to
        row.calculation_currency_basis = provider.calculation_currency_basis.value
        row.minimum_balance_for_tier = to_canonical(provider.minimum_balance_for_tier)
        row.starting_balance = to_canonical(provider.starting_balance)
        row.components = [
            CostComponentModel(
                id=component.id,
                position=position,
                component_type=component.component_type.value,
                calculation_method=component.calculation_method.value,
                display_name=component.display_name,
                fixed_amount=to_canonical(component.fixed_amount),
                percentage_rate=to_canonical(component.percentage_rate),
                minimum_amount=to_canonical(component.minimum_amount),
                maximum_amount=to_canonical(component.maximum_amount),
                is_refundable=component.is_refundable,
                credit_amount=to_canonical(component.credit_amount),
                credit_valid_days=component.credit_valid_days,
            )
            for position, component in enumerate(provider.components)
        ]

    @staticmethod
    def _to_component(row: CostComponentModel) -> CostComponent:
        return CostComponent(
            id=row.id,
            component_type=ComponentType(row.component_type),
            calculation_method=CalculationMethod(row.calculation_method),
            display_name=row.display_name,
            fixed_amount=from_canonical(row.fixed_amount),
            percentage_rate=from_canonical(row.percentage_rate),
            minimum_amount=from_canonical(row.minimum_amount),
            maximum_amount=from_canonical(row.maximum_amount),
            is_refundable=row.is_refundable,
            credit_amount=from_canonical(row.credit_amount),
            credit_valid_days=row.credit_valid_days,
        )

    @classmethod
    def _to_provider(cls, row: ProviderModel) -> Provider:
        components: Iterable[CostComponentModel] = row.components
        return Provider(
            id=row.id,
            name=row.name,
            account_tier=row.account_tier,
            active_from=row.active_from,
            active_to=row.active_to,
            calculation_currency_basis=CurrencyBasis(row.calculation_currency_basis),
            minimum_balance_for_tier=from_canonical(row.minimum_balance_for_tier),
            starting_balance=from_canonical(row.starting_balance),
            components=[cls._to_component(c) for c in components],
        )


def create_store_from_env(url: str | None) -> ProviderStore:
    return ProviderStore(url or DEFAULT_DATABASE_URL)
