import os

import pytest

os.environ.setdefault("FROMTO_DATABASE_URL", "sqlite://")

from fromto_web.provider_store import ProviderStore  # noqa: E402


@pytest.fixture
def store():
    return ProviderStore("sqlite://")


@pytest.fixture
def provider_payload():
    return {
        "name": "Broker",
        "account_tier": "Basic",
        "active_from": "2024-01-01",
        "calculation_currency_basis": "transaction",
        "starting_balance": "1000",
        "components": [
            {
                "component_type": "transactionCommission",
                "calculation_method": "fixedOnly",
                "fixed_amount": "5",
            },
            {
                "component_type": "exchangeFee",
                "calculation_method": "percentageOnly",
                "percentage_rate": "0.001",
            },
        ],
    }
