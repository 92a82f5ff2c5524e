"""Currency exchange rates from the Frankfurter API."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import requests

from .money import normalize_currency

logger = logging.getLogger(__name__)

DEFAULT_RATE_API_URL = "https://api.frankfurter.dev/v1"


class CurrencyRateError(Exception):
    """Base class for rate lookup failures."""


class InvalidResponseError(CurrencyRateError):
    def __init__(self, message: str = "Could not fetch exchange rate"):
        super().__init__(message)


class RateNotFoundError(CurrencyRateError):
    def __init__(self, message: str = "Exchange rate not found for currency pair"):
        super().__init__(message)


def _rate_value(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        rate = value
    elif isinstance(value, (int, str)) and not isinstance(value, bool):
        try:
            rate = Decimal(value)
        except InvalidOperation as e:
            raise InvalidResponseError(f"Malformed rate {value!r}") from e
    else:
        raise InvalidResponseError(f"Malformed rate {value!r}")
    if not rate.is_finite() or rate <= 0:
        raise InvalidResponseError(f"Malformed rate {value!r}")
    return rate


class CurrencyRateService:
    """Looks up the rate from one currency to another on a given day.

    The rate is the number of ``to_currency`` units one ``from_currency``
    unit buys. JSON numbers are decoded straight into ``Decimal``.
    """

    def __init__(self, base_url: str = DEFAULT_RATE_API_URL, session: Optional[requests.Session] = None,
                 timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "FromTo/1.0"})

    def fetch_rate(self, from_currency: str, to_currency: str, on_date: date) -> Decimal:
        """Return the rate for ``on_date``.

        Raises
        ------
        InvalidResponseError
            When the service cannot be reached or answers with an error or an
            unreadable body.
        RateNotFoundError
            When the answer holds no rate for ``to_currency``.
        """
        from_code = normalize_currency(from_currency)
        to_code = normalize_currency(to_currency)
        if from_code == to_code:
            return Decimal("1.0")

        url = f"{self.base_url}/{on_date.isoformat()}"
        params = {"base": from_code, "symbols": to_code}
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json(parse_float=Decimal)
        except requests.exceptions.RequestException as e:
            logger.error("Rate request %s -> %s failed: %s", from_code, to_code, e)
            raise InvalidResponseError() from e
        except ValueError as e:
            logger.error("Rate response for %s -> %s is not JSON: %s", from_code, to_code, e)
            raise InvalidResponseError() from e

        rates = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(rates, dict) or to_code not in rates:
            raise RateNotFoundError()
        rate = _rate_value(rates[to_code])
        logger.info("Rate %s -> %s on %s: %s", from_code, to_code, on_date, rate)
        return rate

    def rate_or_fallback(self, from_currency: str, to_currency: str, on_date: date,
                         fallback: Decimal) -> Decimal:
        """Like :meth:`fetch_rate`, but return ``fallback`` if the lookup fails."""
        try:
            return self.fetch_rate(from_currency, to_currency, on_date)
        except CurrencyRateError as e:
            logger.warning("Using fallback rate %s for %s -> %s: %s", fallback, from_currency, to_currency, e)
            return fallback
