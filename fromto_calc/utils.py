"""Utility functions for the FromTo calculator.

Helpers for turning command-line and JSON input into Python values: ISO dates
and amounts written with ``k``/``m`` shorthand.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Union

DateInput = Union[date, datetime, str]


def parse_iso_date(value: DateInput) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date``.

    ``date`` objects pass through; ``datetime`` objects are reduced to their
    date. A ``YYYY-MM`` string means the first day of that month.

    Raises
    ------
    ValueError
        If the string is not a valid date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    try:
        if len(text) == 7:
            return datetime.strptime(text, "%Y-%m").date()
        return date.fromisoformat(text[:10])
    except ValueError as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


_SUFFIXES = {"k": Decimal(1_000), "m": Decimal(1_000_000)}


def split_amount_suffix(value: str) -> tuple[str, Decimal]:
    """Split a ``k``/``m`` shorthand suffix off an amount.

    ``"10k"`` becomes ``("10", Decimal(1000))``; text without a suffix comes
    back unchanged with a factor of one.
    """
    text = value.strip()
    factor = _SUFFIXES.get(text[-1:].lower())
    if factor is None:
        return text, Decimal(1)
    return text[:-1], factor
