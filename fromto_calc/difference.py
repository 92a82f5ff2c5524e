"""Absolute and relative differences between two values.

Relative differences are kept as fractions (``1.5`` for +150 %); they are
multiplied by 100 only when rendered by :func:`format_relative`.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Tuple

from .data_models import DifferenceResult, RelativeDifferenceResult
from .decimals import ONE, NumberLocale, format_decimal

DIVISION_BY_ZERO_TEXT = "N/A (division by zero)"


def absolute_difference(from_value: Decimal, to_value: Decimal) -> Decimal:
    return to_value - from_value


def relative_difference(from_value: Decimal, to_value: Decimal) -> Optional[Decimal]:
    """Return ``(to - from) / from``, or ``None`` when ``from`` is zero."""
    if from_value == 0:
        return None
    return (to_value - from_value) / from_value


def compare(from_value: Decimal, to_value: Decimal) -> DifferenceResult:
    return DifferenceResult(
        absolute_difference=absolute_difference(from_value, to_value),
        relative_difference=relative_difference(from_value, to_value),
    )


def relative_mode(from_value: Decimal, change: Decimal) -> RelativeDifferenceResult:
    """Apply ``change``, a fraction, to ``from_value``.

    This is not the inverse of :func:`compare`: the second operand is the
    change itself rather than a target value.
    """
    return RelativeDifferenceResult(
        cumulative=from_value * (ONE + change),
        product_difference=from_value * change,
    )


def swap(from_value: Decimal, to_value: Decimal) -> Tuple[Decimal, Decimal]:
    return to_value, from_value


def format_relative(
    value: Optional[Decimal], fraction_digits: int = 2, locale: Optional[NumberLocale] = None
) -> str:
    """Render a relative difference as a percentage, e.g. ``1.5`` -> ``"150%"``."""
    if value is None:
        return DIVISION_BY_ZERO_TEXT
    return format_decimal(value * 100, fraction_digits=fraction_digits, locale=locale) + "%"
