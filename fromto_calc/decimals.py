"""Exact decimal helpers shared by every part of the calculator.

All amounts, rates and prices are ``decimal.Decimal`` values. This module
defines the single canonical string form used whenever a decimal is persisted
(so a value read back from storage is identical to the one written), the
locale-aware text parsing and formatting used for user input and display, and
a few arithmetic helpers whose rounding behaviour matters for unit sizing.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_EVEN, getcontext, localcontext
from typing import Dict, Optional, Union

getcontext().prec = 38  # enough significant digits for any amount we store

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")

DecimalInput = Union[Decimal, int, str]


class ParseError(ValueError):
    """Raised when text cannot be read as a decimal number."""


@dataclass(frozen=True)
class NumberLocale:
    """Decimal and grouping separators of a number locale.

    Attributes
    ----------
    name: str
        Locale identifier such as ``"nl_NL"``.
    decimal_separator: str
        Character between the integer and the fractional digits.
    group_separator: str
        Character between thousands groups. Empty when the locale does not
        group digits.
    """

    name: str
    decimal_separator: str
    group_separator: str

    @classmethod
    def named(cls, name: Optional[str]) -> "NumberLocale":
        """Return the preset for ``name``.

        ``"nl_NL"`` and ``"nl-NL"`` are the same locale. An unknown region
        falls back to the language preset (``"nl_BE"`` -> ``"nl_NL"``) and an
        unknown language falls back to ``en_US``.
        """
        if not name:
            return DEFAULT_LOCALE
        key = name.replace("-", "_").split(".")[0]
        if key in LOCALES:
            return LOCALES[key]
        language = key.split("_")[0].lower()
        for preset in LOCALES.values():
            if preset.name.split("_")[0].lower() == language:
                return preset
        logger.warning("Unknown number locale %r, using %s", name, DEFAULT_LOCALE.name)
        return DEFAULT_LOCALE


LOCALES: Dict[str, NumberLocale] = {
    "en_US": NumberLocale("en_US", ".", ","),
    "en_GB": NumberLocale("en_GB", ".", ","),
    "nl_NL": NumberLocale("nl_NL", ",", "."),
    "de_DE": NumberLocale("de_DE", ",", "."),
    "fr_FR": NumberLocale("fr_FR", ",", "\u202f"),
    "de_CH": NumberLocale("de_CH", ".", "\u2019"),
    "C": NumberLocale("C", ".", ""),
}

DEFAULT_LOCALE = LOCALES["en_US"]

# Separators people type by accident: spaces and apostrophes are never decimal marks.
_LOOSE_GROUP_CHARS = (" ", "\u00a0", "\u202f", "'", "\u2019")


# ---------------------------------------------------------------------------
# Canonical (storage) form
# ---------------------------------------------------------------------------


def to_canonical(value: Decimal) -> str:
    """Return the canonical string used to persist ``value``.

    The canonical form is ``str(value)``: it keeps the sign, every digit of
    the coefficient and the exponent, so :func:`from_canonical` rebuilds the
    very same value (``as_tuple()`` included). NaN and infinities are
    rejected because no stored amount may hold them.
    """
    if not isinstance(value, Decimal):
        value = to_decimal(value)
    if not value.is_finite():
        raise ValueError(f"Cannot store non-finite decimal: {value}")
    return str(value)


def from_canonical(text: str) -> Decimal:
    """Parse a canonical string written by :func:`to_canonical`.

    Raises
    ------
    ParseError
        If ``text`` is not a finite decimal in canonical form.
    """
    try:
        value = Decimal(text.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise ParseError(f"Invalid canonical decimal: {text!r}") from exc
    if not value.is_finite():
        raise ParseError(f"Invalid canonical decimal: {text!r}")
    return value


def to_decimal(value: DecimalInput) -> Decimal:
    """Convert an int, canonical string or Decimal to ``Decimal``.

    Floats are refused: a binary float already lost the digits the user
    typed.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Refusing to build a Decimal from {type(value).__name__}: {value!r}")
    if isinstance(value, int):
        return Decimal(value)
    return from_canonical(value)


# ---------------------------------------------------------------------------
# Locale-aware text
# ---------------------------------------------------------------------------


def _strict_pattern(locale: NumberLocale) -> "re.Pattern[str]":
    dec = re.escape(locale.decimal_separator)
    if locale.group_separator:
        grp = re.escape(locale.group_separator)
        integer = rf"(?:\d{{1,3}}(?:{grp}\d{{3}})+|\d+)"
    else:
        integer = r"\d+"
    return re.compile(rf"^[+-]?(?:{integer}(?:{dec}\d*)?|{dec}\d+)$")


def _to_plain(text: str, decimal_separator: str, group_separator: str) -> Decimal:
    plain = text
    if group_separator:
        plain = plain.replace(group_separator, "")
    plain = plain.replace(decimal_separator, ".")
    if plain.endswith("."):
        plain = plain[:-1]
    return Decimal(plain)


def _normalise(text: str, locale: NumberLocale) -> str:
    """Rewrite ``text`` into plain ``1234.56`` notation, guessing separators."""
    cleaned = text
    for char in _LOOSE_GROUP_CHARS:
        cleaned = cleaned.replace(char, "")
    if locale.group_separator and locale.group_separator not in ".,":
        cleaned = cleaned.replace(locale.group_separator, "")

    has_dot = "." in cleaned
    has_comma = "," in cleaned
    if has_dot and has_comma:
        decimal_mark = "." if cleaned.rfind(".") > cleaned.rfind(",") else ","
        group_mark = "," if decimal_mark == "." else "."
        return cleaned.replace(group_mark, "").replace(decimal_mark, ".")
    if has_dot or has_comma:
        mark = "." if has_dot else ","
        if mark == locale.decimal_separator or cleaned.count(mark) == 1:
            return cleaned.replace(mark, ".")
        return cleaned.replace(mark, "")
    return cleaned


_PLAIN = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")


def parse_decimal(text: str, locale: Optional[NumberLocale] = None) -> Decimal:
    """Parse user-entered ``text`` using the separators of ``locale``.

    Text that is valid for the locale (``"1.234,56"`` for ``nl_NL``) is
    read directly. Otherwise the separators are normalised: with both ``.``
    and ``,`` present the right-most one is the decimal mark; with only one
    kind present a single occurrence is the decimal mark and repeated
    occurrences are grouping. So ``"1,5"`` is 1.5 under ``en_US`` and
    ``"2.5"`` is 2.5 under ``nl_NL``.

    Raises
    ------
    ParseError
        If nothing sensible can be made of ``text``.
    """
    locale = locale or DEFAULT_LOCALE
    if text is None:
        raise ParseError("No text to parse")
    stripped = text.strip()
    if not stripped:
        raise ParseError("Empty number")

    if _strict_pattern(locale).match(stripped):
        return _to_plain(stripped, locale.decimal_separator, locale.group_separator)

    normalised = _normalise(stripped, locale)
    if _PLAIN.match(normalised):
        return Decimal(normalised)
    raise ParseError(f"Invalid number: {text!r}")


def try_parse_decimal(text: Optional[str], locale: Optional[NumberLocale] = None) -> Optional[Decimal]:
    """Like :func:`parse_decimal` but returns ``None`` for unparseable text."""
    if text is None:
        return None
    try:
        return parse_decimal(text, locale)
    except ParseError:
        return None


def parse_decimal_or_zero(text: Optional[str], locale: Optional[NumberLocale] = None) -> Decimal:
    """Parse ``text``; anything unparseable counts as zero."""
    value = try_parse_decimal(text, locale)
    return ZERO if value is None else value


def format_decimal(
    value: Decimal,
    fraction_digits: int = 2,
    use_grouping: bool = True,
    locale: Optional[NumberLocale] = None,
    min_fraction_digits: int = 0,
) -> str:
    """Format ``value`` for display.

    Parameters
    ----------
    value: Decimal
        The number to format.
    fraction_digits: int
        Maximum number of fractional digits; the value is rounded half-even.
    use_grouping: bool
        Whether to insert the locale's group separator every three digits.
    locale: NumberLocale
        Separators to use; defaults to ``en_US``.
    min_fraction_digits: int
        Trailing fractional zeros are dropped, but never below this count.
    """
    locale = locale or DEFAULT_LOCALE
    if fraction_digits < 0:
        raise ValueError("fraction_digits must not be negative")
    min_fraction_digits = min(min_fraction_digits, fraction_digits)

    with localcontext() as ctx:
        # room for every integer digit, the fraction and a rounding carry
        ctx.prec = max(ctx.prec, value.adjusted() + fraction_digits + 2)
        rounded = value.quantize(Decimal(1).scaleb(-fraction_digits), rounding=ROUND_HALF_EVEN)
    sign, digits, exponent = rounded.as_tuple()
    text = "".join(str(d) for d in digits)
    if fraction_digits:
        text = text.rjust(fraction_digits + 1, "0")
        integer_part, fraction_part = text[:-fraction_digits], text[-fraction_digits:]
    else:
        integer_part, fraction_part = text, ""
    fraction_part = fraction_part.rstrip("0").ljust(min_fraction_digits, "0")

    if use_grouping and locale.group_separator:
        groups = []
        while len(integer_part) > 3:
            groups.insert(0, integer_part[-3:])
            integer_part = integer_part[:-3]
        groups.insert(0, integer_part)
        integer_part = locale.group_separator.join(groups)

    result = integer_part
    if fraction_part:
        result += locale.decimal_separator + fraction_part
    if sign and any(digits):
        result = "-" + result
    return result


def placeholder(fraction_digits: int = 2, locale: Optional[NumberLocale] = None, with_grouping: bool = False) -> str:
    """Return an example number such as ``"1.234,00"`` for input hints."""
    locale = locale or DEFAULT_LOCALE
    integer_part = "1" + locale.group_separator + "234" if with_grouping else "0"
    if fraction_digits == 0:
        return integer_part
    return integer_part + locale.decimal_separator + "0" * fraction_digits


# ---------------------------------------------------------------------------
# Arithmetic helpers
# ---------------------------------------------------------------------------


def floor_divide(numerator: Decimal, denominator: Decimal) -> int:
    """Return ``floor(numerator / denominator)`` computed exactly.

    ``divmod`` on decimals gives the exact integer part of the quotient
    (truncated toward zero) without ever rounding the quotient itself, so a
    ratio of exactly 3 can never come out as 2.99... The result is then moved
    toward negative infinity when the signs differ and there is a remainder.
    The working precision grows with the operands, so quotients longer than
    the default context still come out exact.
    """
    if denominator == 0:
        raise ZeroDivisionError("floor_divide by zero")
    with localcontext() as ctx:
        ctx.prec = exact_precision(numerator, denominator)
        quotient, remainder = divmod(numerator, denominator)
    result = int(quotient)
    if remainder != 0 and (numerator < 0) != (denominator < 0):
        result -= 1
    return result


def exact_precision(*values: Decimal) -> int:
    """Digits needed to hold any sum, difference or integer quotient of ``values``.

    Never less than the current context precision.
    """
    finite = [v for v in values if v.is_finite()]
    if not finite:
        return getcontext().prec
    highest = max(v.adjusted() for v in finite)
    lowest = min(v.as_tuple().exponent for v in finite)
    return max(getcontext().prec, highest - lowest + 2)


def exact_product(left: Decimal, right: Decimal) -> Decimal:
    """``left * right`` without rounding the coefficient."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(left.as_tuple().digits) + len(right.as_tuple().digits))
        return left * right


def exact_difference(left: Decimal, right: Decimal) -> Decimal:
    """``left - right`` without rounding the coefficient."""
    with localcontext() as ctx:
        ctx.prec = exact_precision(left, right)
        return left - right


def round_down(value: Decimal, scale: int = 0) -> Decimal:
    """Round ``value`` toward negative infinity to ``scale`` fractional digits."""
    return value.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_FLOOR)


def safe_divide(numerator: Decimal, denominator: Decimal, fallback: Decimal = ZERO) -> Decimal:
    """Divide, returning ``fallback`` instead of failing on a zero denominator."""
    if denominator == 0:
        return fallback
    return numerator / denominator
