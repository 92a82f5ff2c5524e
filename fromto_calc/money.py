"""Currency amounts and conversion between base and transaction currency.

A *rate* is always expressed as transaction-currency units per one unit of
base currency (``USD -> EUR 0.92`` means 1 USD buys 0.92 EUR). Converting from
base to transaction therefore multiplies by the rate and converting back
divides by it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .data_models import CurrencyBasis
from .decimals import ZERO, safe_divide

# Active ISO 4217 codes. Funds and precious-metal codes are left out.
ISO_CURRENCY_CODES = frozenset(
    """
    AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BHD BIF BMD BND BOB
    BRL BSD BTN BWP BYN BZD CAD CDF CHF CLP CNY COP CRC CUP CVE CZK DJF DKK DOP
    DZD EGP ERN ETB EUR FJD FKP GBP GEL GHS GIP GMD GNF GTQ GYD HKD HNL HTG HUF
    IDR ILS INR IQD IRR ISK JMD JOD JPY KES KGS KHR KMF KPW KRW KWD KYD KZT LAK
    LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP MRU MUR MVR MWK MXN MYR MZN
    NAD NGN NIO NOK NPR NZD OMR PAB PEN PGK PHP PKR PLN PYG QAR RON RSD RUB RWF
    SAR SBD SCR SDG SEK SGD SHP SLE SOS SRD SSP STN SVC SYP SZL THB TJS TMT TND
    TOP TRY TTD TWD TZS UAH UGX USD UYU UZS VES VND VUV WST XAF XCD XOF XPF YER
    ZAR ZMW ZWL
    """.split()
)


class CurrencyMismatchError(ValueError):
    """Raised when amounts in different currencies are combined without a rate."""


def is_iso_currency(code: str) -> bool:
    return isinstance(code, str) and code.upper() in ISO_CURRENCY_CODES


def normalize_currency(code: str) -> str:
    """Return ``code`` upper-cased, or raise ``ValueError`` if it is not ISO 4217."""
    if not is_iso_currency(code):
        raise ValueError(f"Unknown currency code: {code!r}")
    return code.upper()


@dataclass(frozen=True)
class CurrencyAmount:
    """An exact amount of money in one currency."""

    amount: Decimal
    currency_code: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency_code", normalize_currency(self.currency_code))

    def _check_same_currency(self, other: "CurrencyAmount") -> None:
        if other.currency_code != self.currency_code:
            raise CurrencyMismatchError(
                f"Cannot combine {self.currency_code} with {other.currency_code} without a rate"
            )

    def __add__(self, other: "CurrencyAmount") -> "CurrencyAmount":
        self._check_same_currency(other)
        return CurrencyAmount(self.amount + other.amount, self.currency_code)

    def __sub__(self, other: "CurrencyAmount") -> "CurrencyAmount":
        self._check_same_currency(other)
        return CurrencyAmount(self.amount - other.amount, self.currency_code)

    def __neg__(self) -> "CurrencyAmount":
        return CurrencyAmount(-self.amount, self.currency_code)

    def scaled(self, factor: Decimal) -> "CurrencyAmount":
        return CurrencyAmount(self.amount * factor, self.currency_code)

    def converted(self, currency_code: str, rate: Decimal) -> "CurrencyAmount":
        """Return this amount in ``currency_code``, multiplying by ``rate``.

        Same-currency conversion ignores ``rate``.
        """
        target = normalize_currency(currency_code)
        if target == self.currency_code:
            return self
        return CurrencyAmount(self.amount * rate, target)


def convert(amount: Decimal, from_basis: CurrencyBasis, to_basis: CurrencyBasis, rate: Decimal) -> Decimal:
    """Convert ``amount`` between base and transaction currency.

    Base to transaction multiplies by ``rate``; transaction to base divides by
    it. A zero rate cannot be divided by and yields zero.
    """
    if from_basis == to_basis:
        return amount
    if from_basis == CurrencyBasis.BASE:
        return amount * rate
    return safe_divide(amount, rate, fallback=ZERO)


def effective_rate(
    base_currency: str,
    transaction_currency: str,
    double_currency_enabled: bool,
    stored_rate: Decimal,
) -> Decimal:
    """Return the rate to calculate with.

    Single-currency mode and same-currency pairs always use exactly 1.0,
    whatever rate happens to be stored (it may be stale from an earlier
    currency pair).
    """
    if not double_currency_enabled or base_currency.upper() == transaction_currency.upper():
        return Decimal("1.0")
    return stored_rate

