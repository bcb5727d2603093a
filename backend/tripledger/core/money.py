"""
Money value object and currency precision helpers.

Amounts cross the API and persistence boundaries as ``Decimal``; inside the
domain a settled, presentable amount is a ``Money`` holding an integer count
of the currency's minor units. Conversions are explicit: nothing here accepts
floats or strings implicitly.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
import re

_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")

# ISO 4217 minor unit exponents that differ from the default of 2
_ZERO_DECIMAL = {
    "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG",
    "RWF", "UGX", "UYI", "VND", "VUV", "XAF", "XOF", "XPF",
}
_THREE_DECIMAL = {"BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND"}


class CurrencyMismatchError(ValueError):
    """Raised when combining Money values in different currencies."""


def normalize_currency(code: str) -> str:
    """Validate a three-letter currency code and return it upper-cased."""
    if not isinstance(code, str) or not _CURRENCY_RE.match(code.strip()):
        raise ValueError(f"Invalid currency code: {code!r}")
    return code.strip().upper()


def currency_exponent(code: str) -> int:
    """Number of decimal places used by the currency's minor unit."""
    code = normalize_currency(code)
    if code in _ZERO_DECIMAL:
        return 0
    if code in _THREE_DECIMAL:
        return 3
    return 2


def quantize(value: Decimal, currency: str) -> Decimal:
    """Round a Decimal half-up to the currency's precision."""
    exponent = currency_exponent(currency)
    return Decimal(value).quantize(Decimal(1).scaleb(-exponent), rounding=ROUND_HALF_UP)


# Stored precision of exchange rates
RATE_PLACES = 6


def quantize_rate(rate: Decimal) -> Decimal:
    """Round an exchange rate half-up to the stored precision."""
    return Decimal(rate).quantize(Decimal(1).scaleb(-RATE_PLACES), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    minor_units: int
    currency_code: str

    def __post_init__(self):
        if not isinstance(self.minor_units, int) or isinstance(self.minor_units, bool):
            raise TypeError("minor_units must be an int")
        object.__setattr__(self, "currency_code", normalize_currency(self.currency_code))

    @classmethod
    def from_decimal(cls, value: Decimal, currency: str) -> "Money":
        """Build from a major-unit Decimal, rounding half-up to minor units."""
        if not isinstance(value, (Decimal, int)) or isinstance(value, bool):
            raise TypeError("Money.from_decimal expects a Decimal or int")
        exponent = currency_exponent(currency)
        minor = quantize(Decimal(value), currency).scaleb(exponent)
        return cls(int(minor), currency)

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(0, currency)

    def to_decimal(self) -> Decimal:
        """Major-unit Decimal with exactly the currency's number of places."""
        exponent = currency_exponent(self.currency_code)
        return Decimal(self.minor_units).scaleb(-exponent).quantize(Decimal(1).scaleb(-exponent))

    def _check(self, other: "Money"):
        if not isinstance(other, Money):
            return NotImplemented
        if other.currency_code != self.currency_code:
            raise CurrencyMismatchError(
                f"Cannot combine {self.currency_code} with {other.currency_code}"
            )

    def __add__(self, other: "Money") -> "Money":
        if self._check(other) is NotImplemented:
            return NotImplemented
        return Money(self.minor_units + other.minor_units, self.currency_code)

    def __sub__(self, other: "Money") -> "Money":
        if self._check(other) is NotImplemented:
            return NotImplemented
        return Money(self.minor_units - other.minor_units, self.currency_code)

    def __neg__(self) -> "Money":
        return Money(-self.minor_units, self.currency_code)

    def split_evenly(self, parts: int) -> list:
        """Split into `parts` shares that sum exactly; remainder goes to the first shares."""
        if parts <= 0:
            raise ValueError("parts must be positive")
        base, remainder = divmod(self.minor_units, parts)
        return [
            Money(base + (1 if i < remainder else 0), self.currency_code)
            for i in range(parts)
        ]

    def __str__(self) -> str:
        return f"{self.to_decimal()} {self.currency_code}"
