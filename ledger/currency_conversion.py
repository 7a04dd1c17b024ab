from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

DEFAULT_RATES: dict[str, Decimal] = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "JPY": Decimal("147.50"),
    "CAD": Decimal("1.34"),
    "AUD": Decimal("1.52"),
    "NZD": Decimal("1.64"),
    "CHF": Decimal("0.88"),
    "SEK": Decimal("10.45"),
}


class MissingRateError(ValueError):
    """Raised when a snapshot has no usable rate for a currency."""


@dataclass(frozen=True)
class ExchangeRates:
    """Point-in-time FX snapshot.

    Rates are expressed as units of the currency per 1 unit of the base
    currency; the base currency itself is always 1.
    """

    base_currency: str
    rates: Mapping[str, Decimal] | None = None

    def __post_init__(self) -> None:
        base_currency = normalize_currency(self.base_currency)
        rates = {
            normalize_currency(code): _coerce_amount(rate)
            for code, rate in (self.rates or {}).items()
        }
        rates[base_currency] = Decimal("1")
        object.__setattr__(self, "base_currency", base_currency)
        object.__setattr__(self, "rates", MappingProxyType(rates))

    def __hash__(self) -> int:
        return hash((self.base_currency, frozenset(self.rates.items())))

    @classmethod
    def default(cls, base_currency: str = "USD") -> "ExchangeRates":
        """Static snapshot rebased onto ``base_currency``."""
        base = normalize_currency(base_currency)
        try:
            base_rate = DEFAULT_RATES[base]
        except KeyError as exc:
            raise MissingRateError(f"Unsupported currency: {base}") from exc
        return cls(
            base_currency=base,
            rates={code: rate / base_rate for code, rate in DEFAULT_RATES.items()},
        )

    def get_rate(self, currency: str) -> Decimal:
        normalized = normalize_currency(currency)
        try:
            rate = self.rates[normalized]
        except KeyError as exc:
            raise MissingRateError(f"Unsupported currency: {normalized}") from exc
        if rate <= 0:
            raise MissingRateError(f"Invalid rate for currency: {normalized}")
        return rate


def convert_amount(
    amount: Decimal | int | float | str,
    source_currency: str,
    target_currency: str,
    rates: ExchangeRates,
) -> Decimal:
    """Convert a monetary amount through the snapshot's base currency."""
    coerced_amount = _coerce_amount(amount)
    if source_currency == target_currency:
        return coerced_amount

    normalized_source = normalize_currency(source_currency)
    normalized_target = normalize_currency(target_currency)
    if normalized_source == normalized_target:
        return coerced_amount

    source_rate = rates.get_rate(normalized_source)
    target_rate = rates.get_rate(normalized_target)
    amount_in_base = coerced_amount / source_rate
    return amount_in_base * target_rate


def exchange(
    rates: ExchangeRates,
    from_currency: str,
    to_currency: str,
    amount: Decimal | int | float | str,
) -> Decimal | None:
    """Like ``convert_amount`` but returns None when no conversion exists."""
    try:
        return convert_amount(amount, from_currency, to_currency, rates)
    except ValueError:
        return None


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized


def _coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))
