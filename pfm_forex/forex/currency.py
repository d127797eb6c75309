"""Supported currencies and their display conventions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pfm_forex.forex.errors import InputError

__all__ = ["Currency", "CurrencyInfo", "CURRENCY_INFO"]


class Currency(str, Enum):
    """Fiat, precious metal and crypto currencies tracked against the base.

    Members compare by declaration order, which is also the order rate fields
    are laid out in persisted snapshots.
    """

    USD = "USD"
    CAD = "CAD"
    EUR = "EUR"
    GBP = "GBP"
    CHF = "CHF"
    RUB = "RUB"
    CNY = "CNY"
    JPY = "JPY"
    KRW = "KRW"
    HKD = "HKD"
    IDR = "IDR"
    MYR = "MYR"
    SGD = "SGD"
    THB = "THB"
    SAR = "SAR"
    AED = "AED"
    KWD = "KWD"
    INR = "INR"
    AUD = "AUD"
    NZD = "NZD"
    XAU = "XAU"
    XAG = "XAG"
    XPT = "XPT"
    BTC = "BTC"
    ETH = "ETH"
    SOL = "SOL"
    XRP = "XRP"
    ADA = "ADA"

    @classmethod
    def parse(cls, code: Any) -> "Currency":
        """Return the member for an exact, case-sensitive ISO-style code."""

        if isinstance(code, Currency):
            return code
        if not isinstance(code, str):
            raise InputError(f"currency code must be a string, got {type(code).__name__}")
        try:
            return cls(code)
        except ValueError as exc:
            raise InputError(f"unsupported currency: {code!r}") from exc

    @classmethod
    def default(cls) -> "Currency":
        return cls.USD

    @property
    def code(self) -> str:
        return self.value

    @property
    def symbol(self) -> str:
        return CURRENCY_INFO[self].symbol

    @property
    def uses_comma_grouping(self) -> bool:
        return CURRENCY_INFO[self].comma_grouping

    @property
    def field_name(self) -> str:
        """Attribute name of this currency inside :class:`RatesData`."""

        return self.value.lower()

    @property
    def is_crypto(self) -> bool:
        return self in _CRYPTO

    def _position(self) -> int:
        return _POSITIONS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Currency):
            return NotImplemented
        return self._position() < other._position()

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Currency):
            return NotImplemented
        return self._position() <= other._position()

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Currency):
            return NotImplemented
        return self._position() > other._position()

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Currency):
            return NotImplemented
        return self._position() >= other._position()

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class CurrencyInfo:
    """Display metadata for a currency."""

    symbol: str
    comma_grouping: bool = True


_POSITIONS = {member: index for index, member in enumerate(Currency)}

_CRYPTO = frozenset({Currency.BTC, Currency.ETH, Currency.SOL, Currency.XRP, Currency.ADA})

# Dot-grouped currencies write 1.000.000,50; everything else writes 1,000,000.50.
CURRENCY_INFO: dict[Currency, CurrencyInfo] = {
    Currency.USD: CurrencyInfo("$"),
    Currency.CAD: CurrencyInfo("C$"),
    Currency.EUR: CurrencyInfo("€"),
    Currency.GBP: CurrencyInfo("£"),
    Currency.CHF: CurrencyInfo("₣"),
    Currency.RUB: CurrencyInfo("₽", comma_grouping=False),
    Currency.CNY: CurrencyInfo("¥"),
    Currency.JPY: CurrencyInfo("¥"),
    Currency.KRW: CurrencyInfo("₩"),
    Currency.HKD: CurrencyInfo("HK$"),
    Currency.IDR: CurrencyInfo("Rp", comma_grouping=False),
    Currency.MYR: CurrencyInfo("RM"),
    Currency.SGD: CurrencyInfo("S$"),
    Currency.THB: CurrencyInfo("฿"),
    Currency.SAR: CurrencyInfo("ر.س", comma_grouping=False),
    Currency.AED: CurrencyInfo("د.إ", comma_grouping=False),
    Currency.KWD: CurrencyInfo("د.ك", comma_grouping=False),
    Currency.INR: CurrencyInfo("₹"),
    Currency.AUD: CurrencyInfo("A$"),
    Currency.NZD: CurrencyInfo("NZ$"),
    Currency.XAU: CurrencyInfo("XAU"),
    Currency.XAG: CurrencyInfo("XAG"),
    Currency.XPT: CurrencyInfo("XPT"),
    Currency.BTC: CurrencyInfo("₿"),
    Currency.ETH: CurrencyInfo("Ξ"),
    Currency.SOL: CurrencyInfo("◎"),
    Currency.XRP: CurrencyInfo("✕"),
    Currency.ADA: CurrencyInfo("₳"),
}
