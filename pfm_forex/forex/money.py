"""Monetary amount value type with locale-style parsing and formatting."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

from pfm_forex.forex.currency import Currency
from pfm_forex.forex.errors import InputError

__all__ = ["Money", "COMMA_AMOUNT_RE", "DOT_AMOUNT_RE", "to_decimal"]

COMMA_AMOUNT_RE = re.compile(r"^\d{1,3}(,?\d{3})*(\.\d{2})?$")
DOT_AMOUNT_RE = re.compile(r"^\d{1,3}(\.?\d{3})*(,\d{2})?$")

_MINOR_UNIT = Decimal("0.01")
_PRECISION = 50


def to_decimal(value: Any) -> Decimal:
    """Convert ``value`` into :class:`Decimal` without going through binary floats."""

    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InputError("amount must be numeric")
    if isinstance(value, float):
        value = repr(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InputError(f"invalid amount: {value!r}") from exc
    if not result.is_finite():
        raise InputError(f"invalid amount: {value!r}")
    return result


@dataclass(frozen=True, order=True, slots=True)
class Money:
    """An exact decimal amount in a given currency."""

    currency: Currency
    amount: Decimal

    @classmethod
    def of(cls, currency: Currency | str, amount: Any) -> "Money":
        return cls(Currency.parse(currency), to_decimal(amount))

    @classmethod
    def zero(cls, currency: Currency) -> "Money":
        return cls(currency, Decimal("0"))

    @classmethod
    def parse(cls, text: str) -> "Money":
        """Parse ``"<CODE> <AMOUNT>"`` such as ``"USD 1,000.50"`` or ``"IDR 45.000.000"``.

        A comma-grouped amount is accepted for any currency. Dot-grouped
        amounts are only accepted for currencies that group with dots.
        """

        if not isinstance(text, str):
            raise InputError("money text must be a string")
        parts = text.split()
        if len(parts) != 2:
            raise InputError(f"invalid money format: {text!r}, expected '<CODE> <AMOUNT>'")
        code, raw_amount = parts
        currency = Currency.parse(code)

        if COMMA_AMOUNT_RE.match(raw_amount):
            normalized = raw_amount.replace(",", "")
        elif currency.uses_comma_grouping:
            raise InputError(f"invalid amount for {currency.code}: {raw_amount!r}")
        elif DOT_AMOUNT_RE.match(raw_amount):
            normalized = raw_amount.replace(".", "").replace(",", ".")
        else:
            raise InputError(f"invalid amount for {currency.code}: {raw_amount!r}")

        return cls(currency, to_decimal(normalized))

    def is_zero(self) -> bool:
        return self.amount.is_zero()

    def format(self, use_symbol: bool = False) -> str:
        """Render the amount with two minor digits and currency-specific grouping.

        A zero minor part is left out so ``USD 23,000`` stays parseable.
        """

        with localcontext() as ctx:
            ctx.prec = _PRECISION
            quantized = self.amount.quantize(_MINOR_UNIT, rounding=ROUND_HALF_UP)
        sign = "-" if quantized < 0 else ""
        whole, _, minor = f"{abs(quantized):f}".partition(".")
        minor = minor.ljust(2, "0")

        if self.currency.uses_comma_grouping:
            thousands_sep, decimal_sep = ",", "."
        else:
            thousands_sep, decimal_sep = ".", ","
        grouped = f"{int(whole):,}".replace(",", thousands_sep)
        number = grouped if minor == "00" else f"{grouped}{decimal_sep}{minor}"

        if use_symbol:
            return f"{sign}{self.currency.symbol}{number}"
        return f"{self.currency.code} {sign}{number}"

    def __str__(self) -> str:
        return self.format(False)
