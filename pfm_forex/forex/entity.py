"""Domain records exchanged between sources, storage and the query layer."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Generic, Iterable, Mapping, Sequence, Type, TypeVar

from pfm_forex.forex.currency import Currency
from pfm_forex.forex.errors import InputError
from pfm_forex.forex.money import Money, to_decimal

__all__ = [
    "RatesData",
    "Rates",
    "HistoricalRates",
    "Snapshot",
    "RatesList",
    "Order",
    "ConversionResponse",
    "paginate",
    "format_datetime",
    "parse_datetime",
]

_ZERO = Decimal("0")


def format_datetime(value: datetime) -> str:
    """Serialise an aware datetime as UTC with a ``Z`` suffix."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_datetime(value: str | datetime | date) -> datetime:
    """Parse an ISO timestamp (or bare date) into an aware UTC datetime."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise TypeError(f"expected an ISO timestamp, got {type(value).__name__}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class RatesData:
    """Units of each currency per one unit of the snapshot base.

    A zero value means the rate is unavailable.
    """

    usd: Decimal = _ZERO
    cad: Decimal = _ZERO
    eur: Decimal = _ZERO
    gbp: Decimal = _ZERO
    chf: Decimal = _ZERO
    rub: Decimal = _ZERO
    cny: Decimal = _ZERO
    jpy: Decimal = _ZERO
    krw: Decimal = _ZERO
    hkd: Decimal = _ZERO
    idr: Decimal = _ZERO
    myr: Decimal = _ZERO
    sgd: Decimal = _ZERO
    thb: Decimal = _ZERO
    sar: Decimal = _ZERO
    aed: Decimal = _ZERO
    kwd: Decimal = _ZERO
    inr: Decimal = _ZERO
    aud: Decimal = _ZERO
    nzd: Decimal = _ZERO
    xau: Decimal = _ZERO
    xag: Decimal = _ZERO
    xpt: Decimal = _ZERO
    btc: Decimal = _ZERO
    eth: Decimal = _ZERO
    sol: Decimal = _ZERO
    xrp: Decimal = _ZERO
    ada: Decimal = _ZERO

    def __getitem__(self, currency: Currency) -> Decimal:
        return getattr(self, Currency.parse(currency).field_name)

    def items(self) -> list[tuple[Currency, Decimal]]:
        return [(currency, self[currency]) for currency in Currency]

    @classmethod
    def from_mapping(cls, values: Mapping[Currency, Any]) -> "RatesData":
        return cls(**{Currency.parse(key).field_name: to_decimal(value) for key, value in values.items()})

    def with_rates(self, patches: Iterable[Money]) -> "RatesData":
        """Return a copy where only the currencies named in ``patches`` change."""

        changes = {money.currency.field_name: money.amount for money in patches}
        return replace(self, **changes)

    def to_dict(self) -> dict[str, str]:
        return {item.name: str(getattr(self, item.name)) for item in fields(self)}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RatesData":
        """Build from JSON, accepting upper- or lower-case keys and numeric values.

        Unknown keys are ignored and missing currencies stay at zero.
        """

        if not isinstance(payload, Mapping):
            raise ValueError(f"rates must be an object, got {type(payload).__name__}")
        known = {item.name for item in fields(cls)}
        values: dict[str, Decimal] = {}
        for key, value in payload.items():
            name = str(key).lower()
            if name not in known or value is None:
                continue
            try:
                values[name] = to_decimal(value)
            except InputError as exc:
                raise ValueError(f"invalid rate for {key}: {value!r}") from exc
        return cls(**values)


@dataclass(frozen=True, slots=True)
class Rates:
    """Latest rates as reported by a source."""

    LEGACY_TIME_KEY: ClassVar[str] = "latest_update"

    as_of: datetime
    base: Currency
    rates: RatesData

    def to_dict(self) -> dict[str, Any]:
        return {
            "as_of": format_datetime(self.as_of),
            "base": self.base.code,
            "rates": self.rates.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Rates":
        if not isinstance(payload, Mapping):
            raise ValueError(f"{cls.__name__} payload must be an object, got {type(payload).__name__}")
        raw_time = payload.get("as_of", payload.get(cls.LEGACY_TIME_KEY))
        if raw_time is None:
            raise ValueError(f"{cls.__name__} payload is missing 'as_of'")
        if "base" not in payload or "rates" not in payload:
            raise ValueError(f"{cls.__name__} payload requires 'base' and 'rates'")
        return cls(
            as_of=parse_datetime(raw_time),
            base=Currency.parse(payload["base"]),
            rates=RatesData.from_dict(payload["rates"]),
        )


@dataclass(frozen=True, slots=True)
class HistoricalRates(Rates):
    """End-of-day rates for a calendar date."""

    LEGACY_TIME_KEY: ClassVar[str] = "date"

    @property
    def date(self) -> date:
        return self.as_of.date()


T = TypeVar("T", Rates, HistoricalRates)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    """One poll result: either usable rates or an error with zeroed rates."""

    id: uuid.UUID
    source: str
    poll_date: datetime
    data: T
    error: str | None = None

    @classmethod
    def new(cls, source: str, data: T, *, poll_date: datetime | None = None) -> "Snapshot[T]":
        return cls(id=uuid.uuid4(), source=source, poll_date=poll_date or _now(), data=data)

    @classmethod
    def failed(
        cls,
        data_type: Type[T],
        as_of: datetime,
        error: str,
        *,
        source: str = "forex",
    ) -> "Snapshot[T]":
        """Error snapshot: zero rates in the default base with ``error`` set."""

        data = data_type(as_of=parse_datetime(as_of), base=Currency.default(), rates=RatesData())
        return cls(id=uuid.uuid4(), source=source, poll_date=_now(), data=data, error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "source": self.source,
            "poll_date": format_datetime(self.poll_date),
            "data": self.data.to_dict(),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], data_type: Type[T]) -> "Snapshot[T]":
        if not isinstance(payload, Mapping):
            raise ValueError(f"snapshot payload must be an object, got {type(payload).__name__}")
        try:
            return cls(
                id=uuid.UUID(str(payload["id"])),
                source=str(payload["source"]),
                poll_date=parse_datetime(payload["poll_date"]),
                data=data_type.from_dict(payload["data"]),
                error=payload.get("error"),
            )
        except KeyError as exc:
            raise ValueError(f"snapshot payload is missing {exc.args[0]!r}") from exc


@dataclass
class RatesList(Generic[T]):
    """One page of snapshots."""

    has_prev: bool
    items: list[Snapshot[T]] = field(default_factory=list)
    has_next: bool = False


class Order(str, Enum):
    ASC = "asc"
    DESC = "desc"


def paginate(items: Sequence[Any], page: int, size: int) -> RatesList:
    """Slice an already ordered sequence into a 1-based page.

    Pages below 1 behave like page 1.
    """

    if size <= 0:
        raise ValueError("page size must be positive")
    start = min((max(page, 1) - 1) * size, len(items))
    end = min(start + size, len(items))
    return RatesList(has_prev=start > 0, items=list(items[start:end]), has_next=end < len(items))


@dataclass(frozen=True, slots=True)
class ConversionResponse:
    """Result of converting one amount, with the target pre-formatted."""

    date: datetime
    from_: Money
    to: Money
    code: str
    symbol: str

    @classmethod
    def build(cls, as_of: datetime, from_: Money, to: Money) -> "ConversionResponse":
        return cls(date=as_of, from_=from_, to=to, code=to.format(False), symbol=to.format(True))
