from dataclasses import fields
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from pfm_forex.forex.currency import Currency
from pfm_forex.forex.entity import (
    ConversionResponse,
    HistoricalRates,
    Rates,
    RatesData,
    Snapshot,
    format_datetime,
    paginate,
    parse_datetime,
)
from pfm_forex.forex.mock import FIXTURE_AS_OF, FIXTURE_RATES
from pfm_forex.forex.money import Money


def test_rates_data_has_one_field_per_currency() -> None:
    assert len(fields(RatesData)) == len(Currency)
    assert all(value == Decimal("0") for _, value in RatesData().items())


def test_rates_data_is_indexed_by_currency() -> None:
    assert FIXTURE_RATES[Currency.IDR] == Decimal("16461")
    assert FIXTURE_RATES["XAU"] == Decimal("0.0003462")


def test_with_rates_patches_only_named_currencies() -> None:
    patched = FIXTURE_RATES.with_rates([Money(Currency.BTC, Decimal("0.00002"))])

    assert patched.btc == Decimal("0.00002")
    assert patched.idr == FIXTURE_RATES.idr
    assert FIXTURE_RATES.btc == Decimal("0.0000158")


def test_rates_data_from_dict_is_lenient() -> None:
    data = RatesData.from_dict({"USD": 1, "idr": "16461.5", "EUR": 0.95, "ZZZ": 3, "btc": None})

    assert data.usd == Decimal("1")
    assert data.idr == Decimal("16461.5")
    assert data.eur == Decimal("0.95")
    assert data.btc == Decimal("0")


def test_rates_data_from_dict_rejects_garbage_values() -> None:
    with pytest.raises(ValueError):
        RatesData.from_dict({"usd": "one"})


def test_datetime_helpers_use_utc_z_suffix() -> None:
    value = datetime(2025, 3, 4, 2, 0, tzinfo=timezone.utc)

    assert format_datetime(value) == "2025-03-04T02:00:00Z"
    assert parse_datetime("2025-03-04T02:00:00Z") == value
    assert parse_datetime("2025-03-04") == datetime(2025, 3, 4, tzinfo=timezone.utc)
    assert parse_datetime(datetime(2025, 3, 4, 2, 0)) == value


def test_snapshot_serialises_to_documented_shape() -> None:
    snapshot = Snapshot.new("mock", Rates(as_of=FIXTURE_AS_OF, base=Currency.USD, rates=FIXTURE_RATES))

    payload = snapshot.to_dict()

    assert set(payload) == {"id", "source", "poll_date", "data", "error"}
    assert payload["error"] is None
    assert payload["data"]["as_of"] == "2025-03-04T02:00:00Z"
    assert payload["data"]["base"] == "USD"
    assert payload["data"]["rates"]["idr"] == "16461"
    assert Snapshot.from_dict(payload, Rates) == snapshot


def test_snapshot_accepts_legacy_time_keys() -> None:
    latest = Snapshot.from_dict(
        {
            "id": "6f1c2b8e-5f0e-4a7e-9d3a-0d4c5f6e7a8b",
            "source": "legacy",
            "poll_date": "2024-01-02T03:04:05Z",
            "data": {"latest_update": "2024-01-02T03:00:00Z", "base": "USD", "rates": {"USD": 1}},
        },
        Rates,
    )
    historical = Snapshot.from_dict(
        {
            "id": "6f1c2b8e-5f0e-4a7e-9d3a-0d4c5f6e7a8b",
            "source": "legacy",
            "poll_date": "2024-01-02T03:04:05Z",
            "data": {"date": "2024-01-01T00:00:00Z", "base": "USD", "rates": {"USD": 1}},
            "error": None,
        },
        HistoricalRates,
    )

    assert latest.data.as_of == datetime(2024, 1, 2, 3, 0, tzinfo=timezone.utc)
    assert historical.data.date == date(2024, 1, 1)


def test_snapshot_from_dict_reports_missing_fields() -> None:
    with pytest.raises(ValueError, match="poll_date"):
        Snapshot.from_dict({"id": "6f1c2b8e-5f0e-4a7e-9d3a-0d4c5f6e7a8b", "source": "x"}, Rates)


@pytest.mark.parametrize("payload", ["just a string", [1, 2], 42, None])
def test_from_dict_rejects_non_object_payloads(payload) -> None:
    with pytest.raises(ValueError, match="must be an object"):
        Snapshot.from_dict(payload, Rates)
    with pytest.raises(ValueError, match="must be an object"):
        Rates.from_dict(payload)
    with pytest.raises(ValueError, match="must be an object"):
        RatesData.from_dict(payload)


def test_parse_datetime_rejects_non_text_values() -> None:
    with pytest.raises(TypeError):
        parse_datetime(12345)


def test_failed_snapshot_has_zero_rates_and_error_text() -> None:
    snapshot = Snapshot.failed(HistoricalRates, datetime(2024, 5, 6, tzinfo=timezone.utc), "boom")

    assert snapshot.is_error
    assert snapshot.error == "boom"
    assert snapshot.source == "forex"
    assert snapshot.data.base is Currency.USD
    assert snapshot.data.rates == RatesData()
    assert snapshot.data.date == date(2024, 5, 6)


def test_paginate_ten_items_in_pages_of_eight() -> None:
    items = list(range(10))

    first = paginate(items, 1, 8)
    second = paginate(items, 2, 8)
    third = paginate(items, 3, 8)

    assert (first.has_prev, len(first.items), first.has_next) == (False, 8, True)
    assert (second.has_prev, second.items, second.has_next) == (True, [8, 9], False)
    assert third.items == [] and third.has_next is False


def test_paginate_treats_page_zero_as_first_page() -> None:
    assert paginate(list(range(3)), 0, 2).items == [0, 1]


def test_paginate_empty_and_invalid_size() -> None:
    empty = paginate([], 1, 5)

    assert (empty.has_prev, empty.items, empty.has_next) == (False, [], False)
    with pytest.raises(ValueError):
        paginate([1], 1, 0)


def test_conversion_response_formats_target() -> None:
    response = ConversionResponse.build(
        FIXTURE_AS_OF, Money(Currency.USD, Decimal("1")), Money(Currency.IDR, Decimal("16461"))
    )

    assert response.code == "IDR 16.461"
    assert response.symbol == "Rp16.461"
    assert response.date == FIXTURE_AS_OF
