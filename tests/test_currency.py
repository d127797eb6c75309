from dataclasses import fields

import pytest

from pfm_forex.forex.currency import CURRENCY_INFO, Currency
from pfm_forex.forex.entity import RatesData
from pfm_forex.forex.errors import InputError


def test_currency_members_follow_declared_order() -> None:
    codes = [currency.code for currency in Currency]

    assert len(codes) == 28
    assert codes[:3] == ["USD", "CAD", "EUR"]
    assert codes[-5:] == ["BTC", "ETH", "SOL", "XRP", "ADA"]


def test_currency_ordering_uses_declaration_not_alphabet() -> None:
    assert Currency.USD < Currency.ADA
    assert Currency.IDR > Currency.EUR
    assert Currency.XAU <= Currency.XAU
    assert sorted([Currency.ADA, Currency.IDR, Currency.USD]) == [
        Currency.USD,
        Currency.IDR,
        Currency.ADA,
    ]


@pytest.mark.parametrize("code", ["USD", "IDR", "XAU", "BTC", "ADA"])
def test_parse_accepts_exact_codes(code: str) -> None:
    assert Currency.parse(code).code == code


@pytest.mark.parametrize("currency", list(Currency), ids=lambda c: c.code)
def test_parse_round_trips_every_code(currency: Currency) -> None:
    assert Currency.parse(currency.code) is currency


@pytest.mark.parametrize("code", ["usd", "Usd", "XYZ", "", " USD"])
def test_parse_is_case_sensitive_and_rejects_unknown(code: str) -> None:
    with pytest.raises(InputError):
        Currency.parse(code)


def test_parse_rejects_non_strings_as_value_error() -> None:
    with pytest.raises(ValueError):
        Currency.parse(840)


def test_every_currency_has_display_metadata() -> None:
    assert set(CURRENCY_INFO) == set(Currency)
    assert Currency.USD.symbol == "$"
    assert Currency.IDR.symbol == "Rp"
    assert Currency.XAU.symbol == "XAU"
    assert Currency.BTC.symbol == "₿"


def test_grouping_conventions() -> None:
    dot_grouped = {c for c in Currency if not c.uses_comma_grouping}

    assert dot_grouped == {Currency.IDR, Currency.RUB, Currency.SAR, Currency.AED, Currency.KWD}


def test_field_names_line_up_with_rates_data() -> None:
    assert [item.name for item in fields(RatesData)] == [c.field_name for c in Currency]


def test_default_currency_is_usd() -> None:
    assert Currency.default() is Currency.USD
    assert str(Currency.EUR) == "EUR"
