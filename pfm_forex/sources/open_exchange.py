"""Rate source backed by the openexchangerates.org HTTP API."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, TypeVar

import requests
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from pfm_forex.forex.currency import Currency
from pfm_forex.forex.entity import HistoricalRates, Rates, RatesData, Snapshot
from pfm_forex.forex.errors import UpstreamError
from pfm_forex.forex.interface import RateSource
from pfm_forex.utils.logger import get_logger

LOGGER = get_logger(__name__)

BASE_URL = "https://openexchangerates.org/api"
SOURCE_NAME = "openexchangerates.org"

_R = TypeVar("_R")


class OpenExchangeRatesSource(RateSource):
    """Fetch latest and end-of-day rates for every supported currency.

    Connection errors and timeouts are retried with exponential backoff;
    anything still failing surfaces as :class:`UpstreamError`.
    """

    name = SOURCE_NAME

    def __init__(
        self,
        api_key: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 10,
        max_attempts: int = 3,
        backoff: float = 1,
        base_url: str = BASE_URL,
    ) -> None:
        if not api_key:
            raise ValueError("an openexchangerates.org app id is required")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.base_url = base_url.rstrip("/")

    def _with_retry(self, func: Callable[[], _R]) -> _R:
        @retry(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff, min=self.backoff, max=10),
            retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
            before_sleep=before_sleep_log(LOGGER, logging.WARNING),
            reraise=True,
        )
        def _inner() -> _R:
            return func()

        return _inner()

    def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self.base_url}/{path}"
        query = {"app_id": self.api_key, **params}
        try:
            response = self._with_retry(lambda: self.session.get(url, params=query, timeout=self.timeout))
        except requests.RequestException as exc:
            raise UpstreamError(f"request to {url} failed") from exc

        if response.status_code >= 400:
            raise UpstreamError(f"{url} answered {response.status_code}: {_describe_error(response)}")
        try:
            payload = response.json(parse_float=Decimal)
        except ValueError as exc:
            raise UpstreamError(f"{url} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise UpstreamError(f"{url} returned an unexpected payload")
        return payload

    @staticmethod
    def _symbols() -> str:
        return ",".join(currency.code for currency in Currency)

    def _parse(self, payload: dict[str, Any], base: Currency) -> tuple[datetime, RatesData]:
        try:
            as_of = datetime.fromtimestamp(int(payload["timestamp"]), tz=timezone.utc)
            rates = RatesData.from_dict(payload["rates"])
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamError("malformed rates payload") from exc
        reported = payload.get("base", base.code)
        if reported != base.code:
            raise UpstreamError(f"requested base {base.code} but provider answered {reported}")
        return as_of, rates

    def rates(self, base: Currency) -> Snapshot[Rates]:
        payload = self._get("latest.json", {"base": base.code, "symbols": self._symbols()})
        as_of, rates = self._parse(payload, base)
        LOGGER.info("Fetched latest rates as of %s", as_of)
        return Snapshot.new(self.name, Rates(as_of=as_of, base=base, rates=rates))

    def historical_rates(self, day: date, base: Currency) -> Snapshot[HistoricalRates]:
        payload = self._get(
            f"historical/{day.isoformat()}.json", {"base": base.code, "symbols": self._symbols()}
        )
        as_of, rates = self._parse(payload, base)
        LOGGER.info("Fetched historical rates for %s", day)
        return Snapshot.new(self.name, HistoricalRates(as_of=as_of, base=base, rates=rates))

    def status(self) -> int:
        """Return how many requests remain in the current billing period."""

        payload = self._get("usage.json", {})
        try:
            return int(payload["data"]["usage"]["requests_remaining"])
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamError("malformed usage payload") from exc


def _describe_error(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason or "no details"
    if isinstance(body, dict):
        return str(body.get("description") or body.get("message") or body)
    return str(body)


__all__ = ["OpenExchangeRatesSource", "BASE_URL", "SOURCE_NAME"]
