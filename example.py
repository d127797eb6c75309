import os
from datetime import date

from pfm_forex import Currency, Money, Order, PfmForex
from pfm_forex.forex.mock import StaticRateSource
from pfm_forex.sources.open_exchange import OpenExchangeRatesSource

print(PfmForex.__version__)  # 0.3.0

# Default Usage: file storage under PFM_DATA_PATH (~/pfm/pfm-data)
fx = PfmForex()

# Poll the latest snapshot (offline fixture here; swap for the HTTP source below)
fx.poll(StaticRateSource())

# Convert with the latest snapshot
response = fx.convert("USD 1,000", "IDR")
print(response.code, response.symbol)
# => IDR 16.461.000 Rp16.461.000

# Convert several amounts against one snapshot
for item in fx.batch_convert(["EUR 250", Money.of(Currency.GBP, "99.99")], Currency.USD):
    print(item.from_, "->", item.code)

# Latest rates re-expressed in EUR
print(fx.rates("EUR").data.rates[Currency.USD])

# Newest five latest snapshots
page = fx.latest_list(page=1, size=5, order=Order.DESC)
print(len(page.items), page.has_next)

# Backfill history from openexchangerates.org within the remaining monthly quota
api_key = os.getenv("PFM_OPEN_EXCHANGE_API_KEY")
if api_key:
    source = OpenExchangeRatesSource(api_key)
    result = fx.backfill(source, date(2024, 1, 1), date(2024, 1, 31), quota=source.status())
    print(result.total, result.stored, result.errored)

    # Historical conversion and a rebased time series
    print(fx.convert_historical("USD 100", "JPY", date(2024, 1, 15)).code)
    print(len(fx.timeseries(date(2024, 1, 1), date(2024, 1, 31), base="SGD")))

# Drop every latest snapshot except the newest
fx.clear_latest()
fx.close()
