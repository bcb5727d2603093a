"""
Foreign exchange service for currency conversion.
"""
from datetime import date
from decimal import Decimal
import logging
import httpx
from tripledger.core.config import settings
from tripledger.core.money import normalize_currency, quantize_rate
from tripledger.models.exchange_rate import ExchangeRate
from tripledger.models.trip import Trip
from tripledger.repositories.ledger import LedgerRepository
from tripledger.services.exceptions import FxRateUnavailableError

logger = logging.getLogger(__name__)

FX_API_URL = "https://v6.exchangerate-api.com/v6"


def get_exchange_rate(repo: LedgerRepository, trip: Trip, target_date: date, currency: str) -> Decimal:
    """
    Rate for one unit of `currency` expressed in the trip's base currency.

    Looks in the per-trip cache first, then fetches and caches. The cached
    row is added to the session but not committed.
    """
    base_currency = normalize_currency(trip.base_currency)
    currency = normalize_currency(currency)
    if currency == base_currency:
        return Decimal(1)

    cached = repo.get_cached_rate(trip.id, target_date, currency)
    if cached:
        return Decimal(cached.rate_to_base)

    rate = quantize_rate(fetch_exchange_rate_from_api(target_date, currency, base_currency))
    repo.add(ExchangeRate(
        trip_id=trip.id,
        date=target_date,
        currency=currency,
        rate_to_base=rate,
    ))
    return rate


def fetch_exchange_rate_from_api(target_date: date, currency: str, base_currency: str) -> Decimal:
    """
    Fetch a rate from ExchangeRate-API v6.

    Uses /latest/{currency} for today and /history/{currency}/{y}/{m}/{d}
    for other dates. Raises FxRateUnavailableError on any failure.
    """
    if not settings.FX_API_KEY:
        logger.error("FX_API_KEY is not configured")
        raise FxRateUnavailableError(
            f"No exchange rate for {currency}; provide fxRate or configure FX_API_KEY"
        )

    if target_date == date.today():
        api_url = f"{FX_API_URL}/{settings.FX_API_KEY}/latest/{currency}"
    else:
        api_url = (
            f"{FX_API_URL}/{settings.FX_API_KEY}/history/{currency}/"
            f"{target_date.year}/{target_date.month}/{target_date.day}"
        )
    logger.info(f"Fetching exchange rate {currency}->{base_currency} for {target_date}")

    try:
        response = httpx.get(api_url, timeout=settings.FX_API_TIMEOUT)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"HTTP error with ExchangeRate-API: {e.response.status_code}")
        raise FxRateUnavailableError(f"ExchangeRate-API HTTP error: {e.response.status_code}") from e
    except httpx.HTTPError as e:
        logger.error(f"Network error with ExchangeRate-API: {e}")
        raise FxRateUnavailableError(f"ExchangeRate-API network error: {e}") from e

    if settings.DEBUG:
        logger.debug(f"ExchangeRate-API response: {data}")

    if data.get("result") != "success":
        error_type = data.get("error-type", "Unknown error")
        logger.error(f"ExchangeRate-API returned error: {error_type}")
        raise FxRateUnavailableError(f"ExchangeRate-API error: {error_type}")

    # conversion_rates is keyed by target currency: 1 {currency} = N {target}
    base_rate = data.get("conversion_rates", {}).get(base_currency)
    if base_rate is None:
        raise FxRateUnavailableError(f"{base_currency} rate not available in API response")

    rate = Decimal(str(base_rate))
    if rate <= 0:
        raise FxRateUnavailableError(f"Invalid exchange rate: {rate}")
    return rate
