# backend/currency_rates_client.py

"""
Currency Rates Client - Remote Reference Data Source

Fetches the latest exchange rates from the rates API and turns them into
ConversionUnit entries for the CURRENCY table.

Contract with the converter session:
- fetch_currency_rates() is an async generator yielding at most one
  ReferenceDataSuccess / ReferenceDataFailure
- fetch errors never escape the generator; they become a failure outcome
- no retries, no cancellation, timeout is the HTTP timeout only
"""

import asyncio
import logging
import math
import os
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import requests
from pydantic import ValidationError

from unit_catalog import (
    ConversionUnit,
    ReferenceDataFailure,
    ReferenceDataSuccess,
    currency_display_name,
)

logger = logging.getLogger(__name__)

DEFAULT_RATES_API_URL = "https://api.freecurrencyapi.com/"
DEFAULT_TIMEOUT_SECONDS = 10.0
LATEST_RATES_PATH = "v1/latest"

# ==================== ERROR CLASSES ====================

class ReferenceDataFetchFailed(Exception):
    """Rates could not be fetched or parsed"""
    def __init__(self, message: str, error_code: str = "REFERENCE_DATA_FETCH_FAILED"):
        self.error_code = error_code
        self.message = message
        super().__init__(self.message)


# ==================== CLIENT ====================

class CurrencyRatesClient:
    """
    HTTP client for the latest-rates endpoint.

    Keeps the last successful result in memory so a later failure can be
    reported together with stale data.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_RATES_API_URL,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.last_good_units: Optional[List[ConversionUnit]] = None

    @classmethod
    def from_env(cls) -> "CurrencyRatesClient":
        """Build a client from RATES_API_URL / RATES_API_KEY / RATES_TIMEOUT_SECONDS"""
        timeout_raw = os.environ.get("RATES_TIMEOUT_SECONDS", "")
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_SECONDS
        except ValueError:
            logger.warning(f"Invalid RATES_TIMEOUT_SECONDS '{timeout_raw}', using {DEFAULT_TIMEOUT_SECONDS}")
            timeout = DEFAULT_TIMEOUT_SECONDS

        return cls(
            base_url=os.environ.get("RATES_API_URL", DEFAULT_RATES_API_URL),
            api_key=os.environ.get("RATES_API_KEY"),
            timeout=timeout
        )

    @staticmethod
    def _rate_factor(rate: Any) -> Optional[float]:
        """Finite positive float for a rate entry, or None if unusable"""
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            return None
        try:
            factor = float(rate)
        except OverflowError:
            return None
        if not math.isfinite(factor) or factor <= 0:
            return None
        return factor

    def parse_rates(self, payload: Any) -> List[ConversionUnit]:
        """
        Convert a `{"data": {CODE: rate}}` payload into units.

        Entries with a non-numeric or non-positive rate are skipped.

        Raises:
            ReferenceDataFetchFailed: If the payload has no rates mapping
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), dict):
            raise ReferenceDataFetchFailed(
                "Unexpected rates response: missing 'data' mapping",
                error_code="MALFORMED_RATES_RESPONSE"
            )

        rates: Dict[str, Any] = payload["data"]
        units: List[ConversionUnit] = []
        for code, rate in rates.items():
            factor = self._rate_factor(rate)
            if factor is None:
                logger.warning(f"Skipping currency '{code}' with invalid rate {rate!r}")
                continue
            units.append(ConversionUnit(
                code=code,
                display_name=currency_display_name(str(code)),
                factor=factor
            ))
        return units

    def fetch_latest_rates(self) -> List[ConversionUnit]:
        """
        Blocking fetch of the latest rates.

        Raises:
            ReferenceDataFetchFailed: On missing API key, network error,
                HTTP error status or malformed body
        """
        if not self.api_key:
            raise ReferenceDataFetchFailed(
                "Currency rates API key is not configured",
                error_code="MISSING_API_KEY"
            )

        url = f"{self.base_url}{LATEST_RATES_PATH}"
        try:
            response = self.session.get(url, params={"apikey": self.api_key}, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            raise ReferenceDataFetchFailed(
                f"Rates request failed with HTTP {status_code}",
                error_code="HTTP_ERROR"
            ) from e
        except requests.exceptions.RequestException as e:
            raise ReferenceDataFetchFailed(
                f"Could not reach rates service: {e}",
                error_code="NETWORK_ERROR"
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ReferenceDataFetchFailed(
                "Rates response is not valid JSON",
                error_code="MALFORMED_RATES_RESPONSE"
            ) from e

        try:
            return self.parse_rates(payload)
        except ValidationError as e:
            raise ReferenceDataFetchFailed(
                f"Rates response contains an invalid entry: {e.error_count()} error(s)",
                error_code="MALFORMED_RATES_RESPONSE"
            ) from e

    async def fetch_currency_rates(self) -> AsyncIterator[Union[ReferenceDataSuccess, ReferenceDataFailure]]:
        """Yield exactly one outcome for a single fetch attempt"""
        try:
            units = await asyncio.to_thread(self.fetch_latest_rates)
        except ReferenceDataFetchFailed as e:
            logger.warning(f"Currency rates fetch failed [{e.error_code}]: {e.message}")
            yield ReferenceDataFailure(message=e.message, partial_units=self.last_good_units)
            return

        self.last_good_units = units
        logger.info(f"Fetched {len(units)} currency rates")
        yield ReferenceDataSuccess(units=units)
