"""
Exchange rates for converting panel prices into a channel's currency.

Lookup order: cached rate (5 minutes) -> primary API -> fixed-rate table
-> secondary API. When all of them fail the payment cannot be priced and
an UpstreamError is raised.
"""
import threading
import time
from typing import Callable, Dict, Optional, Tuple

import httpx

from ..config import settings
from ..exceptions import UpstreamError
from ..logging_config import get_logger

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; StripePayment/1.0)"


class ExchangeService:
    """Currency rate lookup with a per-process TTL cache."""

    def __init__(
        self,
        primary_url: str = None,
        secondary_url: str = None,
        fixed_rates: Optional[Dict[str, float]] = None,
        cache_ttl: int = None,
        timeout: float = None,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.primary_url = primary_url or settings.FX_PRIMARY_URL
        self.secondary_url = secondary_url or settings.FX_SECONDARY_URL
        self.fixed_rates = {
            k.lower(): v for k, v in (settings.FX_FIXED_RATES if fixed_rates is None else fixed_rates).items()
        }
        self.cache_ttl = settings.FX_CACHE_TTL_SECONDS if cache_ttl is None else cache_ttl
        self.timeout = timeout or settings.FX_TIMEOUT_SECONDS
        self._http_client = http_client
        self._clock = clock
        self._cache: Dict[Tuple[str, str], Tuple[float, float]] = {}
        self._lock = threading.Lock()

    def get_rate(self, from_currency: str, to_currency: str) -> float:
        base = from_currency.lower()
        quote = to_currency.lower()
        if base == quote:
            return 1.0

        cached = self._cached(base, quote)
        if cached is not None:
            return cached

        rate = self._fetch_primary(base, quote)
        if rate is not None:
            self._store(base, quote, rate)
            return rate

        rate = self.fixed_rates.get(f"{base}_{quote}")
        if rate:
            logger.info("fx_fixed_rate_used", base=base, quote=quote, rate=rate)
            return float(rate)

        rate = self._fetch_secondary(base, quote)
        if rate is not None:
            self._store(base, quote, rate)
            return rate

        logger.error("fx_rate_unavailable", base=base, quote=quote)
        raise UpstreamError("Currency conversion has timed out, please try again later")

    def clear_cache(self):
        with self._lock:
            self._cache.clear()

    # ---- cache ----
    def _cached(self, base: str, quote: str) -> Optional[float]:
        with self._lock:
            entry = self._cache.get((base, quote))
            if entry is None:
                return None
            rate, expires_at = entry
            if self._clock() >= expires_at:
                del self._cache[(base, quote)]
                return None
            return rate

    def _store(self, base: str, quote: str, rate: float):
        with self._lock:
            self._cache[(base, quote)] = (rate, self._clock() + self.cache_ttl)

    # ---- sources ----
    def _get_json(self, url: str) -> Optional[dict]:
        headers = {"User-Agent": USER_AGENT}
        try:
            if self._http_client is not None:
                resp = self._http_client.get(url, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    resp = client.get(url, headers=headers)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("fx_request_failed", url=url, error=str(e), error_type=type(e).__name__)
            return None

    def _fetch_primary(self, base: str, quote: str) -> Optional[float]:
        data = self._get_json(self.primary_url.format(base=base))
        try:
            return _positive(data[base][quote])
        except (KeyError, TypeError, ValueError):
            if data is not None:
                logger.warning("fx_rate_missing", source="primary", base=base, quote=quote)
            return None

    def _fetch_secondary(self, base: str, quote: str) -> Optional[float]:
        data = self._get_json(self.secondary_url.format(base=base.upper()))
        try:
            return _positive(data["rates"][quote.upper()])
        except (KeyError, TypeError, ValueError):
            if data is not None:
                logger.warning("fx_rate_missing", source="secondary", base=base, quote=quote)
            return None


def _positive(value) -> Optional[float]:
    rate = float(value)
    return rate if rate > 0 else None


_default_service: Optional[ExchangeService] = None


def get_exchange_service() -> ExchangeService:
    """Process-wide service so the rate cache is shared between requests."""
    global _default_service
    if _default_service is None:
        _default_service = ExchangeService()
    return _default_service
