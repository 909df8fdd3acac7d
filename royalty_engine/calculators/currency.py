"""
Currency Normalizer

Converts source-currency amounts to the reference currency as of a date.
"""

import logging
import threading
from datetime import date
from decimal import Decimal

from ..repositories import ExchangeRateRepository

logger = logging.getLogger(__name__)


class CurrencyNormalizer:
    """Looks up the latest exchange rate on or before a date."""

    def __init__(self, exchange_rates: ExchangeRateRepository | None = None, reference_currency: str = "USD"):
        self.exchange_rates = exchange_rates
        self.reference_currency = reference_currency
        self.missing_rate_lookups = 0
        self._lock = threading.Lock()

    def get_rate(self, from_currency: str, to_currency: str, on_date: date) -> Decimal:
        """
        Return the conversion rate from_currency -> to_currency.

        Identity pairs are 1. When no rate exists on or before on_date the
        rate also defaults to 1; that fallback is logged and counted so
        stale rate data shows up in monitoring.
        """
        if from_currency == to_currency:
            return Decimal("1")

        rows = []
        if self.exchange_rates is not None:
            rows = self.exchange_rates.find(from_currency, to_currency, on_date)

        if not rows:
            with self._lock:
                self.missing_rate_lookups += 1
            logger.warning(
                f"No exchange rate {from_currency}->{to_currency} on or before {on_date}, using 1.0",
                extra={
                    "event": "fx_rate_missing",
                    "from_currency": from_currency,
                    "to_currency": to_currency,
                    "rate_date": on_date.isoformat(),
                },
            )
            return Decimal("1")

        return max(rows, key=lambda r: r.rate_date).rate

    def normalize(self, amount: Decimal, from_currency: str, to_currency: str | None, on_date: date) -> Decimal:
        target = to_currency or self.reference_currency
        return amount * self.get_rate(from_currency, target, on_date)
