"""
Unit Tests for Currency Normalizer
"""

import logging
from datetime import date
from decimal import Decimal

import pytest

from royalty_engine.calculators.currency import CurrencyNormalizer
from royalty_engine.models import ExchangeRate
from royalty_engine.repositories import InMemoryExchangeRateRepository


class TestCurrencyNormalizer:

    @pytest.fixture
    def normalizer(self):
        rates = InMemoryExchangeRateRepository([
            ExchangeRate("EUR", "USD", Decimal("1.10"), date(2024, 1, 1)),
            ExchangeRate("EUR", "USD", Decimal("1.20"), date(2024, 2, 1)),
            ExchangeRate("EUR", "USD", Decimal("1.30"), date(2024, 3, 1)),
            ExchangeRate("GBP", "USD", Decimal("1.25"), date(2024, 1, 1)),
        ])
        return CurrencyNormalizer(rates)

    @pytest.mark.parametrize("currency", ["USD", "EUR", "JPY", "XYZ"])
    def test_identity_pair_returns_amount(self, normalizer, currency):
        amount = Decimal("123.45")
        assert normalizer.normalize(amount, currency, currency, date(1999, 1, 1)) == amount
        assert normalizer.missing_rate_lookups == 0

    def test_latest_rate_on_or_before_date(self, normalizer):
        assert normalizer.get_rate("EUR", "USD", date(2024, 2, 15)) == Decimal("1.20")

    def test_rate_on_exact_date(self, normalizer):
        assert normalizer.get_rate("EUR", "USD", date(2024, 3, 1)) == Decimal("1.30")

    def test_normalize_multiplies_by_rate(self, normalizer):
        """£100 × 1.25 = $125"""
        assert normalizer.normalize(Decimal("100"), "GBP", "USD", date(2024, 6, 1)) == Decimal("125.00")

    def test_defaults_to_reference_currency(self, normalizer):
        assert normalizer.normalize(Decimal("10"), "EUR", None, date(2024, 1, 10)) == Decimal("11.00")

    def test_missing_rate_defaults_to_one_and_warns(self, normalizer, caplog):
        with caplog.at_level(logging.WARNING):
            rate = normalizer.get_rate("JPY", "USD", date(2024, 1, 1))

        assert rate == Decimal("1")
        assert normalizer.missing_rate_lookups == 1
        records = [r for r in caplog.records if getattr(r, "event", None) == "fx_rate_missing"]
        assert len(records) == 1
        assert records[0].from_currency == "JPY"

    def test_rate_only_after_date_counts_as_missing(self, normalizer):
        assert normalizer.get_rate("EUR", "USD", date(2023, 12, 31)) == Decimal("1")
        assert normalizer.missing_rate_lookups == 1

    def test_no_repository_always_falls_back(self):
        normalizer = CurrencyNormalizer()
        assert normalizer.normalize(Decimal("50"), "EUR", "USD", date(2024, 1, 1)) == Decimal("50")
