"""
Unit Tests for Mechanical, Performance and Sync calculators
"""

from decimal import Decimal

import pytest

from royalty_engine.calculators.publishing import (
    MechanicalRoyaltyCalculator,
    PerformanceRoyaltyCalculator,
    SyncRoyaltyCalculator,
)


class TestMechanicalRoyalty:

    @pytest.fixture
    def calculator(self):
        return MechanicalRoyaltyCalculator()

    def test_us_statutory_rate(self, calculator):
        """1,000 streams × 0.00091 = 0.91, split 50/50"""
        result = calculator.calculate("USRC12400001", "US", 1000)

        assert result.mechanical_rate == Decimal("0.00091")
        assert result.total_mechanical == Decimal("0.91")
        assert result.publisher_share == Decimal("0.455")
        assert result.writer_share == Decimal("0.455")

    def test_us_carries_hfa_and_mri_rates(self, calculator):
        result = calculator.calculate("USRC12400001", "US", 1)

        assert result.hfa_rate == Decimal("0.00091")
        assert result.mri_rate == Decimal("0.00091")

    def test_non_us_has_no_hfa_rate(self, calculator):
        result = calculator.calculate("GBRC12400001", "GB", 1000)

        assert result.total_mechanical == Decimal("0.85")
        assert result.hfa_rate is None
        assert result.mri_rate is None

    def test_unknown_territory_uses_negotiated_default(self, calculator):
        result = calculator.calculate("X", "ZZ", 1000)
        assert result.total_mechanical == Decimal("0.65")

    def test_custom_publisher_percentage(self, calculator):
        """0.91 split 75/25"""
        result = calculator.calculate("X", "US", 1000, Decimal("0.75"))

        assert result.publisher_share == Decimal("0.6825")
        assert result.writer_share == Decimal("0.2275")
        assert result.publisher_share + result.writer_share == result.total_mechanical


class TestPerformanceRoyalty:

    @pytest.fixture
    def calculator(self):
        return PerformanceRoyaltyCalculator()

    def test_ascap_even_split(self, calculator):
        result = calculator.calculate("X", "ASCAP", "digital", Decimal("100"))

        assert result.publisher_share == Decimal("50")
        assert result.writer_share == Decimal("50")
        assert result.total_performance == Decimal("100")

    def test_gema_sixty_forty(self, calculator):
        result = calculator.calculate("X", "GEMA", "broadcast", Decimal("100"))

        assert result.publisher_share == Decimal("60")
        assert result.writer_share == Decimal("40")

    def test_unknown_pro_uses_default(self, calculator):
        result = calculator.calculate("X", "LOCALPRO", "live", Decimal("10"))
        assert result.publisher_share == Decimal("5")

    def test_invalid_performance_type(self, calculator):
        with pytest.raises(ValueError, match="performance_type"):
            calculator.calculate("X", "BMI", "karaoke", Decimal("10"))


class TestSyncRoyalty:

    @pytest.fixture
    def calculator(self):
        return SyncRoyaltyCalculator()

    def test_non_exclusive_fees_unchanged(self, calculator):
        result = calculator.calculate("L-1", "tv", Decimal("1000"), Decimal("500"), "US")

        assert result.master_fee == Decimal("1000")
        assert result.publishing_fee == Decimal("500")
        assert result.total_sync_fee == Decimal("1500")
        assert result.term_months == 12

    def test_exclusive_multiplies_both_fees(self, calculator):
        result = calculator.calculate(
            "L-2", "film", Decimal("1000"), Decimal("500"), "WORLD", term_months=24, exclusivity=True
        )

        assert result.master_fee == Decimal("1500")
        assert result.publishing_fee == Decimal("750")
        assert result.total_sync_fee == Decimal("2250")
        assert result.territory == "WORLD"
        assert result.term_months == 24
        assert result.exclusivity is True

    def test_invalid_licensee_type(self, calculator):
        with pytest.raises(ValueError, match="licensee_type"):
            calculator.calculate("L-3", "podcast", Decimal("1"), Decimal("1"), "US")
