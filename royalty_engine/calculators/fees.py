"""
Fee Tier Calculator

Applies a subscription tier's platform and distribution fees to gross
revenue. All use Decimal; money is rounded with ROUND_HALF_UP only when
presented.
"""

from decimal import ROUND_HALF_UP, Decimal

from ..config import DEFAULT_RATE_TABLES, FeeTier, RateTables
from ..models import FeeBreakdown


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


class FeeTierCalculator:
    """Calculates tier fees on gross revenue."""

    BASELINE_TIER = 'free'

    def __init__(self, tables: RateTables = DEFAULT_RATE_TABLES):
        self.tables = tables

    def tier_info(self, tier: str) -> FeeTier:
        try:
            return self.tables.fee_tiers[tier]
        except KeyError:
            valid = ", ".join(self.tables.fee_tiers)
            raise ValueError(f"Unknown fee tier: {tier}. Must be one of: {valid}") from None

    def tiers(self) -> list[FeeTier]:
        """All tiers, highest total fee first."""
        return sorted(self.tables.fee_tiers.values(), key=lambda t: t.total_fee, reverse=True)

    def calculate(self, gross_revenue: Decimal, tier: str) -> FeeBreakdown:
        """
        platform_fee     = gross × tier platform %
        distribution_fee = gross × tier distribution %
        net              = gross - both fees

        savings compares net against the free tier and is only used for
        upsell messaging.
        """
        fees = self.tier_info(tier)
        platform_fee = gross_revenue * fees.platform_fee
        distribution_fee = gross_revenue * fees.distribution_fee
        net_revenue = gross_revenue - platform_fee - distribution_fee

        return FeeBreakdown(
            platform_fee=platform_fee,
            distribution_fee=distribution_fee,
            net_revenue=net_revenue,
            savings=net_revenue - self._baseline_net(gross_revenue),
        )

    def _baseline_net(self, gross_revenue: Decimal) -> Decimal:
        baseline = self.tables.fee_tiers.get(self.BASELINE_TIER)
        if baseline is None:
            return gross_revenue
        return gross_revenue - gross_revenue * baseline.platform_fee - gross_revenue * baseline.distribution_fee
