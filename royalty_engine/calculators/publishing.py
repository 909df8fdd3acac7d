"""
Publishing-side royalty calculators.

Mechanical, performance and sync royalties are independent pure
calculations with no shared state.
"""

from decimal import Decimal

from ..config import DEFAULT_RATE_TABLES, RateTables
from ..models import MechanicalRoyalty, PerformanceRoyalty, SyncRoyalty

PERFORMANCE_TYPES = ('broadcast', 'digital', 'live', 'background')
LICENSEE_TYPES = ('film', 'tv', 'commercial', 'game', 'trailer', 'other')


class MechanicalRoyaltyCalculator:

    def __init__(self, tables: RateTables = DEFAULT_RATE_TABLES):
        self.tables = tables

    def rate_for(self, territory: str) -> Decimal:
        rates = self.tables.mechanical_rates
        return rates.get(territory, rates['default']).rate

    def calculate(
        self,
        isrc_code: str,
        territory: str,
        streams: int,
        publisher_percentage: Decimal = Decimal('0.5')
    ) -> MechanicalRoyalty:
        """total = streams × territory mechanical rate, split publisher/writer."""
        rate = self.rate_for(territory)
        total = Decimal(streams) * rate
        publisher_share = total * publisher_percentage
        is_us = territory == 'US'

        return MechanicalRoyalty(
            isrc_code=isrc_code,
            territory_code=territory,
            mechanical_rate=rate,
            publisher_share=publisher_share,
            writer_share=total - publisher_share,
            total_mechanical=total,
            hfa_rate=self.tables.us_hfa_rate if is_us else None,
            mri_rate=self.tables.us_mri_rate if is_us else None
        )


class PerformanceRoyaltyCalculator:

    def __init__(self, tables: RateTables = DEFAULT_RATE_TABLES):
        self.tables = tables

    def calculate(
        self,
        isrc_code: str,
        pro: str,
        performance_type: str,
        total_revenue: Decimal
    ) -> PerformanceRoyalty:
        """Split pre-computed performance revenue by the PRO's publisher/writer ratio."""
        if performance_type not in PERFORMANCE_TYPES:
            raise ValueError(
                f"Invalid performance_type: {performance_type}. Must be one of: {', '.join(PERFORMANCE_TYPES)}"
            )
        splits = self.tables.performance_splits
        split = splits.get(pro, splits['default'])

        return PerformanceRoyalty(
            isrc_code=isrc_code,
            pro=pro,
            performance_type=performance_type,
            publisher_share=total_revenue * split.publisher_share,
            writer_share=total_revenue * split.writer_share,
            total_performance=total_revenue
        )


class SyncRoyaltyCalculator:

    def __init__(self, tables: RateTables = DEFAULT_RATE_TABLES):
        self.tables = tables

    def calculate(
        self,
        license_id: str,
        licensee_type: str,
        master_fee: Decimal,
        publishing_fee: Decimal,
        territory: str,
        term_months: int = 12,
        exclusivity: bool = False
    ) -> SyncRoyalty:
        """Exclusive licenses pay both fees at the exclusivity multiplier."""
        if licensee_type not in LICENSEE_TYPES:
            raise ValueError(
                f"Invalid licensee_type: {licensee_type}. Must be one of: {', '.join(LICENSEE_TYPES)}"
            )
        multiplier = self.tables.exclusivity_multiplier if exclusivity else Decimal('1')
        master = master_fee * multiplier
        publishing = publishing_fee * multiplier

        return SyncRoyalty(
            license_id=license_id,
            licensee_type=licensee_type,
            master_fee=master,
            publishing_fee=publishing,
            total_sync_fee=master + publishing,
            territory=territory,
            term_months=term_months,
            exclusivity=exclusivity
        )
