"""
Period Statement Aggregator

Walks the revenue events of a period, prices each one and builds the
statement totals, line items and territory/DSP breakdowns.
"""

import logging
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal

from .calculators import (
    CurrencyNormalizer,
    FeeTierCalculator,
    MechanicalRoyaltyCalculator,
    RateResolver,
    RecoupmentWaterfall,
)
from .errors import StatementTooLargeError
from .models import (
    CalculationBreakdown,
    DspBreakdown,
    LineItem,
    PeriodStatement,
    RoyaltyCalculation,
    StatementStatus,
    StreamData,
    TerritoryBreakdown,
)
from .repositories import RevenueEventRepository

logger = logging.getLogger(__name__)

PERFORMANCE_SHARE = Decimal('0.5')


class StatementAggregator:
    """Builds stream-level calculations and period statements."""

    def __init__(
        self,
        events: RevenueEventRepository,
        rate_resolver: RateResolver,
        currency: CurrencyNormalizer,
        fees: FeeTierCalculator,
        mechanical: MechanicalRoyaltyCalculator,
        waterfall: RecoupmentWaterfall,
        max_events: int = 100_000
    ):
        self.events = events
        self.rate_resolver = rate_resolver
        self.currency = currency
        self.fees = fees
        self.mechanical = mechanical
        self.waterfall = waterfall
        self.max_events = max_events

    def calculate_stream(self, stream: StreamData, tier: str = 'standard') -> RoyaltyCalculation:
        """
        Price one stream report.

        Gross is raw_revenue when the DSP reported it, otherwise
        streams × rate plus downloads at ten times the stream rate.
        """
        rate = self.rate_resolver.resolve(
            stream.dsp, stream.territory, stream.report_date, stream.is_user_centric
        )

        if stream.raw_revenue is not None:
            gross = stream.raw_revenue
        else:
            gross = Decimal(stream.streams) * rate.effective_rate
            if stream.downloads:
                download_rate = rate.effective_rate * self.rate_resolver.tables.download_rate_multiplier
                gross += Decimal(stream.downloads) * download_rate

        exchange_rate = self.currency.get_rate(
            stream.currency, self.currency.reference_currency, stream.report_date
        )
        gross_usd = gross * exchange_rate
        fees = self.fees.calculate(gross_usd, tier)

        return RoyaltyCalculation(
            gross_revenue=gross,
            currency=stream.currency,
            territory=stream.territory,
            dsp=stream.dsp,
            stream_count=stream.streams,
            downloads=stream.downloads,
            effective_rate=rate.effective_rate,
            exchange_rate=exchange_rate,
            fx_date=stream.report_date,
            usd_equivalent=gross_usd,
            platform_fee=fees.platform_fee,
            distribution_fee=fees.distribution_fee,
            net_revenue=fees.net_revenue,
            royalty_type=stream.royalty_type,
            breakdown=CalculationBreakdown(
                base_rate=rate.base_rate,
                territory_multiplier=rate.territory_multiplier,
                tier_bonus=rate.premium_multiplier - Decimal('1'),
                fee_deductions=fees.platform_fee + fees.distribution_fee,
                mechanical_share=Decimal(stream.streams) * self.mechanical.rate_for(stream.territory),
                performance_share=fees.net_revenue * PERFORMANCE_SHARE
            )
        )

    def calculate_period(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        release_id: str | None = None,
        tier: str = 'standard'
    ) -> PeriodStatement:
        """
        Build a draft statement for [start_date, end_date].

        Recoupment is previewed, not committed, so re-running over the same
        events and tables gives identical totals.
        """
        events = self.events.find(start_date, end_date, project_id=release_id, limit=self.max_events + 1)
        if len(events) > self.max_events:
            raise StatementTooLargeError(
                f"Period {start_date}..{end_date} for user {user_id} has more than "
                f"{self.max_events} revenue events"
            )

        line_items = []
        territories = defaultdict(lambda: {"streams": 0, "revenue": Decimal('0')})
        dsps = defaultdict(lambda: {"streams": 0, "revenue": Decimal('0'), "rates": []})

        gross = Decimal('0')
        platform_fees = Decimal('0')
        distribution_fees = Decimal('0')
        total_streams = 0

        for event in events:
            calc = self.calculate_stream(
                StreamData(
                    dsp=event.source,
                    territory=event.territory,
                    streams=1,
                    currency=event.currency,
                    report_date=event.occurred_at.date(),
                    release_id=event.project_id,
                    raw_revenue=event.amount
                ),
                tier
            )

            line_items.append(LineItem(
                event_id=event.id,
                dsp=event.source,
                territory=event.territory,
                streams=1,
                downloads=0,
                gross_revenue=event.amount,
                usd_equivalent=calc.usd_equivalent,
                effective_rate=calc.effective_rate,
                currency=event.currency,
                exchange_rate=calc.exchange_rate
            ))

            gross += calc.usd_equivalent
            platform_fees += calc.platform_fee
            distribution_fees += calc.distribution_fee
            total_streams += 1

            territory = territories[event.territory]
            territory["streams"] += 1
            territory["revenue"] += calc.usd_equivalent

            dsp = dsps[event.source]
            dsp["streams"] += 1
            dsp["revenue"] += calc.usd_equivalent
            dsp["rates"].append(calc.effective_rate)

        net = gross - platform_fees - distribution_fees
        recoupment = self.waterfall.deduction(user_id, net)

        logger.info(
            f"Calculated period {start_date}..{end_date} for user {user_id}: "
            f"{len(events)} events, gross {gross}, recoupment {recoupment}"
        )

        return PeriodStatement(
            id=str(uuid.uuid4()),
            user_id=user_id,
            period=f"{start_date.year}-{start_date.month:02d}",
            period_start=start_date,
            period_end=end_date,
            gross_revenue=gross,
            platform_fees=platform_fees,
            distribution_fees=distribution_fees,
            recoupment_deductions=recoupment,
            net_revenue=net,
            payable_amount=net - recoupment,
            currency=self.currency.reference_currency,
            usd_equivalent=gross,
            total_streams=total_streams,
            total_downloads=0,
            release_id=release_id,
            tier=tier,
            line_items=line_items,
            territory_breakdown=self._territory_breakdown(territories, gross),
            dsp_breakdown=self._dsp_breakdown(dsps),
            status=StatementStatus.DRAFT
        )

    def _territory_breakdown(self, territories: dict, gross: Decimal) -> list[TerritoryBreakdown]:
        return [
            TerritoryBreakdown(
                territory=name,
                streams=data["streams"],
                revenue=data["revenue"],
                percentage=data["revenue"] / gross * Decimal('100') if gross > 0 else Decimal('0')
            )
            for name, data in sorted(territories.items())
        ]

    def _dsp_breakdown(self, dsps: dict) -> list[DspBreakdown]:
        # Unweighted mean of event-level rates
        return [
            DspBreakdown(
                dsp=name,
                streams=data["streams"],
                revenue=data["revenue"],
                average_rate=sum(data["rates"], Decimal('0')) / len(data["rates"])
            )
            for name, data in sorted(dsps.items())
        ]
