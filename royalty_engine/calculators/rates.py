"""
Rate Resolver

Produces the effective per-stream rate for a DSP, territory and date.
Unknown DSPs and territories fall back to the table defaults; missing
rate data must never block revenue recognition.
"""

import logging
from datetime import date
from decimal import Decimal

from ..config import DEFAULT_RATE_TABLES, RateTables
from ..models import DspRate, ResolvedRate, dsp_slug
from ..repositories import DspRateRepository

logger = logging.getLogger(__name__)

GLOBAL_TERRITORY = "GLOBAL"


class RateResolver:
    """Resolves effective per-stream rates."""

    def __init__(self, tables: RateTables = DEFAULT_RATE_TABLES, dsp_rates: DspRateRepository | None = None):
        self.tables = tables
        self.dsp_rates = dsp_rates

    def resolve(self, dsp: str, territory: str, report_date: date, is_user_centric: bool = False) -> ResolvedRate:
        """
        effective = base × territory multiplier × premium multiplier

        Base rate priority:
        1. Custom DspRate row effective on report_date
        2. Built-in rate for the DSP
        3. Built-in default rate
        """
        slug = dsp_slug(dsp)

        custom_rate = self.custom_rate(slug, territory, report_date)
        base_rate = custom_rate if custom_rate is not None else self._base_rate(slug)
        territory_multiplier = self._territory_multiplier(territory)
        premium_multiplier = self._premium_multiplier(slug) if is_user_centric else Decimal("1")

        return ResolvedRate(
            base_rate=base_rate,
            territory_multiplier=territory_multiplier,
            premium_multiplier=premium_multiplier,
            effective_rate=base_rate * territory_multiplier * premium_multiplier,
            custom_rate_applied=custom_rate is not None,
        )

    def custom_rate(self, slug: str, territory: str, on_date: date) -> Decimal | None:
        """
        Pick the DspRate row for this DSP whose window contains on_date.

        An exact territory match beats GLOBAL; within the same territory the
        most recent effective_from wins.
        """
        if self.dsp_rates is None:
            return None

        candidates = [
            r for r in self.dsp_rates.find(slug, {territory, GLOBAL_TERRITORY})
            if r.is_effective_on(on_date)
        ]
        if not candidates:
            return None

        def rank(rate: DspRate):
            return (rate.territory == territory, rate.effective_from)

        return max(candidates, key=rank).rate_per_stream

    def _base_rate(self, slug: str) -> Decimal:
        rates = self.tables.dsp_base_rates
        if slug not in rates:
            logger.debug(f"No base rate for DSP '{slug}', using default")
        return rates.get(slug, rates["default"])

    def _territory_multiplier(self, territory: str) -> Decimal:
        multipliers = self.tables.territory_multipliers
        if territory not in multipliers:
            logger.debug(f"No multiplier for territory '{territory}', using default")
        return multipliers.get(territory, multipliers["default"])

    def _premium_multiplier(self, slug: str) -> Decimal:
        multipliers = self.tables.dsp_premium_multipliers
        return multipliers.get(slug, multipliers.get("default", Decimal("1")))
