"""
Configuration for the Royalty Engine

Lookup tables are built once at import time and exposed read-only.
Calculators receive a RateTables instance instead of reading globals,
so tests can swap in alternate tables.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

# =============================================================================
# DEFAULT TABLES
# =============================================================================

_DSP_BASE_RATES = {
    "spotify": "0.003",
    "apple_music": "0.01",
    "youtube": "0.00069",
    "youtube_music": "0.002",
    "amazon_music": "0.004",
    "tidal": "0.01284",
    "deezer": "0.0064",
    "pandora": "0.00133",
    "soundcloud": "0.0025",
    "tiktok": "0.002",
    "facebook": "0.002",
    "instagram": "0.002",
    "default": "0.003",
}

# Applied only to user-centric events
_DSP_PREMIUM_MULTIPLIERS = {
    "spotify": "1.5",
    "apple_music": "1.3",
    "tidal": "1.0",
    "amazon_music": "1.4",
    "youtube_music": "1.3",
    "deezer": "1.2",
    "default": "1.0",
}

_TERRITORY_MULTIPLIERS = {
    "US": "1.0",
    "GB": "0.95",
    "CA": "0.90",
    "AU": "0.88",
    "DE": "0.92",
    "FR": "0.90",
    "JP": "0.85",
    "BR": "0.40",
    "IN": "0.15",
    "MX": "0.35",
    "ES": "0.80",
    "IT": "0.82",
    "NL": "0.88",
    "SE": "0.95",
    "NO": "0.95",
    "DK": "0.92",
    "FI": "0.90",
    "KR": "0.70",
    "ZA": "0.30",
    "GLOBAL": "0.75",
    "default": "0.60",
}

# (platform fee, distribution fee, display name), ordered free -> enterprise
_FEE_TIERS = {
    "free": ("0.20", "0.15", "Free"),
    "standard": ("0.15", "0.09", "Standard"),
    "pro": ("0.10", "0.05", "Pro"),
    "label": ("0.08", "0.04", "Label"),
    "enterprise": ("0.05", "0.02", "Enterprise"),
}

_MECHANICAL_RATES = {
    "US": ("0.00091", "statutory"),
    "CA": ("0.00083", "statutory"),
    "GB": ("0.00085", "statutory"),
    "EU": ("0.00077", "statutory"),
    "AU": ("0.00072", "statutory"),
    "JP": ("0.00068", "statutory"),
    "default": ("0.00065", "negotiated"),
}

# (publisher share, writer share)
_PERFORMANCE_SPLITS = {
    "ASCAP": ("0.50", "0.50"),
    "BMI": ("0.50", "0.50"),
    "SESAC": ("0.50", "0.50"),
    "GMR": ("0.50", "0.50"),
    "PRS": ("0.50", "0.50"),
    "GEMA": ("0.60", "0.40"),
    "SACEM": ("0.50", "0.50"),
    "JASRAC": ("0.50", "0.50"),
    "default": ("0.50", "0.50"),
}


@dataclass(frozen=True)
class FeeTier:
    """Fee schedule for one subscription tier."""

    key: str
    name: str
    platform_fee: Decimal
    distribution_fee: Decimal

    @property
    def total_fee(self) -> Decimal:
        return self.platform_fee + self.distribution_fee


@dataclass(frozen=True)
class MechanicalRate:
    rate: Decimal
    rate_type: str  # 'statutory' or 'negotiated'


@dataclass(frozen=True)
class PerformanceSplit:
    publisher_share: Decimal
    writer_share: Decimal


def _decimals(table: dict) -> Mapping[str, Decimal]:
    return MappingProxyType({key: Decimal(value) for key, value in table.items()})


@dataclass(frozen=True)
class RateTables:
    """Immutable lookup tables shared by all calculators.

    Every table carries a 'default' row used when a key is unknown.
    """

    dsp_base_rates: Mapping[str, Decimal]
    dsp_premium_multipliers: Mapping[str, Decimal]
    territory_multipliers: Mapping[str, Decimal]
    fee_tiers: Mapping[str, FeeTier]
    mechanical_rates: Mapping[str, MechanicalRate]
    performance_splits: Mapping[str, PerformanceSplit]
    download_rate_multiplier: Decimal = Decimal("10")
    exclusivity_multiplier: Decimal = Decimal("1.5")
    us_hfa_rate: Decimal = Decimal("0.00091")
    us_mri_rate: Decimal = Decimal("0.00091")

    @classmethod
    def build(
        cls,
        dsp_base_rates: dict | None = None,
        dsp_premium_multipliers: dict | None = None,
        territory_multipliers: dict | None = None,
        fee_tiers: dict | None = None,
        mechanical_rates: dict | None = None,
        performance_splits: dict | None = None,
    ) -> "RateTables":
        """Build tables from plain values, falling back to the built-in ones."""
        tiers = fee_tiers or _FEE_TIERS
        mechanical = mechanical_rates or _MECHANICAL_RATES
        performance = performance_splits or _PERFORMANCE_SPLITS
        return cls(
            dsp_base_rates=_decimals(dsp_base_rates or _DSP_BASE_RATES),
            dsp_premium_multipliers=_decimals(dsp_premium_multipliers or _DSP_PREMIUM_MULTIPLIERS),
            territory_multipliers=_decimals(territory_multipliers or _TERRITORY_MULTIPLIERS),
            fee_tiers=MappingProxyType({
                key: FeeTier(
                    key=key,
                    name=name,
                    platform_fee=Decimal(platform),
                    distribution_fee=Decimal(distribution),
                )
                for key, (platform, distribution, name) in tiers.items()
            }),
            mechanical_rates=MappingProxyType({
                key: MechanicalRate(rate=Decimal(rate), rate_type=rate_type)
                for key, (rate, rate_type) in mechanical.items()
            }),
            performance_splits=MappingProxyType({
                key: PerformanceSplit(publisher_share=Decimal(pub), writer_share=Decimal(writer))
                for key, (pub, writer) in performance.items()
            }),
        )


DEFAULT_RATE_TABLES = RateTables.build()


# =============================================================================
# RUNTIME SETTINGS
# =============================================================================


@dataclass(frozen=True)
class EngineSettings:
    """Process-wide settings, read from the environment once at start-up."""

    environment: str = "dev"
    max_events: int = 100_000
    default_tier: str = "standard"
    reference_currency: str = "USD"
    rate_tables: RateTables = field(default=DEFAULT_RATE_TABLES)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        env = os.environ if environ is None else environ
        return cls(
            environment=env.get("ENVIRONMENT", "dev"),
            max_events=int(env.get("ROYALTY_MAX_EVENTS", 100_000)),
            default_tier=env.get("ROYALTY_DEFAULT_TIER", "standard"),
            reference_currency=env.get("ROYALTY_REFERENCE_CURRENCY", "USD"),
        )
