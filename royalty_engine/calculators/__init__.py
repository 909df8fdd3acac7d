"""
Calculators Package

Provides all calculation components for royalty statements.
"""

from .currency import CurrencyNormalizer
from .fees import FeeTierCalculator
from .publishing import MechanicalRoyaltyCalculator, PerformanceRoyaltyCalculator, SyncRoyaltyCalculator
from .rates import RateResolver
from .recoupment import RecoupmentWaterfall
from .splits import SplitDistributor, validate_splits

__all__ = [
    "RateResolver",
    "CurrencyNormalizer",
    "FeeTierCalculator",
    "MechanicalRoyaltyCalculator",
    "PerformanceRoyaltyCalculator",
    "SyncRoyaltyCalculator",
    "RecoupmentWaterfall",
    "SplitDistributor",
    "validate_splits",
]
