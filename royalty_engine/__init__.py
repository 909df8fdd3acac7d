"""
ROYALTY CALCULATION & STATEMENT ENGINE
"""

from .config import DEFAULT_RATE_TABLES, EngineSettings, RateTables
from .models import PeriodStatement, RevenueEvent, StatementStatus, StreamData
from .processor import RoyaltyEngine

__all__ = [
    'RoyaltyEngine',
    'EngineSettings',
    'RateTables',
    'DEFAULT_RATE_TABLES',
    'PeriodStatement',
    'RevenueEvent',
    'StatementStatus',
    'StreamData',
]
