"""
Services package for the merit bot.

Finalization computations (aggregation, achievements, merit ledger),
the achievement catalog and the per-game finalization lock.
"""

from .base import BaseService
from .stat_aggregator import StatAggregator
from .achievement_calculator import AchievementCalculator
from .achievement_catalog import AchievementCatalog, AchievementType
from .merit_ledger_builder import MeritLedgerBuilder

__all__ = [
    'BaseService', 'StatAggregator', 'AchievementCalculator',
    'AchievementCatalog', 'AchievementType', 'MeritLedgerBuilder'
]
