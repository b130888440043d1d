"""
Achievement catalog mapping.

Rewards are configured as rows of the achievement_definitions table and
looked up by fixed names. The names are mapped once, at load time, onto the
AchievementType enum so the rest of the engine never deals with strings.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Hashable, Iterable, List, Optional

from merit_bot.constants import MeritConstants
from merit_bot.data_models.finalization import AchievementDefinition
from merit_bot.utils.finalization_exceptions import ConfigurationMissingError

logger = logging.getLogger(__name__)


class AchievementType(Enum):
    """Game achievements that pay merits. Values are the catalog names."""
    OVERALL_MVP = "Overall Game MVP"
    PODIUM_SECOND = "Podium Finisher (2nd Place)"
    PODIUM_THIRD = "Podium Finisher (3rd Place)"
    KPI_ACHIEVER = "KPI Achiever"
    WINNING_TEAM_MEMBER = "Winning Team Member"
    TEAM_LEADER_MVP = "Team Leader MVP"

    @property
    def fallback_reward(self) -> int:
        return MeritConstants.FALLBACK_REWARDS[self.value]


@dataclass(frozen=True)
class RewardRule:
    """Reward resolved for one achievement type."""
    achievement_type: AchievementType
    definition_id: Optional[Hashable]
    amount: int
    is_fallback: bool = False


class AchievementCatalog:
    """Resolved reward rules for every AchievementType."""

    def __init__(self, rules: Dict[AchievementType, RewardRule], integrity_warnings: List[str] = None):
        self._rules = rules
        self.integrity_warnings = list(integrity_warnings or [])

    @classmethod
    def from_definitions(cls, definitions: Iterable[AchievementDefinition],
                         strict: bool = False) -> 'AchievementCatalog':
        """
        Map catalog rows onto achievement types.

        A missing definition falls back to MeritConstants.FALLBACK_REWARDS with
        an integrity warning, or raises ConfigurationMissingError in strict mode.
        A definition that exists is used as-is, even when its reward is zero
        or negative (no merits are paid for it then).
        """
        by_name = {}
        for definition in definitions:
            if definition.is_streak:
                # Streaks are evaluated across games, not at finalization
                continue
            by_name.setdefault(definition.name, definition)

        rules = {}
        warnings = []
        missing = []
        for achievement_type in AchievementType:
            definition = by_name.get(achievement_type.value)
            if definition is not None:
                rules[achievement_type] = RewardRule(
                    achievement_type=achievement_type,
                    definition_id=definition.id,
                    amount=definition.merit_reward,
                )
                continue

            missing.append(achievement_type.value)
            if strict:
                continue
            message = (
                f"Achievement definition '{achievement_type.value}' not found, "
                f"using fallback reward {achievement_type.fallback_reward}"
            )
            logger.warning(f"Catalog integrity: {message}")
            warnings.append(message)
            rules[achievement_type] = RewardRule(
                achievement_type=achievement_type,
                definition_id=None,
                amount=achievement_type.fallback_reward,
                is_fallback=True,
            )

        if strict and missing:
            raise ConfigurationMissingError(f"missing achievement definitions: {', '.join(missing)}")

        return cls(rules, warnings)

    def rule_for(self, achievement_type: AchievementType) -> RewardRule:
        return self._rules[achievement_type]

    @property
    def uses_fallbacks(self) -> bool:
        return any(rule.is_fallback for rule in self._rules.values())
