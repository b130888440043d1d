"""
Achievement definition management.

Reads and updates the achievement_definitions catalog that prices every
game achievement in merits, and seeds the default catalog.
"""

import logging
from typing import List

from sqlalchemy import select

from merit_bot.data_models.finalization import AchievementDefinition
from merit_bot.database.models import AchievementDefinitionRecord
from merit_bot.services.achievement_catalog import AchievementCatalog, AchievementType
from merit_bot.services.base import BaseService

logger = logging.getLogger(__name__)

# Default catalog seeded on first run
DEFAULT_ACHIEVEMENT_DEFINITIONS = [
    {
        'name': AchievementType.OVERALL_MVP.value,
        'description': 'Highest total score in the game',
        'merit_reward': 500,
    },
    {
        'name': AchievementType.PODIUM_SECOND.value,
        'description': 'Second highest total score in the game',
        'merit_reward': 200,
    },
    {
        'name': AchievementType.PODIUM_THIRD.value,
        'description': 'Third highest total score in the game',
        'merit_reward': 150,
    },
    {
        'name': AchievementType.KPI_ACHIEVER.value,
        'description': 'Top performer for a single KPI',
        'merit_reward': 250,
    },
    {
        'name': AchievementType.WINNING_TEAM_MEMBER.value,
        'description': 'Member of the team with the highest combined score',
        'merit_reward': 100,
    },
    {
        'name': AchievementType.TEAM_LEADER_MVP.value,
        'description': 'Highest scoring player of a team',
        'merit_reward': 300,
    },
]


class AchievementDefinitionService(BaseService):
    """Manages the achievement catalog."""

    def __init__(self, session_factory):
        super().__init__(session_factory)

    async def list_definitions(self) -> List[AchievementDefinition]:
        async def _load():
            async with self.get_session() as session:
                result = await session.execute(
                    select(AchievementDefinitionRecord).order_by(AchievementDefinitionRecord.id)
                )
                return [
                    AchievementDefinition(
                        id=record.id,
                        name=record.name,
                        merit_reward=record.merit_reward,
                        is_streak=bool(record.is_streak),
                        streak_type=record.streak_type,
                        streak_length=record.streak_length,
                    )
                    for record in result.scalars()
                ]
        return await self.execute_with_retry(_load)

    async def get_catalog(self, strict: bool = False) -> AchievementCatalog:
        """Resolved reward rules for every achievement type."""
        return AchievementCatalog.from_definitions(await self.list_definitions(), strict=strict)

    async def set_reward(self, name: str, merit_reward: int) -> AchievementDefinition:
        """
        Update the merit reward of a definition.

        Raises:
            ValueError: No definition with that name
        """
        async with self.get_session() as session:
            result = await session.execute(
                select(AchievementDefinitionRecord).where(AchievementDefinitionRecord.name == name)
            )
            record = result.scalar_one_or_none()
            if record is None:
                raise ValueError(f"Achievement definition '{name}' not found")

            old_reward = record.merit_reward
            record.merit_reward = merit_reward
            logger.info(f"Achievement '{name}' reward changed {old_reward} -> {merit_reward}")
            return AchievementDefinition(
                id=record.id,
                name=record.name,
                merit_reward=merit_reward,
                is_streak=bool(record.is_streak),
                streak_type=record.streak_type,
                streak_length=record.streak_length,
            )

    async def seed_defaults(self) -> int:
        """Insert default definitions that are missing. Existing rows are left untouched."""
        created = 0
        async with self.get_session() as session:
            result = await session.execute(select(AchievementDefinitionRecord.name))
            existing = set(result.scalars())
            for definition in DEFAULT_ACHIEVEMENT_DEFINITIONS:
                if definition['name'] in existing:
                    continue
                session.add(AchievementDefinitionRecord(**definition))
                created += 1
        if created:
            logger.info(f"Seeded {created} achievement definitions")
        return created
