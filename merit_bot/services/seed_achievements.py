"""
Achievement catalog seed script.

Inserts the default achievement definitions into the configured database.
Run with: python -m merit_bot.services.seed_achievements
"""

import asyncio

from merit_bot.database.database import Database
from merit_bot.services.achievement_definitions import (
    AchievementDefinitionService, DEFAULT_ACHIEVEMENT_DEFINITIONS
)

async def seed_achievements():
    """Seed the default achievement definitions."""
    db = Database()
    await db.initialize()
    try:
        service = AchievementDefinitionService(db.session_factory)
        created = await service.seed_defaults()
        print(f"Seeded {created} of {len(DEFAULT_ACHIEVEMENT_DEFINITIONS)} achievement definitions")
    finally:
        await db.close()

if __name__ == "__main__":
    print("Default achievement rewards:")
    for definition in DEFAULT_ACHIEVEMENT_DEFINITIONS:
        print(f"  {definition['name']}: {definition['merit_reward']} merits")
    
    asyncio.run(seed_achievements())
