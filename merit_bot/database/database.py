from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from contextlib import asynccontextmanager

from merit_bot.config import Config
from merit_bot.database.models import (
    Base, Game, Team, Profile, Kpi, GameKpi, DraftPick, PlayerStat
)
from merit_bot.utils.logger import setup_logger

class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url
        self.engine = None
        self.async_session = None

    @property
    def session_factory(self):
        return self.async_session

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        # Convert sqlite URL to async if needed
        database_url = self.database_url or Config.DATABASE_URL
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        All operations within the context commit together on success, or
        roll back together on failure. Exceptions must be allowed to
        propagate out of the context for rollback to occur.
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    # Game setup operations
    async def create_game(self, name: str) -> Game:
        async with self.transaction() as session:
            game = Game(name=name)
            session.add(game)
            await session.flush()
            return game

    async def create_team(self, name: str, color: str = None) -> Team:
        async with self.transaction() as session:
            team = Team(name=name, color=color)
            session.add(team)
            await session.flush()
            return team

    async def create_profile(self, display_name: str, discord_id: int = None) -> Profile:
        async with self.transaction() as session:
            profile = Profile(display_name=display_name, discord_id=discord_id, merit_balance=0)
            session.add(profile)
            await session.flush()
            return profile

    async def get_profile(self, profile_id: int) -> Optional[Profile]:
        async with self.get_session() as session:
            return await session.get(Profile, profile_id)

    async def create_kpi(self, name: str, points: float, description: str = None) -> Kpi:
        async with self.transaction() as session:
            kpi = Kpi(name=name, points=points, description=description)
            session.add(kpi)
            await session.flush()
            return kpi

    async def add_kpi_to_game(self, game_id: int, kpi_id: int) -> GameKpi:
        async with self.transaction() as session:
            link = GameKpi(game_id=game_id, kpi_id=kpi_id)
            session.add(link)
            await session.flush()
            return link

    async def add_draft_pick(self, game_id: int, team_id: int, player_id: int, pick_number: int) -> DraftPick:
        async with self.transaction() as session:
            pick = DraftPick(game_id=game_id, team_id=team_id, player_id=player_id, pick_number=pick_number)
            session.add(pick)
            await session.flush()
            return pick

    async def record_stat(self, game_id: int, player_id: int, kpi_id: int, value: float,
                          team_id: int = None) -> PlayerStat:
        """Record a raw KPI value for a player"""
        async with self.transaction() as session:
            stat = PlayerStat(game_id=game_id, player_id=player_id, kpi_id=kpi_id, team_id=team_id, value=value)
            session.add(stat)
            await session.flush()
            return stat

