from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, Float,
    ForeignKey, UniqueConstraint, CheckConstraint, event, update
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

class Game(Base):
    __tablename__ = 'games'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)

    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    # Relationships
    kpi_links = relationship("GameKpi", back_populates="game", cascade="all, delete-orphan", order_by="GameKpi.id")
    draft_picks = relationship("DraftPick", back_populates="game", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Game(id={self.id}, name='{self.name}')>"

class Team(Base):
    __tablename__ = 'teams'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=True)

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}')>"

class Profile(Base):
    __tablename__ = 'profiles'

    id = Column(Integer, primary_key=True)
    display_name = Column(String(100), nullable=False)
    discord_id = Column(Integer, unique=True, nullable=True, index=True)

    # Cache of the merit ledger, maintained by the MeritTransaction insert listener below
    merit_balance = Column(Integer, default=0, nullable=False)

    registered_at = Column(DateTime, default=func.now())

    merit_history = relationship("MeritTransaction", back_populates="player", foreign_keys="MeritTransaction.player_id")

    def __repr__(self):
        return f"<Profile(id={self.id}, display_name='{self.display_name}', merits={self.merit_balance})>"

class Kpi(Base):
    __tablename__ = 'kpis'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    points = Column(Float, nullable=False, default=0)  # Points per recorded unit
    icon_name = Column(String(100), nullable=True)

    def __repr__(self):
        return f"<Kpi(id={self.id}, name='{self.name}', points={self.points})>"

class GameKpi(Base):
    """KPIs tracked in a game."""
    __tablename__ = 'game_kpis'

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey('games.id'), nullable=False)
    kpi_id = Column(Integer, ForeignKey('kpis.id'), nullable=False)

    game = relationship("Game", back_populates="kpi_links")
    kpi = relationship("Kpi")

    __table_args__ = (UniqueConstraint('game_id', 'kpi_id'),)

class DraftPick(Base):
    """Assignment of a player to a team for one game."""
    __tablename__ = 'draft_picks'

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey('games.id'), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=False)
    player_id = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    pick_number = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=func.now())

    game = relationship("Game", back_populates="draft_picks")
    team = relationship("Team")
    player = relationship("Profile")

    __table_args__ = (UniqueConstraint('game_id', 'player_id'),)

    def __repr__(self):
        return f"<DraftPick(game_id={self.game_id}, team_id={self.team_id}, player_id={self.player_id}, pick={self.pick_number})>"

class PlayerStat(Base):
    """Raw KPI value recorded for a player in a game."""
    __tablename__ = 'player_stats'

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey('games.id'), nullable=False, index=True)
    player_id = Column(Integer, ForeignKey('profiles.id'), nullable=False)
    # No FK on kpi_id: entries may reference KPIs that were since removed from the catalog
    kpi_id = Column(Integer, nullable=False)
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=True)
    value = Column(Float, nullable=False, default=0)
    date_recorded = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<PlayerStat(game_id={self.game_id}, player_id={self.player_id}, kpi_id={self.kpi_id}, value={self.value})>"

class AchievementDefinitionRecord(Base):
    __tablename__ = 'achievement_definitions'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    merit_reward = Column(Integer, nullable=False, default=0)

    # Streak achievements are evaluated across games, outside finalization
    is_streak = Column(Boolean, default=False, nullable=False)
    streak_type = Column(String(50), nullable=True)
    streak_length = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<AchievementDefinitionRecord(name='{self.name}', merit_reward={self.merit_reward})>"

class GameAchievements(Base):
    """
    Achievement summary of a finalized game.

    Written exactly once per game and never updated. The unique constraint on
    game_id is the guard of record against double finalization.
    """
    __tablename__ = 'game_achievements'

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey('games.id'), nullable=False, unique=True)
    overall_mvp_player_id = Column(Integer, ForeignKey('profiles.id'), nullable=True)
    winning_team_id = Column(Integer, ForeignKey('teams.id'), nullable=True)

    # JSON strings
    kpi_winners = Column(Text, nullable=False, default='[]')
    team_leader_mvps = Column(Text, nullable=False, default='[]')
    podium_finishers = Column(Text, nullable=False, default='[]')
    performance_data = Column(Text, nullable=False, default='[]')
    team_scores = Column(Text, nullable=False, default='{}')

    created_at = Column(DateTime, default=func.now())

    overall_mvp = relationship("Profile", foreign_keys=[overall_mvp_player_id])
    winning_team = relationship("Team", foreign_keys=[winning_team_id])

    def __repr__(self):
        return f"<GameAchievements(game_id={self.game_id}, mvp={self.overall_mvp_player_id}, winning_team={self.winning_team_id})>"

class MeritTransaction(Base):
    """Append-only merit ledger row."""
    __tablename__ = 'merit_transactions'

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey('profiles.id'), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    transaction_type = Column(String(50), nullable=False)  # 'achievement_reward', 'kpi_bonus', 'team_win_reward', 'team_mvp_reward'

    # Context
    source_achievement_definition_id = Column(Integer, ForeignKey('achievement_definitions.id'), nullable=True)
    source_game_id = Column(Integer, ForeignKey('games.id'), nullable=True, index=True)
    kpi_id = Column(Integer, nullable=True)
    description = Column(String(255))

    created_at = Column(DateTime, default=func.now())

    player = relationship("Profile", back_populates="merit_history", foreign_keys=[player_id])
    achievement_definition = relationship("AchievementDefinitionRecord")

    __table_args__ = (
        CheckConstraint('amount > 0', name='positive_merit_amount_check'),
    )

    def __repr__(self):
        return f"<MeritTransaction(player_id={self.player_id}, amount={self.amount}, type='{self.transaction_type}')>"

# ============================================================================
# Merit balance maintenance
# ============================================================================

@event.listens_for(MeritTransaction, "after_insert")
def _apply_merit_to_balance(mapper, connection, target):
    """Credit every new ledger row to the player's cached merit balance"""
    connection.execute(
        update(Profile.__table__)
        .where(Profile.__table__.c.id == target.player_id)
        .values(merit_balance=Profile.__table__.c.merit_balance + target.amount)
    )
