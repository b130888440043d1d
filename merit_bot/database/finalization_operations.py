"""
Finalization Operations Module

Data access for game finalization: reads the stat, KPI and roster sources of one
game, and performs the two persistence writes of finalization.

The two writes are deliberately independent: the achievements summary and
the merit transaction batch each run in their own transaction, so a failed
batch never rolls back an already committed summary.
"""

import json
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from merit_bot.data_models.finalization import (
    FinalizationInputs, GameAchievementsSummary,
    KpiDefinition, MeritTransactionDraft, RawStatEntry
)
from merit_bot.database.models import (
    DraftPick, Game, GameAchievements, GameKpi,
    MeritTransaction, PlayerStat, Profile, Team
)
from merit_bot.utils.logger import setup_logger

logger = setup_logger(__name__)


class FinalizationOperations:
    """Store reads and writes used by game finalization."""

    def __init__(self, database):
        self.db = database
        self.logger = logger

    # ============================================================================
    # Reads
    # ============================================================================

    async def get_game(self, game_id: int) -> Optional[Game]:
        async with self.db.get_session() as session:
            return await session.get(Game, game_id)

    async def get_game_achievements(self, game_id: int) -> Optional[GameAchievements]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(GameAchievements)
                .options(
                    selectinload(GameAchievements.overall_mvp),
                    selectinload(GameAchievements.winning_team),
                )
                .where(GameAchievements.game_id == game_id)
            )
            return result.scalar_one_or_none()

    async def load_finalization_inputs(self, game_id: int) -> FinalizationInputs:
        """
        Read every input needed to finalize a game.

        Stats come back in insertion (id) order, which defines the first-seen
        order used for tie-breaking. Teams are ordered by first appearance in
        the draft, then by first appearance in the stats.
        """
        async with self.db.get_session() as session:
            stats_result = await session.execute(
                select(PlayerStat).where(PlayerStat.game_id == game_id).order_by(PlayerStat.id)
            )
            stats = [
                RawStatEntry(
                    player_id=stat.player_id,
                    kpi_id=stat.kpi_id,
                    team_id=stat.team_id,
                    value=stat.value,
                    date_recorded=stat.date_recorded,
                )
                for stat in stats_result.scalars()
            ]

            kpi_result = await session.execute(
                select(GameKpi)
                .options(selectinload(GameKpi.kpi))
                .where(GameKpi.game_id == game_id)
                .order_by(GameKpi.id)
            )
            kpis = [
                KpiDefinition(id=link.kpi.id, name=link.kpi.name, points_per_unit=link.kpi.points or 0)
                for link in kpi_result.scalars()
            ]

            picks_result = await session.execute(
                select(DraftPick)
                .where(DraftPick.game_id == game_id)
                .order_by(DraftPick.pick_number, DraftPick.id)
            )
            picks = list(picks_result.scalars())

            team_ids: List[int] = []
            for team_id in [pick.team_id for pick in picks] + [stat.team_id for stat in stats]:
                if team_id is not None and team_id not in team_ids:
                    team_ids.append(team_id)

            roster: Dict[int, int] = {}
            draft_ranks: Dict[int, int] = {}
            for pick in picks:
                roster.setdefault(pick.player_id, pick.team_id)
                draft_ranks.setdefault(pick.player_id, pick.pick_number)

            player_ids = set(roster) | {stat.player_id for stat in stats}
            display_names = {}
            if player_ids:
                profiles = await session.execute(select(Profile).where(Profile.id.in_(player_ids)))
                display_names = {p.id: p.display_name for p in profiles.scalars()}

            team_names = {}
            if team_ids:
                teams = await session.execute(select(Team).where(Team.id.in_(team_ids)))
                team_names = {t.id: t.name for t in teams.scalars()}

        self.logger.debug(
            f"Loaded game {game_id}: {len(stats)} stats, {len(kpis)} KPIs, "
            f"{len(team_ids)} teams, {len(roster)} drafted players"
        )
        return FinalizationInputs(
            game_id=game_id,
            stats=stats,
            kpis=kpis,
            team_ids=team_ids,
            roster=roster,
            draft_ranks=draft_ranks,
            display_names=display_names,
            team_names=team_names,
        )

    async def get_merit_transactions(self, game_id: int) -> List[MeritTransaction]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(MeritTransaction)
                .where(MeritTransaction.source_game_id == game_id)
                .order_by(MeritTransaction.id)
            )
            return list(result.scalars().all())

    # ============================================================================
    # Writes
    # ============================================================================

    async def create_game_achievements(self, summary: GameAchievementsSummary) -> GameAchievements:
        """
        Insert the achievements summary of a game.

        Raises:
            IntegrityError: A summary for the game already exists
        """
        payload = summary.to_payload()
        async with self.db.transaction() as session:
            record = GameAchievements(
                game_id=payload['game_id'],
                overall_mvp_player_id=payload['overall_mvp_player_id'],
                winning_team_id=payload['winning_team_id'],
                kpi_winners=json.dumps(payload['kpi_winners']),
                team_leader_mvps=json.dumps(payload['team_leader_mvps']),
                podium_finishers=json.dumps(payload['podium_finishers']),
                performance_data=json.dumps(payload['performance_data']),
                team_scores=json.dumps(payload['team_scores']),
            )
            session.add(record)
            await session.flush()
            self.logger.info(f"Inserted achievements summary {record.id} for game {summary.game_id}")
            return record

    async def create_merit_transactions(self, drafts: Sequence[MeritTransactionDraft]) -> int:
        """Insert merit transactions as a single batch. Returns the number of rows written."""
        async with self.db.transaction() as session:
            session.add_all([MeritTransaction(**draft.to_row()) for draft in drafts])
            await session.flush()
        self.logger.info(f"Inserted {len(drafts)} merit transactions")
        return len(drafts)
