"""
Merit ledger construction for game finalization.

Converts a calculated GameAchievementsSummary into MeritTransactionDraft rows.
Emission order is fixed for audit reproducibility:
MVP -> podium 2nd/3rd -> KPI winners -> winning team members -> team leader MVPs.
"""

import logging
from typing import Dict, Hashable, Iterable, List, Mapping, Optional

from merit_bot.constants import MeritConstants, TransactionTypes
from merit_bot.data_models.finalization import GameAchievementsSummary, MeritTransactionDraft
from merit_bot.services.achievement_catalog import AchievementCatalog, AchievementType

logger = logging.getLogger(__name__)


def _format_value(value) -> str:
    # Stat values are stored as floats; whole numbers read as integers
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class MeritLedgerBuilder:
    """Builds the merit transactions earned in one game."""

    def __init__(self, catalog: AchievementCatalog):
        self.catalog = catalog

    def build(
        self,
        summary: Optional[GameAchievementsSummary],
        team_rosters: Mapping[Hashable, List[Hashable]],
        kpi_names: Optional[Mapping[Hashable, str]] = None,
        team_names: Optional[Mapping[Hashable, str]] = None,
    ) -> List[MeritTransactionDraft]:
        """
        Build merit transactions for a game summary.

        Args:
            summary: Calculated summary, None when the calculation was skipped
            team_rosters: team_id -> member player ids; every member of the
                winning team is rewarded regardless of individual score
            kpi_names: kpi_id -> name for transaction descriptions
            team_names: team_id -> name for transaction descriptions

        Returns:
            Transactions with a positive amount, in emission order
        """
        if summary is None:
            return []

        kpi_names = kpi_names or {}
        team_names = team_names or {}
        game_id = summary.game_id
        transactions: List[MeritTransactionDraft] = []

        def add(player_id, achievement_type: AchievementType, transaction_type: str,
                description: str, kpi_id=None):
            rule = self.catalog.rule_for(achievement_type)
            if rule.amount <= 0:
                logger.debug(f"Skipping {achievement_type.value} reward for player {player_id}: amount {rule.amount}")
                return
            transactions.append(MeritTransactionDraft(
                player_id=player_id,
                amount=rule.amount,
                transaction_type=transaction_type,
                source_achievement_definition_id=rule.definition_id,
                source_game_id=game_id,
                kpi_id=kpi_id,
                description=description,
            ))

        add(
            summary.overall_mvp_player_id,
            AchievementType.OVERALL_MVP,
            TransactionTypes.ACHIEVEMENT_REWARD,
            f"Overall MVP for game {game_id}",
        )

        podium_rewards = {2: (AchievementType.PODIUM_SECOND, "2nd"), 3: (AchievementType.PODIUM_THIRD, "3rd")}
        for finisher in summary.podium_finishers:
            if finisher.rank not in podium_rewards:
                continue
            achievement_type, place = podium_rewards[finisher.rank]
            add(
                finisher.player_id,
                achievement_type,
                TransactionTypes.ACHIEVEMENT_REWARD,
                f"Finished {place} place on the podium for game {game_id}",
            )

        for winner in summary.kpi_winners:
            kpi_name = kpi_names.get(winner.kpi_id, str(winner.kpi_id))
            add(
                winner.player_id,
                AchievementType.KPI_ACHIEVER,
                TransactionTypes.KPI_BONUS,
                f"Top performer for KPI: {kpi_name} with value {_format_value(winner.value)} in game {game_id}",
                kpi_id=winner.kpi_id,
            )

        if summary.winning_team_id is not None:
            for player_id in team_rosters.get(summary.winning_team_id, []):
                add(
                    player_id,
                    AchievementType.WINNING_TEAM_MEMBER,
                    TransactionTypes.TEAM_WIN_REWARD,
                    f"Member of winning team for game {game_id}",
                )

        for leader in summary.team_leader_mvps:
            team_name = team_names.get(leader.team_id, MeritConstants.UNKNOWN_TEAM_NAME)
            add(
                leader.leader_player_id,
                AchievementType.TEAM_LEADER_MVP,
                TransactionTypes.TEAM_MVP_REWARD,
                f"Team Leader MVP for team {team_name} in game {game_id}",
            )

        logger.info(f"Built {len(transactions)} merit transactions for game {game_id}")
        return transactions

    @staticmethod
    def merits_by_player(transactions: Iterable[MeritTransactionDraft]) -> Dict[Hashable, int]:
        """Total merits earned per player, in first-award order."""
        totals: Dict[Hashable, int] = {}
        for transaction in transactions:
            totals[transaction.player_id] = totals.get(transaction.player_id, 0) + transaction.amount
        return totals
