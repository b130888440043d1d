"""
Achievement calculation for game finalization.

Derives the overall ranking, podium, KPI top performers, team scores,
winning team and per-team leader MVPs from aggregated player stats.

Ordering rule used by every ranking here: sort by score descending, ties
keep first-seen order of the aggregate. Python's sort is stable (also with
reverse=True) and every max-scan uses a strict comparison, so the first
player or team seen wins a tie.
"""

import logging
from typing import Dict, Hashable, Iterable, List, Mapping, Optional

from merit_bot.constants import MeritConstants
from merit_bot.data_models.finalization import (
    AggregatedPlayerStat, GameAchievementsSummary, KpiDefinition, KpiWinner,
    PerformanceEntry, PodiumFinisher, TeamLeaderMvp
)

logger = logging.getLogger(__name__)


class AchievementCalculator:
    """Computes the achievement summary of one game."""

    def __init__(self, podium_size: int = MeritConstants.PODIUM_SIZE):
        self.podium_size = podium_size

    def calculate(
        self,
        game_id: Hashable,
        aggregated: Mapping[Hashable, AggregatedPlayerStat],
        team_rosters: Mapping[Hashable, List[Hashable]],
        kpis: Iterable[KpiDefinition],
        draft_ranks: Optional[Mapping[Hashable, int]] = None,
        display_names: Optional[Mapping[Hashable, str]] = None,
    ) -> Optional[GameAchievementsSummary]:
        """
        Calculate the achievements summary.

        Args:
            game_id: Game being finalized
            aggregated: player_id -> AggregatedPlayerStat (first-seen order)
            team_rosters: team_id -> member player ids (team iteration order)
            kpis: KPI definitions, in catalog order
            draft_ranks: player_id -> draft pick number, for performance data
            display_names: player_id -> display name, for podium entries

        Returns:
            GameAchievementsSummary, or None when no player has a positive score
        """
        players = list(aggregated.values())
        if not any(p.total_score > 0 for p in players):
            logger.info(f"No positive scores for game {game_id}, achievements calculation skipped")
            return None

        draft_ranks = draft_ranks or {}
        display_names = display_names or {}

        ranking = self.rank_players(players)
        team_scores = self.calculate_team_scores(aggregated, team_rosters)

        summary = GameAchievementsSummary(
            game_id=game_id,
            overall_mvp_player_id=ranking[0].player_id,
            winning_team_id=self.find_winning_team(team_scores),
            kpi_winners=tuple(self.find_kpi_winners(players, kpis)),
            team_leader_mvps=tuple(self.find_team_leaders(aggregated, team_rosters)),
            podium_finishers=tuple(
                PodiumFinisher(
                    player_id=player.player_id,
                    rank=index + 1,
                    score=player.total_score,
                    player_display_name=display_names.get(
                        player.player_id, MeritConstants.UNKNOWN_PLAYER_NAME
                    ),
                )
                for index, player in enumerate(ranking[:self.podium_size])
            ),
            performance_data=tuple(
                PerformanceEntry(
                    player_id=player.player_id,
                    draft_rank=draft_ranks[player.player_id],
                    performance_rank=index + 1,
                    total_score=player.total_score,
                    team_id=player.team_id,
                )
                for index, player in enumerate(ranking)
                if draft_ranks.get(player.player_id) is not None
            ),
            team_scores=team_scores,
        )

        logger.info(
            f"Game {game_id}: MVP {summary.overall_mvp_player_id}, "
            f"winning team {summary.winning_team_id}, {len(summary.kpi_winners)} KPI winners"
        )
        return summary

    @staticmethod
    def rank_players(players: Iterable[AggregatedPlayerStat]) -> List[AggregatedPlayerStat]:
        """Overall ranking, highest total score first."""
        return sorted(players, key=lambda p: p.total_score, reverse=True)

    @staticmethod
    def find_kpi_winners(players: List[AggregatedPlayerStat],
                         kpis: Iterable[KpiDefinition]) -> List[KpiWinner]:
        """Top raw-unit performer per KPI; KPIs nobody contributed to have no winner."""
        winners = []
        for kpi in kpis:
            top_player = None
            max_value = 0
            for player in players:
                value = player.per_kpi_totals.get(kpi.id, 0)
                if value > max_value:
                    max_value = value
                    top_player = player.player_id
            if top_player is not None:
                winners.append(KpiWinner(kpi_id=kpi.id, player_id=top_player, value=max_value))
        return winners

    @staticmethod
    def calculate_team_scores(aggregated: Mapping[Hashable, AggregatedPlayerStat],
                              team_rosters: Mapping[Hashable, List[Hashable]]) -> Dict[Hashable, float]:
        """Sum of member total scores per team. Unassigned players never count."""
        return {
            team_id: sum(aggregated[p].total_score for p in members if p in aggregated)
            for team_id, members in team_rosters.items()
        }

    @staticmethod
    def find_winning_team(team_scores: Mapping[Hashable, float]) -> Optional[Hashable]:
        winning_team_id = None
        max_score = None
        for team_id, score in team_scores.items():
            if max_score is None or score > max_score:
                max_score = score
                winning_team_id = team_id
        return winning_team_id

    @staticmethod
    def find_team_leaders(aggregated: Mapping[Hashable, AggregatedPlayerStat],
                          team_rosters: Mapping[Hashable, List[Hashable]]) -> List[TeamLeaderMvp]:
        """Highest scoring member of every team that has at least one player with stats."""
        leaders = []
        for team_id, members in team_rosters.items():
            leader = None
            for player_id in members:
                stats = aggregated.get(player_id)
                if stats is None:
                    continue
                if leader is None or stats.total_score > leader.total_score:
                    leader = stats
            if leader is not None:
                leaders.append(TeamLeaderMvp(
                    team_id=team_id,
                    leader_player_id=leader.player_id,
                    score=leader.total_score,
                ))
        return leaders
