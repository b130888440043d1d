"""
Stat aggregation for game finalization.

Reduces the raw KPI stat entries recorded for one game into per-player
totals. Two totals are kept per player:

- total_score: sum of value * points_per_unit over every entry (weighted)
- per_kpi_totals: raw units per KPI, used for KPI top-performer selection

Iteration order of the returned mapping is the order in which players
first appear in the stat entries. Every downstream tie-break depends on it.
"""

import logging
from typing import Dict, Hashable, Iterable, List, Mapping, Optional

from merit_bot.data_models.finalization import (
    AggregatedPlayerStat, KpiDefinition, RawStatEntry
)

logger = logging.getLogger(__name__)


class StatAggregator:
    """Turns RawStatEntry rows into AggregatedPlayerStat per player."""

    def aggregate(
        self,
        entries: Iterable[RawStatEntry],
        kpis: Iterable[KpiDefinition],
        roster: Mapping[Hashable, Hashable],
    ) -> Dict[Hashable, AggregatedPlayerStat]:
        """
        Aggregate stat entries for one game.

        Args:
            entries: Raw stat entries for the game, in store order
            kpis: KPI definitions available for the game
            roster: player_id -> team_id from the draft/participant source

        Returns:
            Dict of player_id -> AggregatedPlayerStat in first-seen order.
            Players without any valid entry are not included.
        """
        kpi_map = {kpi.id: kpi for kpi in kpis}
        aggregated: Dict[Hashable, AggregatedPlayerStat] = {}
        skipped = 0

        for entry in entries:
            kpi = kpi_map.get(entry.kpi_id)
            if kpi is None:
                skipped += 1
                logger.warning(
                    f"Skipping stat entry for player {entry.player_id}: "
                    f"KPI {entry.kpi_id} is not defined for this game"
                )
                continue

            stats = aggregated.get(entry.player_id)
            if stats is None:
                stats = AggregatedPlayerStat(player_id=entry.player_id, team_id=None)
                aggregated[entry.player_id] = stats

            # First resolved team wins: the entry's own team, then the roster
            if stats.team_id is None:
                stats.team_id = entry.team_id if entry.team_id is not None else roster.get(entry.player_id)

            stats.total_score += entry.value * kpi.points_per_unit
            stats.per_kpi_totals[kpi.id] = stats.per_kpi_totals.get(kpi.id, 0) + entry.value

        if skipped:
            logger.info(f"Aggregated {len(aggregated)} players, skipped {skipped} stat entries with unknown KPIs")
        else:
            logger.debug(f"Aggregated {len(aggregated)} players")

        return aggregated

    def build_team_rosters(
        self,
        team_ids: Iterable[Hashable],
        aggregated: Mapping[Hashable, AggregatedPlayerStat],
        roster: Mapping[Hashable, Hashable],
    ) -> Dict[Hashable, List[Hashable]]:
        """
        Build team_id -> member player ids.

        A player's team is the one resolved during aggregation, otherwise the
        roster entry. Members with stats come first (first-seen order), then
        roster-only members (roster order). Teams that only appear through
        players are appended after the known teams.
        """
        teams: Dict[Hashable, List[Hashable]] = {team_id: [] for team_id in team_ids}
        assigned = set()

        def assign(player_id: Hashable, team_id: Optional[Hashable]):
            if team_id is None or player_id in assigned:
                return
            teams.setdefault(team_id, []).append(player_id)
            assigned.add(player_id)

        for player_id, stats in aggregated.items():
            assign(player_id, stats.team_id)
        for player_id, team_id in roster.items():
            assign(player_id, team_id)

        return teams
