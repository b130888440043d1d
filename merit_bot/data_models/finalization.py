"""
Finalization data models.

Immutable data transfer objects passed between the stat aggregator, the
achievement calculator, the merit ledger builder and the finalization
operations. Ids are whatever the store uses (integers in the database,
any hashable value in pure computations).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional, Tuple


@dataclass(frozen=True)
class RawStatEntry:
    """One recorded KPI value for a player in a game."""
    player_id: Hashable
    kpi_id: Hashable
    team_id: Optional[Hashable]
    value: float
    date_recorded: Optional[datetime] = None


@dataclass(frozen=True)
class KpiDefinition:
    id: Hashable
    name: str
    points_per_unit: float


@dataclass(frozen=True)
class AchievementDefinition:
    id: Hashable
    name: str
    merit_reward: int
    is_streak: bool = False
    streak_type: Optional[str] = None
    streak_length: Optional[int] = None


@dataclass
class AggregatedPlayerStat:
    """Per-player totals for one finalization run (never persisted)."""
    player_id: Hashable
    team_id: Optional[Hashable]
    total_score: float = 0
    per_kpi_totals: Dict[Hashable, float] = field(default_factory=dict)


@dataclass(frozen=True)
class PodiumFinisher:
    player_id: Hashable
    rank: int
    score: float
    player_display_name: Optional[str] = None


@dataclass(frozen=True)
class KpiWinner:
    kpi_id: Hashable
    player_id: Hashable
    value: float


@dataclass(frozen=True)
class TeamLeaderMvp:
    team_id: Hashable
    leader_player_id: Hashable
    score: float


@dataclass(frozen=True)
class PerformanceEntry:
    """Draft rank compared with the rank earned in the game."""
    player_id: Hashable
    draft_rank: int
    performance_rank: int
    total_score: float
    team_id: Optional[Hashable]


@dataclass(frozen=True)
class GameAchievementsSummary:
    """The ranked achievement summary written once per game."""
    game_id: Hashable
    overall_mvp_player_id: Hashable
    winning_team_id: Optional[Hashable]
    kpi_winners: Tuple[KpiWinner, ...]
    team_leader_mvps: Tuple[TeamLeaderMvp, ...]
    podium_finishers: Tuple[PodiumFinisher, ...]
    performance_data: Tuple[PerformanceEntry, ...]
    team_scores: Dict[Hashable, float]

    def to_payload(self) -> Dict[str, Any]:
        """Row payload for the game_achievements table (JSON-safe, key order fixed)."""
        return {
            'game_id': self.game_id,
            'overall_mvp_player_id': self.overall_mvp_player_id,
            'winning_team_id': self.winning_team_id,
            'kpi_winners': [
                {'kpi_id': w.kpi_id, 'player_id': w.player_id, 'value': w.value}
                for w in self.kpi_winners
            ],
            'team_leader_mvps': [
                {'team_id': m.team_id, 'leader_player_id': m.leader_player_id, 'score': m.score}
                for m in self.team_leader_mvps
            ],
            'podium_finishers': [
                {
                    'player_id': p.player_id,
                    'player_display_name': p.player_display_name,
                    'rank': p.rank,
                    'score': p.score,
                }
                for p in self.podium_finishers
            ],
            'performance_data': [
                {
                    'player_id': e.player_id,
                    'draft_rank': e.draft_rank,
                    'performance_rank': e.performance_rank,
                    'total_score': e.total_score,
                    'team_id': e.team_id,
                }
                for e in self.performance_data
            ],
            # JSON object keys are strings
            'team_scores': {str(team_id): score for team_id, score in self.team_scores.items()},
        }


@dataclass(frozen=True)
class MeritTransactionDraft:
    """A ledger row computed in memory, not yet persisted."""
    player_id: Hashable
    amount: int
    transaction_type: str
    source_achievement_definition_id: Optional[Hashable]
    source_game_id: Hashable
    kpi_id: Optional[Hashable]
    description: str

    def to_row(self) -> Dict[str, Any]:
        return {
            'player_id': self.player_id,
            'amount': self.amount,
            'transaction_type': self.transaction_type,
            'source_achievement_definition_id': self.source_achievement_definition_id,
            'source_game_id': self.source_game_id,
            'kpi_id': self.kpi_id,
            'description': self.description,
        }


@dataclass(frozen=True)
class FinalizationInputs:
    """Everything read from the store to finalize one game."""
    game_id: Hashable
    stats: List[RawStatEntry]
    kpis: List[KpiDefinition]
    team_ids: List[Hashable]
    roster: Dict[Hashable, Hashable]  # player_id -> team_id, draft pick order
    draft_ranks: Dict[Hashable, int] = field(default_factory=dict)
    display_names: Dict[Hashable, str] = field(default_factory=dict)
    team_names: Dict[Hashable, str] = field(default_factory=dict)


class FinalizationStatus(Enum):
    """States of a single finalize_game call."""
    NOT_STARTED = "not_started"
    COMPUTING = "computing"
    WRITING_TRANSACTIONS = "writing_transactions"
    ALREADY_FINALIZED = "already_finalized"
    SUMMARY_WRITE_FAILED = "summary_write_failed"
    SUCCESS = "success"
    TRANSACTION_WRITE_FAILED = "transaction_write_failed"

    @property
    def is_terminal(self) -> bool:
        return self not in (
            FinalizationStatus.NOT_STARTED,
            FinalizationStatus.COMPUTING,
            FinalizationStatus.WRITING_TRANSACTIONS,
        )


@dataclass(frozen=True)
class FinalizationResult:
    """Outcome of finalize_game."""
    game_id: Hashable
    status: FinalizationStatus
    summary: Optional[GameAchievementsSummary] = None
    transaction_count: int = 0
    error: Optional[Exception] = None
    calculation_skipped: bool = False
    merits_by_player: Dict[Hashable, int] = field(default_factory=dict)

    @classmethod
    def already_finalized(cls, game_id) -> 'FinalizationResult':
        return cls(game_id=game_id, status=FinalizationStatus.ALREADY_FINALIZED)

    @classmethod
    def success(cls, game_id, summary: Optional[GameAchievementsSummary], transaction_count: int,
                merits_by_player: Optional[Dict[Hashable, int]] = None) -> 'FinalizationResult':
        return cls(
            game_id=game_id,
            status=FinalizationStatus.SUCCESS,
            summary=summary,
            transaction_count=transaction_count,
            calculation_skipped=summary is None,
            merits_by_player=dict(merits_by_player or {}),
        )

    @classmethod
    def summary_write_failed(cls, game_id, error: Exception) -> 'FinalizationResult':
        return cls(game_id=game_id, status=FinalizationStatus.SUMMARY_WRITE_FAILED, error=error)

    @classmethod
    def transaction_write_failed(cls, game_id, error: Exception,
                                 summary: GameAchievementsSummary) -> 'FinalizationResult':
        return cls(
            game_id=game_id,
            status=FinalizationStatus.TRANSACTION_WRITE_FAILED,
            summary=summary,
            error=error,
        )

    @property
    def is_success(self) -> bool:
        return self.status == FinalizationStatus.SUCCESS

    @property
    def is_partial(self) -> bool:
        """Summary persisted but merits absent; needs manual reconciliation."""
        return self.status == FinalizationStatus.TRANSACTION_WRITE_FAILED

    @property
    def allows_retry(self) -> bool:
        # Only a failed summary write leaves the store untouched
        return self.status == FinalizationStatus.SUMMARY_WRITE_FAILED
