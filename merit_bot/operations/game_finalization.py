"""
Game Finalization Operations

Single entry point for ending a game: finalize_game(game_id).

Flow of one call:
    NOT_STARTED -> COMPUTING -> ALREADY_FINALIZED
                             -> SUMMARY_WRITE_FAILED
                             -> WRITING_TRANSACTIONS -> SUCCESS
                                                     -> TRANSACTION_WRITE_FAILED

1. Compute aggregation -> achievements -> merit transactions (in memory).
2. Insert the achievements summary. A failure stops here; nothing persisted.
3. Insert the merit transactions as one batch. A failure here leaves the
   game partially finalized (summary without merits). There is no rollback
   of step 2: the result carries the persisted summary for manual
   reconciliation.

Neither write is retried. Merit balances are maintained by the store
reacting to new ledger rows and are not part of this flow.
"""

from dataclasses import dataclass
from typing import Dict, Hashable, List, Optional

from sqlalchemy.exc import IntegrityError

from merit_bot.config import Config
from merit_bot.data_models.finalization import (
    FinalizationInputs, FinalizationResult, FinalizationStatus,
    GameAchievementsSummary, MeritTransactionDraft
)
from merit_bot.database.finalization_operations import FinalizationOperations
from merit_bot.services.achievement_calculator import AchievementCalculator
from merit_bot.services.achievement_catalog import AchievementCatalog
from merit_bot.services.achievement_definitions import AchievementDefinitionService
from merit_bot.services.finalization_lock import FinalizationLock, InMemoryFinalizationLock
from merit_bot.services.merit_ledger_builder import MeritLedgerBuilder
from merit_bot.services.stat_aggregator import StatAggregator
from merit_bot.utils.finalization_exceptions import (
    ConfigurationMissingError, GameNotFoundError, SummaryWriteError, TransactionWriteError
)
from merit_bot.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class FinalizationPlan:
    """Everything computed in step 1, before any write."""
    summary: Optional[GameAchievementsSummary]
    transactions: List[MeritTransactionDraft]
    merits_by_player: Dict[Hashable, int]
    catalog: AchievementCatalog


class GameFinalizationOperations:
    """
    Finalizes games exactly once.

    Different games finalize independently; the only state shared between
    calls is the lock.
    """

    def __init__(self, database, lock: Optional[FinalizationLock] = None,
                 operations: Optional[FinalizationOperations] = None,
                 strict_catalog: Optional[bool] = None,
                 definition_service: Optional[AchievementDefinitionService] = None):
        self.db = database
        self.operations = operations or FinalizationOperations(database)
        self.definition_service = definition_service or AchievementDefinitionService(database.session_factory)
        self.lock = lock or InMemoryFinalizationLock()
        self.strict_catalog = Config.STRICT_ACHIEVEMENT_CATALOG if strict_catalog is None else strict_catalog
        self.aggregator = StatAggregator()
        self.calculator = AchievementCalculator()
        self.logger = logger

    def _transition(self, game_id: Hashable, status: FinalizationStatus) -> FinalizationStatus:
        self.logger.info(f"Game {game_id} finalization: {status.value}")
        return status

    async def finalize_game(self, game_id: Hashable) -> FinalizationResult:
        """
        End a game: persist its achievements summary and merit transactions once.

        Returns:
            FinalizationResult with status ALREADY_FINALIZED, SUCCESS,
            SUMMARY_WRITE_FAILED or TRANSACTION_WRITE_FAILED

        Raises:
            FinalizationInProgressError: Another call holds the lock for this game
            ConfigurationMissingError: Achievement catalog could not be loaded
            GameNotFoundError: No such game
        """
        self._transition(game_id, FinalizationStatus.NOT_STARTED)

        async with self.lock.hold(game_id):
            self._transition(game_id, FinalizationStatus.COMPUTING)

            try:
                definitions = await self.definition_service.list_definitions()
            except Exception as e:
                self.logger.error(f"Failed to load achievement definitions: {e}", exc_info=True)
                raise ConfigurationMissingError(str(e)) from e
            catalog = AchievementCatalog.from_definitions(definitions, strict=self.strict_catalog)

            if await self.operations.get_game_achievements(game_id) is not None:
                self._transition(game_id, FinalizationStatus.ALREADY_FINALIZED)
                return FinalizationResult.already_finalized(game_id)

            if await self.operations.get_game(game_id) is None:
                raise GameNotFoundError(game_id)

            inputs = await self.operations.load_finalization_inputs(game_id)
            plan = self.compute(inputs, catalog)

            if plan.summary is not None:
                try:
                    await self.operations.create_game_achievements(plan.summary)
                except IntegrityError as e:
                    # Another session won the race past the existence check
                    if await self.operations.get_game_achievements(game_id) is not None:
                        self.logger.warning(f"Game {game_id} was finalized concurrently; no merits written")
                        self._transition(game_id, FinalizationStatus.ALREADY_FINALIZED)
                        return FinalizationResult.already_finalized(game_id)
                    return self._summary_failed(game_id, e)
                except Exception as e:
                    return self._summary_failed(game_id, e)

            self._transition(game_id, FinalizationStatus.WRITING_TRANSACTIONS)
            if plan.transactions:
                try:
                    await self.operations.create_merit_transactions(plan.transactions)
                except Exception as e:
                    error = TransactionWriteError(game_id, len(plan.transactions), str(e))
                    self.logger.error(
                        f"Game {game_id} is PARTIALLY finalized: summary persisted "
                        f"(MVP {plan.summary.overall_mvp_player_id}, winning team {plan.summary.winning_team_id}) but "
                        f"{len(plan.transactions)} merit transactions were not. Manual reconciliation required.",
                        exc_info=True
                    )
                    self._transition(game_id, FinalizationStatus.TRANSACTION_WRITE_FAILED)
                    return FinalizationResult.transaction_write_failed(game_id, error, plan.summary)

            self._transition(game_id, FinalizationStatus.SUCCESS)
            return FinalizationResult.success(
                game_id, plan.summary, len(plan.transactions), plan.merits_by_player
            )

    def compute(self, inputs: FinalizationInputs, catalog: AchievementCatalog) -> FinalizationPlan:
        """Pure step: stats -> summary -> merit transactions."""
        aggregated = self.aggregator.aggregate(inputs.stats, inputs.kpis, inputs.roster)
        team_rosters = self.aggregator.build_team_rosters(inputs.team_ids, aggregated, inputs.roster)

        summary = self.calculator.calculate(
            inputs.game_id,
            aggregated,
            team_rosters,
            inputs.kpis,
            draft_ranks=inputs.draft_ranks,
            display_names=inputs.display_names,
        )

        builder = MeritLedgerBuilder(catalog)
        transactions = builder.build(
            summary,
            team_rosters,
            kpi_names={kpi.id: kpi.name for kpi in inputs.kpis},
            team_names=inputs.team_names,
        )
        return FinalizationPlan(summary, transactions, builder.merits_by_player(transactions), catalog)

    def _summary_failed(self, game_id: Hashable, cause: Exception) -> FinalizationResult:
        error = SummaryWriteError(game_id, str(cause))
        self.logger.error(f"Failed to write achievements summary for game {game_id}: {cause}", exc_info=True)
        self._transition(game_id, FinalizationStatus.SUMMARY_WRITE_FAILED)
        return FinalizationResult.summary_write_failed(game_id, error)
