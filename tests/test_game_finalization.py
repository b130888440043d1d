"""
Game finalization test suite

Runs finalize_game against a real SQLite database:
1. Scenario A end to end (summary, ledger order, merit balances)
2. Unknown KPI entries
3. Idempotency and concurrent invocations
4. Summary and transaction write failures
5. Catalog configuration errors
"""

import asyncio
import json
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from sqlalchemy import delete, func, select

from merit_bot.data_models.finalization import FinalizationStatus
from merit_bot.database.database import Database
from merit_bot.database.finalization_operations import FinalizationOperations
from merit_bot.database.models import AchievementDefinitionRecord, GameAchievements, MeritTransaction
from merit_bot.operations.game_finalization import GameFinalizationOperations
from merit_bot.services.achievement_definitions import AchievementDefinitionService
from merit_bot.services.finalization_lock import InMemoryFinalizationLock
from merit_bot.utils.finalization_exceptions import (
    ConfigurationMissingError, FinalizationInProgressError, GameNotFoundError,
    SummaryWriteError, TransactionWriteError
)


async def create_database(tmp_path, name='finalization.db'):
    db = Database(f"sqlite:///{tmp_path / name}")
    await db.initialize()
    await AchievementDefinitionService(db.session_factory).seed_defaults()
    return db


async def create_scenario_a(db):
    """4 players on 2 teams, Goals worth 10 points per unit."""
    players = {}
    for name in ('A', 'B', 'C', 'D'):
        players[name] = (await db.create_profile(name)).id
    red = (await db.create_team('Red')).id
    blue = (await db.create_team('Blue')).id
    game = await db.create_game('Scenario A')
    goals = await db.create_kpi('Goals', 10)
    await db.add_kpi_to_game(game.id, goals.id)

    picks = [('A', red), ('C', blue), ('B', red), ('D', blue)]
    for pick_number, (name, team_id) in enumerate(picks, start=1):
        await db.add_draft_pick(game.id, team_id, players[name], pick_number)

    for name, team_id, value in [('A', red, 3), ('B', red, 1), ('C', blue, 2), ('D', blue, 0)]:
        await db.record_stat(game.id, players[name], goals.id, value, team_id=team_id)

    return game.id, players, {'Red': red, 'Blue': blue, 'Goals': goals.id}


async def count_rows(db, model):
    async with db.get_session() as session:
        return await session.scalar(select(func.count()).select_from(model))


class FailingSummaryOperations(FinalizationOperations):
    async def create_game_achievements(self, summary):
        raise RuntimeError("disk full")


class FailingTransactionOperations(FinalizationOperations):
    async def create_merit_transactions(self, drafts):
        raise RuntimeError("connection reset")


class UnavailableDefinitionService(AchievementDefinitionService):
    async def list_definitions(self):
        raise RuntimeError("database is locked")


class RacingOperations(FinalizationOperations):
    """Misses an existing summary on the first check, as a concurrent writer would."""

    def __init__(self, database):
        super().__init__(database)
        self.checks = 0

    async def get_game_achievements(self, game_id):
        self.checks += 1
        if self.checks == 1:
            return None
        return await super().get_game_achievements(game_id)


def test_scenario_a_end_to_end(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, players, ids = await create_scenario_a(db)
            ops = GameFinalizationOperations(db, strict_catalog=True)

            result = await ops.finalize_game(game_id)

            assert result.status == FinalizationStatus.SUCCESS
            assert result.transaction_count == 8
            assert result.summary.overall_mvp_player_id == players['A']

            record = await ops.operations.get_game_achievements(game_id)
            assert record.overall_mvp_player_id == players['A']
            assert record.winning_team_id == ids['Red']
            assert json.loads(record.team_scores) == {str(ids['Red']): 40, str(ids['Blue']): 20}
            podium = json.loads(record.podium_finishers)
            assert [(p['player_id'], p['rank'], p['score']) for p in podium] == [
                (players['A'], 1, 30), (players['C'], 2, 20), (players['B'], 3, 10)
            ]
            assert podium[0]['player_display_name'] == 'A'
            kpi_winners = json.loads(record.kpi_winners)
            assert kpi_winners == [{'kpi_id': ids['Goals'], 'player_id': players['A'], 'value': 3}]
            leaders = json.loads(record.team_leader_mvps)
            assert [(m['team_id'], m['leader_player_id']) for m in leaders] == [
                (ids['Red'], players['A']), (ids['Blue'], players['C'])
            ]

            transactions = await ops.operations.get_merit_transactions(game_id)
            assert [(t.player_id, t.transaction_type, t.amount) for t in transactions] == [
                (players['A'], 'achievement_reward', 500),
                (players['C'], 'achievement_reward', 200),
                (players['B'], 'achievement_reward', 150),
                (players['A'], 'kpi_bonus', 250),
                (players['A'], 'team_win_reward', 100),
                (players['B'], 'team_win_reward', 100),
                (players['A'], 'team_mvp_reward', 300),
                (players['C'], 'team_mvp_reward', 300),
            ]
            assert transactions[3].kpi_id == ids['Goals']
            assert transactions[3].description == f"Top performer for KPI: Goals with value 3 in game {game_id}"
            assert transactions[6].description == f"Team Leader MVP for team Red in game {game_id}"
        finally:
            await db.close()

    asyncio.run(scenario())


def test_merit_balances_follow_the_ledger(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, players, _ = await create_scenario_a(db)
            result = await GameFinalizationOperations(db).finalize_game(game_id)

            assert result.merits_by_player == {
                players['A']: 1150, players['C']: 500, players['B']: 250
            }
            for name, expected in [('A', 1150), ('B', 250), ('C', 500), ('D', 0)]:
                profile = await db.get_profile(players[name])
                assert profile.merit_balance == expected
        finally:
            await db.close()

    asyncio.run(scenario())


def test_unknown_kpi_entry_is_skipped(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, players, ids = await create_scenario_a(db)
            # KPI 999 is not attached to the game
            await db.record_stat(game_id, players['D'], 999, 50, team_id=ids['Blue'])

            ops = GameFinalizationOperations(db)
            result = await ops.finalize_game(game_id)

            assert result.status == FinalizationStatus.SUCCESS
            assert [w.kpi_id for w in result.summary.kpi_winners] == [ids['Goals']]
            assert result.summary.overall_mvp_player_id == players['A']
            assert result.transaction_count == 8
        finally:
            await db.close()

    asyncio.run(scenario())


def test_second_call_is_already_finalized(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, _, _ = await create_scenario_a(db)
            ops = GameFinalizationOperations(db)

            first = await ops.finalize_game(game_id)
            second = await ops.finalize_game(game_id)

            assert first.status == FinalizationStatus.SUCCESS
            assert second.status == FinalizationStatus.ALREADY_FINALIZED
            assert second.transaction_count == 0
            assert await count_rows(db, GameAchievements) == 1
            assert await count_rows(db, MeritTransaction) == 8
        finally:
            await db.close()

    asyncio.run(scenario())


def test_concurrent_calls_finalize_once(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, _, _ = await create_scenario_a(db)
            ops = GameFinalizationOperations(db)

            results = await asyncio.gather(
                ops.finalize_game(game_id), ops.finalize_game(game_id), return_exceptions=True
            )

            successes = [r for r in results if not isinstance(r, Exception) and r.is_success]
            rejected = [r for r in results if isinstance(r, FinalizationInProgressError)]
            assert len(successes) == 1
            assert len(rejected) == 1
            assert await count_rows(db, MeritTransaction) == 8
            assert not ops.lock.is_held(game_id)
        finally:
            await db.close()

    asyncio.run(scenario())


def test_held_lock_rejects_finalization(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, _, _ = await create_scenario_a(db)
            lock = InMemoryFinalizationLock()
            await lock.acquire(game_id)
            ops = GameFinalizationOperations(db, lock=lock)

            with pytest.raises(FinalizationInProgressError):
                await ops.finalize_game(game_id)
            assert await count_rows(db, GameAchievements) == 0

            await lock.release(game_id)
            result = await ops.finalize_game(game_id)
            assert result.is_success
        finally:
            await db.close()

    asyncio.run(scenario())


def test_race_past_existence_check_is_already_finalized(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, _, _ = await create_scenario_a(db)
            await GameFinalizationOperations(db).finalize_game(game_id)

            racing = GameFinalizationOperations(db, operations=RacingOperations(db))
            result = await racing.finalize_game(game_id)

            assert result.status == FinalizationStatus.ALREADY_FINALIZED
            assert await count_rows(db, GameAchievements) == 1
            assert await count_rows(db, MeritTransaction) == 8
        finally:
            await db.close()

    asyncio.run(scenario())


def test_summary_write_failure_persists_nothing(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, _, _ = await create_scenario_a(db)
            failing = GameFinalizationOperations(db, operations=FailingSummaryOperations(db))

            result = await failing.finalize_game(game_id)

            assert result.status == FinalizationStatus.SUMMARY_WRITE_FAILED
            assert isinstance(result.error, SummaryWriteError)
            assert result.allows_retry
            assert await count_rows(db, GameAchievements) == 0
            assert await count_rows(db, MeritTransaction) == 0

            retry = await GameFinalizationOperations(db).finalize_game(game_id)
            assert retry.is_success
            assert retry.transaction_count == 8
        finally:
            await db.close()

    asyncio.run(scenario())


def test_transaction_write_failure_is_partial(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, players, _ = await create_scenario_a(db)
            failing = GameFinalizationOperations(db, operations=FailingTransactionOperations(db))

            result = await failing.finalize_game(game_id)

            assert result.status == FinalizationStatus.TRANSACTION_WRITE_FAILED
            assert result.is_partial
            assert not result.allows_retry
            assert isinstance(result.error, TransactionWriteError)
            assert result.error.transaction_count == 8
            assert result.summary.overall_mvp_player_id == players['A']
            assert await count_rows(db, GameAchievements) == 1
            assert await count_rows(db, MeritTransaction) == 0

            # The summary blocks any later attempt; no merits are written
            again = await GameFinalizationOperations(db).finalize_game(game_id)
            assert again.status == FinalizationStatus.ALREADY_FINALIZED
            assert await count_rows(db, MeritTransaction) == 0
        finally:
            await db.close()

    asyncio.run(scenario())


def test_no_positive_scores_writes_nothing(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            profile = await db.create_profile('Zero')
            team = await db.create_team('Red')
            game = await db.create_game('Scoreless')
            goals = await db.create_kpi('Goals', 10)
            await db.add_kpi_to_game(game.id, goals.id)
            await db.add_draft_pick(game.id, team.id, profile.id, 1)
            await db.record_stat(game.id, profile.id, goals.id, 0, team_id=team.id)

            result = await GameFinalizationOperations(db).finalize_game(game.id)

            assert result.status == FinalizationStatus.SUCCESS
            assert result.calculation_skipped
            assert result.summary is None
            assert result.transaction_count == 0
            assert await count_rows(db, GameAchievements) == 0
            assert await count_rows(db, MeritTransaction) == 0
        finally:
            await db.close()

    asyncio.run(scenario())


def test_missing_game_raises(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            with pytest.raises(GameNotFoundError):
                await GameFinalizationOperations(db).finalize_game(12345)
        finally:
            await db.close()

    asyncio.run(scenario())


def test_strict_catalog_with_missing_definition_raises(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, _, _ = await create_scenario_a(db)
            async with db.transaction() as session:
                await session.execute(
                    delete(AchievementDefinitionRecord).where(AchievementDefinitionRecord.name == 'KPI Achiever')
                )

            ops = GameFinalizationOperations(db, strict_catalog=True)
            with pytest.raises(ConfigurationMissingError):
                await ops.finalize_game(game_id)
            assert await count_rows(db, GameAchievements) == 0
            assert not ops.lock.is_held(game_id)

            lenient = await GameFinalizationOperations(db, strict_catalog=False).finalize_game(game_id)
            transactions = await FinalizationOperations(db).get_merit_transactions(game_id)
            kpi_bonus = [t for t in transactions if t.transaction_type == 'kpi_bonus']
            assert lenient.is_success
            assert kpi_bonus[0].amount == 250
            assert kpi_bonus[0].source_achievement_definition_id is None
        finally:
            await db.close()

    asyncio.run(scenario())


def test_custom_reward_is_used(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, players, _ = await create_scenario_a(db)
            service = AchievementDefinitionService(db.session_factory)
            await service.set_reward('Overall Game MVP', 42)
            await service.set_reward('Winning Team Member', 0)

            result = await GameFinalizationOperations(db).finalize_game(game_id)

            assert result.transaction_count == 6
            transactions = await FinalizationOperations(db).get_merit_transactions(game_id)
            assert transactions[0].amount == 42
            assert all(t.transaction_type != 'team_win_reward' for t in transactions)
            assert (await db.get_profile(players['B'])).merit_balance == 150
        finally:
            await db.close()

    asyncio.run(scenario())


def test_results_are_deterministic(tmp_path):
    async def finalize(name):
        db = await create_database(tmp_path, name)
        try:
            game_id, _, _ = await create_scenario_a(db)
            result = await GameFinalizationOperations(db).finalize_game(game_id)
            transactions = await FinalizationOperations(db).get_merit_transactions(game_id)
            return result.summary.to_payload(), [
                (t.player_id, t.amount, t.transaction_type, t.description) for t in transactions
            ]
        finally:
            await db.close()

    async def scenario():
        return await finalize('first.db'), await finalize('second.db')

    first, second = asyncio.run(scenario())
    assert first == second


def test_catalog_comes_from_definition_service(tmp_path):
    async def scenario():
        db = await create_database(tmp_path)
        try:
            game_id, _, _ = await create_scenario_a(db)
            broken = GameFinalizationOperations(
                db, definition_service=UnavailableDefinitionService(db.session_factory)
            )

            with pytest.raises(ConfigurationMissingError):
                await broken.finalize_game(game_id)
            assert await count_rows(db, GameAchievements) == 0
            assert not broken.lock.is_held(game_id)

            service = AchievementDefinitionService(db.session_factory)
            await service.set_reward('KPI Achiever', 77)
            result = await GameFinalizationOperations(db, definition_service=service).finalize_game(game_id)

            transactions = await FinalizationOperations(db).get_merit_transactions(game_id)
            assert result.is_success
            assert [t.amount for t in transactions if t.transaction_type == 'kpi_bonus'] == [77]
        finally:
            await db.close()

    asyncio.run(scenario())
