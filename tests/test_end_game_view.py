"""
End Game button state tests

The button may be clicked again only when an attempt left nothing persisted.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from merit_bot.data_models.finalization import FinalizationResult, FinalizationStatus
from merit_bot.ui.end_game_view import should_reenable
from merit_bot.utils.finalization_exceptions import (
    ConfigurationMissingError, FinalizationInProgressError, GameNotFoundError,
    SummaryWriteError, TransactionWriteError
)


def test_success_keeps_button_disabled():
    assert not should_reenable(FinalizationResult.success(1, None, 0))


def test_already_finalized_keeps_button_disabled():
    assert not should_reenable(FinalizationResult.already_finalized(1))


def test_summary_failure_allows_retry():
    result = FinalizationResult.summary_write_failed(1, SummaryWriteError(1, "locked"))
    assert result.status == FinalizationStatus.SUMMARY_WRITE_FAILED
    assert should_reenable(result)


def test_partial_failure_keeps_button_disabled():
    result = FinalizationResult.transaction_write_failed(1, TransactionWriteError(1, 8, "reset"), summary=None)
    assert result.is_partial
    assert not should_reenable(result)


def test_transient_errors_allow_retry():
    assert should_reenable(error=ConfigurationMissingError("no definitions"))
    assert should_reenable(error=FinalizationInProgressError(1))


def test_other_errors_keep_button_disabled():
    assert not should_reenable(error=GameNotFoundError(1))
    assert not should_reenable(error=RuntimeError("boom"))


def test_status_terminal_flags():
    assert FinalizationStatus.SUCCESS.is_terminal
    assert FinalizationStatus.TRANSACTION_WRITE_FAILED.is_terminal
    assert not FinalizationStatus.COMPUTING.is_terminal
    assert not FinalizationStatus.WRITING_TRANSACTIONS.is_terminal
