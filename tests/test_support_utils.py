"""
Service base and logger tests

Read retries only cover transient database errors; loggers attach their
handlers once and write the daily file under the configured directory.
"""

import asyncio
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from sqlalchemy.exc import OperationalError

from merit_bot.services.base import BaseService
from merit_bot.utils.logger import log_file_path, setup_logger


def make_read(failures, error):
    calls = []

    async def read():
        calls.append(1)
        if len(calls) <= failures:
            raise error
        return 'definitions'

    return read, calls


def test_transient_error_is_retried():
    read, calls = make_read(2, OperationalError("SELECT 1", {}, Exception("database is locked")))
    result = asyncio.run(BaseService(None).execute_with_retry(read, base_delay=0))
    assert result == 'definitions'
    assert len(calls) == 3


def test_transient_error_gives_up_after_max_attempts():
    read, calls = make_read(5, OperationalError("SELECT 1", {}, Exception("database is locked")))
    with pytest.raises(OperationalError):
        asyncio.run(BaseService(None).execute_with_retry(read, max_attempts=2, base_delay=0))
    assert len(calls) == 2


def test_other_errors_are_not_retried():
    read, calls = make_read(1, ValueError("bad row"))
    with pytest.raises(ValueError):
        asyncio.run(BaseService(None).execute_with_retry(read, base_delay=0))
    assert len(calls) == 1


def test_logger_writes_daily_file_once(tmp_path):
    logger = setup_logger('merit_bot.tests.daily_file', log_dir=str(tmp_path / 'nested' / 'logs'))
    try:
        assert setup_logger('merit_bot.tests.daily_file') is logger
        assert len(logger.handlers) == 2

        logger.debug("catalog loaded")
        for handler in logger.handlers:
            handler.flush()

        path = log_file_path(str(tmp_path / 'nested' / 'logs'))
        assert path.exists()
        assert "DEBUG - catalog loaded" in path.read_text(encoding='utf-8')
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
