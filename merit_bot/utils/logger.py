import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from merit_bot.config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

def log_file_path(log_dir: Optional[str] = None, day: Optional[datetime] = None) -> Path:
    """Daily log file, e.g. logs/merit_bot_20250101.log"""
    day = day or datetime.now()
    return Path(log_dir or Config.LOG_DIR) / f'merit_bot_{day.strftime("%Y%m%d")}.log'

def setup_logger(name: str, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Logger writing to stdout and to the daily file under Config.LOG_DIR.

    Handlers are attached once per name, so module-level calls are safe.
    The file always records DEBUG; stdout follows Config.DEBUG.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    console_level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    path = log_file_path(log_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
