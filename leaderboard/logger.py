import logging
from typing import Optional

from .config import leaderboard

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

_configured = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a service logger, configuring the root handler on first use"""
    global _configured
    if not _configured:
        logging.basicConfig(level=leaderboard.log_level.upper(), format=LOG_FORMAT)
        _configured = True
    return logging.getLogger(name or 'leaderboard')
