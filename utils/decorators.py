"""
Location: utils/decorators.py
Summary: Reusable decorators for command handlers.
         Logs exceptions from async handlers before re-raising them.

Used by: commands.py wraps request_summary so failures are logged before the
         app command error handler answers the user.
"""

import logging
from functools import wraps
from typing import Callable

logger = logging.getLogger(__name__)


def with_error_handling(func: Callable) -> Callable:
    """Log exceptions from an async handler, then re-raise them.

    The app command error handler still answers the user; this only makes
    sure the failing handler's name and traceback reach the log.

    Args:
        func: The async function to wrap.

    Returns:
        Wrapped async function with error logging.
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {func.__name__}: {e}", exc_info=True)
            raise
    return wrapper
