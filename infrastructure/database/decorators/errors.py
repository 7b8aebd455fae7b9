"""
Repository Error Translation
============================

Wraps repository methods so that driver exceptions leave the persistence
layer as :class:`~app.domain.exceptions.RepositoryError`.

Architecture:
    Service -> Repository Method -> @translates_db_errors -> sqlite3
"""

from __future__ import annotations

import functools
import logging
import sqlite3
from typing import Any, Callable, TypeVar, cast

from app.domain.exceptions import RepositoryError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def translates_db_errors(operation: str) -> Callable[[F], F]:
    """
    Convert ``sqlite3.Error`` raised by the wrapped method into RepositoryError.

    Usage:
        class SuggestionRepository:
            @translates_db_errors("delete suggestions by rod")
            def delete_by_rod(self, rod_id: str) -> int:
                return self._backend.delete_suggestions_for_rod(rod_id)

    Args:
        operation: Short description used in the error message and log line
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except sqlite3.Error as exc:
                logger.debug("Repository operation '%s' failed: %s", operation, exc)
                raise RepositoryError(
                    f"Database error during {operation}: {exc}",
                    detail={"operation": operation, "driver_error": type(exc).__name__},
                ) from exc

        return cast(F, wrapper)

    return decorator
