"""Repository facades exposing typed accessors over low-level mixins.

The suggestion repository satisfies the domain protocol::

    from app.domain.suggestion_store import SuggestionStore
    from infrastructure.database.repositories.suggestions import SuggestionRepository
"""

from infrastructure.database.repositories.suggestions import SuggestionRepository

__all__ = ["SuggestionRepository"]
