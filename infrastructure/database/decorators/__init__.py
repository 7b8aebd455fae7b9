"""Database decorators for error translation."""

from infrastructure.database.decorators.errors import translates_db_errors

__all__ = ["translates_db_errors"]
