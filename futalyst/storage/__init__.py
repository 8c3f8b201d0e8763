"""
Storage module for challenge league data.

Provides a unified interface for multiple database backends:
- SQLite (local development, self-hosted, tests)
- Supabase (PostgreSQL, the production app's backend)

Usage:
    from futalyst.storage import get_database

    db = get_database()  # Uses DB_TYPE env var
    league = db.get_league(league_id)
"""

from .base import DatabaseInterface
from .factory import get_database, reset_database
from .exceptions import (
    DatabaseError,
    ConnectionError,
    ConfigurationError,
    SchemaError,
    QueryError,
    ConstraintError
)

__all__ = [
    'DatabaseInterface',
    'get_database',
    'reset_database',
    'DatabaseError',
    'ConnectionError',
    'ConfigurationError',
    'SchemaError',
    'QueryError',
    'ConstraintError'
]
