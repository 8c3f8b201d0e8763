"""
Backend selection for league storage.

One process shares a single DatabaseInterface. DB_TYPE picks it:
sqlite for local runs and tests, supabase for the hosted app.
"""

import logging
import os
from typing import Optional

from .base import DatabaseInterface
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DB_FILENAME = 'futalyst.db'

_db_instance: Optional[DatabaseInterface] = None


def _sqlite_path() -> str:
    # Resolved per call so a test can point DATA_DIR at a temp directory
    data_dir = (
        os.environ.get('DATA_DIR') or
        ('/app/data' if os.path.exists('/app') else 'data')
    )
    return os.path.join(data_dir, DB_FILENAME)


def get_database() -> DatabaseInterface:
    """
    Return the shared league store, creating it on first use.

    DB_TYPE:
    - "sqlite" (default): league tables in DATA_DIR/futalyst.db
    - "supabase": hosted Postgres, needs SUPABASE_URL and SUPABASE_KEY

    Raises:
        ConfigurationError: Unknown DB_TYPE or missing Supabase credentials
    """
    global _db_instance

    if _db_instance is not None:
        return _db_instance

    db_type = os.environ.get('DB_TYPE', 'sqlite').lower()
    logger.info(f"[*] League storage: {db_type}")

    if db_type == 'sqlite':
        from .sqlite_db import SQLiteDatabase
        db: DatabaseInterface = SQLiteDatabase(db_path=_sqlite_path())
    elif db_type == 'supabase':
        from .supabase_db import SupabaseDatabase
        db = SupabaseDatabase()
    else:
        raise ConfigurationError(
            f"Unknown DB_TYPE: {db_type}. Valid options: sqlite, supabase"
        )

    db.initialize()
    _db_instance = db
    return _db_instance


def reset_database() -> None:
    """Close and forget the shared store (tests, config switches)."""
    global _db_instance
    if _db_instance is not None:
        _db_instance.close()
        _db_instance = None
