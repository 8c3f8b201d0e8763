"""
SQLite Database Storage for FUTALYST challenge leagues.

Provides storage and retrieval of league data with:
- Atomic transactions for multi-row writes (league creation, result replacement)
- Capacity-checked joins under an immediate (write-locked) transaction
- Concurrent read access via WAL mode

This is the SQLite implementation of the DatabaseInterface.
"""

import sqlite3
import json
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Iterator, List, Dict, Any
import threading

from .base import DatabaseInterface
from .exceptions import ConstraintError, SchemaError


LEAGUE_COLUMNS = (
    'id', 'name', 'admin_user_id', 'league_code', 'max_participants',
    'champs_run_end_date', 'status', 'game_version', 'description',
    'created_at', 'completed_at', 'last_evaluated_at'
)

UPDATABLE_LEAGUE_COLUMNS = {
    'name', 'description', 'status', 'champs_run_end_date',
    'completed_at', 'last_evaluated_at'
}


class SQLiteDatabase(DatabaseInterface):
    """
    SQLite database for league data storage.
    Thread-safe with connection per thread.

    Implements the DatabaseInterface abstract base class.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str = "data/futalyst.db"):
        """
        Create SQLite database instance.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> None:
        """Initialize the database connection and schema."""
        if self._initialized:
            return

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._init_schema()
        except sqlite3.Error as e:
            raise SchemaError(f"Failed to initialize SQLite schema: {e}")
        self._initialized = True

    def close(self) -> None:
        """Close database connections and clean up resources."""
        if hasattr(self._local, 'conn') and self._local.conn is not None:
            self._local.conn.close()
            self._local.conn = None

    def health_check(self) -> bool:
        """Check if the database connection is healthy."""
        try:
            conn = self._get_connection()
            conn.execute("SELECT 1")
            return True
        except Exception:
            return False

    # =========================================================================
    # CONNECTION MANAGEMENT
    # =========================================================================

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            self._local.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=30.0
            )
            self._local.conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrent access
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA synchronous=NORMAL")
        return self._local.conn

    @contextmanager
    def transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database transactions.

        Args:
            immediate: Take the write lock up front, so reads inside the
                       transaction cannot be invalidated by another writer
        """
        conn = self._get_connection()
        if immediate and not conn.in_transaction:
            conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self.transaction() as conn:
            conn.executescript('''
                -- Metadata table
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                -- Leagues
                CREATE TABLE IF NOT EXISTS champs_leagues (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    admin_user_id TEXT NOT NULL,
                    league_code TEXT NOT NULL UNIQUE,
                    max_participants INTEGER NOT NULL DEFAULT 20,
                    champs_run_end_date TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'active',
                    game_version TEXT NOT NULL,
                    description TEXT,
                    created_at TEXT,
                    completed_at TEXT,
                    last_evaluated_at TEXT
                );

                -- Selected challenges per league
                CREATE TABLE IF NOT EXISTS champs_league_challenges (
                    league_id TEXT NOT NULL,
                    challenge_id TEXT NOT NULL,
                    points INTEGER NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (league_id, challenge_id)
                );

                -- Participants (one slot per league and user)
                CREATE TABLE IF NOT EXISTS champs_league_participants (
                    league_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    weekly_performance_id TEXT,
                    joined_at TEXT NOT NULL,
                    PRIMARY KEY (league_id, user_id)
                );

                -- Invites
                CREATE TABLE IF NOT EXISTS league_invites (
                    id TEXT PRIMARY KEY,
                    league_id TEXT NOT NULL,
                    inviter_id TEXT NOT NULL,
                    invitee_id TEXT NOT NULL,
                    token TEXT NOT NULL UNIQUE,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TEXT
                );

                -- Evaluator output
                CREATE TABLE IF NOT EXISTS champs_league_challenge_results (
                    league_id TEXT NOT NULL,
                    challenge_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    points_awarded INTEGER NOT NULL DEFAULT 0,
                    rank INTEGER,
                    metric_value TEXT,
                    achieved_at TEXT,
                    game_achieved INTEGER,
                    PRIMARY KEY (league_id, challenge_id, user_id)
                );

                -- Run snapshots (read-only input to the evaluator)
                CREATE TABLE IF NOT EXISTS league_runs (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    game_version TEXT NOT NULL,
                    week_number INTEGER,
                    data JSON NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                -- Indexes for fast queries
                CREATE INDEX IF NOT EXISTS idx_leagues_status_end
                    ON champs_leagues(status, champs_run_end_date);
                CREATE INDEX IF NOT EXISTS idx_participants_user
                    ON champs_league_participants(user_id);
                CREATE INDEX IF NOT EXISTS idx_participants_run
                    ON champs_league_participants(weekly_performance_id);
                CREATE INDEX IF NOT EXISTS idx_invites_invitee
                    ON league_invites(invitee_id, status);
                CREATE INDEX IF NOT EXISTS idx_runs_user
                    ON league_runs(user_id, game_version);
            ''')

            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                ('schema_version', str(self.SCHEMA_VERSION))
            )

    # =========================================================================
    # LEAGUES
    # =========================================================================

    def create_league(
        self,
        league: Dict[str, Any],
        challenges: List[Dict[str, Any]],
        admin_participant: Dict[str, Any],
        invites: List[Dict[str, Any]]
    ) -> None:
        """Create a league and its rows in one transaction."""
        league_id = league['id']
        try:
            with self.transaction() as conn:
                conn.execute(f'''
                    INSERT INTO champs_leagues ({", ".join(LEAGUE_COLUMNS)})
                    VALUES ({", ".join("?" for _ in LEAGUE_COLUMNS)})
                ''', tuple(league.get(col) for col in LEAGUE_COLUMNS))

                conn.executemany('''
                    INSERT INTO champs_league_challenges (league_id, challenge_id, points, position)
                    VALUES (?, ?, ?, ?)
                ''', [
                    (league_id, c['challenge_id'], c['points'], position)
                    for position, c in enumerate(challenges)
                ])

                conn.execute('''
                    INSERT INTO champs_league_participants
                    (league_id, user_id, weekly_performance_id, joined_at)
                    VALUES (?, ?, ?, ?)
                ''', (
                    league_id,
                    admin_participant['user_id'],
                    admin_participant.get('weekly_performance_id'),
                    admin_participant['joined_at']
                ))

                conn.executemany('''
                    INSERT INTO league_invites
                    (id, league_id, inviter_id, invitee_id, token, status, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', [
                    (
                        i['id'],
                        league_id,
                        i['inviter_id'],
                        i['invitee_id'],
                        i['token'],
                        i.get('status', 'pending'),
                        i.get('created_at')
                    )
                    for i in invites
                ])
        except sqlite3.IntegrityError as e:
            raise ConstraintError(f"Failed to create league {league_id}: {e}")

    def get_league(self, league_id: str) -> Optional[Dict[str, Any]]:
        """Get a league by id."""
        conn = self._get_connection()
        row = conn.execute(
            'SELECT * FROM champs_leagues WHERE id = ?', (league_id,)
        ).fetchone()
        return dict(row) if row else None

    def get_league_by_code(self, league_code: str) -> Optional[Dict[str, Any]]:
        """Get a league by join code."""
        conn = self._get_connection()
        row = conn.execute(
            'SELECT * FROM champs_leagues WHERE league_code = ?', (league_code,)
        ).fetchone()
        return dict(row) if row else None

    def list_leagues_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Get leagues the user participates in, newest first."""
        conn = self._get_connection()
        rows = conn.execute('''
            SELECT l.*
            FROM champs_leagues l
            JOIN champs_league_participants p ON p.league_id = l.id
            WHERE p.user_id = ?
            ORDER BY l.created_at DESC, l.id
        ''', (user_id,)).fetchall()
        return [dict(row) for row in rows]

    def list_expired_leagues(self, now: str) -> List[Dict[str, Any]]:
        """Get active leagues past their end date."""
        conn = self._get_connection()
        rows = conn.execute('''
            SELECT * FROM champs_leagues
            WHERE status = 'active' AND champs_run_end_date <= ?
            ORDER BY champs_run_end_date
        ''', (now,)).fetchall()
        return [dict(row) for row in rows]

    def update_league(self, league_id: str, fields: Dict[str, Any]) -> None:
        """Update league columns."""
        unknown = set(fields) - UPDATABLE_LEAGUE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update league columns: {sorted(unknown)}")
        if not fields:
            return

        assignments = ", ".join(f"{col} = ?" for col in fields)
        with self.transaction() as conn:
            conn.execute(
                f'UPDATE champs_leagues SET {assignments} WHERE id = ?',
                (*fields.values(), league_id)
            )

    def delete_league(self, league_id: str) -> None:
        """Delete a league and all its rows."""
        with self.transaction() as conn:
            for table in (
                'champs_league_challenge_results',
                'league_invites',
                'champs_league_participants',
                'champs_league_challenges',
            ):
                conn.execute(f'DELETE FROM {table} WHERE league_id = ?', (league_id,))
            conn.execute('DELETE FROM champs_leagues WHERE id = ?', (league_id,))

    def get_league_challenges(self, league_id: str) -> List[Dict[str, Any]]:
        """Get selected challenges in selection order."""
        conn = self._get_connection()
        rows = conn.execute('''
            SELECT challenge_id, points FROM champs_league_challenges
            WHERE league_id = ?
            ORDER BY position, challenge_id
        ''', (league_id,)).fetchall()
        return [dict(row) for row in rows]

    # =========================================================================
    # PARTICIPANTS
    # =========================================================================

    def add_participant(self, participant: Dict[str, Any], max_participants: int) -> bool:
        """Insert a participant if the league has room."""
        league_id = participant['league_id']
        try:
            with self.transaction(immediate=True) as conn:
                count = conn.execute(
                    'SELECT COUNT(*) FROM champs_league_participants WHERE league_id = ?',
                    (league_id,)
                ).fetchone()[0]

                existing = conn.execute(
                    'SELECT 1 FROM champs_league_participants WHERE league_id = ? AND user_id = ?',
                    (league_id, participant['user_id'])
                ).fetchone()
                if existing:
                    raise ConstraintError(
                        f"Participant {participant['user_id']} already in league {league_id}"
                    )

                if count >= max_participants:
                    return False

                conn.execute('''
                    INSERT INTO champs_league_participants
                    (league_id, user_id, weekly_performance_id, joined_at)
                    VALUES (?, ?, ?, ?)
                ''', (
                    league_id,
                    participant['user_id'],
                    participant.get('weekly_performance_id'),
                    participant['joined_at']
                ))
        except sqlite3.IntegrityError as e:
            raise ConstraintError(str(e))
        return True

    def get_participant(self, league_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Get one participant row."""
        conn = self._get_connection()
        row = conn.execute('''
            SELECT * FROM champs_league_participants
            WHERE league_id = ? AND user_id = ?
        ''', (league_id, user_id)).fetchone()
        return dict(row) if row else None

    def get_participants(self, league_id: str) -> List[Dict[str, Any]]:
        """Get participants ordered by join time."""
        conn = self._get_connection()
        rows = conn.execute('''
            SELECT * FROM champs_league_participants
            WHERE league_id = ?
            ORDER BY joined_at, user_id
        ''', (league_id,)).fetchall()
        return [dict(row) for row in rows]

    def update_participant_run(self, league_id: str, user_id: str, run_id: Optional[str]) -> None:
        """Link or unlink a run."""
        with self.transaction() as conn:
            conn.execute('''
                UPDATE champs_league_participants
                SET weekly_performance_id = ?
                WHERE league_id = ? AND user_id = ?
            ''', (run_id, league_id, user_id))

    def remove_participant(self, league_id: str, user_id: str) -> None:
        """Delete a participant and their results."""
        with self.transaction() as conn:
            conn.execute('''
                DELETE FROM champs_league_challenge_results
                WHERE league_id = ? AND user_id = ?
            ''', (league_id, user_id))
            conn.execute('''
                DELETE FROM champs_league_participants
                WHERE league_id = ? AND user_id = ?
            ''', (league_id, user_id))

    def find_participants_by_run(self, run_id: str) -> List[Dict[str, Any]]:
        """Get participant rows linked to a run."""
        conn = self._get_connection()
        rows = conn.execute('''
            SELECT * FROM champs_league_participants
            WHERE weekly_performance_id = ?
            ORDER BY joined_at, league_id
        ''', (run_id,)).fetchall()
        return [dict(row) for row in rows]

    # =========================================================================
    # INVITES
    # =========================================================================

    def get_invite(self, invite_id: str) -> Optional[Dict[str, Any]]:
        """Get an invite by id."""
        conn = self._get_connection()
        row = conn.execute(
            'SELECT * FROM league_invites WHERE id = ?', (invite_id,)
        ).fetchone()
        return dict(row) if row else None

    def list_pending_invites(self, user_id: str) -> List[Dict[str, Any]]:
        """Get a user's pending invites."""
        conn = self._get_connection()
        rows = conn.execute('''
            SELECT * FROM league_invites
            WHERE invitee_id = ? AND status = 'pending'
            ORDER BY created_at DESC, id
        ''', (user_id,)).fetchall()
        return [dict(row) for row in rows]

    def update_invite_status(self, invite_id: str, status: str) -> None:
        """Set invite status."""
        with self.transaction() as conn:
            conn.execute(
                'UPDATE league_invites SET status = ? WHERE id = ?',
                (status, invite_id)
            )

    def accept_pending_invites(self, league_id: str, user_id: str) -> int:
        """Accept every pending invite of a user for a league."""
        with self.transaction() as conn:
            cursor = conn.execute('''
                UPDATE league_invites SET status = 'accepted'
                WHERE league_id = ? AND invitee_id = ? AND status = 'pending'
            ''', (league_id, user_id))
            return cursor.rowcount

    # =========================================================================
    # CHALLENGE RESULTS
    # =========================================================================

    def replace_challenge_results(self, league_id: str, results: List[Dict[str, Any]]) -> int:
        """Replace all results of a league in one transaction."""
        with self.transaction() as conn:
            conn.execute(
                'DELETE FROM champs_league_challenge_results WHERE league_id = ?',
                (league_id,)
            )
            conn.executemany('''
                INSERT INTO champs_league_challenge_results
                (league_id, challenge_id, user_id, points_awarded, rank,
                 metric_value, achieved_at, game_achieved)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ''', [
                (
                    league_id,
                    r['challenge_id'],
                    r['user_id'],
                    r.get('points_awarded', 0),
                    r.get('rank'),
                    json.dumps(r.get('metric_value')),
                    r.get('achieved_at'),
                    r.get('game_achieved')
                )
                for r in results
            ])
        return len(results)

    def get_challenge_results(self, league_id: str) -> List[Dict[str, Any]]:
        """Get results of a league."""
        conn = self._get_connection()
        rows = conn.execute('''
            SELECT * FROM champs_league_challenge_results
            WHERE league_id = ?
            ORDER BY challenge_id, user_id
        ''', (league_id,)).fetchall()

        results = []
        for row in rows:
            result = dict(row)
            result['metric_value'] = json.loads(result['metric_value']) if result['metric_value'] else None
            results.append(result)
        return results

    # =========================================================================
    # RUNS
    # =========================================================================

    def save_run(self, run: Dict[str, Any]) -> None:
        """Upsert a run snapshot."""
        with self.transaction() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO league_runs (id, user_id, game_version, week_number, data, updated_at)
                VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
            ''', (
                run['id'],
                run['user_id'],
                run['game_version'],
                run.get('week_number'),
                json.dumps(run, ensure_ascii=False, default=str)
            ))

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Get a run by id."""
        conn = self._get_connection()
        row = conn.execute(
            'SELECT data FROM league_runs WHERE id = ?', (run_id,)
        ).fetchone()
        return json.loads(row['data']) if row else None

    def list_runs(self, user_id: str, game_version: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get a user's runs."""
        query = "SELECT data FROM league_runs WHERE user_id = ?"
        params: List[Any] = [user_id]

        if game_version:
            query += " AND game_version = ?"
            params.append(game_version)

        query += " ORDER BY week_number DESC, id"

        conn = self._get_connection()
        rows = conn.execute(query, params).fetchall()
        return [json.loads(row['data']) for row in rows]

    def delete_run(self, run_id: str) -> bool:
        """Delete a run."""
        with self.transaction() as conn:
            cursor = conn.execute('DELETE FROM league_runs WHERE id = ?', (run_id,))
            return cursor.rowcount > 0

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def get_stats(self) -> Dict[str, int]:
        """Row counts per table."""
        conn = self._get_connection()
        tables = {
            'leagues': 'champs_leagues',
            'participants': 'champs_league_participants',
            'invites': 'league_invites',
            'results': 'champs_league_challenge_results',
            'runs': 'league_runs',
        }
        return {
            name: conn.execute(f'SELECT COUNT(*) FROM {table}').fetchone()[0]
            for name, table in tables.items()
        }

    def get_database_size(self) -> int:
        """Get database file size in bytes."""
        try:
            return self.db_path.stat().st_size
        except OSError:
            return 0

    def clear_all(self) -> None:
        """Delete all data (keeps schema)."""
        with self.transaction() as conn:
            conn.executescript('''
                DELETE FROM champs_league_challenge_results;
                DELETE FROM league_invites;
                DELETE FROM champs_league_participants;
                DELETE FROM champs_league_challenges;
                DELETE FROM champs_leagues;
                DELETE FROM league_runs;
            ''')
