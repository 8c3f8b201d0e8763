"""
Supabase Database Storage for FUTALYST challenge leagues.

Provides PostgreSQL-based cloud storage using Supabase's REST API.
Key differences from SQLite:
- Uses supabase-py client library (REST API)
- upsert() instead of INSERT OR REPLACE
- No multi-statement transactions; league creation writes rows in
  sequence and removes what it wrote if a later step fails
- Capacity check on join is count-then-insert, so two simultaneous joins
  into the last slot can both succeed
- initialize() verifies tables exist (doesn't create them)

Requires: pip install supabase
Schema must be created first via scripts/supabase_schema.sql
"""

import os
import json
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from .base import DatabaseInterface
from .exceptions import ConfigurationError, ConnectionError, ConstraintError

logger = logging.getLogger(__name__)


# Batch size for upsert operations
BATCH_SIZE = 500

# PostgreSQL unique_violation
UNIQUE_VIOLATION = '23505'

LEAGUE_TABLES = (
    'champs_league_challenge_results',
    'league_invites',
    'champs_league_participants',
    'champs_league_challenges',
)


def _is_unique_violation(error: Exception) -> bool:
    code = getattr(error, 'code', None)
    return code == UNIQUE_VIOLATION or UNIQUE_VIOLATION in str(error)


class SupabaseDatabase(DatabaseInterface):
    """
    Supabase cloud database implementation.

    Uses PostgreSQL via Supabase's REST API.
    Implements the DatabaseInterface abstract base class.
    """

    def __init__(self):
        """
        Create Supabase database instance.

        Reads configuration from environment variables:
        - SUPABASE_URL: Project URL (e.g., https://your-project.supabase.co)
        - SUPABASE_KEY: Anon or service key
        """
        self._url = os.environ.get('SUPABASE_URL')
        self._key = os.environ.get('SUPABASE_KEY')
        self._client = None
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> None:
        """Initialize the database connection and verify schema."""
        if self._initialized:
            return

        if not self._url:
            raise ConfigurationError(
                "SUPABASE_URL environment variable is required for Supabase backend"
            )
        if not self._key:
            raise ConfigurationError(
                "SUPABASE_KEY environment variable is required for Supabase backend"
            )

        client = self._get_client()
        try:
            client.table('metadata').select('key').limit(1).execute()
        except Exception as e:
            raise ConnectionError(
                f"Failed to connect to Supabase or schema not initialized. "
                f"Run scripts/supabase_schema.sql in Supabase SQL Editor first. "
                f"Error: {e}"
            )

        self._initialized = True

    def _get_client(self):
        """Get or create Supabase client."""
        if self._client is None:
            try:
                from supabase import create_client
            except ImportError:
                raise ConfigurationError(
                    "supabase package not installed. "
                    "Install with: pip install supabase"
                )

            try:
                self._client = create_client(self._url, self._key)
            except Exception as e:
                raise ConnectionError(f"Failed to create Supabase client: {e}")

        return self._client

    def close(self) -> None:
        """Close database connection (no-op for Supabase REST API)."""
        self._client = None

    def health_check(self) -> bool:
        """Check if the database connection is healthy."""
        try:
            client = self._get_client()
            client.table('metadata').select('key').limit(1).execute()
            return True
        except Exception:
            return False

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
        """Create a league, then its challenges, admin slot and invites."""
        client = self._get_client()
        league_id = league['id']

        try:
            client.table('champs_leagues').insert(league).execute()
        except Exception as e:
            if _is_unique_violation(e):
                raise ConstraintError(f"League {league_id} conflicts with an existing league: {e}")
            raise

        try:
            client.table('champs_league_challenges').insert([
                {
                    'league_id': league_id,
                    'challenge_id': c['challenge_id'],
                    'points': c['points'],
                    'position': position,
                }
                for position, c in enumerate(challenges)
            ]).execute()

            client.table('champs_league_participants').insert({
                'league_id': league_id,
                'user_id': admin_participant['user_id'],
                'weekly_performance_id': admin_participant.get('weekly_performance_id'),
                'joined_at': admin_participant['joined_at'],
            }).execute()

            if invites:
                client.table('league_invites').insert([
                    {**invite, 'league_id': league_id} for invite in invites
                ]).execute()
        except Exception:
            logger.warning(f"[!] League {league_id} creation failed, removing partial rows")
            self.delete_league(league_id)
            raise

    def get_league(self, league_id: str) -> Optional[Dict[str, Any]]:
        """Get a league by id."""
        client = self._get_client()
        response = client.table('champs_leagues').select('*').eq('id', league_id).execute()
        return response.data[0] if response.data else None

    def get_league_by_code(self, league_code: str) -> Optional[Dict[str, Any]]:
        """Get a league by join code."""
        client = self._get_client()
        response = (
            client.table('champs_leagues')
            .select('*')
            .eq('league_code', league_code)
            .execute()
        )
        return response.data[0] if response.data else None

    def list_leagues_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Get leagues the user participates in, newest first."""
        client = self._get_client()
        memberships = (
            client.table('champs_league_participants')
            .select('league_id')
            .eq('user_id', user_id)
            .execute()
        )
        league_ids = [row['league_id'] for row in memberships.data]
        if not league_ids:
            return []

        response = (
            client.table('champs_leagues')
            .select('*')
            .in_('id', league_ids)
            .order('created_at', desc=True)
            .execute()
        )
        return response.data

    def list_expired_leagues(self, now: str) -> List[Dict[str, Any]]:
        """Get active leagues past their end date."""
        client = self._get_client()
        response = (
            client.table('champs_leagues')
            .select('*')
            .eq('status', 'active')
            .lte('champs_run_end_date', now)
            .order('champs_run_end_date')
            .execute()
        )
        return response.data

    def update_league(self, league_id: str, fields: Dict[str, Any]) -> None:
        """Update league columns."""
        if not fields:
            return
        client = self._get_client()
        client.table('champs_leagues').update(fields).eq('id', league_id).execute()

    def delete_league(self, league_id: str) -> None:
        """Delete a league and all its rows."""
        client = self._get_client()
        for table in LEAGUE_TABLES:
            client.table(table).delete().eq('league_id', league_id).execute()
        client.table('champs_leagues').delete().eq('id', league_id).execute()

    def get_league_challenges(self, league_id: str) -> List[Dict[str, Any]]:
        """Get selected challenges in selection order."""
        client = self._get_client()
        response = (
            client.table('champs_league_challenges')
            .select('challenge_id, points')
            .eq('league_id', league_id)
            .order('position')
            .execute()
        )
        return response.data

    # =========================================================================
    # PARTICIPANTS
    # =========================================================================

    def add_participant(self, participant: Dict[str, Any], max_participants: int) -> bool:
        """Insert a participant if the league has room."""
        client = self._get_client()
        league_id = participant['league_id']

        if self.get_participant(league_id, participant['user_id']):
            raise ConstraintError(
                f"Participant {participant['user_id']} already in league {league_id}"
            )

        count_response = (
            client.table('champs_league_participants')
            .select('user_id', count='exact')
            .eq('league_id', league_id)
            .execute()
        )
        if (count_response.count or 0) >= max_participants:
            return False

        try:
            client.table('champs_league_participants').insert({
                'league_id': league_id,
                'user_id': participant['user_id'],
                'weekly_performance_id': participant.get('weekly_performance_id'),
                'joined_at': participant['joined_at'],
            }).execute()
        except Exception as e:
            if _is_unique_violation(e):
                raise ConstraintError(str(e))
            raise
        return True

    def get_participant(self, league_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Get one participant row."""
        client = self._get_client()
        response = (
            client.table('champs_league_participants')
            .select('*')
            .eq('league_id', league_id)
            .eq('user_id', user_id)
            .execute()
        )
        return response.data[0] if response.data else None

    def get_participants(self, league_id: str) -> List[Dict[str, Any]]:
        """Get participants ordered by join time."""
        client = self._get_client()
        response = (
            client.table('champs_league_participants')
            .select('*')
            .eq('league_id', league_id)
            .order('joined_at')
            .order('user_id')
            .execute()
        )
        return response.data

    def update_participant_run(self, league_id: str, user_id: str, run_id: Optional[str]) -> None:
        """Link or unlink a run."""
        client = self._get_client()
        (
            client.table('champs_league_participants')
            .update({'weekly_performance_id': run_id})
            .eq('league_id', league_id)
            .eq('user_id', user_id)
            .execute()
        )

    def remove_participant(self, league_id: str, user_id: str) -> None:
        """Delete a participant and their results."""
        client = self._get_client()
        for table in ('champs_league_challenge_results', 'champs_league_participants'):
            (
                client.table(table)
                .delete()
                .eq('league_id', league_id)
                .eq('user_id', user_id)
                .execute()
            )

    def find_participants_by_run(self, run_id: str) -> List[Dict[str, Any]]:
        """Get participant rows linked to a run."""
        client = self._get_client()
        response = (
            client.table('champs_league_participants')
            .select('*')
            .eq('weekly_performance_id', run_id)
            .order('joined_at')
            .execute()
        )
        return response.data

    # =========================================================================
    # INVITES
    # =========================================================================

    def get_invite(self, invite_id: str) -> Optional[Dict[str, Any]]:
        """Get an invite by id."""
        client = self._get_client()
        response = client.table('league_invites').select('*').eq('id', invite_id).execute()
        return response.data[0] if response.data else None

    def list_pending_invites(self, user_id: str) -> List[Dict[str, Any]]:
        """Get a user's pending invites."""
        client = self._get_client()
        response = (
            client.table('league_invites')
            .select('*')
            .eq('invitee_id', user_id)
            .eq('status', 'pending')
            .order('created_at', desc=True)
            .execute()
        )
        return response.data

    def update_invite_status(self, invite_id: str, status: str) -> None:
        """Set invite status."""
        client = self._get_client()
        client.table('league_invites').update({'status': status}).eq('id', invite_id).execute()

    def accept_pending_invites(self, league_id: str, user_id: str) -> int:
        """Accept every pending invite of a user for a league."""
        client = self._get_client()
        response = (
            client.table('league_invites')
            .update({'status': 'accepted'})
            .eq('league_id', league_id)
            .eq('invitee_id', user_id)
            .eq('status', 'pending')
            .execute()
        )
        return len(response.data or [])

    # =========================================================================
    # CHALLENGE RESULTS
    # =========================================================================

    def replace_challenge_results(self, league_id: str, results: List[Dict[str, Any]]) -> int:
        """Replace all results of a league."""
        client = self._get_client()

        rows = [
            {
                'league_id': league_id,
                'challenge_id': r['challenge_id'],
                'user_id': r['user_id'],
                'points_awarded': r.get('points_awarded', 0),
                'rank': r.get('rank'),
                'metric_value': json.dumps(r.get('metric_value')),
                'achieved_at': r.get('achieved_at'),
                'game_achieved': r.get('game_achieved'),
            }
            for r in results
        ]

        # Upsert in batches, then drop rows the new set no longer covers,
        # so readers never see a league without results
        for i in range(0, len(rows), BATCH_SIZE):
            batch = rows[i:i + BATCH_SIZE]
            client.table('champs_league_challenge_results').upsert(
                batch, on_conflict='league_id,challenge_id,user_id'
            ).execute()

        keep = {(r['challenge_id'], r['user_id']) for r in rows}
        existing = (
            client.table('champs_league_challenge_results')
            .select('challenge_id, user_id')
            .eq('league_id', league_id)
            .execute()
        )

        for stale in existing.data or []:
            if (stale['challenge_id'], stale['user_id']) in keep:
                continue
            (
                client.table('champs_league_challenge_results')
                .delete()
                .eq('league_id', league_id)
                .eq('challenge_id', stale['challenge_id'])
                .eq('user_id', stale['user_id'])
                .execute()
            )

        return len(rows)

    def get_challenge_results(self, league_id: str) -> List[Dict[str, Any]]:
        """Get results of a league."""
        client = self._get_client()
        response = (
            client.table('champs_league_challenge_results')
            .select('*')
            .eq('league_id', league_id)
            .order('challenge_id')
            .order('user_id')
            .execute()
        )

        results = []
        for row in response.data:
            result = dict(row)
            result['metric_value'] = json.loads(result['metric_value']) if result.get('metric_value') else None
            results.append(result)
        return results

    # =========================================================================
    # RUNS
    # =========================================================================

    def save_run(self, run: Dict[str, Any]) -> None:
        """Upsert a run snapshot."""
        client = self._get_client()
        client.table('league_runs').upsert({
            'id': run['id'],
            'user_id': run['user_id'],
            'game_version': run['game_version'],
            'week_number': run.get('week_number'),
            'data': json.dumps(run, ensure_ascii=False, default=str),
            'updated_at': datetime.now(timezone.utc).isoformat()
        }, on_conflict='id').execute()

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Get a run by id."""
        client = self._get_client()
        response = client.table('league_runs').select('data').eq('id', run_id).execute()
        return json.loads(response.data[0]['data']) if response.data else None

    def list_runs(self, user_id: str, game_version: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get a user's runs."""
        client = self._get_client()
        query = client.table('league_runs').select('data').eq('user_id', user_id)

        if game_version:
            query = query.eq('game_version', game_version)

        response = query.order('week_number', desc=True).execute()
        return [json.loads(row['data']) for row in response.data]

    def delete_run(self, run_id: str) -> bool:
        """Delete a run."""
        client = self._get_client()
        response = client.table('league_runs').delete().eq('id', run_id).execute()
        return bool(response.data)

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def get_stats(self) -> Dict[str, int]:
        """Row counts per table."""
        client = self._get_client()
        tables = {
            'leagues': ('champs_leagues', 'id'),
            'participants': ('champs_league_participants', 'user_id'),
            'invites': ('league_invites', 'id'),
            'results': ('champs_league_challenge_results', 'user_id'),
            'runs': ('league_runs', 'id'),
        }

        stats = {}
        for name, (table, column) in tables.items():
            count_response = client.table(table).select(column, count='exact').execute()
            stats[name] = count_response.count or 0
        return stats

    def clear_all(self) -> None:
        """Clear all data from database."""
        client = self._get_client()

        # Child tables first, keyed by league_id
        for table in LEAGUE_TABLES:
            client.table(table).delete().neq('league_id', '').execute()

        for table in ('champs_leagues', 'league_runs'):
            client.table(table).delete().neq('id', '').execute()
