"""
Abstract base class defining the database interface.

All database implementations must inherit from this class and implement
all abstract methods. This ensures consistent behavior across backends.

Rows are plain dictionaries; datetimes travel as ISO-8601 strings.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any


class DatabaseInterface(ABC):
    """
    Abstract interface for challenge league storage.

    All methods must be implemented by concrete database classes.
    Multi-row writes should be atomic where the backend allows it.
    """

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the database connection and schema.

        Should be idempotent (safe to call multiple times).
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close database connections and clean up resources."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """
        Check if the database connection is healthy.

        Returns:
            True if database is accessible, False otherwise
        """
        pass

    # =========================================================================
    # LEAGUES
    # =========================================================================

    @abstractmethod
    def create_league(
        self,
        league: Dict[str, Any],
        challenges: List[Dict[str, Any]],
        admin_participant: Dict[str, Any],
        invites: List[Dict[str, Any]]
    ) -> None:
        """
        Create a league with its challenges, admin slot and invites.

        Args:
            league: League row (id, name, admin_user_id, league_code, ...)
            challenges: Rows of {'challenge_id', 'points'}
            admin_participant: Participant row for the admin
            invites: Invite rows (id, inviter_id, invitee_id, token, status)

        Behavior:
            - All rows are written together, or none are (where supported)
        """
        pass

    @abstractmethod
    def get_league(self, league_id: str) -> Optional[Dict[str, Any]]:
        """Get a league row by id, or None."""
        pass

    @abstractmethod
    def get_league_by_code(self, league_code: str) -> Optional[Dict[str, Any]]:
        """Get a league row by its join code, or None."""
        pass

    @abstractmethod
    def list_leagues_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Get all leagues the user participates in.

        Returns:
            League rows, newest first
        """
        pass

    @abstractmethod
    def list_expired_leagues(self, now: str) -> List[Dict[str, Any]]:
        """
        Get active leagues whose end date is at or before ``now``.

        Args:
            now: ISO timestamp
        """
        pass

    @abstractmethod
    def update_league(self, league_id: str, fields: Dict[str, Any]) -> None:
        """Update columns of a league row."""
        pass

    @abstractmethod
    def delete_league(self, league_id: str) -> None:
        """Delete a league and every row that belongs to it."""
        pass

    @abstractmethod
    def get_league_challenges(self, league_id: str) -> List[Dict[str, Any]]:
        """
        Get the challenges selected for a league.

        Returns:
            Rows of {'challenge_id', 'points'}, in selection order
        """
        pass

    # =========================================================================
    # PARTICIPANTS
    # =========================================================================

    @abstractmethod
    def add_participant(self, participant: Dict[str, Any], max_participants: int) -> bool:
        """
        Insert a participant row unless the league is full.

        Args:
            participant: Row (league_id, user_id, weekly_performance_id, joined_at)
            max_participants: Capacity of the league

        Returns:
            True if inserted, False if the league already has
            max_participants rows

        Raises:
            ConstraintError: If the (league_id, user_id) pair already exists
        """
        pass

    @abstractmethod
    def get_participant(self, league_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Get one participant row, or None."""
        pass

    @abstractmethod
    def get_participants(self, league_id: str) -> List[Dict[str, Any]]:
        """
        Get participants of a league.

        Returns:
            Rows ordered by joined_at, then user_id
        """
        pass

    @abstractmethod
    def update_participant_run(self, league_id: str, user_id: str, run_id: Optional[str]) -> None:
        """Set (or clear, with None) the run linked to a participant slot."""
        pass

    @abstractmethod
    def remove_participant(self, league_id: str, user_id: str) -> None:
        """Delete a participant row and its challenge results."""
        pass

    @abstractmethod
    def find_participants_by_run(self, run_id: str) -> List[Dict[str, Any]]:
        """Get every participant row linked to a run."""
        pass

    # =========================================================================
    # INVITES
    # =========================================================================

    @abstractmethod
    def get_invite(self, invite_id: str) -> Optional[Dict[str, Any]]:
        """Get an invite row by id, or None."""
        pass

    @abstractmethod
    def list_pending_invites(self, user_id: str) -> List[Dict[str, Any]]:
        """Get pending invites addressed to a user, newest first."""
        pass

    @abstractmethod
    def update_invite_status(self, invite_id: str, status: str) -> None:
        """Set the status of one invite."""
        pass

    @abstractmethod
    def accept_pending_invites(self, league_id: str, user_id: str) -> int:
        """
        Mark a user's pending invites for a league as accepted.

        Returns:
            Number of invites updated
        """
        pass

    # =========================================================================
    # CHALLENGE RESULTS
    # =========================================================================

    @abstractmethod
    def replace_challenge_results(self, league_id: str, results: List[Dict[str, Any]]) -> int:
        """
        Replace all challenge results of a league.

        Args:
            league_id: The league
            results: Result rows (challenge_id, user_id, points_awarded,
                     rank, metric_value, achieved_at, game_achieved)

        Returns:
            Number of rows written
        """
        pass

    @abstractmethod
    def get_challenge_results(self, league_id: str) -> List[Dict[str, Any]]:
        """
        Get all challenge results of a league.

        Returns:
            Rows ordered by challenge_id, then user_id
        """
        pass

    # =========================================================================
    # RUNS
    # =========================================================================

    @abstractmethod
    def save_run(self, run: Dict[str, Any]) -> None:
        """
        Save or update a run snapshot (upsert by id).

        Args:
            run: Run dictionary with 'id', 'user_id', 'game_version' and 'games'
        """
        pass

    @abstractmethod
    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Get a run dictionary by id, or None."""
        pass

    @abstractmethod
    def list_runs(self, user_id: str, game_version: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get a user's runs, newest week first."""
        pass

    @abstractmethod
    def delete_run(self, run_id: str) -> bool:
        """
        Delete a run.

        Returns:
            True if a run was deleted
        """
        pass

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    @abstractmethod
    def get_stats(self) -> Dict[str, int]:
        """
        Get row counts per table.

        Returns:
            Dictionary with counts for leagues, participants, invites,
            results and runs
        """
        pass

    @abstractmethod
    def clear_all(self) -> None:
        """
        Delete all data from the database.

        Used for testing. Does not drop tables/schema, just data.
        """
        pass
