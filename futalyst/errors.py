"""
League errors with user-friendly messages.

Every error raised by a league operation carries two texts:
- the exception message, meant for logs
- ``user_message``, shown to the user who triggered the action

None of these are retried; a failed action leaves prior state unchanged.
"""

from typing import Optional


class LeagueError(Exception):
    """Base exception for league operations."""

    status_code = 400

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


class ValidationError(LeagueError):
    """Malformed input, e.g. wrong challenge or invitee count."""
    status_code = 400


class NotFoundError(LeagueError):
    """Unknown league, join code, invite or run."""
    status_code = 404


class PermissionDeniedError(LeagueError):
    """Action restricted to the league admin."""
    status_code = 403


class InactiveLeagueError(LeagueError):
    """Action attempted on a completed league."""
    status_code = 409

    def __init__(self, league_id: str):
        super().__init__(
            f"League {league_id} is not active",
            "This league has already finished."
        )


class DuplicateError(LeagueError):
    """User already has a participant slot in the league."""
    status_code = 409

    def __init__(self, league_id: str, user_id: str):
        super().__init__(
            f"User {user_id} is already a participant of league {league_id}",
            "You are already a member of this league."
        )


class CapacityError(LeagueError):
    """League has reached its participant limit."""
    status_code = 409

    def __init__(self, league_id: str, max_participants: int):
        super().__init__(
            f"League {league_id} is full ({max_participants} participants)",
            f"This league is full ({max_participants} players max)."
        )


class LinkConflictError(LeagueError):
    """Run is still linked to a participant slot of an active league."""
    status_code = 409

    def __init__(self, run_id: str, league_id: str):
        super().__init__(
            f"Run {run_id} is linked to active league {league_id}",
            "This run is linked to an active league. Unlink it or wait for the league to finish."
        )
        self.run_id = run_id
        self.league_id = league_id
