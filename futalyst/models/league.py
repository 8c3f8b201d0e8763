"""League, participant, invite and result data models."""

from datetime import datetime
from typing import List, Literal, Optional, Union
from pydantic import BaseModel

from futalyst.utils.timeutils import as_utc


class LeagueChallenge(BaseModel):
    """A catalog challenge selected for a league, with its awarded points."""

    challenge_id: str
    points: int


class League(BaseModel):
    """A private competition among friends."""

    id: str
    name: str
    admin_user_id: str
    league_code: str
    max_participants: int = 20
    champs_run_end_date: datetime
    status: Literal['active', 'completed'] = 'active'
    game_version: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_evaluated_at: Optional[datetime] = None

    def is_active(self) -> bool:
        return self.status == 'active'

    def is_expired(self, now: datetime) -> bool:
        """True once the end date has passed."""
        return as_utc(self.champs_run_end_date) <= as_utc(now)


class Participant(BaseModel):
    """A league member's slot, linked to at most one run."""

    league_id: str
    user_id: str
    weekly_performance_id: Optional[str] = None
    joined_at: datetime


class Invite(BaseModel):
    """Pending, accepted or declined invitation to a league."""

    id: str
    league_id: str
    inviter_id: str
    invitee_id: str
    token: str
    status: Literal['pending', 'accepted', 'declined'] = 'pending'
    created_at: Optional[datetime] = None


class ChallengeResult(BaseModel):
    """Evaluator output for one (challenge, participant) pair."""

    league_id: str
    challenge_id: str
    user_id: str
    points_awarded: int = 0
    rank: Optional[int] = None
    metric_value: Optional[Union[bool, int, float]] = None
    achieved_at: Optional[datetime] = None
    game_achieved: Optional[int] = None


class StandingEntry(BaseModel):
    """A leaderboard row."""

    rank: int
    user_id: str
    total_points: int
    challenges_won: int
    weekly_performance_id: Optional[str] = None


class LeagueDetails(BaseModel):
    """Everything the league page shows."""

    league: League
    challenges: List[LeagueChallenge]
    participants: List[Participant]
    standings: List[StandingEntry]


class LeaguePreview(BaseModel):
    """Public summary shown on the join page."""

    league_id: str
    name: str
    admin_user_id: str
    status: str
    participant_count: int
    max_participants: int
    champs_run_end_date: datetime


# =============================================================================
# REQUEST BODIES
# =============================================================================

class ChallengeSelection(BaseModel):
    """A challenge picked at creation; points default to the catalog value."""

    id: str
    points: Optional[int] = None


class CreateLeagueRequest(BaseModel):
    name: str
    admin_run_id: str
    challenges: List[ChallengeSelection]
    champs_run_end_date: Optional[datetime] = None
    friend_ids_to_invite: List[str] = []
    description: Optional[str] = None


class JoinLeagueRequest(BaseModel):
    code: str


class LinkRunRequest(BaseModel):
    weekly_performance_id: Optional[str] = None


class InviteResponseRequest(BaseModel):
    action: Literal['accept', 'decline']
