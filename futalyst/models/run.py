"""Run (weekly performance) data model.

Runs belong to the game-tracking side of the app. The league feature only
reads them, so these models keep just the fields challenges look at.
"""

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel

from futalyst.utils.timeutils import as_utc


class PlayerPerformance(BaseModel):
    """One player's line in a game."""

    player_name: str
    position: str
    goals: int = 0
    assists: int = 0
    rating: Optional[float] = None
    yellow_cards: int = 0
    red_cards: int = 0
    minutes_played: int = 0
    card_type: Optional[str] = None  # gold, silver, bronze, ...
    is_loan: bool = False
    is_substitute: bool = False


class TeamStats(BaseModel):
    """Team statistics for a game."""

    shots: int = 0
    shots_on_target: int = 0
    possession: Optional[float] = None
    expected_goals: Optional[float] = None
    expected_goals_against: Optional[float] = None
    passes: int = 0
    pass_accuracy: Optional[float] = None
    fouls: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    corners: int = 0
    shots_on_target_against: Optional[int] = None


class Game(BaseModel):
    """A single played game."""

    id: str
    game_number: int
    result: Literal['win', 'loss', 'draw']
    user_goals: int = 0
    opponent_goals: int = 0
    # normal, rage_quit, extra_time, penalties, disconnect, hacker, free_win
    game_context: str = "normal"
    date_played: datetime
    duration: int = 90
    formation: Optional[str] = None
    substitutions: int = 0
    team_stats: Optional[TeamStats] = None
    player_stats: List[PlayerPerformance] = []

    def is_win(self) -> bool:
        return self.result == 'win'

    def sort_key(self):
        """Chronological ordering key."""
        return (as_utc(self.date_played), self.game_number)


class Run(BaseModel):
    """A user's weekly competitive run."""

    id: str
    user_id: str
    game_version: str
    week_number: int = 1
    custom_name: Optional[str] = None
    is_completed: bool = False
    games: List[Game] = []

    def ordered_games(self) -> List[Game]:
        """Games in the order they were played."""
        return sorted(self.games, key=lambda g: g.sort_key())

    def has_games(self) -> bool:
        return len(self.games) > 0
