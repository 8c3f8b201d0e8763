"""Data models for the FUTALYST challenge league service."""

from futalyst.models.challenge import Challenge, Condition
from futalyst.models.context import RequestContext
from futalyst.models.league import (
    ChallengeResult,
    ChallengeSelection,
    CreateLeagueRequest,
    Invite,
    League,
    LeagueChallenge,
    LeagueDetails,
    LeaguePreview,
    Participant,
    StandingEntry,
)
from futalyst.models.run import Game, PlayerPerformance, Run, TeamStats

__all__ = [
    "Challenge", "Condition", "RequestContext",
    "ChallengeResult", "ChallengeSelection", "CreateLeagueRequest", "Invite",
    "League", "LeagueChallenge", "LeagueDetails", "LeaguePreview",
    "Participant", "StandingEntry",
    "Game", "PlayerPerformance", "Run", "TeamStats",
]
