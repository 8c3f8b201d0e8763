"""Standings Aggregator: sums awarded points into a leaderboard."""

from collections import defaultdict
from typing import Dict, List

from futalyst.models.league import ChallengeResult, Participant, StandingEntry
from futalyst.utils.timeutils import as_utc


def aggregate_standings(
    participants: List[Participant],
    results: List[ChallengeResult]
) -> List[StandingEntry]:
    """
    Build the leaderboard for a league.

    Participants without results appear with 0 points. Results of users who
    are no longer participants are ignored. Equal totals share a rank;
    within a tie, earlier joiners are listed first.

    Args:
        participants: Current participant rows
        results: All challenge result rows of the league

    Returns:
        Standing entries sorted by rank
    """
    totals: Dict[str, int] = defaultdict(int)
    wins: Dict[str, int] = defaultdict(int)
    for result in results:
        totals[result.user_id] += result.points_awarded
        if result.points_awarded > 0:
            wins[result.user_id] += 1

    ordered = sorted(
        participants,
        key=lambda p: (-totals[p.user_id], as_utc(p.joined_at), p.user_id)
    )
    member_totals = [totals[p.user_id] for p in participants]

    standings = []
    for participant in ordered:
        total = totals[participant.user_id]
        standings.append(StandingEntry(
            rank=1 + sum(1 for other in member_totals if other > total),
            user_id=participant.user_id,
            total_points=total,
            challenges_won=wins[participant.user_id],
            weekly_performance_id=participant.weekly_performance_id,
        ))
    return standings
