"""Tests for the standings aggregator."""

from datetime import timedelta

from futalyst.challenges import aggregate_standings
from futalyst.models import ChallengeResult, Participant

from conftest import BASE_TIME


def _participant(user_id, minutes=0, run_id=None):
    return Participant(
        league_id='L', user_id=user_id, weekly_performance_id=run_id,
        joined_at=BASE_TIME + timedelta(minutes=minutes),
    )


def _result(challenge_id, user_id, points):
    return ChallengeResult(league_id='L', challenge_id=challenge_id, user_id=user_id, points_awarded=points)


class TestAggregateStandings:
    """Leaderboard aggregation."""

    def test_sums_points_per_participant(self):
        participants = [_participant('a'), _participant('b', 1)]
        results = [
            _result('off_1', 'a', 3), _result('def_7', 'a', 3),
            _result('off_1', 'b', 0), _result('def_7', 'b', 3),
        ]
        standings = aggregate_standings(participants, results)

        assert [(s.user_id, s.total_points, s.rank) for s in standings] == [('a', 6, 1), ('b', 3, 2)]
        assert standings[0].challenges_won == 2
        assert standings[1].challenges_won == 1

    def test_participants_without_results_show_zero(self):
        standings = aggregate_standings([_participant('a', run_id='r1')], [])
        assert standings[0].total_points == 0
        assert standings[0].rank == 1
        assert standings[0].weekly_performance_id == 'r1'

    def test_ties_share_rank_and_list_earlier_joiner_first(self):
        participants = [_participant('late', 5), _participant('early', 0), _participant('low', 1)]
        results = [_result('x', 'late', 4), _result('x', 'early', 4), _result('x', 'low', 1)]
        standings = aggregate_standings(participants, results)

        assert [s.user_id for s in standings] == ['early', 'late', 'low']
        assert [s.rank for s in standings] == [1, 1, 3]

    def test_results_of_former_participants_are_ignored(self):
        standings = aggregate_standings([_participant('a')], [_result('x', 'gone', 5)])
        assert len(standings) == 1
        assert standings[0].rank == 1
