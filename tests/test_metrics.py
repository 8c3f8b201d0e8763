"""Tests for run and game metrics."""

import pytest

from futalyst.challenges.metrics import compare, compute_run_metrics, game_metric, run_metric
from futalyst.models import PlayerPerformance


class TestCompare:
    """Condition operators."""

    def test_operators(self):
        assert compare(0, '==', 0)
        assert compare(0, '===', 0)
        assert compare(5, '>=', 5)
        assert compare(4, '<=', 5)
        assert compare(6, '>', 5)
        assert not compare(5, '>', 5)

    def test_missing_value_never_matches(self):
        assert compare(None, '==', 0) is False

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            compare(1, '!=', 0)


class TestRunMetrics:
    """Whole-run aggregates."""

    def test_goal_totals(self, make_game, make_run):
        run = make_run('r', 'u', [
            make_game(1, user_goals=3, opponent_goals=1),
            make_game(2, result='loss', user_goals=0, opponent_goals=2),
        ])
        assert run_metric(run, 'totalGoalsScored') == 3
        assert run_metric(run, 'totalGoalsConceded') == 3
        assert run_metric(run, 'totalWins') == 1
        assert run_metric(run, 'totalGamesPlayed') == 2

    def test_red_cards_from_team_stats(self, make_game, make_run):
        run = make_run('r', 'u', [make_game(1, red_cards=1), make_game(2)])
        assert run_metric(run, 'totalRedCards') == 1

    def test_red_cards_from_players_without_team_stats(self, make_game, make_run):
        game = make_game(1, player_stats=[
            PlayerPerformance(player_name='Stam', position='CB', red_cards=1),
        ]).model_copy(update={'team_stats': None})
        run = make_run('r', 'u', [game])
        assert run_metric(run, 'totalRedCards') == 1

    def test_hat_tricks_count_per_player(self, make_game, make_run):
        run = make_run('r', 'u', [
            make_game(1, user_goals=4, player_stats=[
                PlayerPerformance(player_name='Haaland', position='ST', goals=3),
                PlayerPerformance(player_name='Foden', position='CAM', goals=1),
            ]),
            make_game(2, user_goals=3, player_stats=[
                PlayerPerformance(player_name='Haaland', position='ST', goals=2),
                PlayerPerformance(player_name='Dias', position='CB', goals=1),
            ]),
        ])
        assert run_metric(run, 'totalHatTricks') == 1
        assert run_metric(run, 'totalDefenderGoals') == 1
        assert run_metric(run, 'totalMidfielderGoals') == 1
        assert run_metric(run, 'totalUniqueGoalscorers') == 3

    def test_streaks_follow_play_order(self, make_game, make_run):
        # Listed out of order on purpose
        run = make_run('r', 'u', [
            make_game(3, opponent_goals=0),
            make_game(1, opponent_goals=0),
            make_game(2, result='loss', user_goals=0, opponent_goals=1),
            make_game(4, opponent_goals=0),
        ])
        assert run_metric(run, 'maxConsecutiveCleanSheets') == 2
        assert run_metric(run, 'maxUnbeatenStreak') == 2

    def test_averages_ignore_missing_stats(self, make_game, make_run):
        run = make_run('r', 'u', [
            make_game(1, possession=60.0),
            make_game(2, possession=50.0),
            make_game(3),
        ])
        assert run_metric(run, 'avgPossession') == 55.0

    def test_average_is_none_without_data(self, make_game, make_run):
        run = make_run('r', 'u', [make_game(1)])
        assert run_metric(run, 'avgPassAccuracy') is None

    def test_max_win_margin_without_wins(self, make_game, make_run):
        run = make_run('r', 'u', [make_game(1, result='loss', user_goals=0, opponent_goals=1)])
        assert run_metric(run, 'maxWinMargin') is None

    def test_games_without_user_quits(self, make_game, make_run):
        run = make_run('r', 'u', [
            make_game(1),
            make_game(2, result='loss', user_goals=0, opponent_goals=3, game_context='rage_quit'),
            make_game(3, game_context='rage_quit'),
        ])
        assert run_metric(run, 'totalGamesNoQuits') == 2
        assert run_metric(run, 'totalOpponentRageQuits') == 1

    def test_unknown_metric(self, make_game, make_run):
        with pytest.raises(ValueError):
            run_metric(make_run('r', 'u', [make_game(1)]), 'totalVibes')

    def test_compute_all(self, make_game, make_run):
        metrics = compute_run_metrics(make_run('r', 'u', [make_game(1, user_goals=2)]))
        assert metrics['totalGoalsScored'] == 2
        assert 'totalRedCards' in metrics


class TestGameMetrics:
    """Single-game checks."""

    def test_scorelines(self, make_game):
        assert game_metric(make_game(1, user_goals=3, opponent_goals=0), 'winBy3_0') is True
        assert game_metric(make_game(1, user_goals=4, opponent_goals=0), 'winBy3_0') is False
        assert game_metric(make_game(1, user_goals=1, opponent_goals=0), 'winBy1_0') is True

    def test_perfect_pass_accuracy_needs_min_passes(self, make_game):
        game = make_game(1, pass_accuracy=100.0, passes=40)
        assert game_metric(game, 'perfectPassAccuracyGame', min_passes=50) is False
        game = make_game(1, pass_accuracy=100.0, passes=60)
        assert game_metric(game, 'perfectPassAccuracyGame', min_passes=50) is True

    def test_bronze_starters(self, make_game):
        bronze = [
            PlayerPerformance(player_name=f'P{i}', position='CM', card_type='bronze')
            for i in range(3)
        ]
        assert game_metric(make_game(1, player_stats=bronze), 'bronzeStarterWin') is True
        benched = [p.model_copy(update={'is_substitute': True}) for p in bronze]
        assert game_metric(make_game(1, player_stats=benched), 'bronzeStarterWin') is False

    def test_penalty_shootout_win(self, make_game):
        assert game_metric(make_game(1, game_context='penalties'), 'penaltyShootoutWin') is True
        assert game_metric(
            make_game(1, result='loss', game_context='penalties'), 'penaltyShootoutWin'
        ) is False

    def test_unknown_game_metric(self, make_game):
        with pytest.raises(ValueError):
            game_metric(make_game(1), 'nope')
