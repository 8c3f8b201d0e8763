"""
Derived run statistics.

Two families of metrics, both keyed by the names used in the catalog:
- run metrics aggregate a whole run (sums, averages, maxima, streaks)
- game metrics describe one game and feed single-game conditions and
  first-to-achieve races

A metric returns None when the run has no data for it (e.g. no team stats
recorded); None never ranks and never satisfies a condition.
"""

import operator
from typing import Callable, Dict, Iterable, List, Optional, Union

from futalyst.models.run import Game, PlayerPerformance, Run


Value = Union[bool, int, float]

DEFENDER_POSITIONS = {'CB', 'LB', 'RB', 'LWB', 'RWB'}
MIDFIELDER_POSITIONS = {'CM', 'CDM', 'CAM', 'LM', 'RM'}
GOALKEEPER_POSITIONS = {'GK'}

# Averages are rounded so that equal performances tie exactly
AVERAGE_PRECISION = 4

OPERATORS: Dict[str, Callable[[Value, Value], bool]] = {
    '==': operator.eq,
    '===': operator.eq,
    '>=': operator.ge,
    '<=': operator.le,
    '>': operator.gt,
}


def compare(actual: Optional[Value], op: str, target: Value) -> bool:
    """Apply a condition operator; missing values never match."""
    if actual is None:
        return False
    try:
        return OPERATORS[op](actual, target)
    except KeyError:
        raise ValueError(f"Unknown operator: {op}")


# =============================================================================
# HELPERS
# =============================================================================

def _average(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return round(sum(present) / len(present), AVERAGE_PRECISION)


def _stat(game: Game, attr: str):
    if game.team_stats is None:
        return None
    return getattr(game.team_stats, attr)


def _players(games: Iterable[Game]) -> Iterable[PlayerPerformance]:
    for game in games:
        yield from game.player_stats


def _goals_by_position(games: Iterable[Game], positions: set) -> int:
    return sum(p.goals for p in _players(games) if p.position.upper() in positions)


def _red_cards(game: Game) -> int:
    if game.team_stats is not None:
        return game.team_stats.red_cards
    return sum(p.red_cards for p in game.player_stats)


def _longest_streak(games: List[Game], predicate: Callable[[Game], bool]) -> int:
    best = current = 0
    for game in games:
        if predicate(game):
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


def _shot_accuracy(game: Game) -> Optional[float]:
    shots = _stat(game, 'shots')
    if not shots:
        return None
    return game.team_stats.shots_on_target / shots * 100


def _xg_diff(game: Game) -> Optional[float]:
    xg = _stat(game, 'expected_goals')
    xga = _stat(game, 'expected_goals_against')
    if xg is None or xga is None:
        return None
    return xg - xga


def _user_quit(game: Game) -> bool:
    # A rage quit that ends in a loss was the user's own quit
    return game.game_context == 'rage_quit' and game.result == 'loss'


def _sum_or_none(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return round(sum(present), AVERAGE_PRECISION)


# =============================================================================
# RUN METRICS
# =============================================================================

def _max_win_margin(games: List[Game]) -> Optional[int]:
    margins = [g.user_goals - g.opponent_goals for g in games if g.is_win()]
    return max(margins) if margins else None


RUN_METRICS: Dict[str, Callable[[List[Game]], Optional[Value]]] = {
    'totalGamesPlayed': len,
    'totalGoalsScored': lambda games: sum(g.user_goals for g in games),
    'totalGoalsConceded': lambda games: sum(g.opponent_goals for g in games),
    'totalWins': lambda games: sum(1 for g in games if g.is_win()),
    'totalCleanSheets': lambda games: sum(1 for g in games if g.opponent_goals == 0),
    'totalXGDiff': lambda games: _sum_or_none(_xg_diff(g) for g in games),
    'totalHatTricks': lambda games: sum(1 for p in _players(games) if p.goals >= 3),
    'totalAssists': lambda games: sum(p.assists for p in _players(games)),
    'avgShotAccuracy': lambda games: _average(_shot_accuracy(g) for g in games),
    'maxWinMargin': _max_win_margin,
    'avgXGConceded': lambda games: _average(_stat(g, 'expected_goals_against') for g in games),
    'avgFouls': lambda games: _average(_stat(g, 'fouls') for g in games),
    'totalFouls': lambda games: sum(_stat(g, 'fouls') or 0 for g in games),
    'totalDefenderGoals': lambda games: _goals_by_position(games, DEFENDER_POSITIONS),
    'totalMidfielderGoals': lambda games: _goals_by_position(games, MIDFIELDER_POSITIONS),
    'maxConsecutiveCleanSheets': lambda games: _longest_streak(games, lambda g: g.opponent_goals == 0),
    'totalRedCards': lambda games: sum(_red_cards(g) for g in games),
    'avgPassAccuracy': lambda games: _average(_stat(g, 'pass_accuracy') for g in games),
    'avgPossession': lambda games: _average(_stat(g, 'possession') for g in games),
    'totalPasses': lambda games: sum(_stat(g, 'passes') or 0 for g in games),
    'avgPlayerRating': lambda games: _average(p.rating for p in _players(games)),
    'maxUnbeatenStreak': lambda games: _longest_streak(games, lambda g: g.result != 'loss'),
    'totalGamesNoQuits': lambda games: sum(1 for g in games if not _user_quit(g)),
    'totalExtraTimeWins': lambda games: sum(
        1 for g in games if g.is_win() and g.game_context == 'extra_time'),
    'totalOpponentRageQuits': lambda games: sum(
        1 for g in games if g.is_win() and g.game_context == 'rage_quit'),
    'totalMinutesPlayed': lambda games: sum(g.duration for g in games),
    'totalUniqueWinningFormations': lambda games: len(
        {g.formation for g in games if g.is_win() and g.formation}),
    'totalUniqueGoalscorers': lambda games: len(
        {p.player_name for p in _players(games) if p.goals > 0}),
    'totalWinsNoSubs': lambda games: sum(
        1 for g in games if g.is_win() and g.substitutions == 0),
    'totalLoanPlayerGoals': lambda games: sum(p.goals for p in _players(games) if p.is_loan),
}


def run_metric(run: Run, key: str) -> Optional[Value]:
    """Compute one run metric over the run's games in play order."""
    try:
        metric = RUN_METRICS[key]
    except KeyError:
        raise ValueError(f"Unknown run metric: {key}")
    return metric(run.ordered_games())


def compute_run_metrics(run: Run) -> Dict[str, Optional[Value]]:
    """All run metrics at once, for summaries."""
    games = run.ordered_games()
    return {key: metric(games) for key, metric in RUN_METRICS.items()}


# =============================================================================
# GAME METRICS
# =============================================================================

def _bronze_starters(game: Game) -> int:
    return sum(
        1 for p in game.player_stats
        if not p.is_substitute and (p.card_type or '').lower() == 'bronze'
    )


def _scoreline_win(game: Game, user_goals: int, opponent_goals: int) -> bool:
    return game.is_win() and game.user_goals == user_goals and game.opponent_goals == opponent_goals


GAME_METRICS: Dict[str, Callable[[Game], Optional[Value]]] = {
    'goalsInSingleMatch': lambda g: g.user_goals,
    'goalsConcededInSingleMatch': lambda g: g.opponent_goals,
    'cleanSheet': lambda g: g.opponent_goals == 0,
    'redCardReceived': lambda g: _red_cards(g) > 0,
    'winBy3_0': lambda g: _scoreline_win(g, 3, 0),
    'winBy1_0': lambda g: _scoreline_win(g, 1, 0),
    'opponentRageQuit': lambda g: g.is_win() and g.game_context == 'rage_quit',
    'defenderGoalInGame': lambda g: _goals_by_position([g], DEFENDER_POSITIONS) > 0,
    'penaltyShootoutWin': lambda g: g.is_win() and g.game_context == 'penalties',
    'bronzeStarterWin': lambda g: g.is_win() and _bronze_starters(g) >= 3,
    'goalieGoal': lambda g: _goals_by_position([g], GOALKEEPER_POSITIONS) > 0,
    'winZeroShotsOnTargetConceded': lambda g: g.is_win() and _stat(g, 'shots_on_target_against') == 0,
}


def game_metric(game: Game, key: str, min_passes: Optional[int] = None) -> Optional[Value]:
    """Compute one game metric."""
    if key == 'perfectPassAccuracyGame':
        accuracy = _stat(game, 'pass_accuracy')
        if accuracy is None:
            return False
        return accuracy >= 100 and game.team_stats.passes >= (min_passes or 0)

    try:
        metric = GAME_METRICS[key]
    except KeyError:
        raise ValueError(f"Unknown game metric: {key}")
    return metric(game)


def is_known_metric(key: str) -> bool:
    return key in RUN_METRICS or key in GAME_METRICS or key == 'perfectPassAccuracyGame'
