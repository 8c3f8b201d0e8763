"""
Challenge catalog, run metrics, evaluation strategies and standings.

Usage:
    from futalyst.challenges import get_challenge, evaluate, ParticipantRun

    outcomes = evaluate(get_challenge('off_1'), [ParticipantRun('u1', run)])
"""

from .catalog import CATALOG_VERSION, CHALLENGE_POOL, get_challenge, list_challenges, random_selection
from .evaluator import ChallengeOutcome, ParticipantRun, evaluate, get_strategy, rank_values
from .metrics import compute_run_metrics, game_metric, run_metric
from .standings import aggregate_standings

__all__ = [
    'CATALOG_VERSION',
    'CHALLENGE_POOL',
    'get_challenge',
    'list_challenges',
    'random_selection',
    'ChallengeOutcome',
    'ParticipantRun',
    'evaluate',
    'get_strategy',
    'rank_values',
    'compute_run_metrics',
    'game_metric',
    'run_metric',
    'aggregate_standings',
]
