"""
Challenge Evaluator.

Implements the Strategy pattern over the three evaluation types:
- competitive: rank participants by a run metric, rank 1 takes the points
- binary: every participant meeting all conditions takes the points
- firstToAchieve: the earliest participant to hit a per-game target takes
  the points, nobody else does

Strategies are pure functions of (challenge, participant runs). The same
input always produces the same outcomes, which makes re-evaluation
idempotent.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from futalyst.challenges.metrics import Value, compare, game_metric, run_metric
from futalyst.models.challenge import Challenge, Condition
from futalyst.models.run import Game, Run
from futalyst.utils.timeutils import as_utc

logger = logging.getLogger(__name__)

_LATEST = datetime.max.replace(tzinfo=timezone.utc)


@dataclass
class ParticipantRun:
    """A participant and the run linked to their slot (if any)."""
    user_id: str
    run: Optional[Run] = None
    joined_at: Optional[datetime] = None

    def has_games(self) -> bool:
        return self.run is not None and self.run.has_games()

    def game_count(self) -> int:
        return len(self.run.games) if self.run is not None else 0


@dataclass
class ChallengeOutcome:
    """Result of one challenge for one participant."""
    user_id: str
    points_awarded: int = 0
    rank: Optional[int] = None
    metric_value: Optional[Value] = None
    achieved_at: Optional[datetime] = None
    game_achieved: Optional[int] = None


def rank_values(values: Dict[str, Value], descending: bool = True) -> Dict[str, int]:
    """
    Competition ranking (1, 1, 3): tied values share a rank and the next
    rank skips the tied places.
    """
    ranks = {}
    for user_id, value in values.items():
        if descending:
            better = sum(1 for other in values.values() if other > value)
        else:
            better = sum(1 for other in values.values() if other < value)
        ranks[user_id] = better + 1
    return ranks


class EvaluationStrategy(ABC):
    """Base class for evaluation strategies."""

    evaluation_type = ''

    @abstractmethod
    def evaluate(
        self,
        challenge: Challenge,
        participants: List[ParticipantRun]
    ) -> List[ChallengeOutcome]:
        """
        Evaluate a challenge across all participants.

        Args:
            challenge: Catalog entry, with league-specific points applied
            participants: Participants in a stable order

        Returns:
            One outcome per participant, in the same order
        """
        pass

    @staticmethod
    def _qualifies(challenge: Challenge, participant: ParticipantRun) -> bool:
        """Unlinked, empty and too-short runs never win."""
        if not participant.has_games():
            return False
        if challenge.min_games and participant.game_count() < challenge.min_games:
            return False
        return True


class CompetitiveStrategy(EvaluationStrategy):
    """Rank participants by a run metric; everyone at rank 1 scores."""

    evaluation_type = 'competitive'

    def evaluate(self, challenge, participants):
        values: Dict[str, Value] = {}
        for participant in participants:
            if not self._qualifies(challenge, participant):
                continue
            value = run_metric(participant.run, challenge.metric)
            if value is not None:
                values[participant.user_id] = value

        descending = challenge.direction == 'desc'
        ranks = rank_values(values, descending=descending)

        outcomes = []
        for participant in participants:
            outcome = ChallengeOutcome(user_id=participant.user_id)
            if participant.user_id in values:
                outcome.metric_value = values[participant.user_id]
                outcome.rank = ranks[participant.user_id]
                # "Most X" needs at least one X to win
                if outcome.rank == 1 and (not descending or outcome.metric_value > 0):
                    outcome.points_awarded = challenge.points
            outcomes.append(outcome)
        return outcomes


class BinaryStrategy(EvaluationStrategy):
    """Pass/fail conditions; every participant who passes scores."""

    evaluation_type = 'binary'

    def evaluate(self, challenge, participants):
        outcomes = []
        for participant in participants:
            outcome = ChallengeOutcome(user_id=participant.user_id)
            if self._qualifies(challenge, participant):
                passed, game = self._check(challenge.conditions, participant.run)
                outcome.metric_value = self._metric_value(challenge, participant.run, passed)
                if passed:
                    outcome.points_awarded = challenge.points
                    outcome.rank = 1
                    if game is not None:
                        outcome.achieved_at = as_utc(game.date_played)
                        outcome.game_achieved = game.game_number
            outcomes.append(outcome)
        return outcomes

    @staticmethod
    def _check(conditions: List[Condition], run: Run) -> Tuple[bool, Optional[Game]]:
        """
        Check all conditions against a run.

        runTotal conditions look at run metrics. singleGame conditions must
        all hold within the same game; the first such game is returned.
        """
        if not conditions:
            return False, None

        for condition in conditions:
            if condition.scope == 'runTotal':
                actual = run_metric(run, condition.metric)
                if not compare(actual, condition.operator, condition.value):
                    return False, None

        game_conditions = [c for c in conditions if c.scope == 'singleGame']
        if not game_conditions:
            return True, None

        for game in run.ordered_games():
            if all(
                compare(game_metric(game, c.metric), c.operator, c.value)
                for c in game_conditions
            ):
                return True, game
        return False, None

    @staticmethod
    def _metric_value(challenge: Challenge, run: Run, passed: bool) -> Optional[Value]:
        for condition in challenge.conditions:
            if condition.scope == 'runTotal':
                return run_metric(run, condition.metric)
        return passed


class FirstToAchieveStrategy(EvaluationStrategy):
    """Race to a per-game target; only the earliest achiever scores."""

    evaluation_type = 'firstToAchieve'

    def evaluate(self, challenge, participants):
        op = self._operator(challenge.value)

        achievements = []
        for index, participant in enumerate(participants):
            if not self._qualifies(challenge, participant):
                continue
            game = self._first_qualifying_game(challenge, participant.run, op)
            if game is None:
                continue
            # Exact timestamp ties go to whoever joined the league first
            key = (
                as_utc(game.date_played),
                game.game_number,
                as_utc(participant.joined_at) or _LATEST,
                participant.user_id,
            )
            achievements.append((key, participant.user_id, game))

        achievements.sort(key=lambda a: a[0])
        positions = {user_id: (position, game) for position, (_, user_id, game) in enumerate(achievements, 1)}

        outcomes = []
        for participant in participants:
            outcome = ChallengeOutcome(user_id=participant.user_id)
            if participant.user_id in positions:
                position, game = positions[participant.user_id]
                outcome.rank = position
                outcome.metric_value = game_metric(
                    game, challenge.metric, min_passes=challenge.min_passes
                )
                outcome.achieved_at = as_utc(game.date_played)
                outcome.game_achieved = game.game_number
                if position == 1:
                    outcome.points_awarded = challenge.points
            outcomes.append(outcome)
        return outcomes

    @staticmethod
    def _operator(target: Optional[Value]) -> str:
        if isinstance(target, bool) or target is None:
            return '=='
        return '>='

    @staticmethod
    def _first_qualifying_game(challenge: Challenge, run: Run, op: str) -> Optional[Game]:
        target = True if challenge.value is None else challenge.value
        for game in run.ordered_games():
            value = game_metric(game, challenge.metric, min_passes=challenge.min_passes)
            if compare(value, op, target):
                return game
        return None


_STRATEGIES: Dict[str, EvaluationStrategy] = {
    strategy.evaluation_type: strategy
    for strategy in (CompetitiveStrategy(), BinaryStrategy(), FirstToAchieveStrategy())
}


def get_strategy(evaluation_type: str) -> EvaluationStrategy:
    """Look up the strategy for an evaluation type."""
    try:
        return _STRATEGIES[evaluation_type]
    except KeyError:
        raise ValueError(f"Unknown evaluation type: {evaluation_type}")


def evaluate(challenge: Challenge, participants: List[ParticipantRun]) -> List[ChallengeOutcome]:
    """Evaluate one challenge for every participant."""
    outcomes = get_strategy(challenge.evaluation_type).evaluate(challenge, participants)
    winners = [o.user_id for o in outcomes if o.points_awarded]
    logger.debug(f"Evaluated {challenge.id} ({challenge.evaluation_type}): winners={winners}")
    return outcomes
