"""Challenge catalog data model."""

from typing import List, Literal, Optional, Union
from pydantic import BaseModel


Scalar = Union[bool, int, float]


class Condition(BaseModel):
    """A single pass/fail check used by binary challenges."""

    metric: str
    operator: Literal['==', '===', '>=', '<=', '>'] = '=='
    value: Scalar
    scope: Literal['runTotal', 'singleGame'] = 'runTotal'

    class Config:
        """Pydantic configuration."""

        frozen = True


class Challenge(BaseModel):
    """A scoring rule worth a fixed number of points."""

    id: str
    name: str
    description: str = ""
    category: Literal[
        'Offensive', 'Defensive', 'Technical', 'Management', 'Bonus', 'First To Achieve'
    ]
    points: int
    evaluation_type: Literal['competitive', 'binary', 'firstToAchieve']
    metric: Optional[str] = None
    conditions: List[Condition] = []
    min_games: Optional[int] = None
    value: Optional[Scalar] = None
    min_passes: Optional[int] = None
    direction: Literal['desc', 'asc'] = 'desc'  # asc: lowest value wins

    class Config:
        """Pydantic configuration."""

        frozen = True

    def with_points(self, points: int) -> "Challenge":
        """Copy of this challenge worth a league-specific number of points."""
        if points == self.points:
            return self
        return self.model_copy(update={'points': points})
