"""
Iterations

A capacity-bounded container of stories tagged with an iteration number.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from .backlog import Story
from .calendar import date_for_iteration_number
from .config import ProjectConfig


class IterationColumn(Enum):
    """Column an iteration is grouped under for display."""
    DONE = "done"
    IN_PROGRESS = "in_progress"
    BACKLOG = "backlog"


@dataclass
class Iteration:
    """
    A time-boxed bucket of stories.

    ``maximum_points`` is None for closed iterations and gap placeholders;
    such an iteration never takes another story.
    """
    number: int
    column: IterationColumn
    stories: list[Story] = field(default_factory=list)
    maximum_points: Optional[int] = None
    project_id: Optional[int] = None  # lookup key only, the project owns nothing here

    def points(self) -> float:
        """Sum of the assigned stories' estimates."""
        return sum(s.estimate for s in self.stories)

    def can_take_story(self, story: Story) -> bool:
        """Whether adding the story keeps the iteration within capacity."""
        if self.maximum_points is None:
            return False
        return self.points() + story.estimate <= self.maximum_points

    def overflows_by(self) -> float:
        """Points assigned beyond capacity."""
        if self.maximum_points is None:
            return 0
        return max(0, self.points() - self.maximum_points)

    @property
    def is_empty(self) -> bool:
        return not self.stories

    def start_date(self, config: ProjectConfig, today: Optional[date] = None) -> date:
        return date_for_iteration_number(config, self.number, today)

    def to_dict(self, config: Optional[ProjectConfig] = None) -> dict:
        data = {
            "number": self.number,
            "column": self.column.value,
            "points": self.points(),
            "maximum_points": self.maximum_points,
            "overflows_by": self.overflows_by(),
            "stories": [s.id for s in self.stories],
        }
        if config is not None:
            data["start_date"] = self.start_date(config).isoformat()
        return data


def create_missing_iterations(
    fill_column: IterationColumn,
    previous: Optional[Iteration],
    next_iteration: Iteration
) -> list[Iteration]:
    """
    Empty placeholders for every number strictly between two iterations.

    With no previous iteration the gap is counted from zero, so a first
    iteration numbered 4 is preceded by placeholders 1 to 3.
    """
    previous_number = previous.number if previous is not None else 0

    return [
        Iteration(number=number, column=fill_column)
        for number in range(previous_number + 1, next_iteration.number)
    ]
