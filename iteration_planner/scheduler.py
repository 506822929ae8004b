"""
Iteration Scheduler

Lays the whole backlog out into numbered iterations: closed iterations from
done stories, the in-progress iteration for today, then backlog iterations
packed up to the team's velocity.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .backlog import Backlog, Story, StoryColumn
from .calendar import current_iteration_number, iteration_number_for_date
from .config import ProjectConfig
from .iteration import Iteration, IterationColumn, create_missing_iterations
from .velocity import VelocityEstimator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IterationPlan:
    """Result of one rebuild. Never modified once returned."""
    iterations: tuple[Iteration, ...]
    velocity: int
    current_iteration_number: int
    unscheduled: tuple[Story, ...] = ()
    built_at: datetime = field(default_factory=datetime.now)

    @property
    def done_iterations(self) -> list[Iteration]:
        return [i for i in self.iterations if i.column == IterationColumn.DONE]

    @property
    def current_iteration(self) -> Optional[Iteration]:
        for iteration in self.iterations:
            if iteration.column == IterationColumn.IN_PROGRESS:
                return iteration
        return None

    @property
    def backlog_iterations(self) -> list[Iteration]:
        return [i for i in self.iterations if i.column == IterationColumn.BACKLOG]

    def iteration_for_story(self, story_id: int) -> Optional[Iteration]:
        for iteration in self.iterations:
            if any(s.id == story_id for s in iteration.stories):
                return iteration
        return None

    def to_dict(self, config: Optional[ProjectConfig] = None) -> dict:
        return {
            "velocity": self.velocity,
            "current_iteration_number": self.current_iteration_number,
            "built_at": self.built_at.isoformat(),
            "iterations": [i.to_dict(config) for i in self.iterations],
            "unscheduled": [s.id for s in self.unscheduled],
        }


class IterationScheduler:
    """
    Rebuilds a project's iterations from a backlog snapshot.

    Usage:
        scheduler = IterationScheduler(config)
        plan = scheduler.rebuild(backlog.snapshot())
    """

    def __init__(self, config: ProjectConfig, project_id: Optional[int] = None):
        self.config = config
        self.project_id = project_id
        self.estimator = VelocityEstimator(
            default_velocity=config.default_velocity,
            lookback=config.velocity_lookback
        )

    def _closed_iteration_number(self, story: Story, today: date) -> Optional[int]:
        if story.iteration_number is not None:
            return story.iteration_number if story.iteration_number >= 1 else None
        if story.accepted_on is not None:
            return iteration_number_for_date(self.config, story.accepted_on, today)
        return None

    def _group_done_stories(
        self,
        backlog: Backlog,
        today: date
    ) -> tuple[dict[int, list[Story]], list[Story]]:
        """Done stories keyed by the iteration they were completed in."""
        groups: dict[int, list[Story]] = {}
        unscheduled = []

        for story in backlog.stories_by_column(StoryColumn.DONE):
            number = self._closed_iteration_number(story, today)
            if number is None:
                unscheduled.append(story)
                continue
            groups.setdefault(number, []).append(story)

        if unscheduled:
            logger.warning(
                "%d done stories have no iteration number and were left out: %s",
                len(unscheduled), [s.id for s in unscheduled]
            )

        return groups, unscheduled

    @staticmethod
    def _append(
        iterations: list[Iteration],
        iteration: Iteration,
        fill_column: IterationColumn
    ) -> Iteration:
        """Append an iteration, filling any numbering gap before it first."""
        previous = iterations[-1] if iterations else None
        iterations.extend(create_missing_iterations(fill_column, previous, iteration))
        iterations.append(iteration)
        return iteration

    def rebuild(self, backlog: Backlog, today: Optional[date] = None) -> IterationPlan:
        """
        Build a new iteration plan.

        Args:
            backlog: Stories to schedule; only read, never modified
            today: Date that decides the in-progress iteration

        Returns:
            IterationPlan with contiguous iteration numbers
        """
        today = today or date.today()
        iterations: list[Iteration] = []

        # Closed iterations
        groups, unscheduled = self._group_done_stories(backlog, today)
        for number in sorted(groups):
            self._append(
                iterations,
                Iteration(number=number, column=IterationColumn.DONE, stories=groups[number]),
                IterationColumn.DONE
            )

        velocity = self.estimator.estimate(
            [i for i in iterations if i.column == IterationColumn.DONE]
        )

        # In-progress iteration
        current_number = current_iteration_number(self.config, today)
        if iterations and iterations[-1].number > current_number:
            logger.warning(
                "Stories were completed in iteration %d, after the current iteration %d",
                iterations[-1].number, current_number
            )

        current = self._append(
            iterations,
            Iteration(
                number=current_number,
                column=IterationColumn.IN_PROGRESS,
                stories=list(backlog.stories_by_column(StoryColumn.IN_PROGRESS)),
                maximum_points=velocity
            ),
            IterationColumn.DONE
        )

        # Backlog iterations
        backlog_iteration = self._append(
            iterations,
            Iteration(
                number=current.number + 1,
                column=IterationColumn.BACKLOG,
                maximum_points=velocity
            ),
            IterationColumn.BACKLOG
        )

        for story in backlog.stories_by_column(StoryColumn.BACKLOG):
            # Spare capacity in the in-progress iteration is used up first
            if current.can_take_story(story):
                current.stories.append(story)
                continue

            if not backlog_iteration.can_take_story(story):
                # An oversized story uses up the capacity of the iterations
                # after it, e.g. 5 points at velocity 1 skips 4 iterations.
                next_number = (
                    backlog_iteration.number + 1
                    + math.ceil(backlog_iteration.overflows_by() / velocity)
                )
                backlog_iteration = self._append(
                    iterations,
                    Iteration(
                        number=next_number,
                        column=IterationColumn.BACKLOG,
                        maximum_points=velocity
                    ),
                    IterationColumn.BACKLOG
                )

            backlog_iteration.stories.append(story)

        for iteration in iterations:
            iteration.project_id = self.project_id

        logger.debug(
            "Rebuilt %d iterations at velocity %d (current iteration %d)",
            len(iterations), velocity, current_number
        )

        return IterationPlan(
            iterations=tuple(iterations),
            velocity=velocity,
            current_iteration_number=current_number,
            unscheduled=tuple(unscheduled)
        )


# Convenience function
def rebuild_iterations(
    config: ProjectConfig,
    backlog: Backlog,
    today: Optional[date] = None
) -> IterationPlan:
    """
    Quick function to lay out a backlog.

    Example:
        plan = rebuild_iterations(config, backlog)

        for iteration in plan.iterations:
            print(f"{iteration.number}: {iteration.points()} points")
    """
    return IterationScheduler(config).rebuild(backlog, today)
