"""
Project

Owns a project's configuration, backlog and current iteration plan.
"""

import logging
import threading
from datetime import date, datetime
from typing import Optional, Union

from .backlog import Backlog
from .calendar import (
    current_iteration_number,
    date_for_iteration_number,
    iteration_number_for_date,
    start_date,
)
from .config import ProjectConfig
from .iteration import Iteration
from .scheduler import IterationPlan, IterationScheduler

logger = logging.getLogger(__name__)


class Project:
    """
    Host for the iteration scheduler.

    Each rebuild produces a whole new plan that replaces the old one in a
    single assignment, so readers of ``plan`` or ``iterations`` never see a
    partly built list.
    """

    def __init__(
        self,
        id: int,
        config: Optional[ProjectConfig] = None,
        backlog: Optional[Backlog] = None,
        last_changeset_id: Optional[int] = None
    ):
        self.id = id
        self.config = config or ProjectConfig()
        self.backlog = backlog or Backlog()
        self.last_changeset_id = last_changeset_id
        self.plan: Optional[IterationPlan] = None
        self._rebuild_lock = threading.Lock()

    @property
    def iterations(self) -> tuple[Iteration, ...]:
        plan = self.plan
        return plan.iterations if plan else ()

    def rebuild_iterations(self, today: Optional[date] = None) -> IterationPlan:
        """Rebuild every iteration from a snapshot of the backlog."""
        with self._rebuild_lock:
            scheduler = IterationScheduler(self.config, project_id=self.id)
            plan = scheduler.rebuild(self.backlog.snapshot(), today)
            self.plan = plan

        logger.info(
            "Project %s: %d iterations, velocity %d",
            self.id, len(plan.iterations), plan.velocity
        )
        return plan

    def done_iterations(self) -> list[Iteration]:
        plan = self.plan
        return plan.done_iterations if plan else []

    def velocity(self) -> int:
        plan = self.plan
        if plan is None:
            return self.config.default_velocity
        return plan.velocity

    def start_date(self, today: Optional[date] = None) -> date:
        return start_date(self.config, today)

    def current_iteration_number(self, today: Optional[date] = None) -> int:
        return current_iteration_number(self.config, today)

    def iteration_number_for_date(
        self,
        when: Union[date, datetime],
        today: Optional[date] = None
    ) -> int:
        return iteration_number_for_date(self.config, when, today)

    def date_for_iteration_number(self, iteration_number: int, today: Optional[date] = None) -> date:
        return date_for_iteration_number(self.config, iteration_number, today)

    def changeset_range(self, to_id: int) -> tuple[int, int]:
        """Changesets still to load when the server reports ``to_id``."""
        from_id = self.last_changeset_id if self.last_changeset_id is not None else 0
        return from_id, to_id
