"""
Iteration Planner

Lays a prioritised backlog out into sprints and estimates team velocity
from the sprints already completed.
"""

__version__ = "1.0.0"

from .config import ProjectConfig, Config

from .calendar import (
    start_date,
    iteration_number_for_date,
    date_for_iteration_number,
    current_iteration_number
)

from .backlog import Backlog, Story, StoryColumn

from .iteration import Iteration, IterationColumn, create_missing_iterations

from .velocity import VelocityEstimator, VelocityStats, calculate_velocity_stats

from .scheduler import IterationScheduler, IterationPlan, rebuild_iterations

from .project import Project

from .integrations import ChangesetSynchronizer, PlannerClient, SyncError, SyncResult

__all__ = [
    # Version
    "__version__",

    # Configuration
    "ProjectConfig",
    "Config",

    # Calendar
    "start_date",
    "iteration_number_for_date",
    "date_for_iteration_number",
    "current_iteration_number",

    # Backlog
    "Backlog",
    "Story",
    "StoryColumn",

    # Iterations
    "Iteration",
    "IterationColumn",
    "create_missing_iterations",

    # Velocity
    "VelocityEstimator",
    "VelocityStats",
    "calculate_velocity_stats",

    # Scheduling
    "IterationScheduler",
    "IterationPlan",
    "rebuild_iterations",
    "Project",

    # Sync
    "ChangesetSynchronizer",
    "PlannerClient",
    "SyncError",
    "SyncResult",
]
