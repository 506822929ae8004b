"""
Iteration Planner - Integrations

Connections to the planning server:
- Changesets: new and changed stories, reloaded before each rebuild
"""

from .changesets import (
    ChangesetSynchronizer,
    PlannerClient,
    SyncError,
    SyncResult,
    changeset_story_ids
)

__all__ = [
    "ChangesetSynchronizer",
    "PlannerClient",
    "SyncError",
    "SyncResult",
    "changeset_story_ids",
]
