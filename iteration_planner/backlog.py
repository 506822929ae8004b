"""
Backlog for the Iteration Planner

Stories as they are known locally, queryable by column in priority order.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


class StoryColumn(Enum):
    """Board column a story sits in."""
    DONE = "done"
    IN_PROGRESS = "in_progress"
    BACKLOG = "backlog"
    CHILLY_BIN = "chilly_bin"  # icebox, never scheduled


# Server story states and the column each one belongs to
STATE_COLUMNS = {
    "accepted": StoryColumn.DONE,
    "started": StoryColumn.IN_PROGRESS,
    "finished": StoryColumn.IN_PROGRESS,
    "delivered": StoryColumn.IN_PROGRESS,
    "rejected": StoryColumn.IN_PROGRESS,
    "unstarted": StoryColumn.BACKLOG,
    "unscheduled": StoryColumn.CHILLY_BIN,
}


def _parse_date(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value.date() if isinstance(value, datetime) else value
    value = str(value)
    if "/" in value:
        return datetime.strptime(value[:10], "%Y/%m/%d").date()
    return datetime.fromisoformat(value.replace("Z", "+00:00")).date()


@dataclass(frozen=True)
class Story:
    """A unit of backlog work. Owned by the backlog and never mutated in place."""
    id: int
    points: Optional[float] = None
    column: Optional[StoryColumn] = None  # None until fetched from the server
    iteration_number: Optional[int] = None
    accepted_on: Optional[date] = None
    position: Optional[float] = None
    title: str = ""
    state: Optional[str] = None

    @property
    def estimate(self) -> float:
        """Point estimate with unestimated stories counting as zero."""
        return self.points or 0

    @property
    def is_loaded(self) -> bool:
        return self.column is not None

    @classmethod
    def from_dict(cls, payload: dict) -> "Story":
        """
        Build a story from a server payload.

        Accepts either the bare attributes or a ``{"story": {...}}`` envelope.
        The column is taken from ``column`` when present, otherwise derived
        from ``state``.
        """
        if isinstance(payload, dict) and set(payload) == {"story"}:
            payload = payload["story"]
        if not isinstance(payload, dict):
            raise TypeError(f"Story payload must be an object, got {type(payload).__name__}")

        column = payload.get("column")
        if column:
            column = StoryColumn(str(column).lstrip("#"))
        else:
            column = STATE_COLUMNS.get(payload.get("state"))

        iteration_number = payload.get("iteration_number")
        position = payload.get("position")

        return cls(
            id=int(payload["id"]),
            points=payload.get("estimate", payload.get("points")),
            column=column,
            iteration_number=int(iteration_number) if iteration_number is not None else None,
            accepted_on=_parse_date(payload.get("accepted_at")),
            position=float(position) if position is not None else None,
            title=payload.get("title") or "",
            state=payload.get("state"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "points": self.points,
            "column": self.column.value if self.column else None,
            "state": self.state,
            "iteration_number": self.iteration_number,
            "accepted_on": self.accepted_on.isoformat() if self.accepted_on else None,
            "position": self.position,
        }


class Backlog:
    """
    Local store of a project's stories.

    The scheduler only reads through ``stories_by_column``; ``add_story`` and
    ``refresh_story`` exist for the changeset synchronizer.
    """

    def __init__(self, stories: Optional[Iterable[Story]] = None):
        self._stories: dict[int, Story] = {}
        for story in stories or []:
            self._stories[story.id] = story

    def __len__(self) -> int:
        return len(self._stories)

    def __iter__(self):
        return iter(list(self._stories.values()))

    def __contains__(self, story_id) -> bool:
        return story_id in self._stories

    def stories_by_column(self, column: StoryColumn) -> list[Story]:
        """Stories in a column, highest priority (lowest position) first."""
        stories = [s for s in self._stories.values() if s.column == column]

        # sorted() is stable, so unpositioned stories keep insertion order at the end
        return sorted(
            stories,
            key=lambda s: (s.position is None, s.position or 0)
        )

    def story_by_id(self, story_id: int) -> Optional[Story]:
        return self._stories.get(story_id)

    def add_story(self, story_id: int) -> Story:
        """Register a story known to exist on the server but not yet fetched."""
        if story_id in self._stories:
            return self._stories[story_id]

        story = Story(id=story_id)
        self._stories[story_id] = story
        logger.debug("Registered new story %s", story_id)
        return story

    def refresh_story(self, story: Story) -> Story:
        """Replace the local copy of a story with freshly fetched data."""
        self._stories[story.id] = story
        return story

    def snapshot(self) -> "Backlog":
        """Independent copy to rebuild from while the original keeps changing."""
        return Backlog(self._stories.values())
