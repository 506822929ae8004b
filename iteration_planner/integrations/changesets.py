"""
Changeset Sync for the Iteration Planner

Loads new and changed stories from the planning server and rebuilds the
project's iterations once they have arrived.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

import httpx

from ..backlog import Story
from ..project import Project

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """A story or changeset could not be fetched from the server."""

    def __init__(self, message: str, story_id: Optional[int] = None):
        super().__init__(message)
        self.story_id = story_id


@dataclass
class SyncResult:
    """Outcome of handling one batch of changesets."""
    refreshed: list[int] = field(default_factory=list)
    added: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "refreshed": self.refreshed,
            "added": self.added,
            "failed": {str(k): v for k, v in self.failed.items()},
        }


class PlannerClient:
    """
    Planning server API client for changesets and stories.

    Usage:
        client = PlannerClient(url="https://planner.example.com", token="api_token")
        changesets = await client.get_changesets(project_id=1, from_id=0, to_id=12)
        story = await client.get_story(project_id=1, story_id=5)
    """

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = (url or os.getenv("PLANNER_URL", "")).rstrip("/")
        self.token = token or os.getenv("PLANNER_TOKEN")
        self.timeout = timeout
        self.transport = transport

        if not self.url:
            raise ValueError(
                "Planning server URL required. Set PLANNER_URL env var "
                "or pass it as a parameter."
            )

        self.headers = {"Accept": "application/json"}
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        story_id: Optional[int] = None
    ):
        """Make request to the planning server, raising SyncError on failure."""
        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.request(
                    method,
                    f"{self.url}{endpoint}",
                    params=params,
                    headers=self.headers,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json() if response.content else {}
        except httpx.HTTPError as e:
            raise SyncError(f"{method} {endpoint} failed: {e}", story_id=story_id) from e
        except ValueError as e:
            raise SyncError(f"{method} {endpoint} returned malformed JSON", story_id=story_id) from e

    async def get_changesets(self, project_id: int, from_id: int, to_id: int) -> list[dict]:
        """Changesets recorded on the server between two changeset ids."""
        result = await self._request(
            "GET",
            f"/projects/{project_id}/changesets",
            params={"from": from_id, "to": to_id}
        )
        if not isinstance(result, list):
            raise SyncError("Changeset listing is not a list")
        return result

    async def get_story(self, project_id: int, story_id: int) -> Story:
        """Fetch one story."""
        payload = await self._request(
            "GET",
            f"/projects/{project_id}/stories/{story_id}",
            story_id=story_id
        )
        try:
            return Story.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise SyncError(f"Story {story_id} payload is malformed: {e}", story_id=story_id) from e


def changeset_story_ids(changesets: list[dict]) -> list[int]:
    """Distinct story ids named by changesets, in first-seen order."""
    story_ids = []
    for changeset in changesets:
        if isinstance(changeset, dict) and "changeset" in changeset:
            changeset = changeset["changeset"]
        try:
            story_id = int(changeset["story_id"])
        except (KeyError, TypeError, ValueError) as e:
            raise SyncError(f"Malformed changeset: {changeset!r}") from e
        if story_id not in story_ids:
            story_ids.append(story_id)
    return story_ids


class ChangesetSynchronizer:
    """
    Keeps a project's backlog in step with the server.

    Usage:
        synchronizer = ChangesetSynchronizer(PlannerClient(url=...))
        result = await synchronizer.update_changesets(project, last_changeset_id=42)
    """

    def __init__(self, client: PlannerClient):
        self.client = client

    async def _fetch(self, project: Project, story_id: int) -> Story:
        story = await self.client.get_story(project.id, story_id)
        if story.id != story_id:
            raise SyncError(f"Asked for story {story_id}, got {story.id}", story_id=story_id)
        return story

    async def handle_changesets(self, project: Project, changesets: list[dict]) -> SyncResult:
        """
        (Re)load every story named in the changesets.

        Stories not yet known locally are registered before they are fetched.
        Fetches are independent: one failing does not hold up the others.
        """
        result = SyncResult()
        story_ids = changeset_story_ids(changesets)

        for story_id in story_ids:
            if project.backlog.story_by_id(story_id) is None:
                project.backlog.add_story(story_id)
                result.added.append(story_id)

        fetched = await asyncio.gather(
            *(self._fetch(project, story_id) for story_id in story_ids),
            return_exceptions=True
        )

        for story_id, outcome in zip(story_ids, fetched):
            if isinstance(outcome, SyncError):
                logger.warning("Could not load story %s: %s", story_id, outcome)
                result.failed[story_id] = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                project.backlog.refresh_story(outcome)
                if story_id not in result.added:
                    result.refreshed.append(story_id)

        return result

    async def update_changesets(self, project: Project, last_changeset_id: int) -> SyncResult:
        """
        React to the server reporting a new last changeset id.

        Loads the changed stories, records the new id and rebuilds the
        project's iterations. Raises SyncError if the changesets themselves
        cannot be listed, in which case the project is left untouched.
        """
        from_id, to_id = project.changeset_range(last_changeset_id)
        logger.info("Project %s: loading changesets %s to %s", project.id, from_id, to_id)

        changesets = await self.client.get_changesets(project.id, from_id, to_id)
        result = await self.handle_changesets(project, changesets)

        project.last_changeset_id = to_id
        project.rebuild_iterations()
        return result
