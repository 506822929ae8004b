"""
FastAPI Backend for the Iteration Planner

Serves iteration plans and reacts to changeset notifications.
"""

import logging
from datetime import datetime
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .backlog import Backlog, Story
from .config import Config, ProjectConfig
from .integrations import ChangesetSynchronizer, PlannerClient, SyncError
from .project import Project
from .velocity import calculate_velocity_stats

logger = logging.getLogger(__name__)


# Global instances
config = Config()
_projects: dict[int, Project] = {}


# Pydantic models for API
class ProjectSettings(BaseModel):
    start_date: Optional[str] = None
    iteration_start_day: int = 1
    iteration_length: int = 1
    default_velocity: Optional[int] = None
    velocity_lookback: int = 3


class StoryIn(BaseModel):
    id: int
    title: str = ""
    estimate: Optional[float] = None
    state: Optional[str] = None
    column: Optional[str] = None
    iteration_number: Optional[int] = None
    accepted_at: Optional[str] = None
    position: Optional[float] = None


class ProjectLoad(BaseModel):
    settings: ProjectSettings = ProjectSettings()
    stories: list[StoryIn] = []
    last_changeset_id: Optional[int] = None


class ChangesetNotice(BaseModel):
    last_changeset_id: int


def create_client() -> PlannerClient:
    """Client for the configured planning server."""
    return PlannerClient(
        url=config.server_url,
        token=config.server_token,
        timeout=config.server_timeout
    )


def _get_project(project_id: int) -> Project:
    project = _projects.get(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return project


# Lifespan context manager
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logging.basicConfig(level=config.log_level)
    logger.info("Iteration Planner API starting up")
    yield
    logger.info("Iteration Planner API shutting down")


# Create FastAPI app
app = FastAPI(
    title="Iteration Planner",
    description="API for iteration plans and team velocity",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "projects": len(_projects),
        "server": config.server_url is not None
    }


# Project endpoints
@app.put("/api/projects/{project_id}")
async def load_project(project_id: int, request: ProjectLoad):
    """Load a project's settings and stories, then lay out its iterations."""
    settings = config.project_defaults()
    settings.update(request.settings.model_dump(exclude_unset=True, exclude_none=True))

    try:
        project_config = ProjectConfig.from_dict(settings)
        stories = [Story.from_dict(s.model_dump()) for s in request.stories]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    project = Project(
        id=project_id,
        config=project_config,
        backlog=Backlog(stories),
        last_changeset_id=request.last_changeset_id
    )
    plan = project.rebuild_iterations()
    _projects[project_id] = project

    return plan.to_dict(project.config)


@app.get("/api/projects/{project_id}/iterations")
async def get_iterations(project_id: int):
    """Get the current iteration plan."""
    project = _get_project(project_id)
    plan = project.plan or project.rebuild_iterations()
    return plan.to_dict(project.config)


@app.get("/api/projects/{project_id}/velocity")
async def get_velocity(project_id: int):
    """Get the project velocity and history statistics."""
    project = _get_project(project_id)
    stats = calculate_velocity_stats(project.done_iterations())

    return {
        "velocity": project.velocity(),
        "current_iteration_number": project.current_iteration_number(),
        "stats": stats.to_dict()
    }


@app.get("/api/projects/{project_id}/iterations/{iteration_number}/date")
async def get_iteration_date(project_id: int, iteration_number: int):
    """Get the start date of an iteration."""
    project = _get_project(project_id)
    if iteration_number < 1:
        raise HTTPException(status_code=422, detail="Iteration numbers start at 1")

    return {
        "number": iteration_number,
        "start_date": project.date_for_iteration_number(iteration_number).isoformat()
    }


@app.post("/api/projects/{project_id}/changesets")
async def notify_changesets(project_id: int, notice: ChangesetNotice):
    """Load changed stories up to the given changeset and rebuild."""
    project = _get_project(project_id)

    if not config.server_url:
        raise HTTPException(status_code=400, detail="Planning server not configured")

    synchronizer = ChangesetSynchronizer(create_client())
    try:
        result = await synchronizer.update_changesets(project, notice.last_changeset_id)
    except SyncError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "last_changeset_id": project.last_changeset_id,
        "sync": result.to_dict(),
        "plan": project.plan.to_dict(project.config)
    }


# Run with: uvicorn iteration_planner.api:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
