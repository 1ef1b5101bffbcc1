"""Projects: tracked repositories, aggregates, and snapshots."""

from adoption_tracker.projects.classification import classify_source
from adoption_tracker.projects.repository import ProjectRepository
from adoption_tracker.projects.schemas import (
    AdoptionByDate,
    Project,
    ProjectFilter,
    ProjectStats,
    Snapshot,
)

__all__ = [
    "AdoptionByDate",
    "Project",
    "ProjectFilter",
    "ProjectRepository",
    "ProjectStats",
    "Snapshot",
    "classify_source",
]
