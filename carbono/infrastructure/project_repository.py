"""
Infrastructure layer: Project persistence boundary.

Real storage is an external collaborator; the engine only needs to list
active projects and overwrite their CO2 estimate.
"""
import asyncio
from typing import Dict, Iterable, List, Optional, Protocol

from carbono.domain.models import ProjectRecord


class ProjectRepository(Protocol):
    """Persistence operations used by the carbon recalculation."""

    async def list_active_projects(self) -> List[ProjectRecord]:
        ...

    async def update_co2_estimate(self, project_id: str, estimated_co2_tons_year: float) -> None:
        ...


class InMemoryProjectRepository:
    """Process-local ProjectRepository, used as default wiring and in tests."""

    def __init__(self, projects: Optional[Iterable[ProjectRecord]] = None):
        self._projects: Dict[str, ProjectRecord] = {p.id: p for p in projects or []}
        self._lock = asyncio.Lock()

    async def add(self, project: ProjectRecord) -> None:
        async with self._lock:
            self._projects[project.id] = project

    async def get(self, project_id: str) -> Optional[ProjectRecord]:
        return self._projects.get(project_id)

    async def list_active_projects(self) -> List[ProjectRecord]:
        return [p for p in self._projects.values() if p.active]

    async def update_co2_estimate(self, project_id: str, estimated_co2_tons_year: float) -> None:
        """
        Overwrite a project's annual CO2 estimate.

        Raises:
            KeyError: If the project does not exist
        """
        async with self._lock:
            project = self._projects[project_id]
            self._projects[project_id] = project.model_copy(
                update={"estimated_co2_tons_year": estimated_co2_tons_year}
            )


# Singleton instance
_project_repository: Optional[InMemoryProjectRepository] = None


def get_project_repository() -> InMemoryProjectRepository:
    """
    Get or create the default project repository.

    Returns:
        InMemoryProjectRepository instance
    """
    global _project_repository
    if _project_repository is None:
        _project_repository = InMemoryProjectRepository()
    return _project_repository
